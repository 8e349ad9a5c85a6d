"""Structured JSON logging for the botanical service.

Every entry carries timestamp, level, logger, message and request_id. The
request id comes from ``request_id_var``, which the request id middleware
sets for the lifetime of an HTTP request; outside a request it is null.
Provider-call context (provider, operation, attempt, error_class, ...) is
attached through ``extra`` on the log call.

SECURITY: Provider API keys travel as query parameters (``token=`` for
Trefle, ``key=`` for Perenual). Both, and other credential-looking
assignments, are replaced with ``[REDACTED]`` before anything is written.
"""

from __future__ import annotations

import json
import logging
import re
from contextvars import ContextVar
from datetime import datetime, timezone

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

_REDACT_RE = re.compile(
    r"(service.key|api.key|secret|password|token|credential|authorization|(?<=[?&])key)"
    r"[\s]*[=:]\s*[^\s&]+",
    re.IGNORECASE,
)

# Structured fields copied from ``extra`` when present, in output order
_CONTEXT_FIELDS: tuple[str, ...] = (
    "provider",
    "operation",
    "attempt",
    "max_attempts",
    "error_class",
    "duration_ms",
    "delay_ms",
    "circuit_state",
    "event",
)

_PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s %(message)s"


def redact(text: str) -> str:
    """Replace credential values in *text* with ``[REDACTED]``."""
    return _REDACT_RE.sub("[REDACTED]", text)


class RequestIdFilter(logging.Filter):
    """Stamps each record with the current request id unless one was passed."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
            "request_id": getattr(record, "request_id", None),
        }
        entry.update(
            {name: getattr(record, name) for name in _CONTEXT_FIELDS if hasattr(record, name)}
        )

        if hasattr(record, "error_reason"):
            entry["error_reason"] = redact(str(record.error_reason))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = redact(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


class RedactingFormatter(logging.Formatter):
    """Plain-text formatter for local development, with the same redaction."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def configure_logging(level: str = "INFO", *, json_output: bool = True) -> None:
    """Install a single stderr handler on the root logger.

    Parameters
    ----------
    level:
        Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    json_output:
        JSON lines when True, redacted plain text otherwise.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JsonFormatter() if json_output else RedactingFormatter(_PLAIN_FORMAT))
    root.addHandler(handler)
