"""Global error hierarchy and FastAPI exception handlers.

All botanical-specific errors extend BotanicalError. Each class declares the
HTTP status it maps to, whether the retry executor may retry it, and the
``category`` used for per-provider error counters. The FastAPI exception
handlers catch these errors (plus Pydantic's RequestValidationError and
unhandled exceptions) and return a consistent JSON envelope:
{ success, data, error, meta }.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class BotanicalError(Exception):
    """Base error for all botanical-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"
    retryable: bool = False
    category: str = "internal"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ValidationError(BotanicalError):
    """Malformed caller input with field-level details."""

    status_code = 422
    message = "Validation error"
    category = "validation"


class AuthenticationError(BotanicalError):
    """Invalid or missing service key."""

    status_code = 401
    message = "Invalid or missing service key"
    category = "authentication"


class ConfigurationError(BotanicalError):
    """Provider credentials are absent; the client refuses to operate."""

    status_code = 503
    message = "Provider credentials are not configured"
    category = "configuration"


class ProviderNotFoundError(BotanicalError):
    """Unknown provider selector."""

    status_code = 404
    message = "Provider not found"
    category = "not_found"


class CircuitOpenError(BotanicalError):
    """Circuit breaker open for the provider; the call is rejected without contact."""

    status_code = 503
    message = "Circuit breaker open for provider"
    category = "circuit_open"


class RequestTimeoutError(BotanicalError):
    """Upstream attempt exceeded its deadline."""

    status_code = 504
    message = "Upstream request timed out"
    retryable = True
    category = "timeout"


class NetworkError(BotanicalError):
    """Connection reset, refused, or name resolution failure."""

    status_code = 502
    message = "Upstream network error"
    retryable = True
    category = "network"


class RateLimitError(BotanicalError):
    """Upstream answered HTTP 429."""

    status_code = 503
    message = "Upstream rate limit reached"
    retryable = True
    category = "rate_limit"

    @property
    def retry_after(self) -> float | None:
        value = self.details.get("retry_after")
        return float(value) if isinstance(value, (int, float)) else None


class UpstreamServerError(BotanicalError):
    """Upstream answered HTTP 5xx."""

    status_code = 502
    message = "Upstream server error"
    retryable = True
    category = "server_error"


class UpstreamClientError(BotanicalError):
    """Upstream answered HTTP 4xx other than 429."""

    status_code = 502
    message = "Upstream rejected the request"
    category = "client_error"


class ResponseShapeError(BotanicalError):
    """Upstream payload is missing required fields or is not JSON."""

    status_code = 502
    message = "Upstream response has an invalid shape"
    retryable = True
    category = "response_shape"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(status_code: int, error: str, meta: dict | None = None) -> JSONResponse:
    """Failure body shared by every non-2xx response: ``{success, data, error, meta}``."""
    body = {"success": False, "data": None, "error": error, "meta": meta}
    return JSONResponse(status_code=status_code, content=body)


async def _on_botanical_error(request: Request, exc: BotanicalError) -> JSONResponse:
    logger.warning(
        "%s %s failed: %s",
        request.method,
        request.url.path,
        exc.message,
        extra={"error_class": exc.category, "provider": exc.details.get("provider")},
    )
    return _envelope(exc.status_code, exc.message, meta=dict(exc.details) or None)


async def _on_request_validation(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"])
        fields.append({"field": location, "message": err["msg"], "type": err["type"]})
    return _envelope(
        ValidationError.status_code,
        ValidationError.message,
        meta={"fields": fields},
    )


async def _on_unexpected(request: Request, exc: Exception) -> JSONResponse:
    # Only the generic message leaves the process; details stay in the log.
    logger.error(
        "Unhandled %s on %s %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return _envelope(BotanicalError.status_code, BotanicalError.message)


def register_error_handlers(app: FastAPI) -> None:
    """Attach the envelope handlers to *app*."""
    handlers = (
        (BotanicalError, _on_botanical_error),
        (RequestValidationError, _on_request_validation),
        (Exception, _on_unexpected),
    )
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)  # type: ignore[arg-type]
