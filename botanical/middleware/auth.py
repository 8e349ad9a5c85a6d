"""Service key guard for the admin surface.

``/admin/*`` routes require an ``X-Service-Key`` header equal to
``BotanicalSettings.service_key``; the key is compared with
``hmac.compare_digest``. The health endpoints stay open so load balancers
and uptime monitors can probe them without credentials.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from botanical.middleware.error_handler import AuthenticationError, _envelope

logger = logging.getLogger(__name__)

SERVICE_KEY_HEADER = "X-Service-Key"


def is_public_path(path: str) -> bool:
    """``/health`` and ``/health/{provider}`` need no key."""
    return path == "/health" or path.startswith("/health/")


def key_problem(provided: str | None, expected: str) -> str | None:
    """Describe what is wrong with *provided*, or None when it matches."""
    if not provided:
        return "missing"
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        return "invalid"
    return None


class ServiceKeyAuthMiddleware(BaseHTTPMiddleware):
    """Rejects non-public requests lacking the configured service key."""

    def __init__(self, app, service_key: str) -> None:  # noqa: ANN001
        super().__init__(app)
        self._service_key = service_key

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if not is_public_path(path):
            problem = key_problem(request.headers.get(SERVICE_KEY_HEADER), self._service_key)
            if problem is not None:
                logger.warning(
                    "Rejected %s %s: %s service key",
                    request.method,
                    path,
                    problem,
                    extra={
                        "event": "auth_failure",
                        "source_ip": request.client.host if request.client else "unknown",
                    },
                )
                return _envelope(
                    status_code=AuthenticationError.status_code,
                    error=AuthenticationError.message,
                )
        return await call_next(request)
