"""Middleware package: error hierarchy, auth, and request ID."""

from botanical.middleware.auth import ServiceKeyAuthMiddleware
from botanical.middleware.error_handler import (
    AuthenticationError,
    BotanicalError,
    CircuitOpenError,
    ConfigurationError,
    NetworkError,
    ProviderNotFoundError,
    RateLimitError,
    RequestTimeoutError,
    ResponseShapeError,
    UpstreamClientError,
    UpstreamServerError,
    ValidationError,
    register_error_handlers,
)
from botanical.middleware.request_id import RequestIdMiddleware

__all__ = [
    "AuthenticationError",
    "BotanicalError",
    "CircuitOpenError",
    "ConfigurationError",
    "NetworkError",
    "ProviderNotFoundError",
    "RateLimitError",
    "RequestIdMiddleware",
    "RequestTimeoutError",
    "ResponseShapeError",
    "ServiceKeyAuthMiddleware",
    "UpstreamClientError",
    "UpstreamServerError",
    "ValidationError",
    "register_error_handlers",
]
