"""Per-provider request statistics.

``RequestStats`` holds the aggregate counters for one provider. A logical
request accumulates its per-attempt observations in a ``RequestOutcome``
and the whole outcome is applied in one step, so concurrent readers never
see a request half-counted.

Counting rules:
- total_requests: +1 per logical request (not per attempt)
- retried_requests: +1 per request that needed at least one retry
- total_retries: +N for a request that made N retries
- timeout/network/rate-limit errors: +1 per failed attempt of that class
- circuit_breaker_trips: +1 per call rejected by an open breaker; such a
  rejection touches no other counter
- avg_response_time_ms: running mean of each request's final attempt
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace

from botanical.middleware.error_handler import (
    BotanicalError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
)


@dataclass
class RequestOutcome:
    """Observations gathered while executing one logical request."""

    succeeded: bool = False
    attempts: int = 0
    retries: int = 0
    timeout_errors: int = 0
    network_errors: int = 0
    rate_limit_errors: int = 0
    duration_ms: float = 0.0
    last_error: str | None = None

    def record_attempt_error(self, exc: BotanicalError) -> None:
        """Tally a failed attempt under its error class."""
        if isinstance(exc, RequestTimeoutError):
            self.timeout_errors += 1
        elif isinstance(exc, NetworkError):
            self.network_errors += 1
        elif isinstance(exc, RateLimitError):
            self.rate_limit_errors += 1
        self.last_error = exc.category


@dataclass
class RequestStats:
    """Aggregate counters for one provider."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    retried_requests: int = 0
    total_retries: int = 0
    timeout_errors: int = 0
    network_errors: int = 0
    rate_limit_errors: int = 0
    circuit_breaker_trips: int = 0
    avg_response_time_ms: float = 0.0

    def apply(self, outcome: RequestOutcome) -> None:
        """Apply a completed request's outcome."""
        self.total_requests += 1
        if outcome.succeeded:
            self.successful_requests += 1
        else:
            self.failed_requests += 1

        if outcome.retries > 0:
            self.retried_requests += 1
            self.total_retries += outcome.retries

        self.timeout_errors += outcome.timeout_errors
        self.network_errors += outcome.network_errors
        self.rate_limit_errors += outcome.rate_limit_errors

        n = self.total_requests
        self.avg_response_time_ms = (
            self.avg_response_time_ms * (n - 1) + outcome.duration_ms
        ) / n

    def record_trip(self) -> None:
        self.circuit_breaker_trips += 1

    def reset(self) -> None:
        """Zero every counter in place."""
        for name, value in asdict(RequestStats()).items():
            setattr(self, name, value)

    def snapshot(self) -> RequestStats:
        """Return an independent copy of the current counters."""
        return replace(self)

    @property
    def success_rate(self) -> float:
        """Successful requests as a percentage of all requests (0 when idle)."""
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests * 100
