"""Retry executor with failure classification and exponential backoff.

One logical request is executed as up to ``max_attempts`` attempts. Each
failed attempt is classified:

- attempt deadline exceeded      → RequestTimeoutError   (retry)
- connect/reset/DNS failure      → NetworkError          (retry)
- HTTP 429                       → RateLimitError        (retry after the
                                   rate-limit cooldown instead of backoff)
- HTTP 5xx                       → UpstreamServerError   (retry)
- HTTP 4xx other than 429        → UpstreamClientError   (no retry)
- invalid payload                → ResponseShapeError    (retry)

Backoff schedule with the defaults: 1s, 2s, 4s... capped at
``max_backoff_seconds``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from botanical.middleware.error_handler import (
    BotanicalError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    UpstreamClientError,
    UpstreamServerError,
)
from botanical.resilience.stats import RequestOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delays for one provider."""

    max_attempts: int = 3
    initial_backoff_seconds: float = 1.0
    max_backoff_seconds: float = 30.0
    rate_limit_cooldown_seconds: float = 60.0
    attempt_timeout_seconds: float = 10.0

    def backoff_for(self, retry_index: int) -> float:
        """Delay before retry number ``retry_index`` (0-based)."""
        return min(self.initial_backoff_seconds * (2**retry_index), self.max_backoff_seconds)

    def delay_after(self, exc: BotanicalError, retry_index: int) -> float:
        if isinstance(exc, RateLimitError):
            return max(self.rate_limit_cooldown_seconds, exc.retry_after or 0.0)
        return self.backoff_for(retry_index)


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def classify_response(response: httpx.Response, label: str) -> BotanicalError | None:
    """Map an HTTP error status to its error class; None for success statuses."""
    status = response.status_code
    if status < 400:
        return None
    if status == 429:
        return RateLimitError(
            f"{label} rate limited (HTTP 429)",
            upstream_status=status,
            retry_after=_parse_retry_after(response),
        )
    if status >= 500:
        return UpstreamServerError(f"{label} failed with HTTP {status}", upstream_status=status)
    return UpstreamClientError(f"{label} rejected with HTTP {status}", upstream_status=status)


def classify_exception(exc: BaseException, label: str) -> BotanicalError | None:
    """Map a transport-level exception to its error class.

    Returns None for exceptions that are not upstream failures, which the
    executor lets propagate untouched.
    """
    if isinstance(exc, BotanicalError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return RequestTimeoutError(f"{label} timed out")
    if isinstance(exc, httpx.TransportError):
        return NetworkError(f"{label} network failure: {exc.__class__.__name__}")
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_response(exc.response, label)
    return None


class RetryExecutor:
    """Runs one logical request as a sequence of attempts.

    Parameters
    ----------
    policy:
        Attempt budget, backoff and deadlines.
    before_attempt:
        Awaited before every attempt (the provider's rate limiter).
    sleep:
        Coroutine used for backoff waits; injectable for tests.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        before_attempt: Callable[[], Awaitable[None]] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        provider: str = "provider",
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._before_attempt = before_attempt
        self._sleep = sleep
        self._provider = provider

    async def execute(
        self,
        attempt_fn: Callable[[], Awaitable[T]],
        outcome: RequestOutcome,
        *,
        label: str = "request",
    ) -> T:
        """Run *attempt_fn* until it succeeds or the budget is spent.

        Per-attempt observations are written into *outcome*. The last
        attempt's error (or the first non-retryable one) is raised.
        """
        max_attempts = self.policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            if self._before_attempt is not None:
                await self._before_attempt()

            outcome.attempts = attempt
            started = time.monotonic()
            try:
                result = await asyncio.wait_for(
                    attempt_fn(), timeout=self.policy.attempt_timeout_seconds
                )
            except (BotanicalError, httpx.HTTPError, asyncio.TimeoutError) as raw:
                outcome.duration_ms = (time.monotonic() - started) * 1000
                error = classify_exception(raw, label)
                if error is None:
                    raise
                if error is not raw:
                    error.__cause__ = raw
                outcome.record_attempt_error(error)

                if not error.retryable or attempt == max_attempts:
                    logger.error(
                        "%s to %s failed after %d attempt(s): %s",
                        label,
                        self._provider,
                        attempt,
                        error.message,
                        extra={
                            "provider": self._provider,
                            "attempt": attempt,
                            "max_attempts": max_attempts,
                            "error_class": error.category,
                        },
                    )
                    raise error

                delay = self.policy.delay_after(error, outcome.retries)
                outcome.retries += 1
                logger.warning(
                    "%s error on %s to %s, retrying (%d/%d) after %.0fms",
                    error.category,
                    label,
                    self._provider,
                    attempt,
                    max_attempts,
                    delay * 1000,
                    extra={
                        "provider": self._provider,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "error_class": error.category,
                        "delay_ms": round(delay * 1000),
                    },
                )
                await self._sleep(delay)
                continue

            outcome.duration_ms = (time.monotonic() - started) * 1000
            outcome.succeeded = True
            return result

        # max_attempts >= 1, so the loop always returns or raises
        raise RuntimeError("retry loop exited without a result")
