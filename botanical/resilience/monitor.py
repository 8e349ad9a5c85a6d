"""Per-provider shared state: circuit breaker plus request statistics.

One ``ProviderMonitor`` exists per provider and is injected into every
component that calls that provider. All breaker transitions and counter
updates happen under the monitor's single ``asyncio.Lock``, which gives:

- at most one half-open trial per cooldown expiry, however many callers
  race for it
- per-request atomic statistics (an outcome is applied as one batch)
- an administrative reset that lands wholly before or after any in-flight
  request's bookkeeping
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from botanical.middleware.error_handler import CircuitOpenError
from botanical.resilience.circuit_breaker import CircuitBreaker, CircuitState
from botanical.resilience.health import HealthScore, calculate_health_score
from botanical.resilience.stats import RequestOutcome, RequestStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonitorSnapshot:
    """Consistent point-in-time view of a provider's breaker and counters."""

    provider: str
    circuit_state: CircuitState
    consecutive_failures: int
    cooldown_seconds: float
    stats: RequestStats
    health: HealthScore


class ProviderMonitor:
    """Owns the circuit breaker and statistics for one provider."""

    def __init__(self, provider: str, breaker: CircuitBreaker | None = None) -> None:
        self.provider = provider
        self.breaker = breaker or CircuitBreaker(name=provider)
        self.stats = RequestStats()
        self._lock = asyncio.Lock()

    async def admit(self) -> bool:
        """Admit a call or reject it with ``CircuitOpenError``.

        Returns True when the caller has been admitted as the half-open
        trial call. A rejection is counted as a circuit breaker trip and
        nothing else.
        """
        async with self._lock:
            if self.breaker.can_call():
                return self.breaker.state == CircuitState.HALF_OPEN

            self.stats.record_trip()
            retry_at = self.breaker.retry_at()
            retry_in = max(0.0, retry_at - time.monotonic()) if retry_at is not None else None
            logger.info(
                "Rejected call to %s, circuit %s",
                self.provider,
                self.breaker.state.value,
                extra={"provider": self.provider, "circuit_state": self.breaker.state.value},
            )
            raise CircuitOpenError(
                f"Circuit breaker open for provider '{self.provider}'",
                provider=self.provider,
                circuit_state=self.breaker.state.value,
                retry_in_seconds=round(retry_in, 1) if retry_in is not None else None,
            )

    async def record(self, outcome: RequestOutcome, *, trial: bool = False) -> None:
        """Apply a finished request's counters and breaker result in one step."""
        async with self._lock:
            self.stats.apply(outcome)
            if outcome.succeeded:
                self.breaker.record_success(trial=trial)
            else:
                self.breaker.record_failure(trial=trial)

    def abandon_trial(self) -> None:
        """Free the trial slot of a cancelled trial call.

        Synchronous on purpose: it runs from cancellation handlers and has
        no suspension point, so it cannot interleave with locked sections.
        """
        self.breaker.release_trial()

    async def reset(self) -> None:
        """Zero the statistics and force the circuit closed."""
        async with self._lock:
            self.stats.reset()
            self.breaker.reset()
        logger.info(
            "Reset statistics and circuit breaker for %s",
            self.provider,
            extra={"provider": self.provider, "event": "admin_reset"},
        )

    async def snapshot(self) -> MonitorSnapshot:
        async with self._lock:
            stats = self.stats.snapshot()
            return MonitorSnapshot(
                provider=self.provider,
                circuit_state=self.breaker.state,
                consecutive_failures=self.breaker.consecutive_failures,
                cooldown_seconds=self.breaker.cooldown_seconds,
                stats=stats,
                health=calculate_health_score(stats),
            )
