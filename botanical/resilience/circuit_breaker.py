"""Per-provider circuit breaker.

Counts consecutive failed requests and transitions through
closed → open → half-open states to stop calling a failing provider.

State machine:
- Closed → Open: consecutive failures reach the threshold
- Open → Half-Open: evaluated lazily on the next call once the cooldown
  has elapsed; exactly one trial call is admitted
- Half-Open → Closed: the trial call succeeds
- Half-Open → Open: the trial call fails; the cooldown doubles up to a cap

The breaker itself is not synchronised. Its owner (``ProviderMonitor``)
serialises every method call under the provider's lock.
"""

from __future__ import annotations

import logging
import time
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """Consecutive-failure circuit breaker for one provider.

    Args:
        failure_threshold: Consecutive failed requests that open the circuit.
        cooldown_seconds: Base time to stay open before admitting a trial call.
        max_cooldown_seconds: Upper bound for the cooldown after repeated
            failed trials.
        name: Provider name used in log messages.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 30.0,
        max_cooldown_seconds: float = 300.0,
        name: str = "provider",
    ) -> None:
        self._failure_threshold = failure_threshold
        self._base_cooldown = cooldown_seconds
        self._max_cooldown = max(max_cooldown_seconds, cooldown_seconds)
        self.name = name

        self.state = CircuitState.CLOSED
        self.consecutive_failures = 0
        self.opened_at: float | None = None
        self.cooldown_seconds = cooldown_seconds
        self.trial_in_flight = False

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    def can_call(self) -> bool:
        """Decide whether a call may proceed, taking the trial slot if needed.

        - Closed: always allowed.
        - Open: allowed only once the cooldown has elapsed; the caller that
          observes this becomes the half-open trial.
        - Half-open: rejected while the trial is in flight.
        """
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            elapsed = time.monotonic() - (self.opened_at or 0.0)
            if elapsed < self.cooldown_seconds:
                return False
            self.state = CircuitState.HALF_OPEN
            self.trial_in_flight = True
            logger.info(
                "Circuit for %s half-open after %.1fs, admitting trial call",
                self.name,
                elapsed,
                extra={"provider": self.name, "circuit_state": self.state.value},
            )
            return True

        # Half-open: a single trial at a time
        if self.trial_in_flight:
            return False
        self.trial_in_flight = True
        return True

    def record_success(self, *, trial: bool = False) -> None:
        """Record a successful request.

        Resets the consecutive failure count. Only the trial call closes a
        half-open circuit; a late success from a call admitted before the
        circuit opened leaves the state alone.
        """
        self.consecutive_failures = 0

        if trial and self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.CLOSED
            self.opened_at = None
            self.cooldown_seconds = self._base_cooldown
            self.trial_in_flight = False
            logger.info(
                "Circuit for %s closed after successful trial call",
                self.name,
                extra={"provider": self.name, "circuit_state": self.state.value},
            )

    def record_failure(self, *, trial: bool = False) -> None:
        """Record a failed request (retries exhausted or non-retryable)."""
        if trial and self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.OPEN
            self.opened_at = time.monotonic()
            self.cooldown_seconds = min(self.cooldown_seconds * 2, self._max_cooldown)
            self.trial_in_flight = False
            logger.warning(
                "Circuit for %s re-opened after failed trial call, cooldown %.1fs",
                self.name,
                self.cooldown_seconds,
                extra={"provider": self.name, "circuit_state": self.state.value},
            )
            return

        self.consecutive_failures += 1

        if (
            self.state == CircuitState.CLOSED
            and self.consecutive_failures >= self._failure_threshold
        ):
            self.state = CircuitState.OPEN
            self.opened_at = time.monotonic()
            self.cooldown_seconds = self._base_cooldown
            logger.warning(
                "Circuit for %s opened after %d consecutive failures, cooldown %.1fs",
                self.name,
                self.consecutive_failures,
                self.cooldown_seconds,
                extra={"provider": self.name, "circuit_state": self.state.value},
            )

    def release_trial(self) -> None:
        """Give up the trial slot without an outcome (the trial was cancelled)."""
        if self.state == CircuitState.HALF_OPEN:
            self.trial_in_flight = False

    def retry_at(self) -> float | None:
        """Monotonic time at which an open circuit will admit a trial."""
        if self.state != CircuitState.OPEN or self.opened_at is None:
            return None
        return self.opened_at + self.cooldown_seconds

    def get_state(self) -> CircuitState:
        return self.state

    def reset(self) -> None:
        """Force the circuit closed with zero consecutive failures."""
        self.state = CircuitState.CLOSED
        self.consecutive_failures = 0
        self.opened_at = None
        self.cooldown_seconds = self._base_cooldown
        self.trial_in_flight = False
