"""Circuit breaker and health alerts for operators.

After each finished provider request the client hands the alerter a fresh
``MonitorSnapshot``. The alerter compares it with the last snapshot it saw
for that provider and raises at most one alert:

- circuit moved to OPEN        → opened     (critical)
- circuit moved to CLOSED      → closed     (info, warning after repeated alerts)
- circuit moved to HALF_OPEN   → half_open  (warning)
- score dropped below 80       → degraded   (warning)
- score came back to 80+       → recovered  (info)

Alerts within ``cooldown_seconds`` of the provider's previous alert are
suppressed unless critical. Delivery is a background task; a failed
delivery is logged and never reaches the request path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from botanical.integration.webhook import WebhookNotifier
from botanical.resilience.circuit_breaker import CircuitState
from botanical.resilience.health import HEALTHY_THRESHOLD
from botanical.resilience.monitor import MonitorSnapshot

logger = logging.getLogger(__name__)

# Closed alerts escalate to warning once a provider has alerted this often
_FREQUENT_ALERT_COUNT = 3


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertEvent(str, Enum):
    OPENED = "opened"
    CLOSED = "closed"
    HALF_OPEN = "half_open"
    DEGRADED = "degraded"
    RECOVERED = "recovered"


_LOG_LEVELS = {
    AlertSeverity.INFO: logging.INFO,
    AlertSeverity.WARNING: logging.WARNING,
    AlertSeverity.CRITICAL: logging.ERROR,
}


@dataclass(frozen=True)
class CircuitAlert:
    provider: str
    severity: AlertSeverity
    event: AlertEvent
    circuit_state: CircuitState
    health_score: int
    message: str
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "provider": self.provider,
            "severity": self.severity.value,
            "event": self.event.value,
            "circuit_state": self.circuit_state.value,
            "health_score": self.health_score,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class _ProviderWatch:
    last_state: CircuitState = CircuitState.CLOSED
    last_score: int = 100
    last_alert_at: float | None = None
    alert_count: int = 0


class CircuitAlerter:
    """Turns breaker and health transitions into rate-limited alerts.

    Parameters
    ----------
    notifier:
        Optional webhook notifier; without one, alerts are only logged and
        kept in history.
    cooldown_seconds:
        Minimum spacing between non-critical alerts for one provider.
    history_limit:
        Number of most recent alerts retained.
    clock:
        Monotonic clock; injectable for tests.
    """

    def __init__(
        self,
        notifier: WebhookNotifier | None = None,
        cooldown_seconds: float = 300.0,
        history_limit: int = 100,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._notifier = notifier
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._watches: dict[str, _ProviderWatch] = {}
        self._history: deque[CircuitAlert] = deque(maxlen=history_limit)
        self._pending: set[asyncio.Task] = set()

    def evaluate(self, provider: str, snapshot: MonitorSnapshot) -> CircuitAlert | None:
        """Compare *snapshot* with the last one seen and build the alert, if any.

        Always records the snapshot as the new baseline.
        """
        watch = self._watches.setdefault(provider, _ProviderWatch())
        state = snapshot.circuit_state
        score = snapshot.health.score
        label = provider.upper()

        alert: CircuitAlert | None = None
        if state != watch.last_state:
            if state == CircuitState.OPEN:
                alert = CircuitAlert(
                    provider,
                    AlertSeverity.CRITICAL,
                    AlertEvent.OPENED,
                    state,
                    score,
                    f"{label} circuit breaker OPENED, requests are being rejected",
                )
            elif state == CircuitState.CLOSED:
                frequent = watch.alert_count > _FREQUENT_ALERT_COUNT
                message = f"{label} circuit breaker CLOSED, service restored"
                if frequent:
                    message += " (frequent failures, investigate root cause)"
                alert = CircuitAlert(
                    provider,
                    AlertSeverity.WARNING if frequent else AlertSeverity.INFO,
                    AlertEvent.CLOSED,
                    state,
                    score,
                    message,
                )
            else:
                alert = CircuitAlert(
                    provider,
                    AlertSeverity.WARNING,
                    AlertEvent.HALF_OPEN,
                    state,
                    score,
                    f"{label} circuit breaker HALF_OPEN, testing recovery",
                )
        elif score < HEALTHY_THRESHOLD <= watch.last_score:
            alert = CircuitAlert(
                provider,
                AlertSeverity.WARNING,
                AlertEvent.DEGRADED,
                state,
                score,
                f"{label} health DEGRADED (score {score}/100)",
            )
        elif watch.last_score < HEALTHY_THRESHOLD <= score:
            alert = CircuitAlert(
                provider,
                AlertSeverity.INFO,
                AlertEvent.RECOVERED,
                state,
                score,
                f"{label} health RECOVERED (score {score}/100)",
            )

        watch.last_state = state
        watch.last_score = score
        return alert

    def check(self, provider: str, snapshot: MonitorSnapshot) -> CircuitAlert | None:
        """Evaluate a snapshot and emit the resulting alert unless suppressed."""
        alert = self.evaluate(provider, snapshot)
        if alert is None:
            return None

        watch = self._watches[provider]
        now = self._clock()
        if (
            watch.last_alert_at is not None
            and now - watch.last_alert_at < self._cooldown_seconds
            and alert.severity != AlertSeverity.CRITICAL
        ):
            logger.debug(
                "Suppressed %s alert for %s during cooldown",
                alert.event.value,
                provider,
                extra={"provider": provider, "event": alert.event.value},
            )
            return None

        watch.last_alert_at = now
        watch.alert_count += 1
        self._history.append(alert)
        logger.log(
            _LOG_LEVELS[alert.severity],
            alert.message,
            extra={
                "provider": provider,
                "event": f"circuit_{alert.event.value}",
                "circuit_state": alert.circuit_state.value,
            },
        )
        self.dispatch(alert)
        return alert

    def dispatch(self, alert: CircuitAlert) -> None:
        """Schedule webhook delivery without waiting for it."""
        if self._notifier is None:
            return
        task = asyncio.get_running_loop().create_task(
            self._notifier.deliver(alert.to_payload())
        )
        self._pending.add(task)
        task.add_done_callback(self._on_delivered)

    def _on_delivered(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Alert delivery raised an exception", exc_info=exc)
        elif task.result() is False:
            logger.warning("Alert delivery gave up after retries")

    def history(self, provider: str | None = None) -> list[CircuitAlert]:
        """Return retained alerts, oldest first."""
        if provider is None:
            return list(self._history)
        return [alert for alert in self._history if alert.provider == provider]

    async def drain(self) -> None:
        """Wait for in-flight deliveries; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
