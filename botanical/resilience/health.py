"""Health scoring from a provider's request statistics.

The score starts at 100 and every applicable penalty is subtracted; rules
stack rather than taking only the worst one:

- success rate < 90%           -20
- success rate < 70%           -20 (in addition to the above)
- retry rate > 30%             -15
- timeout rate > 10%           -15
- network error rate > 5%      -15
- any rate limit errors        -10
- any circuit breaker trips    -20

The result is floored at 0. Status: >= 80 healthy, >= 50 degraded, else
unhealthy. With no requests yet the provider is reported healthy at 100.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from botanical.resilience.stats import RequestStats

HEALTHY_THRESHOLD = 80
DEGRADED_THRESHOLD = 50


class HealthStatus(str, Enum):
    """Operator-facing provider status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNCONFIGURED = "unconfigured"


@dataclass(frozen=True)
class HealthScore:
    """Derived health of a provider; recomputed on demand, never stored."""

    score: int
    status: HealthStatus
    issues: list[str] = field(default_factory=list)


def status_for_score(score: int) -> HealthStatus:
    if score >= HEALTHY_THRESHOLD:
        return HealthStatus.HEALTHY
    if score >= DEGRADED_THRESHOLD:
        return HealthStatus.DEGRADED
    return HealthStatus.UNHEALTHY


def calculate_health_score(stats: RequestStats) -> HealthScore:
    """Compute the 0-100 health score and the list of violated thresholds."""
    if stats.total_requests == 0:
        return HealthScore(score=100, status=HealthStatus.HEALTHY, issues=["No requests made yet"])

    issues: list[str] = []
    score = 100
    total = stats.total_requests

    success_rate = stats.successful_requests / total * 100
    if success_rate < 90:
        score -= 20
        issues.append(f"Low success rate: {success_rate:.1f}%")
    if success_rate < 70:
        score -= 20
        issues.append("Critical: Success rate below 70%")

    retry_rate = stats.retried_requests / total * 100
    if retry_rate > 30:
        score -= 15
        issues.append(f"High retry rate: {retry_rate:.1f}%")

    timeout_rate = stats.timeout_errors / total * 100
    if timeout_rate > 10:
        score -= 15
        issues.append(f"High timeout rate: {timeout_rate:.1f}%")

    network_rate = stats.network_errors / total * 100
    if network_rate > 5:
        score -= 15
        issues.append(f"Network issues: {network_rate:.1f}%")

    if stats.rate_limit_errors > 0:
        score -= 10
        issues.append(f"Rate limit errors: {stats.rate_limit_errors}")

    if stats.circuit_breaker_trips > 0:
        score -= 20
        issues.append(f"Circuit breaker trips: {stats.circuit_breaker_trips}")

    score = max(0, score)
    return HealthScore(score=score, status=status_for_score(score), issues=issues)
