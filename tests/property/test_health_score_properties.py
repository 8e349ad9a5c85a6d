"""Property tests for health scoring and request statistics.

Validates score bounds, status thresholds, the stacking of penalties, and
that recorded outcomes always add up to the totals reported.
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from botanical.resilience.health import (
    DEGRADED_THRESHOLD,
    HEALTHY_THRESHOLD,
    HealthStatus,
    calculate_health_score,
)
from botanical.resilience.stats import RequestOutcome, RequestStats

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


@st.composite
def request_stats(draw: st.DrawFn) -> RequestStats:
    """Internally consistent counters for a provider with some traffic."""
    total = draw(st.integers(min_value=1, max_value=500))
    successful = draw(st.integers(min_value=0, max_value=total))
    retried = draw(st.integers(min_value=0, max_value=total))
    return RequestStats(
        total_requests=total,
        successful_requests=successful,
        failed_requests=total - successful,
        retried_requests=retried,
        total_retries=retried * draw(st.integers(min_value=1, max_value=4)),
        timeout_errors=draw(st.integers(min_value=0, max_value=total * 3)),
        network_errors=draw(st.integers(min_value=0, max_value=total * 3)),
        rate_limit_errors=draw(st.integers(min_value=0, max_value=total * 3)),
        circuit_breaker_trips=draw(st.integers(min_value=0, max_value=50)),
        avg_response_time_ms=draw(st.floats(min_value=0, max_value=10_000, allow_nan=False)),
    )


outcomes = st.builds(
    RequestOutcome,
    succeeded=st.booleans(),
    attempts=st.integers(min_value=1, max_value=3),
    retries=st.integers(min_value=0, max_value=2),
    timeout_errors=st.integers(min_value=0, max_value=3),
    network_errors=st.integers(min_value=0, max_value=3),
    rate_limit_errors=st.integers(min_value=0, max_value=3),
    duration_ms=st.floats(min_value=0, max_value=30_000, allow_nan=False),
)


# ---------------------------------------------------------------------------
# Health score
# ---------------------------------------------------------------------------


@settings(max_examples=100)
@given(stats=request_stats())
def test_score_bounded_and_status_consistent(stats: RequestStats) -> None:
    health = calculate_health_score(stats)

    assert 0 <= health.score <= 100
    if health.score >= HEALTHY_THRESHOLD:
        assert health.status == HealthStatus.HEALTHY
    elif health.score >= DEGRADED_THRESHOLD:
        assert health.status == HealthStatus.DEGRADED
    else:
        assert health.status == HealthStatus.UNHEALTHY


@settings(max_examples=100)
@given(stats=request_stats())
def test_every_penalty_has_an_issue(stats: RequestStats) -> None:
    health = calculate_health_score(stats)
    if health.score == 100:
        assert health.issues == []
    else:
        assert health.issues


@settings(max_examples=100)
@given(stats=request_stats(), extra_trips=st.integers(min_value=1, max_value=10))
def test_trips_never_raise_the_score(stats: RequestStats, extra_trips: int) -> None:
    before = calculate_health_score(stats).score
    stats.circuit_breaker_trips += extra_trips
    after = calculate_health_score(stats).score

    assert after <= before
    assert after <= 100 - 20


@settings(max_examples=100)
@given(
    total=st.integers(min_value=1, max_value=500),
    data=st.data(),
    extra_failures=st.integers(min_value=1, max_value=100),
)
def test_more_failures_never_raise_the_score(
    total: int, data: st.DataObject, extra_failures: int
) -> None:
    successful = data.draw(st.integers(min_value=0, max_value=total))
    stats = RequestStats(
        total_requests=total,
        successful_requests=successful,
        failed_requests=total - successful,
    )
    before = calculate_health_score(stats).score

    stats.total_requests += extra_failures
    stats.failed_requests += extra_failures
    assert calculate_health_score(stats).score <= before


# ---------------------------------------------------------------------------
# Request statistics
# ---------------------------------------------------------------------------


@settings(max_examples=100)
@given(batch=st.lists(outcomes, min_size=1, max_size=50))
def test_applied_outcomes_add_up(batch: list[RequestOutcome]) -> None:
    stats = RequestStats()
    for outcome in batch:
        stats.apply(outcome)

    assert stats.total_requests == len(batch)
    assert stats.successful_requests + stats.failed_requests == stats.total_requests
    assert stats.retried_requests == sum(1 for o in batch if o.retries > 0)
    assert stats.total_retries == sum(o.retries for o in batch)
    assert stats.timeout_errors == sum(o.timeout_errors for o in batch)
    assert stats.rate_limit_errors == sum(o.rate_limit_errors for o in batch)
    assert stats.circuit_breaker_trips == 0

    mean = sum(o.duration_ms for o in batch) / len(batch)
    assert abs(stats.avg_response_time_ms - mean) < 1e-6 * max(1.0, mean)
    assert 0.0 <= stats.success_rate <= 100.0


@settings(max_examples=100)
@given(batch=st.lists(outcomes, min_size=0, max_size=20), trips=st.integers(min_value=0, max_value=10))
def test_reset_zeroes_everything(batch: list[RequestOutcome], trips: int) -> None:
    stats = RequestStats()
    for outcome in batch:
        stats.apply(outcome)
    for _ in range(trips):
        stats.record_trip()

    stats.reset()
    assert stats == RequestStats()
