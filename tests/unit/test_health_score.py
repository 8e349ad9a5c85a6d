"""Unit tests for request statistics and health scoring."""

import pytest

from botanical.middleware.error_handler import (
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    UpstreamServerError,
)
from botanical.resilience.health import HealthStatus, calculate_health_score, status_for_score
from botanical.resilience.stats import RequestOutcome, RequestStats


class TestRequestStats:
    def test_success_after_two_retries(self):
        stats = RequestStats()
        outcome = RequestOutcome(succeeded=True, attempts=3, retries=2, duration_ms=120.0)
        stats.apply(outcome)

        assert stats.total_requests == 1
        assert stats.successful_requests == 1
        assert stats.failed_requests == 0
        assert stats.retried_requests == 1
        assert stats.total_retries == 2

    def test_failure_counts_once(self):
        stats = RequestStats()
        stats.apply(RequestOutcome(succeeded=False, attempts=3, retries=2))
        assert stats.total_requests == 1
        assert stats.failed_requests == 1

    def test_attempt_errors_are_tallied_by_class(self):
        outcome = RequestOutcome()
        outcome.record_attempt_error(RequestTimeoutError())
        outcome.record_attempt_error(NetworkError())
        outcome.record_attempt_error(RateLimitError())
        outcome.record_attempt_error(UpstreamServerError())
        assert (outcome.timeout_errors, outcome.network_errors, outcome.rate_limit_errors) == (
            1,
            1,
            1,
        )
        assert outcome.last_error == "server_error"

    def test_running_average_uses_final_attempt_duration(self):
        stats = RequestStats()
        for duration in (100.0, 200.0, 300.0):
            stats.apply(RequestOutcome(succeeded=True, attempts=1, duration_ms=duration))
        assert stats.avg_response_time_ms == pytest.approx(200.0)

    def test_trip_touches_only_trip_counter(self):
        stats = RequestStats()
        stats.record_trip()
        assert stats.circuit_breaker_trips == 1
        assert stats.total_requests == 0
        assert stats.failed_requests == 0

    def test_reset_zeroes_everything(self):
        stats = RequestStats(total_requests=5, successful_requests=3, circuit_breaker_trips=2)
        stats.reset()
        assert stats == RequestStats()

    def test_snapshot_is_independent(self):
        stats = RequestStats(total_requests=1)
        snap = stats.snapshot()
        stats.total_requests = 2
        assert snap.total_requests == 1

    def test_success_rate(self):
        assert RequestStats().success_rate == 0.0
        assert RequestStats(total_requests=4, successful_requests=3).success_rate == 75.0


class TestHealthScore:
    def test_no_requests_is_healthy(self):
        health = calculate_health_score(RequestStats())
        assert health.score == 100
        assert health.status == HealthStatus.HEALTHY
        assert health.issues == ["No requests made yet"]

    def test_all_successful_is_perfect(self):
        health = calculate_health_score(RequestStats(total_requests=10, successful_requests=10))
        assert health.score == 100
        assert health.issues == []

    def test_low_success_rate(self):
        stats = RequestStats(total_requests=10, successful_requests=8, failed_requests=2)
        health = calculate_health_score(stats)
        assert health.score == 80
        assert health.issues == ["Low success rate: 80.0%"]

    def test_success_penalties_stack(self):
        stats = RequestStats(total_requests=10, successful_requests=6, failed_requests=4)
        health = calculate_health_score(stats)
        assert health.score == 60
        assert "Critical: Success rate below 70%" in health.issues
        assert health.status == HealthStatus.DEGRADED

    def test_timeout_issue_names_rate(self):
        stats = RequestStats(total_requests=7, successful_requests=7, timeout_errors=1)
        health = calculate_health_score(stats)
        assert "High timeout rate: 14.3%" in health.issues
        assert health.score == 85

    def test_rate_limit_and_trips(self):
        stats = RequestStats(
            total_requests=10, successful_requests=10, rate_limit_errors=1, circuit_breaker_trips=2
        )
        health = calculate_health_score(stats)
        assert health.score == 70
        assert "Rate limit errors: 1" in health.issues
        assert "Circuit breaker trips: 2" in health.issues

    def test_thresholds_are_strict(self):
        # Exactly 10% timeouts and 30% retries are not penalised
        stats = RequestStats(
            total_requests=10, successful_requests=10, timeout_errors=1, retried_requests=3
        )
        assert calculate_health_score(stats).score == 100

    def test_floored_at_zero(self):
        stats = RequestStats(
            total_requests=10,
            failed_requests=10,
            retried_requests=10,
            timeout_errors=10,
            network_errors=10,
            rate_limit_errors=10,
            circuit_breaker_trips=10,
        )
        health = calculate_health_score(stats)
        assert health.score == 0
        assert health.status == HealthStatus.UNHEALTHY

    @pytest.mark.parametrize(
        ("score", "status"),
        [
            (100, HealthStatus.HEALTHY),
            (80, HealthStatus.HEALTHY),
            (79, HealthStatus.DEGRADED),
            (50, HealthStatus.DEGRADED),
            (49, HealthStatus.UNHEALTHY),
            (0, HealthStatus.UNHEALTHY),
        ],
    )
    def test_status_bands(self, score, status):
        assert status_for_score(score) == status
