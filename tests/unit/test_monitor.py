"""Unit tests for the per-provider monitor (breaker + stats under one lock)."""

import asyncio
import time

import pytest

from botanical.middleware.error_handler import CircuitOpenError
from botanical.resilience.circuit_breaker import CircuitBreaker, CircuitState
from botanical.resilience.monitor import ProviderMonitor
from botanical.resilience.stats import RequestOutcome


def _failed() -> RequestOutcome:
    return RequestOutcome(succeeded=False, attempts=1)


async def _open(monitor: ProviderMonitor) -> None:
    for _ in range(monitor.breaker.failure_threshold):
        trial = await monitor.admit()
        await monitor.record(_failed(), trial=trial)


class TestAdmission:
    @pytest.mark.asyncio
    async def test_closed_admits_non_trial(self):
        monitor = ProviderMonitor("trefle")
        assert await monitor.admit() is False

    @pytest.mark.asyncio
    async def test_open_rejects_and_counts_trip(self):
        monitor = ProviderMonitor("trefle", CircuitBreaker(failure_threshold=2))
        await _open(monitor)

        with pytest.raises(CircuitOpenError) as exc_info:
            await monitor.admit()

        assert monitor.stats.circuit_breaker_trips == 1
        assert monitor.stats.total_requests == 2
        assert exc_info.value.details["provider"] == "trefle"
        assert exc_info.value.details["circuit_state"] == "OPEN"
        assert 0 < exc_info.value.details["retry_in_seconds"] <= 30

    @pytest.mark.asyncio
    async def test_every_rejection_is_one_trip(self):
        monitor = ProviderMonitor("trefle", CircuitBreaker(failure_threshold=1))
        await _open(monitor)
        for _ in range(3):
            with pytest.raises(CircuitOpenError):
                await monitor.admit()
        assert monitor.stats.circuit_breaker_trips == 3

    @pytest.mark.asyncio
    async def test_exactly_one_concurrent_trial(self):
        monitor = ProviderMonitor("trefle", CircuitBreaker(failure_threshold=1))
        await _open(monitor)
        monitor.breaker.opened_at = time.monotonic() - 31

        results = await asyncio.gather(
            *(monitor.admit() for _ in range(10)), return_exceptions=True
        )

        trials = [result for result in results if result is True]
        rejected = [result for result in results if isinstance(result, CircuitOpenError)]
        assert len(trials) == 1
        assert len(rejected) == 9
        assert monitor.breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_trial_success_closes(self):
        monitor = ProviderMonitor("trefle", CircuitBreaker(failure_threshold=1))
        await _open(monitor)
        monitor.breaker.opened_at = time.monotonic() - 31

        trial = await monitor.admit()
        await monitor.record(RequestOutcome(succeeded=True, attempts=1), trial=trial)
        assert monitor.breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_abandoned_trial_frees_slot(self):
        monitor = ProviderMonitor("trefle", CircuitBreaker(failure_threshold=1))
        await _open(monitor)
        monitor.breaker.opened_at = time.monotonic() - 31

        assert await monitor.admit() is True
        monitor.abandon_trial()
        assert await monitor.admit() is True


class TestResetAndSnapshot:
    @pytest.mark.asyncio
    async def test_reset_zeroes_and_closes(self):
        monitor = ProviderMonitor("trefle", CircuitBreaker(failure_threshold=1))
        await _open(monitor)
        with pytest.raises(CircuitOpenError):
            await monitor.admit()

        await monitor.reset()
        snapshot = await monitor.snapshot()
        assert snapshot.circuit_state == CircuitState.CLOSED
        assert snapshot.consecutive_failures == 0
        assert snapshot.stats.total_requests == 0
        assert snapshot.stats.circuit_breaker_trips == 0

    @pytest.mark.asyncio
    async def test_reset_twice_matches_once(self):
        monitor = ProviderMonitor("trefle", CircuitBreaker(failure_threshold=1))
        await _open(monitor)
        await monitor.reset()
        once = await monitor.snapshot()
        await monitor.reset()
        twice = await monitor.snapshot()
        assert once.stats == twice.stats
        assert once.circuit_state == twice.circuit_state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_snapshot_carries_health(self):
        monitor = ProviderMonitor("trefle")
        await monitor.record(RequestOutcome(succeeded=True, attempts=1, duration_ms=40))
        snapshot = await monitor.snapshot()
        assert snapshot.provider == "trefle"
        assert snapshot.health.score == 100
        assert snapshot.stats.avg_response_time_ms == 40

    @pytest.mark.asyncio
    async def test_concurrent_records_are_not_lost(self):
        monitor = ProviderMonitor("trefle")
        outcomes = [RequestOutcome(succeeded=i % 2 == 0, attempts=1) for i in range(50)]
        await asyncio.gather(*(monitor.record(outcome) for outcome in outcomes))
        assert monitor.stats.total_requests == 50
        assert monitor.stats.successful_requests == 25
        assert monitor.stats.failed_requests == 25
