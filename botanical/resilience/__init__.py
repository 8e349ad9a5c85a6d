"""Resilience components for botanical provider calls."""

from botanical.resilience.circuit_breaker import CircuitBreaker, CircuitState
from botanical.resilience.health import HealthScore, HealthStatus, calculate_health_score
from botanical.resilience.monitor import MonitorSnapshot, ProviderMonitor
from botanical.resilience.rate_limiter import ProbeRateLimiter, ProviderRateLimiter, TokenBucket
from botanical.resilience.retry import RetryExecutor, RetryPolicy, classify_exception, classify_response
from botanical.resilience.stats import RequestOutcome, RequestStats

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "HealthScore",
    "HealthStatus",
    "MonitorSnapshot",
    "ProbeRateLimiter",
    "ProviderMonitor",
    "ProviderRateLimiter",
    "RequestOutcome",
    "RequestStats",
    "RetryExecutor",
    "RetryPolicy",
    "TokenBucket",
    "calculate_health_score",
    "classify_exception",
    "classify_response",
]
