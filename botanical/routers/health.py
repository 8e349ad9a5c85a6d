"""Operator health endpoints.

These endpoints do NOT require X-Service-Key authentication; they are
limited per client address by a token bucket instead.
- GET /health: service liveness + per-provider summary
- GET /health/{provider}: full health report for one provider (503 when
  the circuit is open, the provider is unhealthy, or it is unconfigured)
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, Response

from botanical.models.responses import ApiResponse
from botanical.resilience.circuit_breaker import CircuitState
from botanical.resilience.health import HealthStatus
from botanical.resilience.stats import RequestStats

if TYPE_CHECKING:
    from botanical.providers.base import BotanicalClient
    from botanical.providers.registry import ProviderRegistry
    from botanical.resilience.rate_limiter import ProbeRateLimiter


def stats_payload(stats: RequestStats) -> dict:
    """Render request statistics with the camelCase keys dashboards expect."""
    return {
        "totalRequests": stats.total_requests,
        "successfulRequests": stats.successful_requests,
        "failedRequests": stats.failed_requests,
        "successRate": round(stats.success_rate, 1),
        "avgResponseTimeMs": round(stats.avg_response_time_ms),
        "retriedRequests": stats.retried_requests,
        "totalRetries": stats.total_retries,
        "timeoutErrors": stats.timeout_errors,
        "networkErrors": stats.network_errors,
        "rateLimitErrors": stats.rate_limit_errors,
        "circuitBreakerTrips": stats.circuit_breaker_trips,
    }


async def provider_report(client: BotanicalClient) -> tuple[dict, bool]:
    """Build a provider's health report.

    Returns the report and whether the provider is currently available.
    """
    snapshot = await client.snapshot()

    if client.is_configured():
        status = snapshot.health.status
        score = snapshot.health.score
        issues = list(snapshot.health.issues)
    else:
        status = HealthStatus.UNCONFIGURED
        score = 0
        issues = [f"{client.display_name} API key not configured"]

    available = (
        status not in (HealthStatus.UNHEALTHY, HealthStatus.UNCONFIGURED)
        and snapshot.circuit_state != CircuitState.OPEN
    )
    report = {
        "provider": client.provider,
        "status": status.value,
        "score": score,
        "circuitState": snapshot.circuit_state.value,
        "stats": stats_payload(snapshot.stats),
        "issues": issues,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return report, available


def create_health_router(
    *,
    registry: ProviderRegistry,
    probe_limiter: ProbeRateLimiter,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    def _allow_probe(request: Request, response: Response) -> bool:
        key = request.client.host if request.client else "unknown"
        if probe_limiter.try_acquire(key):
            return True
        response.status_code = 429
        response.headers["Retry-After"] = str(max(1, math.ceil(probe_limiter.retry_after(key))))
        return False

    @health_router.get("/health")
    async def health(request: Request, response: Response) -> dict:
        """Service health check with a summary line per provider."""
        if not _allow_probe(request, response):
            return ApiResponse(success=False, error="Too many health probes").model_dump()

        providers = {}
        for client in registry.clients():
            report, available = await provider_report(client)
            providers[client.provider] = {
                "status": report["status"],
                "score": report["score"],
                "circuitState": report["circuitState"],
                "available": available,
            }

        return ApiResponse(
            success=True,
            data={"status": "healthy", "providers": providers},
        ).model_dump()

    @health_router.get("/health/{provider}")
    async def provider_health(provider: str, request: Request, response: Response) -> dict:
        """Health report for one provider; raises 404 for unknown names."""
        if not _allow_probe(request, response):
            return ApiResponse(success=False, error="Too many health probes").model_dump()

        client = registry.get(provider)
        report, available = await provider_report(client)
        if not available:
            response.status_code = 503
        return report

    return health_router
