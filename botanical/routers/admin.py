"""Administrative endpoints (require X-Service-Key).

- GET  /admin/stats: per-provider stats, circuit state and health, plus
  combined totals across providers
- POST /admin/reset: zero stats and force the circuit CLOSED for one
  provider or ``"all"``
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter
from pydantic import BaseModel, Field

from botanical.models.responses import ApiResponse
from botanical.resilience.health import HealthStatus
from botanical.routers.health import provider_report

if TYPE_CHECKING:
    from botanical.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ResetRequest(BaseModel):
    """Body of POST /admin/reset."""

    provider: str = Field(..., min_length=1)  # Provider name or "all"


def _overall_status(statuses: list[str]) -> str:
    configured = [status for status in statuses if status != HealthStatus.UNCONFIGURED.value]
    if not configured:
        return HealthStatus.UNCONFIGURED.value
    for status in (HealthStatus.UNHEALTHY, HealthStatus.DEGRADED):
        if status.value in configured:
            return status.value
    return HealthStatus.HEALTHY.value


def create_admin_router(*, registry: ProviderRegistry) -> APIRouter:
    """Factory that creates the admin router with injected dependencies."""

    admin_router = APIRouter(prefix="/admin", tags=["admin"])

    @admin_router.get("/stats")
    async def stats() -> dict:
        """Statistics, circuit state and health for every provider."""
        providers: dict[str, dict] = {}
        combined = {
            "totalRequests": 0,
            "successfulRequests": 0,
            "failedRequests": 0,
            "circuitBreakerTrips": 0,
        }

        for client in registry.clients():
            report, available = await provider_report(client)
            report["configured"] = client.is_configured()
            report["available"] = available
            providers[client.provider] = report
            for key in combined:
                combined[key] += report["stats"][key]

        total = combined["totalRequests"]
        combined["successRate"] = (
            round(combined["successfulRequests"] / total * 100, 1) if total else 0.0
        )

        return ApiResponse(
            success=True,
            data={
                "providers": providers,
                "combined": combined,
                "overallHealth": _overall_status(
                    [report["status"] for report in providers.values()]
                ),
            },
        ).model_dump()

    @admin_router.post("/reset")
    async def reset(body: ResetRequest) -> dict:
        """Reset one provider or all of them; 404 for unknown providers."""
        reset_providers = await registry.reset(body.provider)
        logger.info(
            "Admin reset for %s",
            ", ".join(reset_providers),
            extra={"event": "admin_reset"},
        )
        return ApiResponse(
            success=True,
            data={"reset": reset_providers},
        ).model_dump()

    return admin_router
