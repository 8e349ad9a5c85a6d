"""FastAPI application entry point with lifespan management.

Serve in factory mode, e.g. ``uvicorn botanical.main:create_app --factory``.

Startup: validate settings, configure logging, load provider policies,
build the provider registry (one client, monitor and breaker per provider)
and the health probe limiter.
Shutdown: close the provider HTTP clients and wait for pending alert
deliveries.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from botanical.config.provider_policies import load_provider_policies
from botanical.config.settings import BotanicalSettings
from botanical.integration.alerts import CircuitAlerter
from botanical.integration.webhook import WebhookNotifier
from botanical.logging_config import configure_logging
from botanical.middleware.auth import ServiceKeyAuthMiddleware
from botanical.middleware.error_handler import register_error_handlers
from botanical.middleware.request_id import RequestIdMiddleware
from botanical.providers.registry import ProviderRegistry, build_registry
from botanical.resilience.rate_limiter import ProbeRateLimiter
from botanical.routers.admin import create_admin_router
from botanical.routers.health import create_health_router

logger = logging.getLogger(__name__)


def build_alerter(settings: BotanicalSettings) -> CircuitAlerter:
    """Create the circuit alerter, with webhook delivery when configured."""
    notifier = None
    if settings.alert_webhook_url:
        if settings.alert_webhook_secret:
            notifier = WebhookNotifier(
                secret=settings.alert_webhook_secret,
                url=settings.alert_webhook_url,
            )
        else:
            logger.warning("Alert webhook URL set without a secret, webhook alerts disabled")
    return CircuitAlerter(notifier=notifier, cooldown_seconds=settings.alert_cooldown_seconds)


def create_app(
    settings: BotanicalSettings | None = None,
    *,
    registry: ProviderRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Loads ``BotanicalSettings`` eagerly so that a missing
    ``BOTANICAL_SERVICE_KEY`` environment variable causes an immediate
    startup failure rather than silently falling back to a placeholder.
    Tests may inject a prebuilt *registry*.
    """
    settings = settings or BotanicalSettings()  # type: ignore[call-arg]
    configure_logging(settings.log_level, json_output=settings.log_json)

    alerter = build_alerter(settings)
    if registry is None:
        policies = load_provider_policies(settings.provider_policies_path)
        registry = build_registry(settings, policies, alerter=alerter)

    probe_limiter = ProbeRateLimiter(
        tokens=settings.health_probe_tokens,
        interval_seconds=settings.health_probe_interval_seconds,
        max_clients=settings.health_probe_max_clients,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown logic."""
        logger.info(
            "Starting botanical service on port %d (providers: %s)",
            settings.port,
            ", ".join(
                f"{client.provider}={'configured' if client.is_configured() else 'unconfigured'}"
                for client in registry.clients()
            ),
        )

        yield

        logger.info("Shutting down botanical service…")
        await registry.aclose()
        await alerter.drain()
        logger.info("Botanical service shut down")

    app = FastAPI(
        title="Botanical Provider Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.alerter = alerter

    # Register error handlers
    register_error_handlers(app)

    # Middleware (order: request_id → auth → error_handler)
    # Note: Starlette middleware is applied in reverse order of add_middleware calls
    app.add_middleware(ServiceKeyAuthMiddleware, service_key=settings.service_key)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(create_health_router(registry=registry, probe_limiter=probe_limiter))
    app.include_router(create_admin_router(registry=registry))

    return app
