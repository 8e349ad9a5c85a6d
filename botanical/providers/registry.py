"""Provider client registry.

Maps provider name → ``BotanicalClient`` instance. Adding a provider
requires only a client subclass and a ``register()`` call; the health and
admin routes discover providers through the registry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from botanical.config.provider_policies import ProviderPolicy
from botanical.config.settings import BotanicalSettings
from botanical.middleware.error_handler import ProviderNotFoundError
from botanical.providers.base import BotanicalClient
from botanical.providers.perenual import PerenualClient
from botanical.providers.trefle import TrefleClient
from botanical.resilience.circuit_breaker import CircuitBreaker
from botanical.resilience.monitor import ProviderMonitor
from botanical.resilience.rate_limiter import ProviderRateLimiter
from botanical.resilience.retry import RetryPolicy

if TYPE_CHECKING:
    from botanical.integration.alerts import CircuitAlerter

logger = logging.getLogger(__name__)

ALL_PROVIDERS = "all"

CLIENT_CLASSES: dict[str, type[BotanicalClient]] = {
    TrefleClient.provider: TrefleClient,
    PerenualClient.provider: PerenualClient,
}


class ProviderRegistry:
    """Registry that maps provider names to their client instances."""

    def __init__(self) -> None:
        self._clients: dict[str, BotanicalClient] = {}

    def register(self, client: BotanicalClient) -> None:
        """Register a client under its declared ``provider`` name.

        Raises
        ------
        ValueError
            If a client for the same provider is already registered.
        """
        if client.provider in self._clients:
            raise ValueError(f"Client for provider '{client.provider}' is already registered")
        self._clients[client.provider] = client
        logger.info(
            "Registered %s client (configured=%s)",
            client.provider,
            client.is_configured(),
            extra={"provider": client.provider},
        )

    def get(self, provider: str) -> BotanicalClient:
        """Return the client for *provider*.

        Raises
        ------
        ProviderNotFoundError
            If no client is registered under that name.
        """
        try:
            return self._clients[provider]
        except KeyError:
            raise ProviderNotFoundError(
                f"Unknown provider '{provider}'",
                provider=provider,
                available=self.names(),
            ) from None

    def names(self) -> list[str]:
        return list(self._clients.keys())

    def clients(self) -> list[BotanicalClient]:
        return list(self._clients.values())

    def select(self, selector: str) -> list[BotanicalClient]:
        """Resolve a provider name or ``"all"`` to a list of clients."""
        if selector == ALL_PROVIDERS:
            return self.clients()
        return [self.get(selector)]

    async def reset(self, selector: str) -> list[str]:
        """Zero statistics and close the circuit for the selected providers."""
        selected = self.select(selector)
        for client in selected:
            await client.reset()
        return [client.provider for client in selected]

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()


def _retry_policy(settings: BotanicalSettings, policy: ProviderPolicy) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=policy.max_attempts or settings.max_attempts,
        initial_backoff_seconds=settings.initial_backoff_seconds,
        max_backoff_seconds=settings.max_backoff_seconds,
        rate_limit_cooldown_seconds=settings.rate_limit_cooldown_seconds,
        attempt_timeout_seconds=policy.timeout_seconds or settings.request_timeout_seconds,
    )


def build_registry(
    settings: BotanicalSettings,
    policies: dict[str, ProviderPolicy],
    *,
    alerter: CircuitAlerter | None = None,
) -> ProviderRegistry:
    """Create one client per known provider, each with its own monitor.

    All clients share a single ``ProviderRateLimiter``; its spacing is keyed
    per provider so providers never wait on each other.
    """
    default_policy = policies.get("default", ProviderPolicy())
    rate_limiter = ProviderRateLimiter(
        default_min_delay_ms=default_policy.min_delay_ms,
        overrides={
            name: policy.min_delay_ms for name, policy in policies.items() if name != "default"
        },
    )

    credentials = {
        TrefleClient.provider: (settings.trefle_api_key, settings.trefle_api_url),
        PerenualClient.provider: (settings.perenual_api_key, settings.perenual_api_url),
    }

    registry = ProviderRegistry()
    for name, client_cls in CLIENT_CLASSES.items():
        policy = policies.get(name, default_policy)
        api_key, base_url = credentials[name]
        breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            cooldown_seconds=settings.cb_cooldown_seconds,
            max_cooldown_seconds=settings.cb_max_cooldown_seconds,
            name=name,
        )
        registry.register(
            client_cls(
                api_key,
                base_url=base_url,
                monitor=ProviderMonitor(name, breaker),
                rate_limiter=rate_limiter,
                retry_policy=_retry_policy(settings, policy),
                page_size=policy.page_size,
                alerter=alerter,
            )
        )
    return registry
