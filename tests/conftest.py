"""Shared test fixtures for the botanical test suite."""

from __future__ import annotations

import inspect
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import pytest

from botanical.config.settings import BotanicalSettings
from botanical.providers.base import BotanicalClient
from botanical.providers.trefle import TrefleClient
from botanical.resilience.circuit_breaker import CircuitBreaker
from botanical.resilience.monitor import ProviderMonitor
from botanical.resilience.rate_limiter import ProviderRateLimiter
from botanical.resilience.retry import RetryPolicy
from botanical.resilience.stats import RequestStats


# ---------------------------------------------------------------------------
# Ensure required env vars are set for BotanicalSettings in tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set minimal env vars so BotanicalSettings can be instantiated in tests."""
    if "BOTANICAL_SERVICE_KEY" not in os.environ:
        monkeypatch.setenv("BOTANICAL_SERVICE_KEY", "test-key")
    # Provider keys from the developer's shell must not leak into tests
    monkeypatch.delenv("BOTANICAL_TREFLE_API_KEY", raising=False)
    monkeypatch.delenv("BOTANICAL_PERENUAL_API_KEY", raising=False)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """Undo handler and level changes made by configure_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> BotanicalSettings:
    """Test settings with safe defaults."""
    return BotanicalSettings(
        service_key="test-key",
        trefle_api_key="trefle-test-token",
        perenual_api_key="perenual-test-key",
        log_json=False,
    )


# ---------------------------------------------------------------------------
# Provider client harness
# ---------------------------------------------------------------------------

@dataclass
class ClientHarness:
    """A provider client wired to a scripted mock transport."""

    client: BotanicalClient
    requests: list[httpx.Request] = field(default_factory=list)
    sleeps: list[float] = field(default_factory=list)

    @property
    def stats(self) -> RequestStats:
        return self.client.monitor.stats

    @property
    def breaker(self) -> CircuitBreaker:
        return self.client.monitor.breaker


def scripted_handler(responses: list[Any], requests: list[httpx.Request]) -> Callable:
    """Serve *responses* in order, repeating the last one once exhausted.

    Items may be ``httpx.Response`` objects, exceptions to raise, or
    (async) callables taking the request.
    """
    queue = list(responses)

    async def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(request)
            if inspect.isawaitable(item):
                item = await item
        # Fresh copy so a repeated response is never shared between requests
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    return handler


@pytest.fixture
def make_client() -> Callable[..., ClientHarness]:
    """Factory for provider clients with zero spacing and recorded backoff."""

    def factory(
        responses: list[Any] | None = None,
        *,
        client_cls: type[BotanicalClient] = TrefleClient,
        api_key: str | None = "test-token",
        max_attempts: int = 3,
        attempt_timeout: float = 1.0,
        failure_threshold: int = 5,
        cooldown: float = 30.0,
        alerter: Any = None,
    ) -> ClientHarness:
        harness_requests: list[httpx.Request] = []
        sleeps: list[float] = []

        async def record_sleep(delay: float) -> None:
            sleeps.append(delay)

        handler = scripted_handler(responses or [httpx.Response(200, json={})], harness_requests)
        client = client_cls(
            api_key,
            monitor=ProviderMonitor(
                client_cls.provider,
                CircuitBreaker(
                    failure_threshold=failure_threshold,
                    cooldown_seconds=cooldown,
                    name=client_cls.provider,
                ),
            ),
            rate_limiter=ProviderRateLimiter(default_min_delay_ms=0),
            retry_policy=RetryPolicy(
                max_attempts=max_attempts,
                initial_backoff_seconds=1.0,
                max_backoff_seconds=30.0,
                rate_limit_cooldown_seconds=60.0,
                attempt_timeout_seconds=attempt_timeout,
            ),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=record_sleep,
            alerter=alerter,
        )
        return ClientHarness(client=client, requests=harness_requests, sleeps=sleeps)

    return factory


# ---------------------------------------------------------------------------
# Upstream payload builders
# ---------------------------------------------------------------------------

@pytest.fixture
def trefle_plant() -> Callable[..., dict]:
    def build(plant_id: int = 1, scientific_name: str = "Quercus robur", **extra: Any) -> dict:
        plant = {
            "id": plant_id,
            "scientific_name": scientific_name,
            "common_name": "English oak",
            "slug": scientific_name.lower().replace(" ", "-"),
            "family": "Fagaceae",
            "genus": scientific_name.split(" ")[0],
            "image_url": f"https://bs.plantnet.org/image/{plant_id}.jpg",
        }
        plant.update(extra)
        return plant

    return build


@pytest.fixture
def trefle_list() -> Callable[..., dict]:
    def build(plants: list[dict], next_link: str | None = None) -> dict:
        links = {"self": "/api/v1/plants"}
        if next_link is not None:
            links["next"] = next_link
        return {"data": plants, "links": links, "meta": {"total": len(plants)}}

    return build


@pytest.fixture
def perenual_species() -> Callable[..., dict]:
    def build(species_id: int = 1, scientific_name: str = "Mentha spicata", **extra: Any) -> dict:
        species = {
            "id": species_id,
            "common_name": "spearmint",
            "scientific_name": [scientific_name],
            "other_name": ["garden mint"],
            "cycle": "Perennial",
            "watering": "Frequent",
            "sunlight": ["full sun", "part shade"],
            "default_image": {"regular_url": f"https://perenual.com/img/{species_id}.jpg"},
        }
        species.update(extra)
        return species

    return build

