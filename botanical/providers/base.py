"""Abstract base class for botanical provider clients.

Each provider client knows how to build the HTTP requests for its upstream
API and how to map the upstream payloads into ``EnrichmentRecord``. The base
class owns everything the providers share:

- refusing to operate when the provider's API key is absent
- admission through the provider's circuit breaker
- the retry executor, with the provider's rate limiter gating every attempt
- per-request statistics, applied once the request has finished
- the lookup helpers built on top of search (best match, name validation)

SECURITY: The API key travels as a query parameter and is never logged.
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PayloadValidationError

from botanical.middleware.error_handler import (
    CircuitOpenError,
    ConfigurationError,
    ResponseShapeError,
    ValidationError,
)
from botanical.models.records import EnrichmentRecord, ListPage, NameValidation
from botanical.providers.pagination import decode_cursor, encode_cursor
from botanical.resilience.monitor import MonitorSnapshot, ProviderMonitor
from botanical.resilience.rate_limiter import ProviderRateLimiter
from botanical.resilience.retry import RetryExecutor, RetryPolicy, classify_response
from botanical.resilience.stats import RequestOutcome

if TYPE_CHECKING:
    from botanical.integration.alerts import CircuitAlerter

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")

MAX_SUGGESTIONS = 5


def parse_positive_int(text: str) -> int | None:
    """Return *text* as a positive int, or None for anything else.

    Only ASCII digits count; ``str.isdigit`` also accepts characters such as
    ``"²"`` that ``int`` rejects.
    """
    if not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    return value if value > 0 else None


@dataclass(frozen=True)
class ProviderRequest:
    """One upstream GET, minus the credential."""

    operation: str
    path: str
    params: dict[str, Any] = field(default_factory=dict)


class BotanicalClient(ABC):
    """Resilient client for one external botanical API.

    Subclasses MUST set ``provider``, ``display_name``, ``auth_param`` and
    ``default_base_url`` as class attributes and implement the request
    builders and payload parsers.

    Parameters
    ----------
    api_key:
        Upstream API key. When empty the client is constructed anyway but
        every call fails with ``ConfigurationError``.
    base_url:
        Overrides ``default_base_url``.
    monitor:
        Shared breaker and statistics for this provider. Every component
        calling the provider must be handed the same monitor.
    rate_limiter:
        Shared limiter spacing out calls to this provider.
    retry_policy:
        Attempt budget, backoff and per-attempt deadline.
    page_size:
        Records requested per listing page where the upstream honours it.
    http_client:
        Injected ``httpx.AsyncClient``; the client creates and owns one
        when omitted.
    sleep:
        Coroutine used for retry backoff; injectable for tests.
    alerter:
        Optional circuit alerter checked after every finished request.
    """

    provider: str
    display_name: str
    auth_param: str
    default_base_url: str

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        monitor: ProviderMonitor | None = None,
        rate_limiter: ProviderRateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        page_size: int = 20,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        alerter: CircuitAlerter | None = None,
    ) -> None:
        self._api_key = api_key or None
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self.monitor = monitor or ProviderMonitor(self.provider)
        self.rate_limiter = rate_limiter or ProviderRateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.page_size = page_size
        self._alerter = alerter

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=self.retry_policy.attempt_timeout_seconds
        )
        self._executor = RetryExecutor(
            self.retry_policy,
            before_attempt=self._wait_for_slot,
            sleep=sleep,
            provider=self.provider,
        )

        if self._api_key is None:
            logger.warning(
                "%s API key not configured, calls to %s will be refused",
                self.display_name,
                self.provider,
                extra={"provider": self.provider},
            )

    # ------------------------------------------------------------------
    # Provider-specific hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def build_search_request(self, name: str, page: int) -> ProviderRequest:
        ...

    @abstractmethod
    def build_detail_request(self, identifier: str) -> ProviderRequest:
        ...

    @abstractmethod
    def build_list_request(self, page: int) -> ProviderRequest:
        ...

    @abstractmethod
    def parse_search(self, payload: Any) -> list[EnrichmentRecord]:
        """Map a search payload into records; raises ``ResponseShapeError``."""
        ...

    @abstractmethod
    def parse_detail(self, payload: Any) -> EnrichmentRecord:
        """Map a detail payload into one record; raises ``ResponseShapeError``."""
        ...

    @abstractmethod
    def parse_list(self, payload: Any) -> tuple[list[EnrichmentRecord], bool]:
        """Map a listing payload into ``(records, has_more)``."""
        ...

    def normalize_identifier(self, identifier: str | int) -> str:
        """Validate a record identifier; the default accepts positive integers."""
        value = parse_positive_int(str(identifier).strip())
        if value is None:
            raise ValidationError(
                f"{self.display_name} identifier must be a positive integer",
                provider=self.provider,
                identifier=str(identifier),
            )
        return str(value)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def is_configured(self) -> bool:
        return self._api_key is not None

    def _require_configured(self) -> None:
        if not self.is_configured():
            raise ConfigurationError(
                f"{self.display_name} API key is not configured",
                provider=self.provider,
            )

    async def search(self, name: str, *, page: int = 1) -> list[EnrichmentRecord]:
        """Search the provider by scientific or common name."""
        self._require_configured()
        query = name.strip() if isinstance(name, str) else ""
        if not query:
            raise ValidationError("Search name must not be empty", provider=self.provider)
        return await self._call(self.build_search_request(query, page), self.parse_search)

    async def enrich(self, identifier: str | int) -> EnrichmentRecord:
        """Fetch one record by its provider identifier."""
        self._require_configured()
        normalized = self.normalize_identifier(identifier)
        return await self._call(self.build_detail_request(normalized), self.parse_detail)

    async def list_page(self, cursor: str | None = None) -> ListPage:
        """Fetch one page of the provider's catalogue.

        ``next_cursor`` is None once the provider reports no further pages
        or returns an empty page.
        """
        self._require_configured()
        page = decode_cursor(cursor, self.provider)
        records, has_more = await self._call(self.build_list_request(page), self.parse_list)
        next_cursor = encode_cursor(self.provider, page + 1) if records and has_more else None
        return ListPage(records=records, next_cursor=next_cursor)

    async def find_best_match(
        self, scientific_name: str, common_name: str | None = None
    ) -> EnrichmentRecord | None:
        """Pick the record that best matches a name pair.

        Order of preference: exact scientific name (case-insensitive), then
        a record in the same genus, then the first hit for the common name.
        """
        results = await self.search(scientific_name)
        wanted = scientific_name.strip().casefold()

        for record in results:
            if record.scientific_name.casefold() == wanted:
                return record

        genus = wanted.split(" ", 1)[0]
        for record in results:
            if record.scientific_name.casefold().split(" ", 1)[0] == genus:
                return record

        if common_name and common_name.strip():
            by_common = await self.search(common_name)
            if by_common:
                return by_common[0]

        return None

    async def validate_scientific_name(self, name: str) -> NameValidation:
        """Check a scientific name, suggesting close names when it is unknown."""
        results = await self.search(name)
        wanted = name.strip().casefold()

        for record in results:
            if record.scientific_name.casefold() == wanted:
                return NameValidation(valid=True, matched_name=record.scientific_name)

        suggestions: list[str] = []
        for record in results:
            if record.scientific_name not in suggestions:
                suggestions.append(record.scientific_name)
            if len(suggestions) == MAX_SUGGESTIONS:
                break
        return NameValidation(valid=False, suggestions=suggestions)

    async def snapshot(self) -> MonitorSnapshot:
        return await self.monitor.snapshot()

    async def reset(self) -> None:
        await self.monitor.reset()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    async def _wait_for_slot(self) -> None:
        await self.rate_limiter.acquire(self.provider)

    async def _call(self, request: ProviderRequest, parse: Callable[[Any], T]) -> T:
        self._require_configured()

        try:
            trial = await self.monitor.admit()
        except CircuitOpenError:
            await self._check_alerts()
            raise

        outcome = RequestOutcome()
        try:
            result = await self._executor.execute(
                lambda: self._attempt(request, parse),
                outcome,
                label=request.operation,
            )
        except asyncio.CancelledError:
            # A cancelled request never completed; only the trial slot is freed.
            if trial:
                self.monitor.abandon_trial()
            raise
        except Exception:
            await self.monitor.record(outcome, trial=trial)
            await self._check_alerts()
            raise

        await self.monitor.record(outcome, trial=trial)
        logger.info(
            "%s on %s succeeded after %d attempt(s)",
            request.operation,
            self.provider,
            outcome.attempts,
            extra={
                "provider": self.provider,
                "operation": request.operation,
                "attempt": outcome.attempts,
                "duration_ms": round(outcome.duration_ms),
            },
        )
        await self._check_alerts()
        return result

    async def _attempt(self, request: ProviderRequest, parse: Callable[[Any], T]) -> T:
        params = {**request.params, self.auth_param: self._api_key}
        logger.debug(
            "GET %s%s",
            self._base_url,
            request.path,
            extra={"provider": self.provider, "operation": request.operation},
        )
        response = await self._http.get(
            f"{self._base_url}{request.path}",
            params=params,
            headers={"Accept": "application/json"},
        )

        error = classify_response(response, request.operation)
        if error is not None:
            raise error

        try:
            payload = response.json()
        except ValueError:
            raise ResponseShapeError(
                f"{request.operation} returned a non-JSON body",
                provider=self.provider,
            ) from None
        return parse(payload)

    async def _check_alerts(self) -> None:
        if self._alerter is not None:
            self._alerter.check(self.provider, await self.monitor.snapshot())

    def _validate_payload(self, model: type[M], payload: Any) -> M:
        """Validate an upstream payload, mapping failures to ``ResponseShapeError``."""
        try:
            return model.model_validate(payload)
        except PayloadValidationError as exc:
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            raise ResponseShapeError(
                f"{self.display_name} response is missing required fields",
                provider=self.provider,
                fields=fields[:10],
            ) from None


_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def is_slug(value: str) -> bool:
    """True for lowercase hyphenated identifiers such as ``quercus-robur``."""
    return bool(_SLUG_RE.match(value))
