"""Outbound call spacing and inbound probe limiting.

``ProviderRateLimiter`` enforces a minimum delay between consecutive calls
issued to the same provider (single-slot spacing, not a token bucket).
Concurrent callers for one provider queue on that provider's lock, so the
spacing approximates a fixed request rate; ordering across waiters is not
strictly FIFO. Providers never wait on each other.

``ProbeRateLimiter`` is a non-blocking token bucket keyed by client
address. The public health endpoints use it to answer excess probe
traffic with HTTP 429.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class RateLimitState:
    """Spacing state for a single provider."""

    provider: str
    min_delay_ms: int
    last_call_at: float | None = None  # time.monotonic()


class ProviderRateLimiter:
    """Per-provider minimum-spacing rate limiter.

    Args:
        default_min_delay_ms: Spacing for providers without an override.
        overrides: Optional mapping of provider name to spacing in ms.
    """

    def __init__(
        self,
        default_min_delay_ms: int = 500,
        overrides: dict[str, int] | None = None,
    ) -> None:
        self._default_min_delay_ms = default_min_delay_ms
        self._overrides: dict[str, int] = dict(overrides or {})
        self._states: dict[str, RateLimitState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_or_create(self, provider: str) -> RateLimitState:
        if provider not in self._states:
            delay = self._overrides.get(provider, self._default_min_delay_ms)
            self._states[provider] = RateLimitState(provider=provider, min_delay_ms=delay)
            self._locks[provider] = asyncio.Lock()
        return self._states[provider]

    async def acquire(self, provider: str) -> None:
        """Wait until ``min_delay_ms`` has passed since the provider's last call.

        Records the new ``last_call_at`` before returning. Never raises.
        """
        state = self._get_or_create(provider)

        async with self._locks[provider]:
            if state.last_call_at is not None:
                wait_time = state.last_call_at + state.min_delay_ms / 1000 - time.monotonic()
                if wait_time > 0:
                    logger.debug(
                        "Spacing call to %s by %.0fms",
                        provider,
                        wait_time * 1000,
                        extra={"provider": provider, "delay_ms": round(wait_time * 1000)},
                    )
                    await asyncio.sleep(wait_time)
            state.last_call_at = time.monotonic()


@dataclass
class TokenBucket:
    """Token bucket state for a single probe client."""

    key: str
    tokens: float
    max_tokens: int
    refill_rate: float  # tokens per second
    last_refill: float  # time.monotonic()


class ProbeRateLimiter:
    """Non-blocking token bucket limiter for health probes.

    Args:
        tokens: Bucket capacity (burst size) per client key.
        interval_seconds: Time to refill a full bucket.
        max_clients: Most client buckets held at once. When a new client
            arrives at the cap, buckets that have refilled are dropped first,
            then the least recently seen, until a tenth of the cap is free.
    """

    def __init__(
        self, tokens: int = 30, interval_seconds: int = 60, max_clients: int = 10_000
    ) -> None:
        if max_clients < 1:
            raise ValueError("max_clients must be at least 1")
        self._max_tokens = tokens
        self._refill_rate = tokens / interval_seconds if interval_seconds > 0 else float(tokens)
        self._max_clients = max_clients
        self._buckets: OrderedDict[str, TokenBucket] = OrderedDict()

    def __len__(self) -> int:
        return len(self._buckets)

    def _refill(self, bucket: TokenBucket) -> None:
        now = time.monotonic()
        elapsed = now - bucket.last_refill
        if elapsed <= 0:
            return
        bucket.tokens = min(bucket.tokens + elapsed * bucket.refill_rate, float(bucket.max_tokens))
        bucket.last_refill = now

    def _make_room(self) -> None:
        # A refilled bucket is indistinguishable from a fresh one.
        for key, bucket in list(self._buckets.items()):
            self._refill(bucket)
            if bucket.tokens >= bucket.max_tokens:
                del self._buckets[key]

        target = self._max_clients - max(1, self._max_clients // 10)
        evicted = 0
        while len(self._buckets) > target:
            self._buckets.popitem(last=False)
            evicted += 1
        if evicted:
            logger.warning(
                "Probe limiter at capacity; evicted %d active client buckets",
                evicted,
                extra={"event": "probe_limiter_eviction"},
            )

    def try_acquire(self, key: str) -> bool:
        """Take a token for *key*; return False when the bucket is empty."""
        bucket = self._buckets.get(key)
        if bucket is None:
            if len(self._buckets) >= self._max_clients:
                self._make_room()
            bucket = TokenBucket(
                key=key,
                tokens=float(self._max_tokens),
                max_tokens=self._max_tokens,
                refill_rate=self._refill_rate,
                last_refill=time.monotonic(),
            )
            self._buckets[key] = bucket
        else:
            self._buckets.move_to_end(key)

        self._refill(bucket)
        if bucket.tokens >= 1.0:
            bucket.tokens -= 1.0
            return True
        return False

    def retry_after(self, key: str) -> float:
        """Seconds until *key* has a token again."""
        bucket = self._buckets.get(key)
        if bucket is None or bucket.tokens >= 1.0:
            return 0.0
        return (1.0 - bucket.tokens) / bucket.refill_rate if bucket.refill_rate > 0 else 1.0
