"""HMAC-SHA256 signed webhook delivery for operator notifications.

Posts JSON payloads to a configured URL with retry logic and exponential
backoff. Payloads are signed so the receiver can verify their origin.

SECURITY: Signatures use HMAC-SHA256(secret, canonical JSON payload).
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"


class WebhookNotifier:
    """Delivers HMAC-SHA256 signed webhook notifications with retry logic.

    Parameters
    ----------
    secret:
        Shared secret for HMAC-SHA256 signature computation.
    url:
        Destination URL for every notification.
    timeout_seconds:
        HTTP timeout per delivery attempt (default 10).
    max_retries:
        Maximum delivery attempts (default 3).
    backoff_base:
        Base backoff in seconds (default 2). Schedule: 2s, 4s.
    transport:
        Optional httpx transport, used by tests to capture deliveries.
    """

    def __init__(
        self,
        secret: str,
        url: str,
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 2.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._secret = secret
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._transport = transport
        self._sleep = sleep

    def compute_signature(self, payload_bytes: bytes) -> str:
        """Compute the HMAC-SHA256 hex signature for a payload."""
        return hmac.new(
            self._secret.encode("utf-8"),
            payload_bytes,
            hashlib.sha256,
        ).hexdigest()

    @staticmethod
    def encode(payload: dict) -> bytes:
        return json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str).encode(
            "utf-8"
        )

    async def deliver(self, payload: dict) -> bool:
        """Deliver a signed payload, retrying transient failures.

        Returns
        -------
        bool
            True if a delivery attempt got a non-error response, False once
            all retries are exhausted.
        """
        payload_bytes = self.encode(payload)
        signature = self.compute_signature(payload_bytes)
        last_error: str | None = None

        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    response = await client.post(
                        self._url,
                        content=payload_bytes,
                        headers={
                            "Content-Type": "application/json",
                            SIGNATURE_HEADER: signature,
                        },
                        timeout=self._timeout_seconds,
                    )

                if response.status_code < 400:
                    logger.info(
                        "Webhook delivered to %s (status %d)",
                        self._url,
                        response.status_code,
                    )
                    return True

                last_error = f"HTTP {response.status_code}"

            except httpx.TransportError as exc:
                last_error = exc.__class__.__name__

            if attempt < self._max_retries - 1:
                backoff = self._backoff_base * (2**attempt)
                logger.warning(
                    "Webhook delivery failed (attempt %d/%d, %s), retrying in %.0fs",
                    attempt + 1,
                    self._max_retries,
                    last_error,
                    backoff,
                )
                await self._sleep(backoff)

        logger.error(
            "Webhook delivery to %s failed after %d attempts: %s",
            self._url,
            self._max_retries,
            last_error,
        )
        return False
