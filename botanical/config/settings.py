"""Pydantic Settings for the botanical provider service.

All environment variables use the BOTANICAL_ prefix.
Example: BOTANICAL_PORT=8002, BOTANICAL_TREFLE_API_KEY=abc123
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

_DEFAULT_POLICIES_PATH = str(Path(__file__).with_name("provider_policies.yaml"))


class BotanicalSettings(BaseSettings):
    """Service configuration validated from environment variables."""

    # Service
    port: int = 8002
    service_key: str  # X-Service-Key for admin routes
    log_level: str = "INFO"
    log_json: bool = True

    # Provider credentials; a missing key leaves that provider unconfigured
    trefle_api_key: str | None = None
    trefle_api_url: str = "https://trefle.io/api/v1"
    perenual_api_key: str | None = None
    perenual_api_url: str = "https://perenual.com/api"

    # Retry executor
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    max_attempts: int = Field(default=3, ge=1, le=10)
    initial_backoff_seconds: float = Field(default=1.0, ge=0)
    max_backoff_seconds: float = Field(default=30.0, ge=0)
    rate_limit_cooldown_seconds: float = Field(default=60.0, ge=0)  # Wait after HTTP 429

    # Circuit breaker
    cb_failure_threshold: int = Field(default=5, ge=1)
    cb_cooldown_seconds: float = Field(default=30.0, gt=0)
    cb_max_cooldown_seconds: float = Field(default=300.0, gt=0)

    # Health endpoint probe limit (token bucket per client address)
    health_probe_tokens: int = Field(default=30, ge=1)
    health_probe_interval_seconds: int = Field(default=60, ge=1)
    health_probe_max_clients: int = Field(default=10_000, ge=1)

    # Circuit breaker alerts
    alert_webhook_url: str | None = None
    alert_webhook_secret: str | None = None
    alert_cooldown_seconds: int = Field(default=300, ge=0)

    # Provider policies
    provider_policies_path: str = _DEFAULT_POLICIES_PATH

    model_config = {"env_prefix": "BOTANICAL_"}
