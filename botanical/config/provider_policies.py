"""Provider policy models and YAML loader.

Provides typed Pydantic models for per-provider call policies (request
spacing, page size, attempt budget) and a loader function that parses the
YAML config into those models.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ProviderPolicy(BaseModel):
    """Outbound call policy for a single botanical provider."""

    min_delay_ms: int = Field(default=500, ge=0)
    page_size: int = Field(default=20, ge=1, le=100)
    max_attempts: int | None = Field(default=None, ge=1)  # Falls back to settings
    timeout_seconds: float | None = Field(default=None, gt=0)


# Trefle allows 120 requests/minute, Perenual's free tier is stricter
_BUILTIN_POLICIES: dict[str, ProviderPolicy] = {
    "default": ProviderPolicy(),
    "trefle": ProviderPolicy(min_delay_ms=500),
    "perenual": ProviderPolicy(min_delay_ms=1000),
}


def builtin_policies() -> dict[str, ProviderPolicy]:
    """Return a fresh copy of the built-in provider policies."""
    return {name: policy.model_copy() for name, policy in _BUILTIN_POLICIES.items()}


def load_provider_policies(yaml_path: str) -> dict[str, ProviderPolicy]:
    """Parse a provider policies YAML file into typed ProviderPolicy objects.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        A dict mapping provider names (and "default") to ProviderPolicy
        instances. Providers missing from the file keep their built-in policy.
        If the file is not found or cannot be parsed, the built-in policies
        are returned unchanged.
    """
    policies = builtin_policies()
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Provider policies file not found at %s, using built-in defaults", yaml_path)
        return policies

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse provider policies YAML at %s: %s", yaml_path, exc)
        return policies

    if not isinstance(raw, dict) or not isinstance(raw.get("providers"), dict):
        logger.warning("Provider policies YAML missing 'providers' key, using built-in defaults")
        return policies

    for provider, config in raw["providers"].items():
        try:
            policies[provider] = ProviderPolicy.model_validate(config or {})
        except Exception as exc:
            logger.error("Invalid policy for provider '%s': %s, skipping", provider, exc)

    return policies
