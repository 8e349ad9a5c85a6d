"""Configuration module: settings and provider policies."""

from botanical.config.provider_policies import ProviderPolicy, builtin_policies, load_provider_policies
from botanical.config.settings import BotanicalSettings

__all__ = [
    "BotanicalSettings",
    "ProviderPolicy",
    "builtin_policies",
    "load_provider_policies",
]
