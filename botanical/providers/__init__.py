"""Botanical provider clients and their registry."""

from botanical.providers.base import BotanicalClient, ProviderRequest
from botanical.providers.pagination import decode_cursor, encode_cursor
from botanical.providers.perenual import PerenualClient
from botanical.providers.registry import ProviderRegistry, build_registry
from botanical.providers.trefle import TrefleClient

__all__ = [
    "BotanicalClient",
    "PerenualClient",
    "ProviderRegistry",
    "ProviderRequest",
    "TrefleClient",
    "build_registry",
    "decode_cursor",
    "encode_cursor",
]
