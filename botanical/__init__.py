"""Resilient clients for external botanical data providers (Trefle, Perenual)."""
