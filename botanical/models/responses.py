"""Generic API response envelope model.

Admin API responses are wrapped in this envelope for consistency:
{ success: bool, data: T | None, error: str | None, meta: dict | None }

The operator health endpoints return their own flat document instead, so
external monitors can read ``status`` at the top level.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for admin API responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None
