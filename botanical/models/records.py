"""Domain output of provider calls.

``EnrichmentRecord`` is the provider-neutral shape every successful detail,
search or listing call is mapped into. Only ``identifier`` and
``scientific_name`` are required; everything else is best-effort.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceAttribution(BaseModel):
    """Where a record's data came from."""

    name: str
    url: str | None = None
    citation: str | None = None


class EnrichmentRecord(BaseModel):
    """Mapped botanical record from one provider."""

    provider: str
    identifier: str = Field(..., min_length=1)
    scientific_name: str = Field(..., min_length=1)
    common_name: str | None = None
    family: str | None = None
    genus: str | None = None
    synonyms: list[str] = Field(default_factory=list)
    image_url: str | None = None
    sources: list[SourceAttribution] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)  # Provider-specific extras
    fetched_at: datetime = Field(default_factory=_utcnow)


class ListPage(BaseModel):
    """One page of a paginated listing; ``next_cursor`` is None at the end."""

    records: list[EnrichmentRecord]
    next_cursor: str | None = None


class NameValidation(BaseModel):
    """Result of checking a scientific name against a provider."""

    valid: bool
    matched_name: str | None = None
    suggestions: list[str] = Field(default_factory=list)
