"""In-memory state models for enrichment and import jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from botanical.models.records import EnrichmentRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Terminal status of a batch job."""

    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"


class ItemStatus(str, Enum):
    """Outcome of a single item within a batch job."""

    ENRICHED = "enriched"
    SKIPPED = "skipped"  # Provider unconfigured or circuit open, retry later
    FAILED = "failed"


@dataclass
class JobItemResult:
    """Per-item outcome kept for later review."""

    identifier: str
    status: ItemStatus
    record: EnrichmentRecord | None = None
    error: str | None = None
    error_class: str | None = None


@dataclass
class JobSummary:
    """Result of an enrichment batch."""

    job_id: str
    provider: str
    status: JobStatus
    items: list[JobItemResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def enriched(self) -> int:
        return sum(1 for item in self.items if item.status == ItemStatus.ENRICHED)

    @property
    def skipped(self) -> int:
        return sum(1 for item in self.items if item.status == ItemStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if item.status == ItemStatus.FAILED)


@dataclass
class ImportProgress:
    """Resumable state of a progressive listing import."""

    provider: str
    cursor: str | None = None  # Where the next run resumes; None at the start
    pages_processed: int = 0
    records_imported: int = 0
    records_failed: int = 0
    is_complete: bool = False
    stopped_reason: str | None = None
    last_run_at: datetime = field(default_factory=_utcnow)
