"""Public models for the botanical provider service."""

from botanical.models.jobs import (
    ImportProgress,
    ItemStatus,
    JobItemResult,
    JobStatus,
    JobSummary,
)
from botanical.models.records import EnrichmentRecord, ListPage, NameValidation, SourceAttribution
from botanical.models.responses import ApiResponse

__all__ = [
    "ApiResponse",
    "EnrichmentRecord",
    "ImportProgress",
    "ItemStatus",
    "JobItemResult",
    "JobStatus",
    "JobSummary",
    "ListPage",
    "NameValidation",
    "SourceAttribution",
]
