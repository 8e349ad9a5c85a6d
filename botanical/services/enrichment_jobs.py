"""Batch enrichment and progressive import jobs.

Both jobs sit on top of a single provider client and follow the same
contract for provider failures: ``ConfigurationError`` and
``CircuitOpenError`` mean "try again later" and never abort the batch, and
every other typed failure is recorded against its item so the batch keeps
going. Records are handed to an injectable async sink (a database writer,
a search indexer, or a list in tests).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from uuid import uuid4

from botanical.middleware.error_handler import (
    BotanicalError,
    CircuitOpenError,
    ConfigurationError,
)
from botanical.models.jobs import (
    ImportProgress,
    ItemStatus,
    JobItemResult,
    JobStatus,
    JobSummary,
)
from botanical.models.records import EnrichmentRecord
from botanical.providers.base import BotanicalClient

logger = logging.getLogger(__name__)

RecordSink = Callable[[EnrichmentRecord], Awaitable[None]]

# Failures that leave the item for a later run rather than marking it failed
_SKIP_ERRORS = (ConfigurationError, CircuitOpenError)


def compute_final_status(summary: JobSummary) -> JobStatus:
    """Derive job status from item outcomes.

    - Every item enriched (or no items) → COMPLETED
    - No item enriched → FAILED
    - Anything in between → PARTIALLY_COMPLETED
    """
    if summary.enriched == summary.total:
        return JobStatus.COMPLETED
    if summary.enriched == 0:
        return JobStatus.FAILED
    return JobStatus.PARTIALLY_COMPLETED


class EnrichmentJob:
    """Enriches a list of provider identifiers, one item at a time or in parallel.

    Parameters
    ----------
    client:
        Provider client used for every lookup.
    sink:
        Optional coroutine receiving each enriched record. A sink failure
        marks the item failed.
    concurrency:
        Maximum lookups in flight; the provider's rate limiter still spaces
        the actual upstream calls.
    """

    def __init__(
        self,
        client: BotanicalClient,
        sink: RecordSink | None = None,
        *,
        concurrency: int = 1,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._client = client
        self._sink = sink
        self._semaphore = asyncio.Semaphore(concurrency)

    async def run(self, identifiers: Sequence[str | int]) -> JobSummary:
        summary = JobSummary(
            job_id=str(uuid4()),
            provider=self._client.provider,
            status=JobStatus.COMPLETED,
        )
        logger.info(
            "Enrichment job %s started with %d item(s)",
            summary.job_id,
            len(identifiers),
            extra={"provider": self._client.provider, "operation": "enrichment_job"},
        )

        summary.items = list(
            await asyncio.gather(*(self._enrich_one(identifier) for identifier in identifiers))
        )
        summary.status = compute_final_status(summary)
        summary.finished_at = datetime.now(timezone.utc)

        logger.info(
            "Enrichment job %s finished: %s (enriched=%d, skipped=%d, failed=%d)",
            summary.job_id,
            summary.status.value,
            summary.enriched,
            summary.skipped,
            summary.failed,
            extra={"provider": self._client.provider, "operation": "enrichment_job"},
        )
        return summary

    async def _enrich_one(self, identifier: str | int) -> JobItemResult:
        key = str(identifier)
        async with self._semaphore:
            try:
                record = await self._client.enrich(identifier)
            except _SKIP_ERRORS as exc:
                return JobItemResult(
                    identifier=key,
                    status=ItemStatus.SKIPPED,
                    error=exc.message,
                    error_class=exc.category,
                )
            except BotanicalError as exc:
                logger.warning(
                    "Enrichment of %s failed: %s",
                    key,
                    exc.message,
                    extra={"provider": self._client.provider, "error_class": exc.category},
                )
                return JobItemResult(
                    identifier=key,
                    status=ItemStatus.FAILED,
                    error=exc.message,
                    error_class=exc.category,
                )

            if self._sink is not None:
                try:
                    await self._sink(record)
                except Exception as exc:
                    logger.exception("Sink rejected record %s", key)
                    return JobItemResult(
                        identifier=key,
                        status=ItemStatus.FAILED,
                        record=record,
                        error=str(exc) or exc.__class__.__name__,
                        error_class="sink",
                    )

            return JobItemResult(identifier=key, status=ItemStatus.ENRICHED, record=record)


class ImportJob:
    """Walks a provider's catalogue a few pages per run, resuming from a cursor.

    The returned ``ImportProgress`` is the state to persist between runs.
    On any provider failure the run stops and keeps the cursor of the page
    that failed, so the next run retries it.
    """

    def __init__(self, client: BotanicalClient, sink: RecordSink) -> None:
        self._client = client
        self._sink = sink

    async def run(self, cursor: str | None = None, max_pages: int = 2) -> ImportProgress:
        progress = ImportProgress(provider=self._client.provider, cursor=cursor)

        while progress.pages_processed < max_pages:
            try:
                page = await self._client.list_page(progress.cursor)
            except BotanicalError as exc:
                progress.stopped_reason = exc.category
                log = logger.info if isinstance(exc, _SKIP_ERRORS) else logger.warning
                log(
                    "Import of %s stopped after %d page(s): %s",
                    self._client.provider,
                    progress.pages_processed,
                    exc.message,
                    extra={"provider": self._client.provider, "error_class": exc.category},
                )
                break

            for record in page.records:
                try:
                    await self._sink(record)
                except Exception:
                    progress.records_failed += 1
                    logger.exception(
                        "Sink rejected %s record %s",
                        self._client.provider,
                        record.identifier,
                    )
                else:
                    progress.records_imported += 1

            progress.pages_processed += 1
            progress.cursor = page.next_cursor
            if page.next_cursor is None:
                progress.is_complete = True
                break

        progress.last_run_at = datetime.now(timezone.utc)
        logger.info(
            "Import of %s: %d page(s), %d record(s) imported, %d failed, complete=%s",
            self._client.provider,
            progress.pages_processed,
            progress.records_imported,
            progress.records_failed,
            progress.is_complete,
            extra={"provider": self._client.provider, "operation": "import_job"},
        )
        return progress
