"""Chunked, resumable page processing for sync jobs."""

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from takesync.api.client import TakealotClient
from takesync.api.models.responses import Page
from takesync.config.settings import Settings
from takesync.db.engine import get_session
from takesync.db.models.sync_job import SyncJob
from takesync.sync.job_store import JobStateStore
from takesync.sync.status import JobStatus
from takesync.sync.strategies import BaseSyncStrategy, get_strategy
from takesync.sync.upserter import RecordUpserter, UpsertResult
from takesync.utils.dates import utcnow
from takesync.utils.exceptions import APIError, ConcurrentModificationError

logger = structlog.get_logger(__name__)


@dataclass
class ChunkResult:
    """Outcome of one ``process_chunk`` call.

    Counters describe this chunk only; the cumulative totals live on
    ``job``.
    """

    job: SyncJob
    success: bool
    pages_processed: int = 0
    new: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error: str | None = None

    @property
    def status(self) -> str:
        return self.job.status

    @property
    def finished(self) -> bool:
        """Whether the job reached a terminal state."""
        return JobStatus(self.job.status).is_terminal

    @property
    def processed(self) -> int:
        return self.new + self.updated + self.skipped + self.errors

    def add(self, page: UpsertResult) -> None:
        self.pages_processed += 1
        self.new += page.new
        self.updated += page.updated
        self.skipped += page.skipped
        self.errors += page.errors


class ChunkProcessor:
    """Fetches and stores up to ``pages_per_chunk`` pages of a job.

    Pages are handled strictly in cursor order. The records of a page and
    the job's new cursor and counters are committed together, so an
    interrupted chunk loses at most the page in flight. No transaction is
    open while waiting on the API.
    """

    def __init__(
        self,
        client: TakealotClient,
        store: JobStateStore,
        engine: Engine,
        settings: Settings,
    ) -> None:
        """Initialize the processor.

        Args:
            client: Seller API client (already entered).
            store: Job state store.
            engine: SQLAlchemy engine.
            settings: Application settings.
        """
        self.client = client
        self.store = store
        self.engine = engine
        self.settings = settings

    async def process_chunk(self, job_id: str, api_key: str) -> ChunkResult:
        """Process the next chunk of a job.

        Args:
            job_id: Job identifier.
            api_key: Tenant's Seller API key.

        Returns:
            Counts for this chunk and the job as stored afterwards.

        Raises:
            JobNotFoundError: If the job does not exist.
            ConcurrentModificationError: If another processor is advancing
                the same job.
        """
        job = self.store.get(job_id)
        status = JobStatus(job.status)

        if status in (JobStatus.COMPLETED, JobStatus.CANCELLED):
            logger.info("Sync job already finished", job_id=job_id, status=status.value)
            return ChunkResult(job=job, success=True)
        if status == JobStatus.FAILED:
            logger.info("Sync job previously failed", job_id=job_id, error=job.last_error)
            return ChunkResult(job=job, success=False, error=job.last_error)

        log = logger.bind(job_id=job.id, tenant_id=job.tenant_id, data_type=job.data_type)
        try:
            job = self.store.transition(job, JobStatus.IN_PROGRESS)
        except ConcurrentModificationError:
            current = self._cancelled_or_raise(job_id)
            log.info("Sync job cancelled before chunk started")
            return ChunkResult(job=current, success=True)

        strategy = get_strategy(job.data_type)
        result = ChunkResult(job=job, success=True)
        log.info("Processing chunk", start_page=job.current_page, pages_per_chunk=job.pages_per_chunk)

        try:
            job = await self._run_pages(job, strategy, api_key, result)
        except ConcurrentModificationError:
            current = self._cancelled_or_raise(job.id)
            log.info("Sync job cancelled during chunk", page=current.current_page)
            job = current

        result.job = job
        log.info(
            "Chunk finished",
            status=job.status,
            pages=result.pages_processed,
            new=result.new,
            updated=result.updated,
            skipped=result.skipped,
            errors=result.errors,
            next_page=job.current_page,
        )
        return result

    async def _run_pages(
        self,
        job: SyncJob,
        strategy: BaseSyncStrategy,
        api_key: str,
        result: ChunkResult,
    ) -> SyncJob:
        log = logger.bind(job_id=job.id, tenant_id=job.tenant_id, data_type=job.data_type)
        for _ in range(job.pages_per_chunk):
            if self._past_end(job):
                job = self.store.transition(job, JobStatus.COMPLETED)
                break

            try:
                page = await self.client.get_page(
                    api_key, job.data_type, job.current_page, job.page_size
                )
            except APIError as e:
                if e.retryable:
                    job = self._record_transient_failure(job, e)
                else:
                    job = self._fail(job, e)
                result.success = False
                result.error = str(e)
                break
            except Exception as e:
                log.exception("Unexpected error fetching page", page=job.current_page)
                job = self._fail(job, e)
                result.success = False
                result.error = str(e)
                break

            try:
                job, page_result = self._store_page(job, strategy, page)
            except ConcurrentModificationError:
                raise
            except SQLAlchemyError as e:
                log.exception("Failed to store page", page=job.current_page)
                job = self._fail(job, e)
                result.success = False
                result.error = str(e)
                break
            except Exception as e:
                log.exception("Unexpected error storing page", page=job.current_page)
                job = self._fail(job, e)
                result.success = False
                result.error = str(e) or type(e).__name__
                break

            result.add(page_result)
            if JobStatus(job.status).is_terminal:
                break

        return job

    def _cancelled_or_raise(self, job_id: str) -> SyncJob:
        """Re-read a job after a lost write; anything but a cancel is a conflict."""
        current = self.store.get(job_id)
        if current.status != JobStatus.CANCELLED.value:
            raise ConcurrentModificationError(
                f"Sync job {job_id} was modified by another processor"
            )
        return current

    def _past_end(self, job: SyncJob) -> bool:
        if job.max_pages is not None and job.current_page > job.max_pages:
            return True
        return job.total_pages is not None and job.current_page > job.total_pages

    def _filter_window(
        self,
        job: SyncJob,
        strategy: BaseSyncStrategy,
        records: list[dict[str, Any]],
    ) -> tuple[list[dict[str, Any]], bool, Any]:
        """Drop records older than the job's date window.

        Returns:
            (records to keep, whether the window start was passed, oldest date).
        """
        dated = [(record, strategy.record_date(record)) for record in records]
        known = [d for _, d in dated if d is not None]
        oldest = min(known) if known else None
        if job.date_from is None:
            return records, False, oldest

        kept = [record for record, d in dated if d is None or d >= job.date_from]
        passed = oldest is not None and oldest < job.date_from
        return kept, passed, oldest

    def _store_page(
        self,
        job: SyncJob,
        strategy: BaseSyncStrategy,
        page: Page,
    ) -> tuple[SyncJob, UpsertResult]:
        """Upsert a page and advance the cursor in one transaction."""
        records, passed_window, oldest = self._filter_window(job, strategy, page.items)
        finished = (
            page.is_last
            or passed_window
            or (job.max_pages is not None and page.page_number >= job.max_pages)
        )

        now = utcnow()
        with get_session(self.engine) as session:
            upserter = RecordUpserter(
                session, strategy, job.tenant_id, batch_size=self.settings.write_batch_size
            )
            page_result = upserter.upsert_page(records)

            values: dict[str, Any] = {
                "current_page": page.page_number + 1,
                "pages_processed": job.pages_processed + 1,
                "items_processed": job.items_processed + page_result.processed,
                "total_new": job.total_new + page_result.new,
                "total_updated": job.total_updated + page_result.updated,
                "total_skipped": job.total_skipped + page_result.skipped,
                "total_errors": job.total_errors + page_result.errors,
                "consecutive_failures": 0,
                "last_processed_at": now,
            }
            if page.total_pages is not None:
                values["total_pages"] = page.total_pages
            if oldest is not None and (job.oldest_record_at is None or oldest < job.oldest_record_at):
                values["oldest_record_at"] = oldest
            target = None
            if finished:
                target = JobStatus.COMPLETED
                values["completed_at"] = now

            job = self.store.advance(session, job, values, target)

        logger.debug(
            "Stored page",
            job_id=job.id,
            page=page.page_number,
            records=len(page.items),
            kept=len(records),
            finished=finished,
        )
        return job, page_result

    def _record_transient_failure(self, job: SyncJob, error: APIError) -> SyncJob:
        """Count a failed chunk, failing the job once the limit is reached."""
        failures = job.consecutive_failures + 1
        values = {
            "error_count": job.error_count + 1,
            "consecutive_failures": failures,
            "last_error": str(error),
        }
        if failures >= self.settings.job_max_failures:
            logger.error(
                "Sync job failed after repeated transient errors",
                job_id=job.id,
                page=job.current_page,
                failures=failures,
                error=str(error),
            )
            return self.store.transition(job, JobStatus.FAILED, **values)

        logger.warning(
            "Chunk aborted on transient error, cursor kept",
            job_id=job.id,
            page=job.current_page,
            failures=failures,
            max_failures=self.settings.job_max_failures,
            error=str(error),
        )
        return self.store.transition(job, JobStatus.IN_PROGRESS, **values)

    def _fail(self, job: SyncJob, error: BaseException) -> SyncJob:
        logger.error(
            "Sync job failed",
            job_id=job.id,
            page=job.current_page,
            error=str(error),
        )
        return self.store.transition(
            job,
            JobStatus.FAILED,
            error_count=job.error_count + 1,
            last_error=str(error) or type(error).__name__,
        )
