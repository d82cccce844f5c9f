"""Persistent sync job state with validated status transitions."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from takesync.config.settings import Settings
from takesync.db.engine import get_session
from takesync.db.models.sync_job import SyncJob
from takesync.db.repositories.execution_log import ExecutionLogRepository
from takesync.db.repositories.sync_job import SyncJobRepository
from takesync.sync.status import JobStatus
from takesync.utils.dates import utcnow
from takesync.utils.exceptions import ConcurrentModificationError, JobNotFoundError, SyncError

logger = structlog.get_logger(__name__)

# Attempts at a cancel write while a chunk keeps bumping the version
CANCEL_ATTEMPTS = 5


def active_key(tenant_id: str, data_type: str) -> str:
    return f"{tenant_id}:{data_type}"


@dataclass
class JobStats:
    """Summary of recent sync activity."""

    active_by_type: dict[str, int] = field(default_factory=dict)
    completed_last_24h: int = 0
    items_last_24h: int = 0
    error_rate: float = 0.0

    @property
    def active_total(self) -> int:
        return sum(self.active_by_type.values())


class JobStateStore:
    """Creates, resumes, advances and cancels sync jobs.

    Every status change goes through :class:`JobStatus` validation and every
    write is a check-and-set on the job's ``version``, so two processors can
    never both advance the same cursor.
    """

    def __init__(self, engine: Engine, settings: Settings) -> None:
        """Initialize the store.

        Args:
            engine: SQLAlchemy engine.
            settings: Application settings.
        """
        self.engine = engine
        self.settings = settings

    def get(self, job_id: str) -> SyncJob:
        """Load a job.

        Raises:
            JobNotFoundError: If no job has this id.
        """
        with get_session(self.engine) as session:
            job = SyncJobRepository(session).get_by_id(job_id)
        if job is None:
            raise JobNotFoundError(f"Sync job not found: {job_id}")
        return job

    def create_or_resume(
        self,
        tenant_id: str,
        data_type: str,
        strategy_id: str | None = None,
        max_pages: int | None = None,
        pages_per_chunk: int = 10,
        date_from: datetime | None = None,
        page_size: int | None = None,
    ) -> SyncJob:
        """Return the active job for a tenant and data type, or create one.

        Args:
            tenant_id: Tenant identifier.
            data_type: ``products`` or ``sales``.
            strategy_id: Preset that requested the job.
            max_pages: Optional page cap.
            pages_per_chunk: Pages fetched per invocation.
            date_from: Optional start of the sales date window.
            page_size: Records per page (defaults to settings).

        Returns:
            The resumed or newly created job.
        """
        with get_session(self.engine) as session:
            existing = SyncJobRepository(session).get_active(tenant_id, data_type)
        if existing is not None:
            logger.info(
                "Resuming active sync job",
                job_id=existing.id,
                tenant_id=tenant_id,
                data_type=data_type,
                current_page=existing.current_page,
            )
            return existing

        job = SyncJob(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            data_type=data_type,
            strategy_id=strategy_id,
            status=JobStatus.PENDING.value,
            active_key=active_key(tenant_id, data_type),
            current_page=1,
            max_pages=max_pages,
            pages_per_chunk=pages_per_chunk,
            page_size=page_size or self.settings.api_page_size,
            date_from=date_from,
            version=1,
        )
        try:
            with get_session(self.engine) as session:
                SyncJobRepository(session).add(job)
        except IntegrityError:
            # Another invocation created the active job first
            with get_session(self.engine) as session:
                winner = SyncJobRepository(session).get_active(tenant_id, data_type)
            if winner is None:
                raise SyncError(
                    f"Could not create or resume sync job for {tenant_id}/{data_type}"
                ) from None
            logger.info("Resuming sync job created concurrently", job_id=winner.id)
            return winner

        logger.info(
            "Created sync job",
            job_id=job.id,
            tenant_id=tenant_id,
            data_type=data_type,
            strategy_id=strategy_id,
            max_pages=max_pages,
            pages_per_chunk=pages_per_chunk,
        )
        return job

    def advance(
        self,
        session: Session,
        job: SyncJob,
        values: dict[str, Any],
        target: JobStatus | None = None,
    ) -> SyncJob:
        """Write new job state in the caller's transaction.

        Args:
            session: Session the write joins; the caller commits.
            job: Job as last read (its version is checked).
            values: Column values to write.
            target: Optional new status, validated against the current one.

        Returns:
            The job as stored after the write.

        Raises:
            InvalidTransitionError: If the status change is not allowed.
            ConcurrentModificationError: If the job changed since it was read.
        """
        current = JobStatus(job.status)
        values = dict(values)
        if target is not None:
            target = current.transition_to(target)
            values["status"] = target.value
            if target.is_terminal:
                values["active_key"] = None

        repo = SyncJobRepository(session)
        if not repo.compare_and_set(job.id, job.version, values, [current.value]):
            raise ConcurrentModificationError(
                f"Sync job {job.id} was modified concurrently (expected version {job.version})"
            )
        return session.get(SyncJob, job.id, populate_existing=True)  # type: ignore[return-value]

    def transition(self, job: SyncJob, target: JobStatus, **values: Any) -> SyncJob:
        """Change a job's status in its own transaction.

        Raises:
            InvalidTransitionError: If the status change is not allowed.
            ConcurrentModificationError: If the job changed since it was read.
        """
        now = utcnow()
        if target == JobStatus.IN_PROGRESS and job.started_at is None:
            values.setdefault("started_at", now)
        elif target == JobStatus.COMPLETED:
            values.setdefault("completed_at", now)
        elif target == JobStatus.FAILED:
            values.setdefault("failed_at", now)
        elif target == JobStatus.CANCELLED:
            values.setdefault("completed_at", now)

        with get_session(self.engine) as session:
            updated = self.advance(session, job, values, target)

        logger.debug("Sync job status changed", job_id=job.id, status=updated.status)
        return updated

    def cancel(self, job_id: str) -> SyncJob:
        """Request cooperative cancellation of a job.

        The running chunk notices at its next progress write; later chunks
        see the cancelled status and do nothing.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the job already completed or failed.
            ConcurrentModificationError: If the job kept changing underneath.
        """
        for _ in range(CANCEL_ATTEMPTS):
            job = self.get(job_id)
            if job.status == JobStatus.CANCELLED.value:
                return job
            try:
                cancelled = self.transition(job, JobStatus.CANCELLED)
            except ConcurrentModificationError:
                continue
            logger.info("Cancelled sync job", job_id=job_id, tenant_id=job.tenant_id)
            return cancelled
        raise ConcurrentModificationError(f"Could not cancel sync job {job_id}")

    def active_jobs(self, tenant_id: str | None = None) -> list[SyncJob]:
        """Get pending and in-progress jobs."""
        with get_session(self.engine) as session:
            return SyncJobRepository(session).list_active(tenant_id)

    def list_jobs(
        self,
        tenant_id: str | None = None,
        status: str | None = None,
        data_type: str | None = None,
        limit: int = 50,
    ) -> list[SyncJob]:
        """Get recent jobs, newest first.

        Raises:
            ValueError: If the status filter is not a known status.
        """
        if status is not None:
            status = JobStatus(status).value
        with get_session(self.engine) as session:
            return SyncJobRepository(session).list_jobs(tenant_id, status, data_type, limit)

    def cleanup_old_jobs(self, days: int | None = None) -> int:
        """Delete finished jobs older than ``days`` (default from settings).

        Returns:
            Number of jobs deleted.
        """
        days = days if days is not None else self.settings.job_retention_days
        cutoff = utcnow() - timedelta(days=days)
        with get_session(self.engine) as session:
            deleted = SyncJobRepository(session).delete_finished_before(cutoff)
        logger.info("Cleaned up old sync jobs", deleted=deleted, older_than_days=days)
        return deleted

    def stats(self, tenant_id: str | None = None) -> JobStats:
        """Summarize active jobs and the last 24 hours of activity."""
        since = utcnow() - timedelta(hours=24)
        with get_session(self.engine) as session:
            jobs = SyncJobRepository(session)
            active = jobs.count_active_by_type(tenant_id)
            completed, items = jobs.completed_since(since, tenant_id)
            error_rate = ExecutionLogRepository(session).error_rate(since, tenant_id)
        return JobStats(
            active_by_type=active,
            completed_last_24h=completed,
            items_last_24h=items,
            error_rate=round(error_rate, 4),
        )

