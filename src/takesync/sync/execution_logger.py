"""Execution logging for sync invocations."""

import traceback
import uuid
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any

import structlog
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from takesync.db.engine import get_session
from takesync.db.models.execution_log import ExecutionLog
from takesync.db.repositories.execution_log import ExecutionLogRepository
from takesync.utils.dates import utcnow

logger = structlog.get_logger(__name__)

API_SOURCE = "Takealot Seller API"

LOG_STATUSES = ("running", "success", "failure", "timeout", "cancelled")
COUNT_FIELDS = ("total_pages", "total_reads", "total_writes", "items_processed")
UPDATABLE_FIELDS = frozenset(
    {*COUNT_FIELDS, "message", "details", "error_details", "stack_trace", "sync_job_id", "status"}
)


class ExecutionLogger(ABC):
    """Lifecycle hooks the sync engine calls around each invocation."""

    @abstractmethod
    def start(
        self,
        job_name: str,
        job_type: str,
        trigger_type: str,
        *,
        trigger_source: str | None = None,
        cron_schedule: str | None = None,
        tenant_id: str | None = None,
        sync_job_id: str | None = None,
        message: str | None = None,
        details: str | None = None,
    ) -> str | None:
        """Record that an invocation started.

        Returns:
            Log id to pass to later calls, or None if nothing was recorded.
        """

    @abstractmethod
    def update(self, log_id: str | None, **fields: Any) -> None:
        """Record partial progress on a running invocation."""

    @abstractmethod
    def complete(
        self,
        log_id: str | None,
        status: str,
        *,
        total_pages: int | None = None,
        total_reads: int | None = None,
        total_writes: int | None = None,
        items_processed: int | None = None,
        message: str | None = None,
        details: str | None = None,
        error: BaseException | str | None = None,
    ) -> None:
        """Finalize an invocation with its outcome and counts."""

    def cleanup(self, days: int) -> int:
        """Delete logs older than ``days``; returns the number removed."""
        return 0


class NullExecutionLogger(ExecutionLogger):
    """Execution logger that records nothing."""

    def start(self, job_name: str, job_type: str, trigger_type: str, **kwargs: Any) -> str | None:
        return None

    def update(self, log_id: str | None, **fields: Any) -> None:
        pass

    def complete(self, log_id: str | None, status: str, **kwargs: Any) -> None:
        pass


class DatabaseExecutionLogger(ExecutionLogger):
    """Writes execution logs to the ``tks_execution_logs`` table.

    Each call uses its own short-lived session, so log rows are kept even
    when the sync transaction rolls back. Database errors are logged and
    never raised to the caller.
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize the logger.

        Args:
            engine: SQLAlchemy engine.
        """
        self.engine = engine

    def start(
        self,
        job_name: str,
        job_type: str,
        trigger_type: str,
        *,
        trigger_source: str | None = None,
        cron_schedule: str | None = None,
        tenant_id: str | None = None,
        sync_job_id: str | None = None,
        message: str | None = None,
        details: str | None = None,
    ) -> str | None:
        log_id = str(uuid.uuid4())
        entry = ExecutionLog(
            id=log_id,
            job_name=job_name,
            job_type=job_type,
            trigger_type=trigger_type,
            trigger_source=trigger_source,
            cron_schedule=cron_schedule,
            api_source=API_SOURCE,
            tenant_id=tenant_id,
            sync_job_id=sync_job_id,
            status="running",
            started_at=utcnow(),
            message=message or f"Started {job_name}",
            details=details,
        )
        try:
            with get_session(self.engine) as session:
                ExecutionLogRepository(session).add(entry)
        except SQLAlchemyError as e:
            logger.error("Failed to start execution log", job_name=job_name, error=str(e))
            return None

        logger.debug("Execution log started", log_id=log_id, job_name=job_name)
        return log_id

    def update(self, log_id: str | None, **fields: Any) -> None:
        if log_id is None:
            return
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            logger.warning("Ignoring unknown execution log fields", fields=sorted(unknown))
        try:
            with get_session(self.engine) as session:
                entry = ExecutionLogRepository(session).get_by_id(log_id)
                if entry is None:
                    logger.warning("Execution log not found", log_id=log_id)
                    return
                for name, value in fields.items():
                    if name in UPDATABLE_FIELDS:
                        setattr(entry, name, value)
        except SQLAlchemyError as e:
            logger.error("Failed to update execution log", log_id=log_id, error=str(e))

    def complete(
        self,
        log_id: str | None,
        status: str,
        *,
        total_pages: int | None = None,
        total_reads: int | None = None,
        total_writes: int | None = None,
        items_processed: int | None = None,
        message: str | None = None,
        details: str | None = None,
        error: BaseException | str | None = None,
    ) -> None:
        if log_id is None:
            return
        if status not in LOG_STATUSES or status == "running":
            logger.warning("Invalid final execution status", log_id=log_id, status=status)
            status = "failure"

        counts = {
            "total_pages": total_pages,
            "total_reads": total_reads,
            "total_writes": total_writes,
            "items_processed": items_processed,
        }
        try:
            with get_session(self.engine) as session:
                entry = ExecutionLogRepository(session).get_by_id(log_id)
                if entry is None:
                    logger.warning("Execution log not found", log_id=log_id)
                    return
                if entry.status != "running":
                    logger.warning(
                        "Execution log already finalized", log_id=log_id, status=entry.status
                    )
                    return

                ended_at = utcnow()
                entry.status = status
                entry.ended_at = ended_at
                entry.duration_ms = int((ended_at - entry.started_at) / timedelta(milliseconds=1))
                for name, value in counts.items():
                    if value is not None:
                        setattr(entry, name, value)
                if message is not None:
                    entry.message = message
                if details is not None:
                    entry.details = details
                if isinstance(error, BaseException):
                    entry.error_details = str(error) or type(error).__name__
                    entry.stack_trace = "".join(traceback.format_exception(error))[-8000:]
                elif error:
                    entry.error_details = error
        except SQLAlchemyError as e:
            logger.error("Failed to complete execution log", log_id=log_id, error=str(e))
            return

        logger.debug("Execution log completed", log_id=log_id, status=status)

    def cleanup(self, days: int) -> int:
        """Delete logs older than ``days``.

        Returns:
            Number of logs deleted (0 if the cleanup failed).
        """
        cutoff = utcnow() - timedelta(days=days)
        try:
            with get_session(self.engine) as session:
                deleted = ExecutionLogRepository(session).delete_older_than(cutoff)
        except SQLAlchemyError as e:
            logger.error("Failed to clean up execution logs", error=str(e))
            return 0
        logger.info("Cleaned up execution logs", deleted=deleted, older_than_days=days)
        return deleted
