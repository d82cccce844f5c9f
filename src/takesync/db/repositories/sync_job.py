"""Sync job repository."""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update

from takesync.db.models.sync_job import SyncJob
from takesync.db.repositories.base import BaseRepository
from takesync.utils.dates import utcnow

ACTIVE_STATUSES = ("pending", "in_progress")
TERMINAL_STATUSES = ("completed", "failed", "cancelled")


class SyncJobRepository(BaseRepository[SyncJob]):
    """Repository for SyncJob operations."""

    model = SyncJob

    def get_active(self, tenant_id: str, data_type: str) -> SyncJob | None:
        """Get the active job for a tenant and data type.

        Args:
            tenant_id: Tenant identifier.
            data_type: Data type (products, sales).

        Returns:
            The pending or in-progress job, or None.
        """
        stmt = select(SyncJob).where(SyncJob.active_key == f"{tenant_id}:{data_type}")
        return self.session.scalar(stmt)

    def list_active(self, tenant_id: str | None = None) -> list[SyncJob]:
        """Get all pending or in-progress jobs.

        Args:
            tenant_id: Optional tenant filter.

        Returns:
            Active jobs, oldest first.
        """
        stmt = select(SyncJob).where(SyncJob.status.in_(ACTIVE_STATUSES))
        if tenant_id:
            stmt = stmt.where(SyncJob.tenant_id == tenant_id)
        return list(self.session.scalars(stmt.order_by(SyncJob.created_at)).all())

    def list_jobs(
        self,
        tenant_id: str | None = None,
        status: str | None = None,
        data_type: str | None = None,
        limit: int = 50,
    ) -> list[SyncJob]:
        """Get jobs, newest first.

        Args:
            tenant_id: Optional tenant filter.
            status: Optional status filter.
            data_type: Optional data type filter.
            limit: Maximum number of jobs.

        Returns:
            List of jobs.
        """
        stmt = select(SyncJob)
        if tenant_id:
            stmt = stmt.where(SyncJob.tenant_id == tenant_id)
        if status:
            stmt = stmt.where(SyncJob.status == status)
        if data_type:
            stmt = stmt.where(SyncJob.data_type == data_type)
        stmt = stmt.order_by(SyncJob.created_at.desc()).limit(limit)
        return list(self.session.scalars(stmt).all())

    def compare_and_set(
        self,
        job_id: str,
        version: int,
        values: dict[str, Any],
        expected_statuses: Iterable[str],
    ) -> bool:
        """Atomically update a job if nobody else changed it first.

        The row is only touched when its version and status still match
        what the caller read. A successful write bumps the version.

        Args:
            job_id: Job identifier.
            version: Version the caller last read.
            values: Column values to write.
            expected_statuses: Statuses the row must currently have.

        Returns:
            True if the row was updated.
        """
        stmt = (
            update(SyncJob)
            .where(
                SyncJob.id == job_id,
                SyncJob.version == version,
                SyncJob.status.in_(list(expected_statuses)),
            )
            .values(**values, version=version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def delete_finished_before(self, cutoff: datetime) -> int:
        """Delete terminal jobs last touched before a cutoff.

        Args:
            cutoff: Jobs updated before this time are removed.

        Returns:
            Number of jobs deleted.
        """
        stmt = (
            delete(SyncJob)
            .where(SyncJob.status.in_(TERMINAL_STATUSES), SyncJob.updated_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount or 0

    def count_active_by_type(self, tenant_id: str | None = None) -> dict[str, int]:
        """Count active jobs per data type."""
        stmt = (
            select(SyncJob.data_type, func.count())
            .where(SyncJob.status.in_(ACTIVE_STATUSES))
            .group_by(SyncJob.data_type)
        )
        if tenant_id:
            stmt = stmt.where(SyncJob.tenant_id == tenant_id)
        return {data_type: count for data_type, count in self.session.execute(stmt).all()}

    def completed_since(self, since: datetime, tenant_id: str | None = None) -> tuple[int, int]:
        """Count jobs completed since a time and the items they processed.

        Returns:
            (completed jobs, items processed) tuple.
        """
        stmt = select(func.count(), func.coalesce(func.sum(SyncJob.items_processed), 0)).where(
            SyncJob.status == "completed", SyncJob.completed_at >= since
        )
        if tenant_id:
            stmt = stmt.where(SyncJob.tenant_id == tenant_id)
        count, items = self.session.execute(stmt).one()
        return int(count), int(items)
