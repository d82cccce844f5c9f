"""Execution log repository."""

from datetime import datetime

from sqlalchemy import delete, func, select

from takesync.db.models.execution_log import ExecutionLog
from takesync.db.repositories.base import BaseRepository


class ExecutionLogRepository(BaseRepository[ExecutionLog]):
    """Repository for ExecutionLog operations."""

    model = ExecutionLog

    def query(
        self,
        tenant_id: str | None = None,
        status: str | None = None,
        job_name: str | None = None,
        trigger_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ExecutionLog], int, bool]:
        """Search execution logs, newest first.

        Args:
            tenant_id: Optional tenant filter.
            status: Optional status filter.
            job_name: Optional job name filter.
            trigger_type: Optional trigger type filter.
            start: Optional earliest start time.
            end: Optional latest start time.
            limit: Page size.
            offset: Number of logs to skip.

        Returns:
            (logs, total matching, has more) tuple.
        """
        conditions = []
        if tenant_id:
            conditions.append(ExecutionLog.tenant_id == tenant_id)
        if status:
            conditions.append(ExecutionLog.status == status)
        if job_name:
            conditions.append(ExecutionLog.job_name == job_name)
        if trigger_type:
            conditions.append(ExecutionLog.trigger_type == trigger_type)
        if start:
            conditions.append(ExecutionLog.started_at >= start)
        if end:
            conditions.append(ExecutionLog.started_at <= end)

        total = self.session.scalar(
            select(func.count()).select_from(ExecutionLog).where(*conditions)
        ) or 0

        stmt = (
            select(ExecutionLog)
            .where(*conditions)
            .order_by(ExecutionLog.started_at.desc())
            .offset(offset)
            .limit(limit)
        )
        logs = list(self.session.scalars(stmt).all())
        return logs, total, offset + len(logs) < total

    def delete_older_than(self, cutoff: datetime, batch_size: int = 500) -> int:
        """Delete logs that started before a cutoff, in batches.

        Args:
            cutoff: Logs started before this time are removed.
            batch_size: Rows deleted per statement.

        Returns:
            Number of logs deleted.
        """
        deleted = 0
        while True:
            ids = list(
                self.session.scalars(
                    select(ExecutionLog.id).where(ExecutionLog.started_at < cutoff).limit(batch_size)
                ).all()
            )
            if not ids:
                return deleted
            self.session.execute(
                delete(ExecutionLog)
                .where(ExecutionLog.id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            deleted += len(ids)

    def error_rate(self, since: datetime, tenant_id: str | None = None) -> float:
        """Share of finished executions since a time that failed.

        Returns:
            Failure ratio between 0 and 1 (0 when nothing finished).
        """
        stmt = (
            select(ExecutionLog.status, func.count())
            .where(ExecutionLog.started_at >= since, ExecutionLog.status != "running")
            .group_by(ExecutionLog.status)
        )
        if tenant_id:
            stmt = stmt.where(ExecutionLog.tenant_id == tenant_id)
        counts = dict(self.session.execute(stmt).all())
        finished = sum(counts.values())
        if not finished:
            return 0.0
        return (counts.get("failure", 0) + counts.get("timeout", 0)) / finished
