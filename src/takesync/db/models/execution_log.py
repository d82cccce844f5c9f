"""Execution log ORM model."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from takesync.db.base import Base


class ExecutionLog(Base):
    """One record per sync invocation, created running and finalized once."""

    __tablename__ = "tks_execution_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    job_type: Mapped[str] = mapped_column(String(20), nullable=False)  # scheduled, manual, triggered
    trigger_type: Mapped[str] = mapped_column(String(20), nullable=False)  # cron, manual, api
    trigger_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cron_schedule: Mapped[str | None] = mapped_column(String(50), nullable=True)
    api_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    sync_job_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # running, success, failure, timeout, cancelled
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    total_pages: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_reads: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_writes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    items_processed: Mapped[int | None] = mapped_column(Integer, nullable=True)

    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    stack_trace: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ExecutionLog(id='{self.id}', job='{self.job_name}', status={self.status})>"
