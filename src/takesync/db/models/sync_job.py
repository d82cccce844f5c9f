"""Sync job ORM model for tracking resumable synchronization runs."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from takesync.db.base import Base, TimestampMixin


class SyncJob(Base, TimestampMixin):
    """One logical sync run, possibly spanning several chunked invocations."""

    __tablename__ = "tks_sync_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    data_type: Mapped[str] = mapped_column(String(20), nullable=False)  # products, sales
    strategy_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    # "<tenant>:<data type>" while pending/in_progress, NULL once terminal
    active_key: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)

    # Cursor
    current_page: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_pages: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_pages: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pages_per_chunk: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    page_size: Mapped[int] = mapped_column(Integer, default=100, nullable=False)

    # Sales date window
    date_from: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    oldest_record_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Lifecycle timestamps
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Cumulative counters
    pages_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_new: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_errors: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Chunk failure tracking
    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<SyncJob(id='{self.id}', tenant='{self.tenant_id}', type={self.data_type}, "
            f"status={self.status}, page={self.current_page})>"
        )
