"""Response schemas for the HTTP surface."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SyncJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    data_type: str
    strategy_id: str | None
    status: str
    current_page: int
    total_pages: int | None
    max_pages: int | None
    pages_per_chunk: int
    pages_processed: int
    items_processed: int
    total_new: int
    total_updated: int
    total_skipped: int
    total_errors: int
    error_count: int
    consecutive_failures: int
    last_error: str | None
    date_from: datetime | None
    started_at: datetime | None
    last_processed_at: datetime | None
    completed_at: datetime | None
    failed_at: datetime | None
    created_at: datetime


class JobListOut(BaseModel):
    success: bool = True
    jobs: list[SyncJobOut]


class JobStatsOut(BaseModel):
    success: bool = True
    active_jobs: dict[str, int]
    active_total: int
    completed_last_24h: int
    items_last_24h: int
    error_rate: float


class CancelOut(BaseModel):
    success: bool = True
    job: SyncJobOut


class ExecutionLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_name: str
    job_type: str
    trigger_type: str
    trigger_source: str | None
    cron_schedule: str | None
    tenant_id: str | None
    sync_job_id: str | None
    status: str
    started_at: datetime
    ended_at: datetime | None
    duration_ms: int | None
    total_pages: int | None
    total_reads: int | None
    total_writes: int | None
    items_processed: int | None
    message: str | None
    details: str | None
    error_details: str | None


class LogPageOut(BaseModel):
    success: bool = True
    logs: list[ExecutionLogOut]
    total: int
    has_more: bool
