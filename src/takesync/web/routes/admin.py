"""Job and execution log routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from takesync.db.engine import get_session
from takesync.db.repositories.execution_log import ExecutionLogRepository
from takesync.sync.job_store import JobStateStore
from takesync.sync.status import JobStatus
from takesync.web.deps import get_engine, get_job_store
from takesync.web.errors import AppHTTPException
from takesync.web.schemas import (
    CancelOut,
    ExecutionLogOut,
    JobListOut,
    JobStatsOut,
    LogPageOut,
    SyncJobOut,
)

router = APIRouter(prefix="/api", tags=["admin"])


@router.get("/jobs", response_model=JobListOut)
def list_jobs(
    tenant_id: str | None = None,
    status: str | None = None,
    data_type: str | None = None,
    active: bool = False,
    limit: int = Query(default=50, ge=1, le=500),
    store: JobStateStore = Depends(get_job_store),
) -> JobListOut:
    if status is not None and status not in {s.value for s in JobStatus}:
        raise AppHTTPException(400, f"Unknown job status '{status}'")
    if active:
        jobs = store.active_jobs(tenant_id)
    else:
        jobs = store.list_jobs(tenant_id, status, data_type, limit)
    return JobListOut(jobs=[SyncJobOut.model_validate(job) for job in jobs])


@router.get("/jobs/stats", response_model=JobStatsOut)
def job_stats(
    tenant_id: str | None = None,
    store: JobStateStore = Depends(get_job_store),
) -> JobStatsOut:
    stats = store.stats(tenant_id)
    return JobStatsOut(
        active_jobs=stats.active_by_type,
        active_total=stats.active_total,
        completed_last_24h=stats.completed_last_24h,
        items_last_24h=stats.items_last_24h,
        error_rate=stats.error_rate,
    )


@router.post("/jobs/{job_id}/cancel", response_model=CancelOut)
def cancel_job(job_id: str, store: JobStateStore = Depends(get_job_store)) -> CancelOut:
    job = store.cancel(job_id)
    return CancelOut(job=SyncJobOut.model_validate(job))


@router.get("/logs", response_model=LogPageOut)
def list_logs(
    tenant_id: str | None = None,
    status: str | None = None,
    job_name: str | None = None,
    trigger_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    engine: Engine = Depends(get_engine),
) -> LogPageOut:
    with get_session(engine) as session:
        logs, total, has_more = ExecutionLogRepository(session).query(
            tenant_id=tenant_id,
            status=status,
            job_name=job_name,
            trigger_type=trigger_type,
            start=start,
            end=end,
            limit=limit,
            offset=offset,
        )
        items = [ExecutionLogOut.model_validate(log) for log in logs]
    return LogPageOut(logs=items, total=total, has_more=has_more)
