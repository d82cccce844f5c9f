"""Scheduled trigger routes."""

from typing import Any

from fastapi import APIRouter, Depends

from takesync.sync.orchestrator import SyncOrchestrator
from takesync.sync.presets import SCHEDULES
from takesync.web.deps import get_orchestrator, require_cron_secret
from takesync.web.errors import AppHTTPException

router = APIRouter(prefix="/api/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])


@router.get("/{schedule}")
async def run_schedule(
    schedule: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    if schedule not in SCHEDULES:
        raise AppHTTPException(
            400, f"Unknown schedule '{schedule}'. Valid: {', '.join(SCHEDULES)}"
        )
    summary = await orchestrator.run_schedule(schedule)
    return summary.to_dict()
