"""Manual sync trigger routes."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request

from takesync.config.settings import Settings
from takesync.sync.orchestrator import SyncOrchestrator
from takesync.sync.presets import PRESETS
from takesync.web.deps import get_app_settings, get_orchestrator
from takesync.web.errors import AppHTTPException

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.api_route("/{tenant_id}/{strategy}", methods=["GET", "POST"])
async def trigger_sync(
    tenant_id: str,
    strategy: str,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    if strategy not in PRESETS:
        raise AppHTTPException(
            400, f"Unknown sync strategy '{strategy}'. Valid: {', '.join(sorted(PRESETS))}"
        )

    trigger = "manual" if request.method == "POST" else "api"
    logger.info("Sync triggered", tenant_id=tenant_id, strategy=strategy, trigger=trigger)
    outcome = await orchestrator.run_strategy(
        tenant_id, strategy, trigger=trigger, max_chunks=settings.manual_max_chunks
    )
    return outcome.to_dict()
