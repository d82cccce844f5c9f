"""Sync orchestrator to run strategies per tenant and fan out scheduled runs."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import Engine

from takesync.api.client import TakealotClient
from takesync.config.logging import OperationTimer
from takesync.config.settings import Settings
from takesync.db.engine import get_session
from takesync.db.models.integration import Integration
from takesync.db.repositories.integration import IntegrationRepository
from takesync.sync.execution_logger import ExecutionLogger, NullExecutionLogger
from takesync.sync.job_store import JobStateStore
from takesync.sync.presets import SCHEDULES, get_preset
from takesync.sync.processor import ChunkProcessor, ChunkResult
from takesync.sync.status import JobStatus
from takesync.utils.dates import utcnow
from takesync.utils.exceptions import IntegrationNotFoundError, TakesyncError

logger = structlog.get_logger(__name__)

TRIGGER_JOB_TYPES = {"cron": "scheduled", "manual": "manual", "api": "triggered"}


@dataclass
class SyncOutcome:
    """Result of running one strategy for one tenant."""

    tenant_id: str
    strategy_id: str
    data_type: str
    success: bool
    job_id: str | None = None
    job_status: str | None = None
    current_page: int | None = None
    total_pages: int | None = None
    chunks: int = 0
    pages: int = 0
    total_new: int = 0
    total_updated: int = 0
    total_skipped: int = 0
    total_errors: int = 0
    error: str | None = None

    @property
    def total_processed(self) -> int:
        return self.total_new + self.total_updated + self.total_skipped + self.total_errors

    def add_chunk(self, chunk: ChunkResult) -> None:
        self.chunks += 1
        self.pages += chunk.pages_processed
        self.total_new += chunk.new
        self.total_updated += chunk.updated
        self.total_skipped += chunk.skipped
        self.total_errors += chunk.errors
        self.job_status = chunk.job.status
        self.current_page = chunk.job.current_page
        self.total_pages = chunk.job.total_pages

    def to_dict(self) -> dict[str, Any]:
        """JSON body for HTTP triggers."""
        return {
            "success": self.success,
            "tenantId": self.tenant_id,
            "strategy": self.strategy_id,
            "dataType": self.data_type,
            "totalProcessed": self.total_processed,
            "totalNew": self.total_new,
            "totalUpdated": self.total_updated,
            "totalSkipped": self.total_skipped,
            "totalErrors": self.total_errors,
            "jobId": self.job_id,
            "jobStatus": self.job_status,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "pagesProcessed": self.pages,
            "error": self.error,
        }


@dataclass
class ScheduleOutcome:
    """Result of one scheduled fan-out across tenants."""

    schedule: str
    results: list[SyncOutcome] = field(default_factory=list)
    failed_tenants: dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def tenants(self) -> int:
        return len({r.tenant_id for r in self.results} | set(self.failed_tenants))

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success) + len(self.failed_tenants)

    @property
    def total_processed(self) -> int:
        return sum(r.total_processed for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": not self.failed,
            "schedule": self.schedule,
            "tenants": self.tenants,
            "tasks": len(self.results),
            "successful": self.successful,
            "failed": self.failed,
            "totalProcessed": self.total_processed,
            "totalNew": sum(r.total_new for r in self.results),
            "totalUpdated": sum(r.total_updated for r in self.results),
            "totalErrors": sum(r.total_errors for r in self.results),
            "failedTenants": self.failed_tenants,
            "results": [r.to_dict() for r in self.results],
        }


class SyncOrchestrator:
    """Runs sync strategies for tenants and fans out scheduled runs."""

    def __init__(
        self,
        client: TakealotClient,
        engine: Engine,
        settings: Settings,
        execution_logger: ExecutionLogger | None = None,
        store: JobStateStore | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Seller API client (already entered).
            engine: SQLAlchemy engine.
            settings: Application settings.
            execution_logger: Where invocations are recorded.
            store: Job state store (built from the engine if omitted).
        """
        self.client = client
        self.engine = engine
        self.settings = settings
        self.execution_logger = execution_logger or NullExecutionLogger()
        self.store = store or JobStateStore(engine, settings)
        self.processor = ChunkProcessor(client, self.store, engine, settings)

    def _get_integration(self, tenant_id: str) -> Integration:
        with get_session(self.engine) as session:
            integration = IntegrationRepository(session).get_by_id(tenant_id)
        if integration is None:
            raise IntegrationNotFoundError(f"No integration configured for tenant {tenant_id}")
        return integration

    async def run_strategy(
        self,
        tenant_id: str,
        strategy_id: str,
        trigger: str = "manual",
        max_chunks: int | None = None,
        cron_schedule: str | None = None,
    ) -> SyncOutcome:
        """Create or resume a tenant's job for a strategy and process chunks.

        Chunks run until the job finishes, a chunk fails, or ``max_chunks``
        chunks were processed.

        Args:
            tenant_id: Tenant identifier.
            strategy_id: Preset id such as ``sls_30d``.
            trigger: ``manual``, ``cron`` or ``api``.
            max_chunks: Optional cap on chunks for this invocation.
            cron_schedule: Schedule name when triggered by cron.

        Returns:
            Counts for this invocation and the job's state.

        Raises:
            KeyError: If the strategy id is unknown.
            IntegrationNotFoundError: If the tenant has no integration.
        """
        preset = get_preset(strategy_id)
        integration = self._get_integration(tenant_id)
        outcome = SyncOutcome(
            tenant_id=tenant_id,
            strategy_id=strategy_id,
            data_type=preset.data_type,
            success=True,
        )

        log_id = self.execution_logger.start(
            job_name=f"{preset.data_type}-sync-{strategy_id}",
            job_type=TRIGGER_JOB_TYPES.get(trigger, "triggered"),
            trigger_type=trigger,
            trigger_source=f"{trigger}:{cron_schedule}" if cron_schedule else trigger,
            cron_schedule=cron_schedule,
            tenant_id=tenant_id,
            message=f"Starting {trigger} {preset.label} sync for {integration.account_name or tenant_id}",
        )

        try:
            job = self.store.create_or_resume(
                tenant_id,
                preset.data_type,
                strategy_id=strategy_id,
                max_pages=preset.max_pages,
                pages_per_chunk=preset.pages_per_chunk,
                date_from=preset.date_from(),
            )
            outcome.job_id = job.id
            outcome.job_status = job.status
            self.execution_logger.update(log_id, sync_job_id=job.id)

            while max_chunks is None or outcome.chunks < max_chunks:
                chunk = await self.processor.process_chunk(job.id, integration.api_key)
                outcome.add_chunk(chunk)
                self.execution_logger.update(
                    log_id,
                    total_pages=outcome.pages,
                    items_processed=outcome.total_processed,
                )
                if not chunk.success:
                    outcome.success = False
                    outcome.error = chunk.error
                    break
                if chunk.finished or chunk.pages_processed == 0:
                    break
        except TakesyncError as e:
            logger.error(
                "Strategy run failed", tenant_id=tenant_id, strategy=strategy_id, error=str(e)
            )
            outcome.success = False
            outcome.error = str(e)
            self._complete_log(log_id, outcome, error=e)
            return outcome
        except Exception as e:
            outcome.success = False
            outcome.error = str(e) or type(e).__name__
            self._complete_log(log_id, outcome, error=e)
            raise

        if outcome.job_status == JobStatus.COMPLETED.value:
            with get_session(self.engine) as session:
                IntegrationRepository(session).mark_synced(tenant_id, utcnow())

        self._complete_log(log_id, outcome)
        logger.info(
            "Strategy run finished",
            tenant_id=tenant_id,
            strategy=strategy_id,
            job_status=outcome.job_status,
            chunks=outcome.chunks,
            new=outcome.total_new,
            updated=outcome.total_updated,
            errors=outcome.total_errors,
        )
        return outcome

    def _complete_log(
        self,
        log_id: str | None,
        outcome: SyncOutcome,
        error: BaseException | None = None,
    ) -> None:
        if outcome.job_status == JobStatus.CANCELLED.value:
            status = "cancelled"
        elif outcome.success:
            status = "success"
        else:
            status = "failure"

        self.execution_logger.complete(
            log_id,
            status,
            total_pages=outcome.pages,
            total_reads=outcome.total_processed,
            total_writes=outcome.total_new + outcome.total_updated,
            items_processed=outcome.total_processed,
            message=(
                f"{outcome.strategy_id}: {outcome.total_new} new, {outcome.total_updated} updated, "
                f"{outcome.total_errors} errors (job {outcome.job_status})"
            ),
            details=f"job={outcome.job_id} page={outcome.current_page}/{outcome.total_pages}",
            error=error if error is not None else outcome.error,
        )

    async def _run_tenant(
        self,
        integration: Integration,
        strategy_ids: list[str],
        schedule: str,
        summary: ScheduleOutcome,
    ) -> None:
        """Run a tenant's strategies for a schedule, containing any failure."""
        try:
            for strategy_id in strategy_ids:
                outcome = await self.run_strategy(
                    integration.tenant_id,
                    strategy_id,
                    trigger="cron",
                    max_chunks=self.settings.cron_chunks_per_invocation,
                    cron_schedule=schedule,
                )
                summary.results.append(outcome)
        except Exception as e:
            logger.exception(
                "Scheduled sync failed for tenant", tenant_id=integration.tenant_id, schedule=schedule
            )
            summary.failed_tenants[integration.tenant_id] = str(e) or type(e).__name__

    async def run_schedule(self, schedule: str) -> ScheduleOutcome:
        """Run every strategy enabled for a schedule, a few tenants at a time.

        Args:
            schedule: Schedule name such as ``hourly``.

        Returns:
            Per-tenant outcomes.

        Raises:
            ValueError: If the schedule name is unknown.
        """
        if schedule not in SCHEDULES:
            raise ValueError(f"Unknown schedule: {schedule}")

        summary = ScheduleOutcome(schedule=schedule)
        log_id = self.execution_logger.start(
            job_name=f"scheduled-sync-{schedule}",
            job_type="scheduled",
            trigger_type="cron",
            trigger_source="cron",
            cron_schedule=schedule,
            message=f"Starting scheduled sync ({SCHEDULES[schedule]})",
        )

        with OperationTimer("scheduled sync", logger=logger, schedule=schedule) as timer:
            with get_session(self.engine) as session:
                work = IntegrationRepository(session).get_for_schedule(schedule)

            batch_size = self.settings.tenant_concurrency
            for start in range(0, len(work), batch_size):
                if start:
                    await asyncio.sleep(self.settings.tenant_batch_delay)
                batch = work[start : start + batch_size]
                await asyncio.gather(
                    *(
                        self._run_tenant(integration, strategy_ids, schedule, summary)
                        for integration, strategy_ids in batch
                    )
                )
        summary.duration_seconds = round(timer.duration, 3)

        self.execution_logger.complete(
            log_id,
            "success" if not summary.failed else "failure",
            total_pages=sum(r.pages for r in summary.results),
            total_reads=summary.total_processed,
            total_writes=sum(r.total_new + r.total_updated for r in summary.results),
            items_processed=summary.total_processed,
            message=(
                f"Scheduled sync {schedule}: {summary.tenants} tenants, "
                f"{summary.successful} succeeded, {summary.failed} failed"
            ),
            details=", ".join(f"{t}: {err}" for t, err in summary.failed_tenants.items()) or None,
        )
        return summary

    def cleanup(self) -> tuple[int, int]:
        """Apply job and execution log retention.

        Returns:
            (jobs deleted, logs deleted) tuple.
        """
        jobs = self.store.cleanup_old_jobs(self.settings.job_retention_days)
        logs = self.execution_logger.cleanup(self.settings.log_retention_days)
        return jobs, logs
