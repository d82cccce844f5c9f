"""Tests for the sync orchestrator."""

import asyncio
from unittest.mock import patch

import pytest
from conftest import make_offer, make_sale

from takesync.db.engine import get_session
from takesync.db.models import Integration
from takesync.db.repositories import ExecutionLogRepository, IntegrationRepository
from takesync.sync.execution_logger import DatabaseExecutionLogger
from takesync.sync.orchestrator import SyncOrchestrator
from takesync.utils.exceptions import APIError, IntegrationNotFoundError


@pytest.fixture
def orchestrator(fake_api, test_engine, test_settings) -> SyncOrchestrator:
    return SyncOrchestrator(
        fake_api, test_engine, test_settings, execution_logger=DatabaseExecutionLogger(test_engine)
    )


def add_integrations(engine, *tenants: tuple[str, dict[str, str]], cron_enabled: bool = True) -> None:
    with get_session(engine) as session:
        for tenant_id, preferences in tenants:
            session.add(
                Integration(
                    tenant_id=tenant_id,
                    api_key=f"key-{tenant_id}",
                    cron_enabled=cron_enabled,
                    sync_preferences=preferences,
                )
            )


def logs(engine, **filters):
    with get_session(engine) as session:
        entries, _, _ = ExecutionLogRepository(session).query(**filters)
        return entries


class TestRunStrategy:
    """Test run_strategy."""

    @pytest.mark.asyncio
    async def test_runs_to_completion(self, fake_api, orchestrator, sample_integration, test_engine):
        fake_api.set_pages("sales", [[make_sale(i) for i in range(10)]])

        outcome = await orchestrator.run_strategy("T1", "sls_100")

        assert outcome.success
        assert outcome.job_status == "completed"
        assert outcome.total_new == 10
        assert outcome.to_dict()["totalProcessed"] == 10
        assert fake_api.calls[0][0] == "key-t1"

        with get_session(test_engine) as session:
            assert IntegrationRepository(session).get_by_id("T1").last_sync_at is not None

        [entry] = logs(test_engine, tenant_id="T1")
        assert entry.status == "success"
        assert entry.job_name == "sales-sync-sls_100"
        assert entry.job_type == "manual"
        assert entry.sync_job_id == outcome.job_id
        assert entry.items_processed == 10

    @pytest.mark.asyncio
    async def test_single_page_preset(self, fake_api, orchestrator, sample_integration):
        fake_api.set_pages("products", [[make_offer(i) for i in range(100)] for _ in range(3)])

        outcome = await orchestrator.run_strategy("T1", "prod_100", max_chunks=1)

        assert outcome.chunks == 1
        assert outcome.job_status == "completed"

    @pytest.mark.asyncio
    async def test_resumes_across_invocations(self, fake_api, orchestrator, sample_integration):
        """Test a capped run leaves the job resumable."""
        pages = [[make_sale(p * 100 + i) for i in range(100)] for p in range(12)]
        fake_api.set_pages("sales", pages)

        first = await orchestrator.run_strategy("T1", "sls_all", max_chunks=1)
        assert first.job_status == "in_progress"
        assert first.current_page == 11

        second = await orchestrator.run_strategy("T1", "sls_all", max_chunks=1)
        assert second.job_id == first.job_id
        assert second.job_status == "completed"
        assert second.total_new == 200

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, orchestrator):
        with pytest.raises(IntegrationNotFoundError):
            await orchestrator.run_strategy("nobody", "sls_100")

    @pytest.mark.asyncio
    async def test_unknown_strategy(self, orchestrator, sample_integration):
        with pytest.raises(KeyError):
            await orchestrator.run_strategy("T1", "sls_forever")

    @pytest.mark.asyncio
    async def test_failure_reported(self, fake_api, orchestrator, sample_integration, test_engine):
        fake_api.fail_key("key-t1", APIError("forbidden", status_code=403))

        outcome = await orchestrator.run_strategy("T1", "sls_100", trigger="api")

        assert not outcome.success
        assert outcome.error == "forbidden"
        assert outcome.job_status == "failed"
        [entry] = logs(test_engine, tenant_id="T1")
        assert entry.status == "failure"
        assert entry.trigger_type == "api"
        assert entry.error_details == "forbidden"


class TestRunSchedule:
    """Test scheduled fan-out."""

    @pytest.mark.asyncio
    async def test_runs_matching_tenants(self, fake_api, orchestrator, test_engine):
        fake_api.set_pages("sales", [[make_sale(1)]])
        fake_api.set_pages("products", [[make_offer(1)]])
        add_integrations(
            test_engine,
            ("A", {"sls_100": "hourly", "prod_100": "hourly"}),
            ("B", {"sls_100": "hourly"}),
            ("C", {"sls_100": "nightly"}),
        )

        summary = await orchestrator.run_schedule("hourly")

        assert summary.tenants == 2
        assert summary.successful == 3
        assert summary.failed == 0
        assert sorted((r.tenant_id, r.strategy_id) for r in summary.results) == [
            ("A", "prod_100"),
            ("A", "sls_100"),
            ("B", "sls_100"),
        ]
        body = summary.to_dict()
        assert body["success"]
        assert body["tasks"] == 3

        [entry] = logs(test_engine, job_name="scheduled-sync-hourly")
        assert entry.status == "success"
        assert entry.cron_schedule == "hourly"

    @pytest.mark.asyncio
    async def test_cron_disabled_skipped(self, fake_api, orchestrator, test_engine):
        add_integrations(test_engine, ("A", {"sls_100": "hourly"}), cron_enabled=False)

        summary = await orchestrator.run_schedule("hourly")

        assert summary.tenants == 0
        assert fake_api.calls == []

    @pytest.mark.asyncio
    async def test_tenant_failure_isolated(self, fake_api, orchestrator, test_engine):
        """Test one tenant's failure does not stop the others."""
        fake_api.set_pages("sales", [[make_sale(1)]])
        add_integrations(
            test_engine,
            ("A", {"sls_100": "hourly"}),
            ("B", {"sls_100": "hourly"}),
            ("C", {"sls_100": "hourly"}),
        )
        original = orchestrator.run_strategy

        async def run_strategy(tenant_id, *args, **kwargs):
            if tenant_id == "B":
                raise RuntimeError("tenant B exploded")
            return await original(tenant_id, *args, **kwargs)

        with patch.object(orchestrator, "run_strategy", side_effect=run_strategy):
            summary = await orchestrator.run_schedule("hourly")

        assert summary.successful == 2
        assert summary.failed_tenants == {"B": "tenant B exploded"}
        assert summary.failed == 1
        assert not summary.to_dict()["success"]

    @pytest.mark.asyncio
    async def test_batches_tenants(self, orchestrator, test_engine, test_settings):
        """Test at most tenant_concurrency tenants run at once."""
        add_integrations(test_engine, *((f"T{i}", {"sls_100": "hourly"}) for i in range(7)))
        active = 0
        peak = 0

        async def run_tenant(integration, strategy_ids, schedule, summary):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        with patch.object(orchestrator, "_run_tenant", side_effect=run_tenant) as spy:
            await orchestrator.run_schedule("hourly")

        assert spy.call_count == 7
        assert peak == test_settings.tenant_concurrency

    @pytest.mark.asyncio
    async def test_unknown_schedule(self, orchestrator):
        with pytest.raises(ValueError):
            await orchestrator.run_schedule("fortnightly")


class TestCleanup:
    """Test retention cleanup."""

    def test_cleanup_counts(self, orchestrator):
        with patch.object(orchestrator.store, "cleanup_old_jobs", return_value=3) as jobs:
            with patch.object(orchestrator.execution_logger, "cleanup", return_value=5) as log_cleanup:
                assert orchestrator.cleanup() == (3, 5)

        jobs.assert_called_once_with(7)
        log_cleanup.assert_called_once_with(7)
