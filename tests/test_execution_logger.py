"""Tests for execution logging."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from takesync.db.engine import get_session
from takesync.db.models import ExecutionLog
from takesync.db.repositories import ExecutionLogRepository
from takesync.sync.execution_logger import (
    API_SOURCE,
    DatabaseExecutionLogger,
    NullExecutionLogger,
)
from takesync.utils.dates import utcnow


@pytest.fixture
def execution_logger(test_engine) -> DatabaseExecutionLogger:
    return DatabaseExecutionLogger(test_engine)


def load(engine, log_id: str) -> ExecutionLog:
    with get_session(engine) as session:
        return ExecutionLogRepository(session).get_by_id(log_id)


class TestDatabaseExecutionLogger:
    """Test DatabaseExecutionLogger."""

    def test_start(self, execution_logger, test_engine):
        log_id = execution_logger.start(
            "sales-sync-sls_100",
            "scheduled",
            "cron",
            trigger_source="cron:hourly",
            cron_schedule="hourly",
            tenant_id="T1",
        )

        entry = load(test_engine, log_id)
        assert entry.status == "running"
        assert entry.api_source == API_SOURCE
        assert entry.cron_schedule == "hourly"
        assert entry.message == "Started sales-sync-sls_100"
        assert entry.ended_at is None

    def test_update(self, execution_logger, test_engine):
        log_id = execution_logger.start("products-sync-prod_all", "manual", "manual")

        execution_logger.update(log_id, total_pages=3, items_processed=300, bogus="x")

        entry = load(test_engine, log_id)
        assert entry.total_pages == 3
        assert entry.items_processed == 300

    def test_complete_success(self, execution_logger, test_engine):
        log_id = execution_logger.start("sales-sync-sls_30d", "triggered", "api")
        execution_logger.update(log_id, total_pages=2)

        execution_logger.complete(
            log_id, "success", total_reads=200, total_writes=12, items_processed=200, message="done"
        )

        entry = load(test_engine, log_id)
        assert entry.status == "success"
        assert entry.ended_at is not None
        assert entry.duration_ms >= 0
        assert entry.total_pages == 2
        assert entry.total_writes == 12
        assert entry.message == "done"

    def test_complete_with_exception(self, execution_logger, test_engine):
        log_id = execution_logger.start("sales-sync-sls_30d", "manual", "manual")
        try:
            raise ValueError("bad payload")
        except ValueError as e:
            execution_logger.complete(log_id, "failure", error=e)

        entry = load(test_engine, log_id)
        assert entry.status == "failure"
        assert entry.error_details == "bad payload"
        assert "ValueError" in entry.stack_trace

    def test_complete_only_once(self, execution_logger, test_engine):
        log_id = execution_logger.start("sales-sync-sls_100", "manual", "manual")
        execution_logger.complete(log_id, "success")

        execution_logger.complete(log_id, "failure", error="late")

        entry = load(test_engine, log_id)
        assert entry.status == "success"
        assert entry.error_details is None

    def test_invalid_final_status(self, execution_logger, test_engine):
        log_id = execution_logger.start("sales-sync-sls_100", "manual", "manual")

        execution_logger.complete(log_id, "running")

        assert load(test_engine, log_id).status == "failure"

    def test_none_log_id_ignored(self, execution_logger):
        execution_logger.update(None, total_pages=1)
        execution_logger.complete(None, "success")

    def test_database_errors_swallowed(self, execution_logger):
        """Test log writes never break the sync they describe."""
        with patch(
            "takesync.sync.execution_logger.get_session",
            side_effect=OperationalError("INSERT", {}, Exception("database is locked")),
        ):
            assert execution_logger.start("sales-sync-sls_100", "manual", "manual") is None
            execution_logger.complete("some-id", "success")

    def test_cleanup(self, execution_logger, test_engine):
        old = execution_logger.start("sales-sync-sls_100", "scheduled", "cron")
        recent = execution_logger.start("sales-sync-sls_100", "scheduled", "cron")
        with get_session(test_engine) as session:
            session.execute(
                update(ExecutionLog)
                .where(ExecutionLog.id == old)
                .values(started_at=utcnow() - timedelta(days=30))
            )

        assert execution_logger.cleanup(7) == 1
        assert load(test_engine, old) is None
        assert load(test_engine, recent) is not None


class TestExecutionLogRepository:
    """Test execution log queries."""

    def test_query_filters_and_paging(self, execution_logger, test_session):
        for tenant in ("T1", "T1", "T2"):
            log_id = execution_logger.start("sales-sync-sls_100", "scheduled", "cron", tenant_id=tenant)
            execution_logger.complete(log_id, "success")

        repo = ExecutionLogRepository(test_session)
        logs, total, has_more = repo.query(tenant_id="T1", limit=1)
        assert len(logs) == 1
        assert total == 2
        assert has_more

        logs, total, has_more = repo.query(tenant_id="T1", limit=1, offset=1)
        assert total == 2
        assert not has_more

        _, total, _ = repo.query(status="failure")
        assert total == 0


class TestNullExecutionLogger:
    """Test NullExecutionLogger."""

    def test_records_nothing(self):
        execution_logger = NullExecutionLogger()
        assert execution_logger.start("x", "manual", "manual") is None
        execution_logger.update(None, total_pages=1)
        execution_logger.complete(None, "success")
        assert execution_logger.cleanup(7) == 0
