"""Tests for the HTTP trigger surface."""

import httpx
import pytest
from conftest import make_sale
from fastapi.testclient import TestClient

from takesync.api.client import TakealotClient
from takesync.db.engine import get_session
from takesync.db.models import Integration
from takesync.sync.execution_logger import DatabaseExecutionLogger
from takesync.sync.job_store import JobStateStore
from takesync.web.app import create_app


def seller_api(request: httpx.Request) -> httpx.Response:
    """Serve three sales on page one and nothing after."""
    if request.headers.get("Authorization") != "Key key-t1":
        return httpx.Response(401, text="invalid api key")
    page = int(request.url.params["page_number"])
    sales = [make_sale(i) for i in range(3)] if page == 1 else []
    return httpx.Response(
        200, json={"sales": sales, "offers": [], "page_summary": {"total_results": len(sales)}}
    )


@pytest.fixture
def app(test_settings, test_engine):
    return create_app(
        test_settings,
        engine=test_engine,
        client_factory=lambda s: TakealotClient(s, transport=httpx.MockTransport(seller_api)),
        execution_logger=DatabaseExecutionLogger(test_engine),
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def cron_headers(test_settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {test_settings.cron_secret.get_secret_value()}"}


class TestSyncRoutes:
    """Test manual sync triggers."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_post_sync(self, client, sample_integration):
        response = client.post("/api/sync/T1/sls_100")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["tenantId"] == "T1"
        assert body["strategy"] == "sls_100"
        assert body["totalNew"] == 3
        assert body["jobStatus"] == "completed"

    def test_get_sync_is_api_trigger(self, client, sample_integration):
        response = client.get("/api/sync/T1/sls_100")
        assert response.status_code == 200

        logs = client.get("/api/logs", params={"tenant_id": "T1"}).json()
        assert logs["logs"][0]["trigger_type"] == "api"

    def test_unknown_strategy(self, client, sample_integration):
        response = client.post("/api/sync/T1/sls_1y")

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "sls_1y" in response.json()["error"]

    def test_unknown_tenant(self, client):
        response = client.post("/api/sync/nobody/sls_100")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "No integration configured for tenant nobody",
        }

    def test_sync_failure_reported(self, client, test_engine):
        with get_session(test_engine) as session:
            session.add(Integration(tenant_id="T9", api_key="revoked", sync_preferences={}))

        response = client.post("/api/sync/T9/sls_100")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["jobStatus"] == "failed"
        assert "401" in body["error"]

    def test_not_found_route(self, client):
        response = client.get("/api/nothing")
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestCronRoutes:
    """Test scheduled triggers."""

    def test_requires_secret(self, client):
        assert client.get("/api/cron/hourly").status_code == 401

    def test_rejects_wrong_secret(self, client):
        response = client.get("/api/cron/hourly", headers={"Authorization": "Bearer wrong"})
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_fails_closed_without_configured_secret(self, test_settings, test_engine):
        settings = test_settings.model_copy(update={"cron_secret": None})
        client = TestClient(create_app(settings, engine=test_engine))

        response = client.get("/api/cron/hourly", headers={"Authorization": "Bearer anything"})

        assert response.status_code == 401

    def test_unknown_schedule(self, client, cron_headers):
        response = client.get("/api/cron/fortnightly", headers=cron_headers)
        assert response.status_code == 400

    def test_runs_schedule(self, client, cron_headers, sample_integration):
        response = client.get("/api/cron/hourly", headers=cron_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["schedule"] == "hourly"
        assert body["tenants"] == 1
        assert body["results"][0]["strategy"] == "sls_100"
        assert body["totalNew"] == 3


class TestAdminRoutes:
    """Test job and log endpoints."""

    def test_list_jobs(self, client, sample_integration):
        client.post("/api/sync/T1/sls_100")

        body = client.get("/api/jobs", params={"tenant_id": "T1"}).json()

        assert body["success"] is True
        [job] = body["jobs"]
        assert job["status"] == "completed"
        assert job["total_new"] == 3

    def test_list_jobs_bad_status(self, client):
        response = client.get("/api/jobs", params={"status": "paused"})
        assert response.status_code == 400

    def test_job_stats(self, client, sample_integration):
        client.post("/api/sync/T1/sls_100")

        body = client.get("/api/jobs/stats").json()

        assert body["completed_last_24h"] == 1
        assert body["items_last_24h"] == 3
        assert body["error_rate"] == 0.0

    def test_cancel_job(self, client, test_engine, test_settings):
        job = JobStateStore(test_engine, test_settings).create_or_resume("T1", "sales")

        response = client.post(f"/api/jobs/{job.id}/cancel")

        assert response.status_code == 200
        assert response.json()["job"]["status"] == "cancelled"

    def test_cancel_finished_job_conflicts(self, client, sample_integration):
        client.post("/api/sync/T1/sls_100")
        job_id = client.get("/api/jobs").json()["jobs"][0]["id"]

        response = client.post(f"/api/jobs/{job_id}/cancel")

        assert response.status_code == 409

    def test_cancel_missing_job(self, client):
        assert client.post("/api/jobs/missing/cancel").status_code == 404

    def test_logs_paging(self, client, sample_integration):
        for _ in range(3):
            client.post("/api/sync/T1/sls_100")

        body = client.get("/api/logs", params={"limit": 2}).json()

        assert body["total"] == 3
        assert body["has_more"] is True
        assert len(body["logs"]) == 2
        assert body["logs"][0]["status"] == "success"

    def test_logs_invalid_limit(self, client):
        assert client.get("/api/logs", params={"limit": 0}).status_code == 400
