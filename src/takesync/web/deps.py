"""Request dependencies for the HTTP surface."""

import secrets
from collections.abc import AsyncIterator

from fastapi import Depends, Header, Request
from sqlalchemy import Engine

from takesync.config.settings import Settings
from takesync.sync.execution_logger import ExecutionLogger
from takesync.sync.job_store import JobStateStore
from takesync.sync.orchestrator import SyncOrchestrator
from takesync.web.errors import AppHTTPException


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_execution_logger(request: Request) -> ExecutionLogger:
    return request.app.state.execution_logger


def get_job_store(
    engine: Engine = Depends(get_engine),
    settings: Settings = Depends(get_app_settings),
) -> JobStateStore:
    return JobStateStore(engine, settings)


async def get_orchestrator(request: Request) -> AsyncIterator[SyncOrchestrator]:
    """Yield an orchestrator with an API client open for the request."""
    state = request.app.state
    async with state.client_factory(state.settings) as client:
        yield SyncOrchestrator(client, state.engine, state.settings, state.execution_logger)


def require_cron_secret(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Accept only ``Authorization: Bearer <cron secret>``.

    Requests are rejected when no secret is configured.
    """
    if settings.cron_secret is None or not settings.cron_secret.get_secret_value():
        raise AppHTTPException(401, "Unauthorized: cron secret not configured")

    scheme, _, token = (authorization or "").partition(" ")
    expected = settings.cron_secret.get_secret_value()
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), expected):
        raise AppHTTPException(401, "Unauthorized")
