"""FastAPI application factory."""

from collections.abc import Callable

from fastapi import FastAPI
from sqlalchemy import Engine

from takesync import __version__
from takesync.api.client import TakealotClient
from takesync.config.settings import Settings, get_settings
from takesync.db.engine import create_engine, create_tables
from takesync.sync.execution_logger import DatabaseExecutionLogger, ExecutionLogger
from takesync.web.errors import register_error_handlers
from takesync.web.routes import admin, cron, sync


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    client_factory: Callable[[Settings], TakealotClient] = TakealotClient,
    execution_logger: ExecutionLogger | None = None,
) -> FastAPI:
    """Build the HTTP trigger application.

    Args:
        settings: Application settings (loaded from the environment if omitted).
        engine: SQLAlchemy engine (created from settings if omitted).
        client_factory: Builds the Seller API client for each request.
        execution_logger: Execution logger (database-backed if omitted).

    Returns:
        Configured FastAPI app.
    """
    settings = settings or get_settings()
    engine = engine or create_engine(settings)
    create_tables(engine)

    app = FastAPI(title="takesync", version=__version__)
    app.state.settings = settings
    app.state.engine = engine
    app.state.client_factory = client_factory
    app.state.execution_logger = execution_logger or DatabaseExecutionLogger(engine)

    register_error_handlers(app)
    app.include_router(sync.router)
    app.include_router(cron.router)
    app.include_router(admin.router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
