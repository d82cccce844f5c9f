"""Database engine factory and session management."""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, event
from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.orm import Session, sessionmaker

from takesync.config.settings import Settings
from takesync.db.base import Base


def create_engine(settings: Settings) -> Engine:
    """Create a SQLAlchemy engine from settings.

    Args:
        settings: Application settings containing database URL.

    Returns:
        Configured SQLAlchemy engine.
    """
    connect_args: dict = {}

    # SQLite-specific configuration
    is_sqlite = settings.database_url.startswith("sqlite")
    if is_sqlite:
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30

    engine = sa_create_engine(
        settings.database_url,
        connect_args=connect_args,
        echo=settings.log_level == "DEBUG",
        pool_pre_ping=True,
    )

    if is_sqlite:
        # Let pysqlite leave SAVEPOINT handling to SQLAlchemy
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _do_begin(conn):  # type: ignore[no-untyped-def]
            conn.exec_driver_sql("BEGIN")

    return engine


def create_tables(engine: Engine) -> None:
    """Create all database tables.

    Args:
        engine: SQLAlchemy engine.
    """
    # Import models to ensure they're registered with Base
    from takesync.db import models as _  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables(engine: Engine) -> None:
    """Drop all database tables.

    Args:
        engine: SQLAlchemy engine.
    """
    from takesync.db import models as _  # noqa: F401

    Base.metadata.drop_all(bind=engine)


def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Build a session factory that keeps loaded objects usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def get_session(engine: Engine) -> Generator[Session, None, None]:
    """Get a database session context manager.

    Args:
        engine: SQLAlchemy engine.

    Yields:
        Database session that will be automatically committed on success
        or rolled back on failure.
    """
    session = session_factory(engine)()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
