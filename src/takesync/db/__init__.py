"""Database layer."""

from takesync.db.base import Base, TimestampMixin
from takesync.db.engine import create_engine, create_tables, drop_tables, get_session

__all__ = [
    "Base",
    "TimestampMixin",
    "create_engine",
    "create_tables",
    "drop_tables",
    "get_session",
]
