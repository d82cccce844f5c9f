"""Base repository classes."""

from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func, insert, select, update
from sqlalchemy.orm import Session

from takesync.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)

# Upper bound on bound parameters in one IN (...) lookup
LOOKUP_CHUNK_SIZE = 500


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    """Yield consecutive slices of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BaseRepository(Generic[ModelT]):
    """Base repository with common CRUD operations."""

    model: type[ModelT]

    def __init__(self, session: Session) -> None:
        """Initialize repository with a session.

        Args:
            session: SQLAlchemy session.
        """
        self.session = session

    def get_by_id(self, id: Any) -> ModelT | None:
        """Get a record by its primary key.

        Args:
            id: Primary key value.

        Returns:
            Model instance or None if not found.
        """
        return self.session.get(self.model, id)

    def get_all(self) -> list[ModelT]:
        """Get all records.

        Returns:
            List of all model instances.
        """
        stmt = select(self.model)
        return list(self.session.scalars(stmt).all())

    def add(self, instance: ModelT) -> ModelT:
        """Add a new record.

        Args:
            instance: Model instance to add.

        Returns:
            The added instance.
        """
        self.session.add(instance)
        self.session.flush()
        return instance

    def delete(self, instance: ModelT) -> None:
        """Delete a record.

        Args:
            instance: Model instance to delete.
        """
        self.session.delete(instance)
        self.session.flush()


class SyncedRecordRepository(BaseRepository[ModelT]):
    """Repository for records upserted by (tenant, natural key)."""

    natural_key: str

    def get_by_key(self, tenant_id: str, key: str) -> ModelT | None:
        """Get one record by its natural key.

        Args:
            tenant_id: Tenant identifier.
            key: Natural key value.

        Returns:
            Model instance or None.
        """
        stmt = select(self.model).where(
            self.model.tenant_id == tenant_id,  # type: ignore[attr-defined]
            getattr(self.model, self.natural_key) == key,
        )
        return self.session.scalar(stmt)

    def get_existing(
        self,
        tenant_id: str,
        keys: Iterable[str],
        columns: Iterable[str],
    ) -> dict[str, dict[str, Any]]:
        """Load stored values for the given natural keys.

        Lookups are split into chunks so large pages never exceed the
        database's bound parameter limits.

        Args:
            tenant_id: Tenant identifier.
            keys: Natural key values to look up.
            columns: Column names to load alongside ``id`` and the key.

        Returns:
            Mapping of natural key to a dict of column values.
        """
        key_column = getattr(self.model, self.natural_key)
        wanted = ["id", self.natural_key, *(c for c in columns if c not in ("id", self.natural_key))]
        selected = [getattr(self.model, name) for name in wanted]

        existing: dict[str, dict[str, Any]] = {}
        for chunk in chunked(list(keys), LOOKUP_CHUNK_SIZE):
            stmt = select(*selected).where(
                self.model.tenant_id == tenant_id,  # type: ignore[attr-defined]
                key_column.in_(chunk),
            )
            for row in self.session.execute(stmt).mappings():
                existing[row[self.natural_key]] = dict(row)
        return existing

    def insert_many(self, rows: list[dict[str, Any]]) -> int:
        """Insert new rows in a single executemany statement.

        Args:
            rows: Column dictionaries for new rows.

        Returns:
            Number of rows inserted.
        """
        if not rows:
            return 0
        self.session.execute(insert(self.model), rows)
        return len(rows)

    def update_many(self, rows: list[dict[str, Any]]) -> int:
        """Update existing rows by primary key.

        Args:
            rows: Column dictionaries, each including ``id``.

        Returns:
            Number of rows updated.
        """
        if not rows:
            return 0
        self.session.execute(update(self.model), rows)
        return len(rows)

    def count(self, tenant_id: str | None = None) -> int:
        """Count stored records, optionally for one tenant."""
        stmt = select(func.count()).select_from(self.model)
        if tenant_id is not None:
            stmt = stmt.where(self.model.tenant_id == tenant_id)  # type: ignore[attr-defined]
        return self.session.scalar(stmt) or 0
