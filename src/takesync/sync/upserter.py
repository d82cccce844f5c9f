"""Upsert one page of API records by natural key."""

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from takesync.config.settings import MAX_WRITE_BATCH_SIZE
from takesync.db.repositories.base import chunked
from takesync.sync.strategies.base import BaseSyncStrategy
from takesync.utils.dates import utcnow

logger = structlog.get_logger(__name__)

# Numeric differences at or below this are treated as unchanged
NUMERIC_TOLERANCE = 0.01

INSERT = "insert"
UPDATE = "update"


@dataclass
class UpsertResult:
    """Per-page write counts."""

    new: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def processed(self) -> int:
        return self.new + self.updated + self.skipped + self.errors

    def __add__(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            new=self.new + other.new,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def value_changed(stored: Any, incoming: Any) -> bool:
    """Whether an incoming value should replace the stored one.

    Missing incoming values never overwrite stored data, and numbers within
    the tolerance count as equal.
    """
    if incoming is None:
        return False
    if _is_number(stored) and _is_number(incoming):
        return abs(stored - incoming) > NUMERIC_TOLERANCE
    return stored != incoming


class RecordUpserter:
    """Writes one page of records for a tenant and data type.

    Existing rows are looked up by (tenant, natural key). New keys are
    inserted; known keys are updated only when a mutable field changed.
    Writes go out in batches of at most ``batch_size`` rows, each inside a
    SAVEPOINT, so one bad record costs only its own write.
    """

    def __init__(
        self,
        session: Session,
        strategy: BaseSyncStrategy,
        tenant_id: str,
        batch_size: int = MAX_WRITE_BATCH_SIZE,
    ) -> None:
        """Initialize the upserter.

        Args:
            session: Database session; the caller commits.
            strategy: Data type strategy providing key, mapping and fields.
            tenant_id: Tenant the records belong to.
            batch_size: Maximum rows per write batch (capped at 500).
        """
        self.session = session
        self.strategy = strategy
        self.tenant_id = tenant_id
        self.batch_size = max(1, min(batch_size, MAX_WRITE_BATCH_SIZE))
        self.repo = strategy.repository_class(session)

    def upsert_page(self, records: list[dict[str, Any]]) -> UpsertResult:
        """Insert or update a page of raw API records.

        Args:
            records: Raw records from one API page.

        Returns:
            Counts of new, updated, skipped and failed records.
        """
        result = UpsertResult()
        if not records:
            return result

        # Later duplicates of a key win
        latest: dict[str, dict[str, Any]] = {}
        for record in records:
            key = self.strategy.key_of(record)
            if key is None:
                logger.warning(
                    "Skipping record without natural key",
                    data_type=self.strategy.data_type,
                    key_field=self.strategy.natural_key,
                )
                result.skipped += 1
                continue
            if key in latest:
                result.skipped += 1
            latest[key] = record

        mapped: dict[str, dict[str, Any]] = {}
        for key, record in latest.items():
            try:
                values = self.strategy.map_record(record)
            except (ValueError, TypeError, OverflowError) as e:
                logger.error(
                    "Failed to map record",
                    data_type=self.strategy.data_type,
                    key=key,
                    error=str(e),
                )
                result.errors += 1
                continue
            values["raw"] = record
            mapped[key] = values

        if not mapped:
            return result

        existing = self.repo.get_existing(
            self.tenant_id, list(mapped), self.strategy.mutable_fields
        )
        now = utcnow()

        writes: list[tuple[str, dict[str, Any]]] = []
        for key, values in mapped.items():
            stored = existing.get(key)
            if stored is None:
                writes.append(
                    (
                        INSERT,
                        {
                            **values,
                            "tenant_id": self.tenant_id,
                            "first_seen_at": now,
                            "last_updated_at": now,
                            "created_at": now,
                            "updated_at": now,
                        },
                    )
                )
                continue

            changed = [
                field
                for field in self.strategy.mutable_fields
                if value_changed(stored.get(field), values.get(field))
            ]
            if not changed:
                result.skipped += 1
                continue

            row = {"id": stored["id"], "raw": values["raw"], "last_updated_at": now, "updated_at": now}
            for field in self.strategy.mutable_fields:
                incoming = values.get(field)
                row[field] = stored.get(field) if incoming is None else incoming
            writes.append((UPDATE, row))
            logger.debug(
                "Record changed",
                data_type=self.strategy.data_type,
                key=key,
                fields=changed,
            )

        for batch in chunked(writes, self.batch_size):
            self._write_batch(list(batch), result)

        logger.debug(
            "Upserted page",
            tenant_id=self.tenant_id,
            data_type=self.strategy.data_type,
            new=result.new,
            updated=result.updated,
            skipped=result.skipped,
            errors=result.errors,
        )
        return result

    def _write_batch(self, batch: list[tuple[str, dict[str, Any]]], result: UpsertResult) -> None:
        """Write one batch, falling back to per-record writes on failure."""
        inserts = [row for op, row in batch if op == INSERT]
        updates = [row for op, row in batch if op == UPDATE]

        try:
            with self.session.begin_nested():
                self.repo.insert_many(inserts)
                self.repo.update_many(updates)
        except SQLAlchemyError as e:
            logger.warning(
                "Batch write failed, retrying records individually",
                data_type=self.strategy.data_type,
                batch_size=len(batch),
                error=str(e),
            )
            for op, row in batch:
                self._write_one(op, row, result)
            return

        result.new += len(inserts)
        result.updated += len(updates)

    def _write_one(self, op: str, row: dict[str, Any], result: UpsertResult) -> None:
        try:
            with self.session.begin_nested():
                if op == INSERT:
                    self.repo.insert_many([row])
                else:
                    self.repo.update_many([row])
        except SQLAlchemyError as e:
            logger.error(
                "Record write failed",
                data_type=self.strategy.data_type,
                key=row.get(self.strategy.natural_key, row.get("id")),
                error=str(e),
            )
            result.errors += 1
            return

        if op == INSERT:
            result.new += 1
        else:
            result.updated += 1
