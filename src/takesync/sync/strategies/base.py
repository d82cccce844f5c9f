"""Base sync strategy."""

import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from takesync.db.repositories.base import SyncedRecordRepository


def to_str(value: Any) -> str | None:
    """Normalize an identifier or text value; blanks become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_float(value: Any) -> float | None:
    """Parse a numeric value.

    Raises:
        ValueError: If the value is present but not a finite number.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Not a finite number: {value!r}")
    return number


def to_int(value: Any) -> int | None:
    """Parse an integer value.

    Raises:
        ValueError: If the value is present but not a finite number.
    """
    number = to_float(value)
    return None if number is None else int(number)


class BaseSyncStrategy(ABC):
    """Maps one data type's API records onto its stored rows.

    Subclasses declare the natural key, the repository and which columns a
    later sync may change. Everything else is written once, on insert.
    """

    data_type: str
    natural_key: str
    repository_class: type[SyncedRecordRepository]
    mutable_fields: tuple[str, ...]

    def key_of(self, record: dict[str, Any]) -> str | None:
        """Natural key of a raw API record, or None if it has none."""
        return to_str(record.get(self.natural_key))

    @abstractmethod
    def map_record(self, record: dict[str, Any]) -> dict[str, Any]:
        """Map a raw API record to column values.

        Args:
            record: Raw record from the API.

        Returns:
            Column values, including the natural key but excluding the
            tenant, bookkeeping timestamps and raw payload.

        Raises:
            ValueError: If a field cannot be converted.
        """

    def record_date(self, record: dict[str, Any]) -> datetime | None:
        """Date used for date-window filtering; None when not applicable."""
        return None
