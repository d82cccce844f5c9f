"""Timestamp helpers.

All timestamps are stored as naive UTC so that comparisons behave the same on
SQLite, PostgreSQL and MariaDB.
"""

from datetime import datetime, timezone

# Formats seen in Seller API payloads besides ISO 8601
_API_FORMATS = (
    "%d %b %Y %H:%M:%S",
    "%d %b %Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_api_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a timestamp from an API payload.

    Args:
        value: ISO 8601 string, "11 Dec 2023 19:26:00" style string, or datetime.

    Returns:
        Naive UTC datetime, or None if the value is empty or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    try:
        return to_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    for fmt in _API_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None
