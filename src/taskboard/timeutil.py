"""
Timestamp helpers shared by the database layer and the predicate builder.

All timestamps are stored as naive UTC in a fixed-width ISO-8601 layout so that
SQLite's plain text comparison orders them the same way Python's datetime
comparison does.
"""

from datetime import datetime, timezone
from typing import Optional

# Four-digit year, always with microseconds: YYYY-MM-DDTHH:MM:SS.ffffff
TIMESTAMP_TIMESPEC = "microseconds"


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Convert aware datetimes to naive UTC; naive values are assumed UTC already."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    value = normalize_timestamp(value)
    if value is None:
        return None
    return value.isoformat(timespec=TIMESTAMP_TIMESPEC)


def from_db_timestamp(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    return normalize_timestamp(datetime.fromisoformat(text.replace("Z", "+00:00")))
