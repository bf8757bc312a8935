"""
Timestamp helpers shared by schemas and the journal service.

Wire format for every timestamp the API emits or accepts as `publish_at`:
`YYYY-MM-DDTHH:MM:SS.sssZ` (UTC, millisecond precision).
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive values (SQLite returns them) and convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Serialize as `2024-01-01T00:00:00.000Z`."""
    dt = as_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_strict_iso(value: str) -> Optional[datetime]:
    """
    Parse `value` only if it round-trips exactly through `to_iso`.

    Returns None for anything else: other ISO spellings (`+00:00` offsets,
    missing milliseconds, date-only strings) are rejected as well as
    free text like "next tuesday".
    """
    if not isinstance(value, str) or not value.endswith("Z"):
        return None
    try:
        parsed = datetime.fromisoformat(value[:-1] + "+00:00")
    except ValueError:
        return None
    if to_iso(parsed) != value:
        return None
    return parsed
