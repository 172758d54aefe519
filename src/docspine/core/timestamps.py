"""
Timestamp helpers.

STDLIB ONLY - NO PYDANTIC.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (the store returns naive UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt
