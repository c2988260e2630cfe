"""Timestamp helpers shared by the models and the store."""

from datetime import date, datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_due_date(value: Any) -> Optional[datetime]:
    """Parse a due date given as a datetime, a date or an ISO-8601 string.

    Accepts full timestamps (with or without offset, including a trailing
    ``Z``) and bare ``YYYY-MM-DD`` dates, which mean midnight UTC.

    Raises:
        ValueError: If the value is not a valid calendar date
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if not isinstance(value, str) or not value.strip():
        raise ValueError("Due date must be a valid date")

    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError:
        pass

    try:
        parsed = date.fromisoformat(raw)
    except ValueError:
        raise ValueError("Due date must be a valid date") from None

    return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
