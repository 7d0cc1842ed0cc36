"""
Date arithmetic relative to an explicit reference time.

Nothing in the pipeline reads the system clock; every function that needs
"now" receives it as an argument.
"""

import math
from datetime import UTC, date, datetime, timedelta

SECONDS_PER_DAY = 86400


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_datetime(value: datetime | date | str | None) -> datetime | None:
    """Parse an ISO-8601 string or date into an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end (negative if end precedes start)."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def whole_days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, floored."""
    return math.floor(days_between(start, end))


def add_days(moment: datetime, days: float) -> datetime:
    return moment + timedelta(days=days)


def isoformat(moment: datetime | None) -> str | None:
    """Render a UTC timestamp as ISO-8601 with a Z suffix."""
    if moment is None:
        return None
    return ensure_utc(moment).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def days_remaining(due: datetime | None, now: datetime) -> int | None:
    """Days until due, rounded up so a deadline later today counts as 1."""
    if due is None:
        return None
    return math.ceil(days_between(now, due))
