"""Date and time helpers.

Timestamps are stored as second-precision ISO-8601 UTC strings
("2025-03-01T09:30:00+00:00") so SQL string comparison is chronological.
Calendar days (stats dates, "today") are evaluated in the review timezone.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Current time as an aware UTC datetime, truncated to seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_iso(moment: datetime) -> str:
    """Serialize an aware datetime to the stored timestamp format."""
    if moment.tzinfo is None:
        raise ValueError("naive datetimes are not accepted")
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds")


def parse_iso(value: str) -> datetime:
    """Parse a stored timestamp; naive values are treated as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def local_date(moment: datetime, tz_name: str) -> date:
    """Calendar date of a moment in the given timezone."""
    return moment.astimezone(ZoneInfo(tz_name)).date()


def end_of_day(moment: datetime, tz_name: str) -> datetime:
    """Last second of the local day containing moment, as UTC."""
    tz = ZoneInfo(tz_name)
    day = moment.astimezone(tz).date()
    local_end = datetime.combine(day, time(23, 59, 59), tzinfo=tz)
    return local_end.astimezone(timezone.utc)


def start_of_day(day: date, tz_name: str) -> datetime:
    """First second of a local calendar day, as UTC."""
    local_start = datetime.combine(day, time(0, 0, 0), tzinfo=ZoneInfo(tz_name))
    return local_start.astimezone(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from earlier to later (floored, may be negative)."""
    return (later - earlier) // timedelta(days=1)
