from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def parse_scheduled_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        return None


def parse_scheduled_time(value: str) -> time | None:
    """Accept HH:MM or HH:MM:SS wall-clock strings."""
    try:
        return time.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        return None


def combine_schedule(scheduled_date: str, scheduled_time: str, tz: ZoneInfo) -> datetime | None:
    """Combine separate date and time fields into one aware timestamp in `tz`."""
    parsed_date = parse_scheduled_date(scheduled_date)
    parsed_time = parse_scheduled_time(scheduled_time)
    if parsed_date is None or parsed_time is None:
        return None
    return datetime.combine(parsed_date, parsed_time.replace(tzinfo=None), tzinfo=tz)


def to_utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
