from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, Union

from zoneinfo import ZoneInfo

from .config import get_settings

DatetimeLike = Optional[Union[datetime, date]]


def local_zone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or get_settings().timezone)


def now_local(tz_name: Optional[str] = None) -> datetime:
    return datetime.now(tz=local_zone(tz_name))


def today_local(tz_name: Optional[str] = None) -> date:
    return now_local(tz_name).date()


def ensure_local_datetime(value: DatetimeLike, tz_name: Optional[str] = None) -> Optional[datetime]:
    if value is None:
        return None
    zone = local_zone(tz_name)
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=zone)
    if value.tzinfo is None:
        # naive values come back from SQLite; they were stored in local time
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def local_date(value: DatetimeLike, tz_name: Optional[str] = None) -> Optional[date]:
    converted = ensure_local_datetime(value, tz_name)
    if converted is None:
        return None
    return converted.date()


def parse_date_value(raw: str, tz_name: Optional[str] = None) -> date:
    """Parse ``YYYY-MM-DD`` or an ISO datetime into a calendar date in the local zone."""
    text = (raw or "").strip()
    if not text:
        raise ValueError("Empty date value")
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError("Invalid date format") from exc
    converted = local_date(parsed, tz_name)
    if converted is None:
        raise ValueError("Unable to convert date")
    return converted
