"""Calendar-timezone date helpers.

The department operates in a single timezone, so every wall-clock value the
members type in (event date, start/end time, sign-up-by date) is interpreted
in ``settings.calendar_timezone`` and stored as an aware UTC-comparable
datetime.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from vfd_booking.core.config import settings

_TIME_12H_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(AM|PM)\s*$", re.IGNORECASE)
_TIME_24H_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def calendar_tz(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.calendar_timezone)


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("datetime must be timezone-aware")
    return value


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; the store only ever writes UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_calendar_tz(value: datetime, tz: str | None = None) -> datetime:
    return as_utc(value).astimezone(calendar_tz(tz))


def parse_wall_time(value: str) -> time:
    """Parse ``"15:30"``, ``"15:30:00"`` or ``"3:30 PM"``."""
    match = _TIME_12H_RE.match(value)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        meridiem = match.group(3).upper()
        if meridiem == "PM" and hours < 12:
            hours += 12
        elif meridiem == "AM" and hours == 12:
            hours = 0
        return time(hours, minutes)

    match = _TIME_24H_RE.match(value)
    if match:
        return time(int(match.group(1)), int(match.group(2)), int(match.group(3) or 0))

    raise ValueError(f"invalid time: {value!r}")


def combine_date_and_time(day: date, wall_time: str | time, tz: str | None = None) -> datetime:
    if isinstance(wall_time, str):
        wall_time = parse_wall_time(wall_time)
    return datetime.combine(day, wall_time, tzinfo=calendar_tz(tz))


def start_of_day(day: date, tz: str | None = None) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=calendar_tz(tz))


def format_display_date(value: datetime, tz: str | None = None) -> str:
    """``Mar 1, 2025``"""
    local = to_calendar_tz(value, tz)
    return f"{local:%b} {local.day}, {local.year}"


def format_display_time(value: datetime, tz: str | None = None) -> str:
    """``8:00 AM``"""
    local = to_calendar_tz(value, tz)
    hour = local.hour % 12 or 12
    return f"{hour}:{local.minute:02d} {local:%p}"


def format_display_datetime(value: datetime, tz: str | None = None) -> str:
    return f"{format_display_date(value, tz)} {format_display_time(value, tz)}"


def to_rfc3339(value: datetime, tz: str | None = None) -> str:
    return to_calendar_tz(value, tz).isoformat()


def to_ical_utc(value: datetime) -> str:
    """``20250301T130000Z``; sub-second precision is dropped."""
    return as_utc(value).strftime("%Y%m%dT%H%M%SZ")
