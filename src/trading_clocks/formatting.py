"""Countdown, clock and GMT-offset formatting helpers"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfoNotFoundError

from .core.clock import get_clock
from .core.timezone import local_datetime, parse_date, resolve_offset_minutes

_GMT_OFFSET_RE = re.compile(r"^GMT(?:([+-])(\d{1,2})(?::(\d{2}))?)?$")
_NUMERIC_ABBREV_RE = re.compile(r"^[+-]\d{2}(\d{2})?$")

_MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * _MS_PER_SECOND
_MS_PER_HOUR = 60 * _MS_PER_MINUTE
_MS_PER_DAY = 24 * _MS_PER_HOUR


@dataclass(frozen=True)
class FormattedTime:
    time: str
    tz_abbrev: str


def format_countdown(ms: int) -> str:
    if ms < 0:
        return "00:00:00"

    ms = int(ms)
    days = ms // _MS_PER_DAY
    hours = (ms // _MS_PER_HOUR) % 24
    minutes = (ms // _MS_PER_MINUTE) % 60
    seconds = (ms // _MS_PER_SECOND) % 60

    clock = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if days > 0:
        return f"{days}d {clock}"
    return clock


def format_duration(ms: int) -> str:
    """Session length as "6h 30m" ("6h" when there are no spare minutes)."""
    ms = max(0, int(ms))
    hours = ms // _MS_PER_HOUR
    minutes = (ms % _MS_PER_HOUR) // _MS_PER_MINUTE
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def short_offset_name(tz_name: str, at: Optional[datetime] = None) -> str:
    """Render the zone's offset the way locale formatting does: GMT, GMT+9, GMT+5:30."""
    at = at or get_clock().now()
    offset = resolve_offset_minutes(at, tz_name)
    if offset == 0:
        return "GMT"

    sign = "+" if offset > 0 else "-"
    hours, minutes = divmod(abs(offset), 60)
    if minutes:
        return f"GMT{sign}{hours}:{minutes:02d}"
    return f"GMT{sign}{hours}"


def _twelve_hour(local: datetime, with_seconds: bool = False) -> str:
    hour = local.hour % 12 or 12
    suffix = "am" if local.hour < 12 else "pm"
    if with_seconds:
        return f"{hour}:{local.minute:02d}:{local.second:02d}{suffix}"
    return f"{hour}:{local.minute:02d}{suffix}"


def _tz_abbrev(local: datetime, tz_name: str) -> str:
    name = local.tzname() or ""
    if not name or _NUMERIC_ABBREV_RE.match(name):
        return short_offset_name(tz_name, local)
    return name


def format_in_timezone(instant: datetime, tz_name: str) -> FormattedTime:
    """12-hour wall time plus the zone's abbreviation.

    The abbreviation is the tz database's own short name (EST, JST, IST), so it
    can differ from a browser locale, which would show Asia/Kolkata as
    GMT+5:30. Zones whose database name is only a number (+04) are rendered
    GMT+4. An unknown zone yields UTC wall time labelled with the zone name.
    """
    try:
        local = local_datetime(instant, tz_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        local = local_datetime(instant, "UTC")
        return FormattedTime(time=_twelve_hour(local), tz_abbrev=tz_name)

    return FormattedTime(time=_twelve_hour(local), tz_abbrev=_tz_abbrev(local, tz_name))


def format_clock_with_seconds(instant: datetime, tz_name: str) -> str:
    return _twelve_hour(local_datetime(instant, tz_name), with_seconds=True)


def format_long_date(instant: datetime, tz_name: str) -> str:
    local = local_datetime(instant, tz_name)
    return f"{local:%a}, {local:%b} {local.day}, {local.year}"


def format_calendar_date(date_str: Optional[str]) -> str:
    if not date_str:
        return "-"
    day = parse_date(date_str)
    return f"{day:%b} {day.day}, {day.year}"


def gmt_offset_hours(tz_name: str, at: Optional[datetime] = None) -> float:
    """Signed decimal hours east of GMT (9, -5, 5.5); 0 when the zone cannot be read."""
    try:
        label = short_offset_name(tz_name, at)
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
        return 0

    match = _GMT_OFFSET_RE.match(label)
    if not match:
        return 0

    sign = -1 if match.group(1) == "-" else 1
    hours = int(match.group(2) or 0)
    minutes = int(match.group(3) or 0)
    return sign * (hours + minutes / 60)
