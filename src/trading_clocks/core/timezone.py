"""Wall-clock to instant conversion for exchange timezones.

Offsets are derived empirically: an instant is rendered once as UTC wall-clock
components and once as wall-clock components in the target zone, and the
difference between the two readings is the offset in effect at that instant.
A local session boundary is converted by reading the offset at a first guess
and again at the corrected instant. Near a DST transition the first guess can
sit on the wrong side of it by as many hours as the zone is away from UTC; the
second reading settles that. Wall times inside the skipped hour, and one of
the two readings of a repeated hour, do not round-trip.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Tuple, Union
from zoneinfo import ZoneInfo

DateLike = Union[str, date]


def as_utc(instant: datetime) -> datetime:
    """Normalize an instant to an aware UTC datetime; naive values are read as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def parse_wall_time(time_str: str) -> Tuple[int, int]:
    try:
        hours_str, minutes_str = time_str.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid wall time {time_str!r}, expected HH:MM")
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid wall time {time_str!r}, out of range")
    return hours, minutes


def wall_minutes(time_str: str) -> int:
    hours, minutes = parse_wall_time(time_str)
    return hours * 60 + minutes


def parse_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid calendar date {value!r}, expected YYYY-MM-DD")


def _wall_clock(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, moment.day, moment.hour, moment.minute)


def resolve_offset_minutes(instant: datetime, tz_name: str) -> int:
    """Return the UTC offset of ``tz_name`` at ``instant`` in minutes, positive east of UTC."""
    utc_moment = as_utc(instant)
    local_moment = utc_moment.astimezone(ZoneInfo(tz_name))

    delta = _wall_clock(local_moment) - _wall_clock(utc_moment)
    # Date components are compared too, so +13/+14 zones are not folded back a day
    return int(delta.total_seconds() // 60)


def to_instant(date_value: DateLike, time_str: str, tz_name: str) -> datetime:
    """Convert an exchange-local calendar date and HH:MM wall time to a UTC instant."""
    day = parse_date(date_value)
    hours, minutes = parse_wall_time(time_str)

    naive_as_utc = datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc)
    offset = resolve_offset_minutes(naive_as_utc, tz_name)
    candidate = naive_as_utc - timedelta(minutes=offset)

    corrected = resolve_offset_minutes(candidate, tz_name)
    if corrected != offset:
        candidate = naive_as_utc - timedelta(minutes=corrected)
    return candidate


def local_datetime(instant: datetime, tz_name: str) -> datetime:
    return as_utc(instant).astimezone(ZoneInfo(tz_name))


def local_date(instant: datetime, tz_name: str) -> date:
    return local_datetime(instant, tz_name).date()


def local_time_str(instant: datetime, tz_name: str) -> str:
    return local_datetime(instant, tz_name).strftime("%H:%M")


def local_weekday(instant: datetime, tz_name: str) -> int:
    """Monday is 0 and Sunday is 6, in the zone's own calendar."""
    return local_date(instant, tz_name).weekday()


def millis_between(start: datetime, end: datetime) -> int:
    return (as_utc(end) - as_utc(start)) // timedelta(milliseconds=1)
