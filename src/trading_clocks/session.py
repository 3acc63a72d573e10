"""Market session state classification.

Each call classifies one market at one instant from scratch; nothing is
carried between ticks. The decision order is:

1. today (exchange-local) is a full-closure holiday -> HOLIDAY_CLOSED
2. today is Saturday or Sunday -> WEEKEND_CLOSED
3. today is an early-close holiday -> the holiday's close replaces the
   effective close for the rest of the classification
4. compare now against today's open, lunch and close instants

The next open after a closed day comes from a bounded forward search that
skips weekends and full-closure holidays.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Tuple

from .core.clock import ClockSource, get_clock
from .core.logging import get_logger
from .core.timezone import as_utc, local_date, local_weekday, millis_between, to_instant, wall_minutes
from .holidays import HolidayCalendar, HolidayEntry
from .markets import Market, TimeOverride

MAX_SEARCH_DAYS = 14

_SATURDAY = 5
_SUNDAY = 6
_FRIDAY = 4


class SessionPhase(str, Enum):
    WEEKEND_CLOSED = "WEEKEND_CLOSED"
    HOLIDAY_CLOSED = "HOLIDAY_CLOSED"
    BEFORE_OPEN = "BEFORE_OPEN"
    OPEN = "OPEN"
    ON_LUNCH = "ON_LUNCH"
    AFTER_CLOSE = "AFTER_CLOSE"


class NextEvent(str, Enum):
    OPENS = "opens"
    CLOSES = "closes"
    LUNCH_STARTS = "lunch-starts"
    REOPENS = "reopens"


@dataclass(frozen=True)
class SessionState:
    phase: SessionPhase
    is_open: bool
    is_weekend: bool
    is_on_lunch: bool
    is_today_holiday: bool
    time_until_ms: int
    next_event: NextEvent
    next_event_time: datetime
    holiday_name: Optional[str] = None
    open_at: Optional[datetime] = None
    close_at: Optional[datetime] = None
    lunch_start_at: Optional[datetime] = None
    lunch_end_at: Optional[datetime] = None


@dataclass(frozen=True)
class DayTimes:
    """Effective wall times for one trading day after overrides and clamping."""
    open_time: str
    close_time: str
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None

    @property
    def has_lunch(self) -> bool:
        return bool(self.lunch_start and self.lunch_end)


def effective_session_times(market: Market, override: Optional[TimeOverride] = None) -> Tuple[str, str]:
    override = override or TimeOverride()
    return override.open_time or market.open_time, override.close_time or market.close_time


def clamp_day_times(market: Market, open_time: str, close_time: str) -> DayTimes:
    """Fit the market's lunch window inside an adjusted open/close.

    An early close or custom hours can leave the lunch window hanging off the
    end of the session. A close at or before lunch start drops the lunch; a
    close inside the lunch ends the session at lunch start. The mirror rules
    apply to a late open.
    """
    if not market.has_lunch:
        return DayTimes(open_time, close_time)

    lunch_start, lunch_end = market.lunch_start, market.lunch_end
    open_m, close_m = wall_minutes(open_time), wall_minutes(close_time)
    lunch_start_m, lunch_end_m = wall_minutes(lunch_start), wall_minutes(lunch_end)

    if close_m <= lunch_start_m:
        return DayTimes(open_time, close_time)
    if close_m < lunch_end_m:
        return DayTimes(open_time, lunch_start)
    if open_m >= lunch_end_m:
        return DayTimes(open_time, close_time)
    if open_m > lunch_start_m:
        return DayTimes(lunch_end, close_time)
    return DayTimes(open_time, close_time, lunch_start, lunch_end)


class SessionClassifier:
    def __init__(self, calendar: Optional[HolidayCalendar] = None, clock: Optional[ClockSource] = None):
        self._calendar = calendar or HolidayCalendar()
        self._clock = clock
        self._logger = get_logger()

    @property
    def calendar(self) -> HolidayCalendar:
        return self._calendar

    def _now(self) -> datetime:
        clock = self._clock or get_clock()
        return clock.now()

    def _holiday(self, market: Market, day: date) -> Optional[HolidayEntry]:
        return self._calendar.entry_for_date(market.id, day)

    def _closure_name(self, market: Market, day: date) -> Optional[str]:
        entry = self._holiday(market, day)
        if entry is not None and entry.is_closed:
            return entry.name
        return None

    def next_trading_open(self, market: Market, open_time: str, start: date) -> Tuple[datetime, date]:
        """Open instant of the first weekday on or after ``start`` that is not a full closure."""
        candidate = start
        for _ in range(MAX_SEARCH_DAYS):
            weekday = candidate.weekday()
            if weekday == _SATURDAY:
                candidate += timedelta(days=2)
                continue
            if weekday == _SUNDAY:
                candidate += timedelta(days=1)
                continue

            entry = self._holiday(market, candidate)
            if entry is not None and entry.is_closed:
                candidate += timedelta(days=1)
                continue

            day_open = entry.open_time if entry is not None and entry.open_time else open_time
            return to_instant(candidate, day_open, market.timezone), candidate

        # TODO: confirm with product whether closures longer than two weeks should extend the search
        self._logger.log("next_open_search_exhausted", {
            "market": market.id,
            "start": start.isoformat(),
            "candidate": candidate.isoformat(),
        })
        return to_instant(candidate, open_time, market.timezone), candidate

    def classify(
        self,
        market: Market,
        override: Optional[TimeOverride] = None,
        now: Optional[datetime] = None,
    ) -> SessionState:
        now = as_utc(now) if now is not None else self._now()
        tz_name = market.timezone
        base_open_time, close_time = effective_session_times(market, override)
        open_time = base_open_time

        today = local_date(now, tz_name)
        today_holiday = self._holiday(market, today)
        holiday_name = None

        if today_holiday is not None:
            holiday_name = today_holiday.name
            if today_holiday.is_closed:
                next_open, _ = self.next_trading_open(market, base_open_time, today + timedelta(days=1))
                return self._state(
                    SessionPhase.HOLIDAY_CLOSED, now, NextEvent.OPENS, next_open,
                    holiday_name=holiday_name,
                    is_today_holiday=True,
                )

        weekday = local_weekday(now, tz_name)
        if weekday in (_SATURDAY, _SUNDAY):
            monday = today + timedelta(days=7 - weekday)
            next_open, _ = self.next_trading_open(market, base_open_time, monday)
            return self._state(
                SessionPhase.WEEKEND_CLOSED, now, NextEvent.OPENS, next_open,
                holiday_name=self._closure_name(market, monday),
            )

        if today_holiday is not None:
            if today_holiday.close_time:
                close_time = today_holiday.close_time
            if today_holiday.open_time:
                open_time = today_holiday.open_time

        day = clamp_day_times(market, open_time, close_time)
        open_at = to_instant(today, day.open_time, tz_name)
        close_at = to_instant(today, day.close_time, tz_name)
        lunch_start_at = lunch_end_at = None
        if day.has_lunch:
            lunch_start_at = to_instant(today, day.lunch_start, tz_name)
            lunch_end_at = to_instant(today, day.lunch_end, tz_name)

        today_instants = dict(
            open_at=open_at,
            close_at=close_at,
            lunch_start_at=lunch_start_at,
            lunch_end_at=lunch_end_at,
        )

        if now < open_at:
            return self._state(
                SessionPhase.BEFORE_OPEN, now, NextEvent.OPENS, open_at,
                holiday_name=holiday_name, **today_instants,
            )

        if now < close_at:
            if day.has_lunch and lunch_start_at <= now < lunch_end_at:
                return self._state(
                    SessionPhase.ON_LUNCH, now, NextEvent.REOPENS, lunch_end_at,
                    holiday_name=holiday_name, is_on_lunch=True, **today_instants,
                )
            if day.has_lunch and now < lunch_start_at:
                return self._state(
                    SessionPhase.OPEN, now, NextEvent.LUNCH_STARTS, lunch_start_at,
                    holiday_name=holiday_name, is_open=True, **today_instants,
                )
            return self._state(
                SessionPhase.OPEN, now, NextEvent.CLOSES, close_at,
                holiday_name=holiday_name, is_open=True, **today_instants,
            )

        # Friday after close: the general search would skip the weekend anyway
        start = today + timedelta(days=3 if weekday == _FRIDAY else 1)
        next_open, _ = self.next_trading_open(market, base_open_time, start)
        return self._state(
            SessionPhase.AFTER_CLOSE, now, NextEvent.OPENS, next_open,
            holiday_name=self._closure_name(market, start), **today_instants,
        )

    @staticmethod
    def _state(
        phase: SessionPhase,
        now: datetime,
        next_event: NextEvent,
        next_event_time: datetime,
        holiday_name: Optional[str] = None,
        is_open: bool = False,
        is_on_lunch: bool = False,
        is_today_holiday: bool = False,
        open_at: Optional[datetime] = None,
        close_at: Optional[datetime] = None,
        lunch_start_at: Optional[datetime] = None,
        lunch_end_at: Optional[datetime] = None,
    ) -> SessionState:
        return SessionState(
            phase=phase,
            is_open=is_open,
            is_weekend=phase == SessionPhase.WEEKEND_CLOSED,
            is_on_lunch=is_on_lunch,
            is_today_holiday=is_today_holiday,
            time_until_ms=millis_between(now, next_event_time),
            next_event=next_event,
            next_event_time=next_event_time,
            holiday_name=holiday_name,
            open_at=open_at,
            close_at=close_at,
            lunch_start_at=lunch_start_at,
            lunch_end_at=lunch_end_at,
        )
