"""Controllable clock source with time-travel support"""
import os
import threading
import time
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from .config import load_settings
from .logging import get_logger
from .timezone import as_utc, local_date, to_instant

JUMP_KINDS = ("next-monday", "dst-us", "xmas")


def _to_ms(instant: datetime) -> int:
    return int(round(as_utc(instant).timestamp() * 1000))


def _from_ms(ms: int) -> datetime:
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=ms)


class ClockSource:
    """Process-wide notion of "now".

    Everything that needs the current instant asks a ClockSource instead of
    the system clock, so simulated time (a free-running offset, a frozen
    instant, or a display timezone override) needs no special-casing
    elsewhere.
    """

    def __init__(self, time_fn: Callable[[], float] = time.time):
        self._time_fn = time_fn
        self._lock = threading.RLock()
        self._offset_ms = 0
        self._paused = False
        self._frozen_ms = 0
        self._timezone_override: Optional[str] = None
        self._logger = get_logger()

    def _real_ms(self) -> int:
        return int(round(self._time_fn() * 1000))

    def now_ms(self) -> int:
        with self._lock:
            if self._paused:
                return self._frozen_ms
            return self._real_ms() + self._offset_ms

    def now(self) -> datetime:
        return _from_ms(self.now_ms())

    def set_instant(self, target: datetime) -> None:
        target_ms = _to_ms(target)
        with self._lock:
            self._offset_ms = target_ms - self._real_ms()
            # Scrubbing while paused keeps the clock paused at the new point
            if self._paused:
                self._frozen_ms = target_ms
            paused = self._paused
        self._logger.log("clock_set", {"target": _from_ms(target_ms).isoformat(), "paused": paused})

    def freeze(self) -> None:
        with self._lock:
            if self._paused:
                return
            frozen_ms = self._frozen_ms = self.now_ms()
            self._paused = True
        self._logger.log("clock_frozen", {"at": _from_ms(frozen_ms).isoformat()})

    def unfreeze(self) -> None:
        with self._lock:
            if not self._paused:
                return
            offset_ms = self._offset_ms = self._frozen_ms - self._real_ms()
            self._paused = False
        self._logger.log("clock_unfrozen", {"offset_ms": offset_ms})

    def reset(self) -> None:
        with self._lock:
            self._offset_ms = 0
            self._paused = False
            self._frozen_ms = 0
            self._timezone_override = None
        self._logger.log("clock_reset", {})

    def set_timezone_override(self, tz_name: Optional[str]) -> None:
        with self._lock:
            override = self._timezone_override = None if tz_name in (None, "", "local") else tz_name
        self._logger.log("clock_timezone_override", {"timezone": override})

    def get_timezone_override(self) -> Optional[str]:
        with self._lock:
            return self._timezone_override

    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    def get_offset_ms(self) -> int:
        with self._lock:
            return self._offset_ms

    def is_simulation_active(self) -> bool:
        with self._lock:
            return self._offset_ms != 0 or self._paused or self._timezone_override is not None


_clock: Optional[ClockSource] = None


def get_clock() -> ClockSource:
    global _clock
    if _clock is None:
        _clock = ClockSource()
    return _clock


def reset_clock() -> None:
    global _clock
    _clock = None


def get_viewer_timezone(clock: Optional[ClockSource] = None) -> str:
    clock = clock or get_clock()
    override = clock.get_timezone_override()
    if override:
        return override

    try:
        settings = load_settings()
    except FileNotFoundError:
        settings = {}
    tz_name = settings.get("system", {}).get("timezone")
    return tz_name or os.environ.get("TZ") or "UTC"


def _second_sunday_of_march(year: int) -> date:
    march_first = date(year, 3, 1)
    first_sunday = march_first + timedelta(days=(6 - march_first.weekday()) % 7)
    return first_sunday + timedelta(days=7)


def jump(clock: ClockSource, kind: str, viewer_timezone: Optional[str] = None) -> datetime:
    """Move the clock to a well-known test instant, interpreted in the viewer's zone."""
    tz_name = viewer_timezone or get_viewer_timezone(clock)
    today = local_date(clock.now(), tz_name)

    if kind == "next-monday":
        days_ahead = (7 - today.weekday()) % 7 or 7
        target = to_instant(today + timedelta(days=days_ahead), "09:30", tz_name)
    elif kind == "dst-us":
        target = to_instant(_second_sunday_of_march(today.year), "01:59", tz_name)
    elif kind == "xmas":
        target = to_instant(date(today.year, 12, 25), "10:00", tz_name)
    else:
        raise ValueError(f"Unknown jump {kind!r}, expected one of {JUMP_KINDS}")

    clock.set_instant(target)
    return target
