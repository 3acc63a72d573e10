"""Per-tick clock board: session states for the selected markets, formatted for display"""
from dataclasses import dataclass, field
from datetime import datetime
from functools import cmp_to_key
from typing import Dict, List, Optional, Tuple

from .core.clock import ClockSource, get_clock, get_viewer_timezone
from .core.logging import get_logger
from .core.timezone import millis_between
from .formatting import (
    FormattedTime,
    format_clock_with_seconds,
    format_countdown,
    format_in_timezone,
    format_long_date,
)
from .markets import Market, TimeOverride
from .session import NextEvent, SessionClassifier, SessionPhase, SessionState, effective_session_times

SORT_BRACKET_MS = 60 * 1000


@dataclass(frozen=True)
class SessionProgress:
    """Fill fractions (0..1) per trading segment; widths are relative shares of the day."""
    fills: Tuple[float, ...]
    widths: Tuple[float, ...]

    @property
    def segmented(self) -> bool:
        return len(self.fills) > 1


@dataclass
class BoardRow:
    market: Market
    state: SessionState
    countdown: str
    next_event_viewer: FormattedTime
    next_event_local: FormattedTime
    open_time: str
    close_time: str
    has_override: bool
    alert: Optional[str] = None
    progress: Optional[SessionProgress] = None


@dataclass
class BoardSnapshot:
    generated_at: datetime
    viewer_timezone: str
    viewer_time: str
    viewer_date: str
    viewer_tz_abbrev: str
    simulation_active: bool
    rows: List[BoardRow] = field(default_factory=list)


def _fraction(elapsed_ms: int, total_ms: int) -> float:
    if total_ms <= 0:
        return 1.0
    return min(1.0, max(0.0, elapsed_ms / total_ms))


def session_progress(state: SessionState, now: datetime) -> Optional[SessionProgress]:
    if state.phase in (SessionPhase.WEEKEND_CLOSED, SessionPhase.HOLIDAY_CLOSED):
        return None
    if state.open_at is None or state.close_at is None:
        return None

    has_lunch = state.lunch_start_at is not None and state.lunch_end_at is not None

    # Closed before or after the session shows the last completed day
    if not state.is_open and not state.is_on_lunch:
        if has_lunch:
            return SessionProgress(fills=(1.0, 1.0), widths=_lunch_widths(state))
        return SessionProgress(fills=(1.0,), widths=(1.0,))

    if not has_lunch:
        fill = _fraction(millis_between(state.open_at, now), millis_between(state.open_at, state.close_at))
        return SessionProgress(fills=(fill,), widths=(1.0,))

    morning_ms = millis_between(state.open_at, state.lunch_start_at)
    afternoon_ms = millis_between(state.lunch_end_at, state.close_at)
    if now < state.lunch_start_at:
        fills = (_fraction(millis_between(state.open_at, now), morning_ms), 0.0)
    elif now < state.lunch_end_at:
        fills = (1.0, 0.0)
    else:
        fills = (1.0, _fraction(millis_between(state.lunch_end_at, now), afternoon_ms))
    return SessionProgress(fills=fills, widths=_lunch_widths(state))


def _lunch_widths(state: SessionState) -> Tuple[float, float]:
    morning_ms = millis_between(state.open_at, state.lunch_start_at)
    afternoon_ms = millis_between(state.lunch_end_at, state.close_at)
    total = morning_ms + afternoon_ms
    if total <= 0:
        return 0.5, 0.5
    return morning_ms / total, afternoon_ms / total


def _compare_rows(a: Tuple[int, BoardRow], b: Tuple[int, BoardRow]) -> int:
    index_a, row_a = a
    index_b, row_b = b
    if row_a.state.is_open != row_b.state.is_open:
        return -1 if row_a.state.is_open else 1

    # Rows within a minute of each other keep their configured order so the board does not flicker
    diff = row_a.state.time_until_ms - row_b.state.time_until_ms
    if abs(diff) > SORT_BRACKET_MS:
        return diff
    return index_a - index_b


def sort_rows(rows: List[BoardRow]) -> List[BoardRow]:
    ordered = sorted(enumerate(rows), key=cmp_to_key(_compare_rows))
    return [row for _, row in ordered]


class ClockBoard:
    def __init__(
        self,
        markets: List[Market],
        classifier: SessionClassifier,
        clock: Optional[ClockSource] = None,
        selected_ids: Optional[List[str]] = None,
        overrides: Optional[Dict[str, TimeOverride]] = None,
        viewer_timezone: Optional[str] = None,
        opening_soon_minutes: int = 30,
        closing_soon_minutes: int = 30,
    ):
        self._markets = list(markets)
        self._classifier = classifier
        self._clock = clock or get_clock()
        self._selected_ids = list(selected_ids) if selected_ids is not None else [m.id for m in markets]
        self._overrides = dict(overrides or {})
        self._viewer_timezone = viewer_timezone
        self._opening_soon_ms = opening_soon_minutes * 60 * 1000
        self._closing_soon_ms = closing_soon_minutes * 60 * 1000
        self._last_phases: Dict[str, SessionPhase] = {}
        self._logger = get_logger()

    @property
    def selected_markets(self) -> List[Market]:
        return [m for m in self._markets if m.id in self._selected_ids]

    def select(self, market_ids: List[str]) -> None:
        self._selected_ids = list(market_ids)

    def set_override(self, market_id: str, override: Optional[TimeOverride]) -> None:
        if override is None or override.is_empty:
            self._overrides.pop(market_id, None)
        else:
            self._overrides[market_id] = override

    def viewer_timezone(self) -> str:
        return self._viewer_timezone or get_viewer_timezone(self._clock)

    def _alert(self, state: SessionState) -> Optional[str]:
        if state.next_event == NextEvent.OPENS and state.time_until_ms <= self._opening_soon_ms:
            return "opening-soon"
        if state.next_event == NextEvent.CLOSES and state.time_until_ms <= self._closing_soon_ms:
            return "closing-soon"
        return None

    def _row(self, market: Market, now: datetime, viewer_tz: str) -> BoardRow:
        override = self._overrides.get(market.id)
        state = self._classifier.classify(market, override, now)
        open_time, close_time = effective_session_times(market, override)

        return BoardRow(
            market=market,
            state=state,
            countdown=format_countdown(state.time_until_ms),
            next_event_viewer=format_in_timezone(state.next_event_time, viewer_tz),
            next_event_local=format_in_timezone(state.next_event_time, market.timezone),
            open_time=open_time,
            close_time=close_time,
            has_override=override is not None and not override.is_empty,
            alert=self._alert(state),
            progress=session_progress(state, now),
        )

    def _track_phase(self, row: BoardRow) -> None:
        previous = self._last_phases.get(row.market.id)
        current = row.state.phase
        if previous is not None and previous != current:
            self._logger.log("market_phase_changed", {
                "market": row.market.id,
                "from": previous.value,
                "to": current.value,
            })
        self._last_phases[row.market.id] = current

    def tick(self) -> BoardSnapshot:
        now = self._clock.now()
        viewer_tz = self.viewer_timezone()

        rows = [self._row(market, now, viewer_tz) for market in self.selected_markets]
        for row in rows:
            self._track_phase(row)

        return BoardSnapshot(
            generated_at=now,
            viewer_timezone=viewer_tz,
            viewer_time=format_clock_with_seconds(now, viewer_tz),
            viewer_date=format_long_date(now, viewer_tz),
            viewer_tz_abbrev=format_in_timezone(now, viewer_tz).tz_abbrev,
            simulation_active=self._clock.is_simulation_active(),
            rows=sort_rows(rows),
        )
