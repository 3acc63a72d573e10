"""Schedule, DST and holiday summary tables"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .core.clock import get_clock, get_viewer_timezone
from .core.timezone import local_date, millis_between, to_instant
from .formatting import FormattedTime, format_calendar_date, format_duration, format_in_timezone
from .holidays import HolidayCalendar, HolidayEntry
from .markets import REGIONS, Market, first_market_per_country, markets_by_region, sort_by_gmt_offset


@dataclass(frozen=True)
class ScheduleRow:
    market: Market
    opens: FormattedTime
    closes: FormattedTime
    duration: str


@dataclass(frozen=True)
class DstRow:
    market: Market
    standard_time_starts: str
    daylight_time_starts: str
    status: str


@dataclass(frozen=True)
class HolidaySummary:
    market: Market
    holidays: List[HolidayEntry]


def next_weekday(day: date) -> date:
    candidate = day + timedelta(days=1)
    while candidate.weekday() >= 5:
        candidate += timedelta(days=1)
    return candidate


def _regions(markets: List[Market]) -> List[Tuple[str, List[Market]]]:
    grouped = markets_by_region(markets)
    return [(region, grouped[region]) for region in REGIONS if grouped.get(region)]


def schedule_rows(
    markets: List[Market],
    target_date: Optional[date] = None,
    viewer_tz: Optional[str] = None,
) -> Dict[str, List[ScheduleRow]]:
    """Open/close for one market per country on ``target_date``, shown in the viewer's zone.

    Without a date the schedule is for the viewer's next weekday.
    """
    viewer_tz = viewer_tz or get_viewer_timezone()
    if target_date is None:
        target_date = next_weekday(local_date(get_clock().now(), viewer_tz))

    grouped = {}
    for region, members in _regions(first_market_per_country(markets)):
        rows = []
        for market in members:
            open_at = to_instant(target_date, market.open_time, market.timezone)
            close_at = to_instant(target_date, market.close_time, market.timezone)
            rows.append(ScheduleRow(
                market=market,
                opens=format_in_timezone(open_at, viewer_tz),
                closes=format_in_timezone(close_at, viewer_tz),
                duration=format_duration(millis_between(open_at, close_at)),
            ))
        grouped[region] = rows
    return grouped


def dst_rows(markets: List[Market], at: Optional[datetime] = None) -> Dict[str, List[DstRow]]:
    ordered = sort_by_gmt_offset(first_market_per_country(markets), at)
    return {
        region: [
            DstRow(
                market=market,
                standard_time_starts=format_calendar_date(market.dst_end),
                daylight_time_starts=format_calendar_date(market.dst_start),
                status="Observes DST" if market.observes_dst else "No DST",
            )
            for market in members
        ]
        for region, members in _regions(ordered)
    }


def holiday_summary(
    markets: List[Market],
    calendar: HolidayCalendar,
    year: int,
    at: Optional[datetime] = None,
) -> Dict[str, List[HolidaySummary]]:
    with_holidays = [m for m in sort_by_gmt_offset(markets, at) if calendar.entries_for(m.id, year)]
    return {
        region: [HolidaySummary(market=m, holidays=calendar.entries_for(m.id, year)) for m in members]
        for region, members in _regions(with_holidays)
    }
