"""Exchange holiday calendar with one-hop market aliases.

The calendar document is keyed by year, then market id. A market's value is
either its own list of entries or the id of another market whose entries it
shares for that year::

    {"2026": {"nyse": [{"date": "2026-01-01", "name": "New Year's Day",
                        "status": "closed"}],
              "nasdaq": "nyse"}}

Aliases are followed exactly once. An alias that points at another alias, or
at a market that is absent, resolves to no holidays.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .core.logging import get_logger
from .core.timezone import DateLike, parse_date, wall_minutes


class HolidayStatus(str, Enum):
    CLOSED = "closed"
    EARLY_CLOSE = "early-close"


@dataclass(frozen=True)
class HolidayEntry:
    date: str
    name: str
    status: HolidayStatus
    close_time: Optional[str] = None
    open_time: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.status == HolidayStatus.CLOSED

    @property
    def is_early_close(self) -> bool:
        return self.status == HolidayStatus.EARLY_CLOSE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HolidayEntry":
        if not isinstance(data, dict):
            raise ValueError(f"Holiday entry must be an object, got {type(data).__name__}")
        try:
            status = HolidayStatus(data.get("status"))
        except ValueError:
            raise ValueError(f"Holiday {data.get('date')!r}: unknown status {data.get('status')!r}")

        day = parse_date(data.get("date", ""))
        close_time = data.get("closeTime") or None
        open_time = data.get("openTime") or None
        for value in (close_time, open_time):
            if value:
                wall_minutes(value)

        return cls(
            date=day.isoformat(),
            name=str(data.get("name") or ""),
            status=status,
            close_time=close_time,
            open_time=open_time,
        )


@dataclass(frozen=True)
class Direct:
    entries: Tuple[HolidayEntry, ...]


@dataclass(frozen=True)
class AliasOf:
    market_id: str


HolidayTable = Union[Direct, AliasOf]


def _parse_entries(market_id: str, year: int, items: List[Any]) -> Tuple[HolidayEntry, ...]:
    entries = []
    for item in items:
        try:
            entries.append(HolidayEntry.from_dict(item))
        except ValueError as e:
            get_logger().log("holiday_entry_skipped", {"year": year, "market": market_id, "error": str(e)})
    return tuple(sorted(entries, key=lambda e: e.date))


class HolidayCalendar:
    def __init__(self, tables: Optional[Dict[int, Dict[str, HolidayTable]]] = None):
        self._tables: Dict[int, Dict[str, HolidayTable]] = tables or {}

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "HolidayCalendar":
        """Parse a calendar document, skipping (and logging) anything malformed below the top level."""
        if not isinstance(document, dict):
            raise ValueError("Holiday document must be an object keyed by year")

        logger = get_logger()
        tables: Dict[int, Dict[str, HolidayTable]] = {}
        for year_key, markets in document.items():
            try:
                year = int(year_key)
            except (TypeError, ValueError):
                logger.log("holiday_year_skipped", {"year": year_key, "error": "not a year"})
                continue
            if not isinstance(markets, dict):
                logger.log("holiday_year_skipped", {"year": year, "error": "expected an object keyed by market id"})
                continue

            year_tables: Dict[str, HolidayTable] = {}
            for market_id, value in markets.items():
                if isinstance(value, str):
                    year_tables[market_id] = AliasOf(value)
                elif isinstance(value, list):
                    year_tables[market_id] = Direct(_parse_entries(market_id, year, value))
                else:
                    logger.log("holiday_market_skipped", {
                        "year": year,
                        "market": market_id,
                        "error": "expected a list of entries or a market id",
                    })
            tables[year] = year_tables

        return cls(tables)

    def years(self) -> List[int]:
        return sorted(self._tables)

    def market_ids(self, year: int) -> List[str]:
        return sorted(self._tables.get(year, {}))

    def entries_for(self, market_id: str, year: int) -> List[HolidayEntry]:
        year_tables = self._tables.get(int(year))
        if not year_tables:
            return []

        table = year_tables.get(market_id)
        if isinstance(table, AliasOf):
            table = year_tables.get(table.market_id)

        if isinstance(table, Direct):
            return list(table.entries)
        return []

    def entry_for_date(self, market_id: str, day: DateLike) -> Optional[HolidayEntry]:
        day = parse_date(day)
        date_str = day.isoformat()
        for entry in self.entries_for(market_id, day.year):
            if entry.date == date_str:
                return entry
        return None
