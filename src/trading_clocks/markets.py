"""Exchange reference data and per-market time overrides"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from .core.timezone import wall_minutes

REGIONS = ("Asia-Pacific", "Europe", "Americas")

# camelCase document field -> Market attribute
_FIELD_MAP = {
    "id": "id",
    "name": "name",
    "code": "code",
    "country": "country",
    "countryCode": "country_code",
    "timezone": "timezone",
    "openTime": "open_time",
    "closeTime": "close_time",
    "region": "region",
    "dstStart": "dst_start",
    "dstEnd": "dst_end",
    "lunchStart": "lunch_start",
    "lunchEnd": "lunch_end",
}

_REQUIRED = ("id", "name", "code", "country", "countryCode", "timezone", "openTime", "closeTime", "region")


@dataclass(frozen=True)
class Market:
    id: str
    name: str
    code: str
    country: str
    country_code: str
    timezone: str
    open_time: str
    close_time: str
    region: str
    dst_start: Optional[str] = None
    dst_end: Optional[str] = None
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None

    def __post_init__(self):
        open_minutes = wall_minutes(self.open_time)
        close_minutes = wall_minutes(self.close_time)

        if bool(self.lunch_start) != bool(self.lunch_end):
            raise ValueError(f"Market {self.id}: lunchStart and lunchEnd must be set together")
        if self.lunch_start and self.lunch_end:
            lunch_start = wall_minutes(self.lunch_start)
            lunch_end = wall_minutes(self.lunch_end)
            if not (open_minutes <= lunch_start < lunch_end <= close_minutes):
                raise ValueError(
                    f"Market {self.id}: lunch {self.lunch_start}-{self.lunch_end} "
                    f"must fall inside {self.open_time}-{self.close_time}"
                )

    @property
    def has_lunch(self) -> bool:
        return bool(self.lunch_start and self.lunch_end)

    @property
    def observes_dst(self) -> bool:
        return bool(self.dst_start and self.dst_end)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Market":
        if not isinstance(data, dict):
            raise ValueError(f"Market entry must be an object, got {type(data).__name__}")
        missing = [key for key in _REQUIRED if not data.get(key)]
        if missing:
            raise ValueError(f"Market entry {data.get('id', '?')!r} missing fields: {missing}")

        kwargs = {attr: data.get(key) for key, attr in _FIELD_MAP.items()}
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        values = asdict(self)
        return {key: values[attr] for key, attr in _FIELD_MAP.items()}


@dataclass(frozen=True)
class TimeOverride:
    """User customization of a market's open/close; None keeps the market default."""
    open_time: Optional[str] = None
    close_time: Optional[str] = None

    def __post_init__(self):
        for value in (self.open_time, self.close_time):
            if value:
                wall_minutes(value)

    @property
    def is_empty(self) -> bool:
        return not self.open_time and not self.close_time

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TimeOverride":
        if not data:
            return cls()
        return cls(open_time=data.get("openTime") or None, close_time=data.get("closeTime") or None)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"openTime": self.open_time, "closeTime": self.close_time}


DEFAULT_MARKETS: List[Market] = [
    Market(
        id="nyse",
        name="New York Stock Exchange",
        code="NYSE",
        country="United States",
        country_code="US",
        timezone="America/New_York",
        open_time="09:30",
        close_time="16:00",
        region="Americas",
        dst_start="2026-03-08",
        dst_end="2026-11-01",
    )
]


def find_market(markets: List[Market], market_id: str) -> Optional[Market]:
    for market in markets:
        if market.id == market_id:
            return market
    return None


def markets_by_region(markets: List[Market]) -> Dict[str, List[Market]]:
    grouped: Dict[str, List[Market]] = {}
    for market in markets:
        grouped.setdefault(market.region, []).append(market)
    return grouped


def first_market_per_country(markets: List[Market]) -> List[Market]:
    seen: Dict[str, Market] = {}
    for market in markets:
        seen.setdefault(market.country, market)
    return list(seen.values())


def sort_by_gmt_offset(markets: List[Market], at: Optional[datetime] = None) -> List[Market]:
    """Order markets east to west by their current GMT offset (stable for ties)."""
    from .formatting import gmt_offset_hours

    return sorted(markets, key=lambda m: -gmt_offset_hours(m.timezone, at))
