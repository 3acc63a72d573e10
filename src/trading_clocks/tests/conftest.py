import json
import os
from datetime import datetime, timezone

import pytest

from trading_clocks.core import logging as clocks_logging
from trading_clocks.core import state as clocks_state
from trading_clocks.core.clock import ClockSource, reset_clock
from trading_clocks.core.config import reload_configs
from trading_clocks.holidays import HolidayCalendar
from trading_clocks.markets import Market


class FakeTime:
    """Stand-in for time.time that only moves when told to."""

    def __init__(self, start: datetime):
        self.t = start.timestamp()

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_runtime(tmp_path, monkeypatch):
    monkeypatch.setenv("TRADING_CLOCKS_LOG_PATH", str(tmp_path / "logs" / "app.jsonl"))
    monkeypatch.setenv("TRADING_CLOCKS_STATE_DB", str(tmp_path / "state" / "preferences.db"))
    clocks_state.close_state_store()
    monkeypatch.setattr(clocks_state, "_db_path", str(tmp_path / "state" / "preferences.db"))
    clocks_logging.reset_logger()
    reset_clock()
    reload_configs()
    yield
    clocks_state.close_state_store()
    clocks_logging.reset_logger()
    reset_clock()
    reload_configs()


@pytest.fixture
def fake_time():
    return FakeTime(utc(2026, 10, 19, 12, 0))


@pytest.fixture
def clock(fake_time):
    return ClockSource(time_fn=fake_time)


@pytest.fixture
def nyse():
    return Market(
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


@pytest.fixture
def hkex():
    return Market(
        id="hkex",
        name="Hong Kong Exchanges",
        code="HKEX",
        country="Hong Kong",
        country_code="HK",
        timezone="Asia/Hong_Kong",
        open_time="09:30",
        close_time="16:00",
        region="Asia-Pacific",
        lunch_start="12:00",
        lunch_end="13:00",
    )


@pytest.fixture
def tse():
    return Market(
        id="tse",
        name="Tokyo Stock Exchange",
        code="TSE",
        country="Japan",
        country_code="JP",
        timezone="Asia/Tokyo",
        open_time="09:00",
        close_time="15:30",
        region="Asia-Pacific",
        lunch_start="11:30",
        lunch_end="12:30",
    )


@pytest.fixture
def lse():
    return Market(
        id="lse",
        name="London Stock Exchange",
        code="LSE",
        country="United Kingdom",
        country_code="GB",
        timezone="Europe/London",
        open_time="08:00",
        close_time="16:30",
        region="Europe",
        dst_start="2026-03-29",
        dst_end="2026-10-25",
    )


@pytest.fixture
def holiday_document():
    return {
        "2026": {
            "nyse": [
                {"date": "2026-12-25", "name": "Christmas Day", "status": "closed"},
                {"date": "2026-01-01", "name": "New Year's Day", "status": "closed"},
                {"date": "2026-01-19", "name": "Martin Luther King Jr. Day", "status": "closed"},
                {"date": "2026-12-24", "name": "Christmas Eve", "status": "early-close", "closeTime": "13:00"},
            ],
            "nasdaq": "nyse",
            "arca": "nasdaq",
            "hkex": [
                {"date": "2026-12-24", "name": "Christmas Eve", "status": "early-close", "closeTime": "12:00"},
                {"date": "2026-12-25", "name": "Christmas Day", "status": "closed"},
            ],
        }
    }


@pytest.fixture
def calendar(holiday_document):
    return HolidayCalendar.from_document(holiday_document)


@pytest.fixture
def log_events():
    """Event names written to the JSONL log so far."""
    def read() -> list:
        path = os.environ["TRADING_CLOCKS_LOG_PATH"]
        if not os.path.exists(path):
            return []
        with open(path) as f:
            return [json.loads(line)["event"] for line in f if line.strip()]
    return read
