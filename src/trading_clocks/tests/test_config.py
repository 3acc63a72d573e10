import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
import requests

from trading_clocks.core import config as config_module
from trading_clocks.core.config import load_holidays_config, load_markets_config, load_settings
from trading_clocks.markets import DEFAULT_MARKETS
from trading_clocks.session import SessionClassifier, SessionPhase

REPO_CONFIG = Path(__file__).resolve().parents[3] / "config"


def _market(market_id: str, tz_name: str, **extra) -> dict:
    entry = {
        "id": market_id,
        "name": market_id.upper(),
        "code": market_id.upper(),
        "country": f"Country {market_id}",
        "countryCode": market_id[:2].upper(),
        "timezone": tz_name,
        "openTime": "09:00",
        "closeTime": "17:00",
        "region": "Europe",
        "dstStart": None,
        "dstEnd": None,
    }
    entry.update(extra)
    return entry


def test_settings_defaults_are_filled_in(tmp_path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("system:\n  timezone: Europe/London\n")

    settings = load_settings(str(path))
    assert settings["system"]["timezone"] == "Europe/London"
    assert settings["runner"]["loop_interval_seconds"] == 1
    assert settings["display"]["opening_soon_minutes"] == 30
    assert settings["clock"] == {}


def test_settings_are_cached_until_reload(tmp_path) -> None:
    first = tmp_path / "a.yaml"
    first.write_text("runner:\n  loop_interval_seconds: 5\n")
    second = tmp_path / "b.yaml"
    second.write_text("runner:\n  loop_interval_seconds: 9\n")

    assert load_settings(str(first))["runner"]["loop_interval_seconds"] == 5
    assert load_settings(str(second))["runner"]["loop_interval_seconds"] == 5

    config_module.reload_configs()
    assert load_settings(str(second))["runner"]["loop_interval_seconds"] == 9


def test_invalid_yaml_is_a_value_error(tmp_path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("runner: [unclosed\n")
    with pytest.raises(ValueError):
        load_settings(str(path))


def test_non_mapping_settings_are_rejected(tmp_path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_settings(str(path))


def test_markets_are_loaded_and_sorted_east_to_west(tmp_path) -> None:
    path = tmp_path / "markets.json"
    path.write_text(json.dumps({"markets": [
        _market("nyse", "America/New_York"),
        _market("tse", "Asia/Tokyo", lunchStart="11:30", lunchEnd="12:30"),
        _market("lse", "Europe/London"),
    ]}))

    markets = load_markets_config(str(path))
    assert [m.id for m in markets] == ["tse", "lse", "nyse"]
    assert markets[0].lunch_start == "11:30"
    assert markets[0].has_lunch


def test_missing_markets_file_falls_back_to_defaults(tmp_path, log_events) -> None:
    markets = load_markets_config(str(tmp_path / "absent.json"))
    assert markets == DEFAULT_MARKETS
    assert "markets_config_fallback" in log_events()


def test_invalid_market_entry_falls_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "markets.json"
    path.write_text(json.dumps({"markets": [
        _market("hkex", "Asia/Hong_Kong", lunchStart="08:00", lunchEnd="13:00"),
    ]}))
    assert load_markets_config(str(path)) == DEFAULT_MARKETS


def test_invalid_market_entry_is_skipped_and_the_rest_kept(tmp_path, log_events) -> None:
    path = tmp_path / "markets.json"
    path.write_text(json.dumps({"markets": [
        _market("lse", "Europe/London"),
        _market("hkex", "Asia/Hong_Kong", lunchStart="08:00", lunchEnd="13:00"),
        {"id": "broken"},
    ]}))

    assert [m.id for m in load_markets_config(str(path))] == ["lse"]
    assert log_events().count("market_entry_skipped") == 2
    assert "markets_config_fallback" not in log_events()


def test_bad_holiday_entry_does_not_drop_the_calendar(tmp_path, nyse, log_events) -> None:
    path = tmp_path / "holidays.json"
    path.write_text(json.dumps({"2026": {
        "nyse": [{"date": "2026-12-25", "name": "Christmas Day", "status": "closed"}],
        "lse": [{"date": "2026-12-24", "name": "Christmas Eve", "status": "half-day"}],
    }}))

    calendar = load_holidays_config(str(path))
    assert calendar.years() == [2026]
    assert "holidays_config_fallback" not in log_events()

    state = SessionClassifier(calendar).classify(nyse, now=datetime(2026, 12, 25, 15, tzinfo=timezone.utc))
    assert state.phase == SessionPhase.HOLIDAY_CLOSED
    assert state.holiday_name == "Christmas Day"


def test_markets_document_without_list_falls_back(tmp_path) -> None:
    path = tmp_path / "markets.json"
    path.write_text(json.dumps({"exchanges": []}))
    assert load_markets_config(str(path)) == DEFAULT_MARKETS


def test_holidays_loaded_from_path(tmp_path) -> None:
    path = tmp_path / "holidays.json"
    path.write_text(json.dumps({"2026": {
        "nyse": [{"date": "2026-07-03", "name": "Independence Day (observed)", "status": "closed"}],
        "nasdaq": "nyse",
    }}))

    calendar = load_holidays_config(str(path))
    assert calendar.entry_for_date("nasdaq", "2026-07-03").name == "Independence Day (observed)"


def test_unreadable_holidays_mean_no_holidays(tmp_path, log_events) -> None:
    path = tmp_path / "holidays.json"
    path.write_text("{not json")

    calendar = load_holidays_config(str(path))
    assert calendar.years() == []
    assert "holidays_config_fallback" in log_events()


class _FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


def test_documents_can_be_fetched_over_http(monkeypatch) -> None:
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return _FakeResponse({"markets": [_market("six", "Europe/Zurich")]})

    monkeypatch.setattr(config_module.requests, "get", fake_get)
    markets = load_markets_config("https://example.test/markets-config.json")

    assert [m.id for m in markets] == ["six"]
    assert calls == [("https://example.test/markets-config.json", config_module.HTTP_TIMEOUT_SECONDS)]


def test_http_failure_falls_back(monkeypatch) -> None:
    monkeypatch.setattr(config_module.requests, "get", lambda url, timeout: _FakeResponse({}, 503))
    assert load_holidays_config("https://example.test/holidays.json").years() == []


def test_shipped_configuration_is_valid(log_events) -> None:
    markets = load_markets_config(str(REPO_CONFIG / "markets-config.json"))
    assert len(markets) > len(DEFAULT_MARKETS)
    assert {"nyse", "nasdaq", "tse", "hkex"} <= {m.id for m in markets}

    calendar = load_holidays_config(str(REPO_CONFIG / "holidays.json"))
    assert calendar.entries_for("nasdaq", 2026) == calendar.entries_for("nyse", 2026)

    settings = load_settings(str(REPO_CONFIG / "settings.yaml"))
    assert settings["data"]["markets_source"] == "markets-config.json"
    assert not [event for event in log_events() if event.endswith("_skipped")]
