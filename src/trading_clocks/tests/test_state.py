import pytest

from trading_clocks.core import state
from trading_clocks.markets import TimeOverride


@pytest.fixture(autouse=True)
def store(tmp_path):
    state.init_state_store(str(tmp_path / "state" / "preferences.db"))
    yield
    state.close_state_store()


def test_values_round_trip_as_json() -> None:
    state.set_state("viewer.last_tab", {"tab": "schedule", "pinned": ["nyse"]})
    assert state.get_state("viewer.last_tab") == {"tab": "schedule", "pinned": ["nyse"]}


def test_missing_key_returns_default() -> None:
    assert state.get_state("nope") is None
    assert state.get_state("nope", 7) == 7


def test_delete_state() -> None:
    state.set_state("k", 1)
    state.delete_state("k")
    assert state.get_state("k", "gone") == "gone"


def test_invalid_key_and_value_are_rejected() -> None:
    with pytest.raises(ValueError):
        state.set_state("  ", 1)
    with pytest.raises(ValueError):
        state.set_state("k", object())


def test_selected_markets_default_until_saved() -> None:
    assert state.get_selected_markets(["nyse", "lse"]) == ["nyse", "lse"]

    state.save_selected_markets(["tse", "hkex"])
    assert state.get_selected_markets(["nyse"]) == ["tse", "hkex"]


def test_corrupt_selection_falls_back_to_default() -> None:
    state.set_state(state.SELECTED_MARKETS_KEY, "nyse")
    assert state.get_selected_markets(["nyse"]) == ["nyse"]


def test_time_overrides_are_saved_and_cleared() -> None:
    state.save_time_override("nyse", TimeOverride(open_time="10:00"))
    state.save_time_override("lse", TimeOverride(open_time="08:30", close_time="16:00"))

    overrides = state.get_time_overrides()
    assert overrides["nyse"] == TimeOverride(open_time="10:00", close_time=None)
    assert overrides["lse"].close_time == "16:00"

    state.clear_time_override("nyse")
    assert set(state.get_time_overrides()) == {"lse"}


def test_empty_override_removes_entry() -> None:
    state.save_time_override("nyse", TimeOverride(open_time="10:00"))
    state.save_time_override("nyse", TimeOverride())
    assert state.get_time_overrides() == {}


def test_bad_stored_override_is_skipped(log_events) -> None:
    state.set_state(state.TIME_OVERRIDES_KEY, {
        "nyse": {"openTime": "25:99"},
        "lse": {"closeTime": "16:00"},
    })
    assert list(state.get_time_overrides()) == ["lse"]
    assert "warn" in log_events()


def test_preferences_survive_reopen(tmp_path) -> None:
    state.save_selected_markets(["asx"])
    state.close_state_store()
    assert state.get_selected_markets([]) == ["asx"]
