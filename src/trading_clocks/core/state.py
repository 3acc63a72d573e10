"""SQLite-backed store for user preferences (selected markets, time overrides)"""
import os
import json
import sqlite3
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from .logging import get_logger
from ..markets import TimeOverride

SELECTED_MARKETS_KEY = "preferences.selected_markets"
TIME_OVERRIDES_KEY = "preferences.time_overrides"

_conn: Optional[sqlite3.Connection] = None
_db_path = os.environ.get("TRADING_CLOCKS_STATE_DB", "./state/preferences.db")


def _get_connection() -> sqlite3.Connection:
    global _conn
    if _conn is None:
        db_dir = os.path.dirname(_db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        _conn = sqlite3.connect(_db_path, check_same_thread=False)
        _conn.row_factory = sqlite3.Row
    return _conn


def init_state_store(db_path: Optional[str] = None) -> None:
    global _db_path
    if db_path and db_path != _db_path:
        close_state_store()
        _db_path = db_path

    logger = get_logger()
    logger.log("state_store_init", {"path": _db_path})

    conn = _get_connection()
    conn.execute("""
        CREATE TABLE IF NOT EXISTS state (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.commit()
    logger.log("state_store_ready", {"path": _db_path})


def get_state(key: str, default: Any = None) -> Any:
    try:
        conn = _get_connection()
        cursor = conn.execute("SELECT value FROM state WHERE key = ?", (key,))
        row = cursor.fetchone()
        if row:
            return json.loads(row["value"])
        return default
    except (sqlite3.Error, ValueError) as e:
        get_logger().error(f"State get error: {e}", key=key)
        return default


def set_state(key: str, value: Any) -> None:
    if not isinstance(key, str) or not key.strip():
        raise ValueError("State key must be a non-empty string")

    try:
        json_value = json.dumps(value)
    except (TypeError, ValueError) as e:
        get_logger().error(f"State serialization error: {e}", key=key)
        raise ValueError(f"Cannot serialize value for key '{key}': {e}")

    try:
        conn = _get_connection()
        now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        conn.execute("""
            INSERT OR REPLACE INTO state (key, value, updated_at)
            VALUES (?, ?, ?)
        """, (key, json_value, now))
        conn.commit()
    except sqlite3.Error as e:
        get_logger().error(f"State set error: {e}", key=key)
        raise


def delete_state(key: str) -> None:
    try:
        conn = _get_connection()
        conn.execute("DELETE FROM state WHERE key = ?", (key,))
        conn.commit()
    except sqlite3.Error as e:
        get_logger().error(f"State delete error: {e}", key=key)


def close_state_store() -> None:
    global _conn
    if _conn:
        _conn.close()
        _conn = None


def get_selected_markets(default_markets: List[str]) -> List[str]:
    stored = get_state(SELECTED_MARKETS_KEY)
    if isinstance(stored, list) and all(isinstance(item, str) for item in stored):
        return stored
    return list(default_markets)


def save_selected_markets(market_ids: List[str]) -> None:
    set_state(SELECTED_MARKETS_KEY, list(market_ids))


def get_time_overrides() -> Dict[str, TimeOverride]:
    stored = get_state(TIME_OVERRIDES_KEY, {})
    if not isinstance(stored, dict):
        return {}

    overrides = {}
    for market_id, value in stored.items():
        try:
            override = TimeOverride.from_dict(value)
        except (AttributeError, ValueError) as e:
            get_logger().warn(f"Ignoring stored override: {e}", market=market_id)
            continue
        if not override.is_empty:
            overrides[market_id] = override
    return overrides


def save_time_override(market_id: str, override: Optional[TimeOverride]) -> None:
    stored = get_state(TIME_OVERRIDES_KEY, {})
    if not isinstance(stored, dict):
        stored = {}

    if override is None or override.is_empty:
        stored.pop(market_id, None)
    else:
        stored[market_id] = override.to_dict()
    set_state(TIME_OVERRIDES_KEY, stored)


def clear_time_override(market_id: str) -> None:
    save_time_override(market_id, None)
