"""Configuration loader for YAML settings and JSON market/holiday documents"""
import os
import json
import yaml
import requests
from typing import Any, Dict, List, Optional

from .logging import get_logger
from ..holidays import HolidayCalendar
from ..markets import DEFAULT_MARKETS, Market, sort_by_gmt_offset

_settings_cache: Optional[Dict[str, Any]] = None

HTTP_TIMEOUT_SECONDS = 10


def _find_config_path(filename: str) -> str:
    possible_paths = [
        os.path.join(os.getcwd(), "config", filename),
        os.path.join(os.path.dirname(__file__), "..", "..", "..", "config", filename),
    ]

    for p in possible_paths:
        if os.path.exists(p):
            return p

    raise FileNotFoundError(f"Config file not found: {filename}. Searched: {possible_paths}")


def load_settings(config_path: Optional[str] = None) -> Dict[str, Any]:
    global _settings_cache
    if _settings_cache is not None:
        return _settings_cache

    try:
        file_path = config_path or _find_config_path("settings.yaml")
        with open(file_path, "r") as f:
            settings = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in settings file: {e}")

    if settings is None:
        settings = {}
    if not isinstance(settings, dict):
        raise ValueError("Settings file must contain a dictionary")

    # Ensure runner config exists with defaults
    runner = settings.setdefault("runner", {})
    runner.setdefault("loop_interval_seconds", 1)

    display = settings.setdefault("display", {})
    display.setdefault("opening_soon_minutes", 30)
    display.setdefault("closing_soon_minutes", 30)

    settings.setdefault("data", {})
    settings.setdefault("clock", {})

    _settings_cache = settings
    return _settings_cache


def reload_configs() -> None:
    global _settings_cache
    _settings_cache = None


def _read_json_document(source: str) -> Any:
    if source.startswith(("http://", "https://")):
        response = requests.get(source, timeout=HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()

    path = source if os.path.isabs(source) or os.path.exists(source) else _find_config_path(source)
    with open(path, "r") as f:
        return json.load(f)


def _data_source(key: str, default: str) -> str:
    try:
        settings = load_settings()
    except FileNotFoundError:
        return default
    return settings.get("data", {}).get(key) or default


def load_markets_config(source: Optional[str] = None) -> List[Market]:
    """Load the market list, skipping invalid entries.

    The built-in defaults are returned when the document cannot be read or holds
    no usable market.
    """
    logger = get_logger()
    source = source or _data_source("markets_source", "markets-config.json")

    try:
        document = _read_json_document(source)
        entries = document.get("markets") if isinstance(document, dict) else None
        if not isinstance(entries, list):
            raise ValueError("Markets document must contain a 'markets' list")
    except (OSError, ValueError, requests.RequestException) as e:
        logger.log("markets_config_fallback", {"source": source, "error": str(e)})
        return list(DEFAULT_MARKETS)

    markets = []
    for entry in entries:
        try:
            markets.append(Market.from_dict(entry))
        except ValueError as e:
            logger.log("market_entry_skipped", {"source": source, "error": str(e)})

    if not markets:
        logger.log("markets_config_fallback", {"source": source, "error": "no valid market entries"})
        return list(DEFAULT_MARKETS)

    markets = sort_by_gmt_offset(markets)
    logger.log("markets_config_loaded", {"source": source, "count": len(markets)})
    return markets


def load_holidays_config(source: Optional[str] = None) -> HolidayCalendar:
    """Load the holiday calendar; an unreadable document means no holidays."""
    logger = get_logger()
    source = source or _data_source("holidays_source", "holidays.json")

    try:
        calendar = HolidayCalendar.from_document(_read_json_document(source))
    except (OSError, ValueError, requests.RequestException) as e:
        logger.log("holidays_config_fallback", {"source": source, "error": str(e)})
        return HolidayCalendar()

    logger.log("holidays_config_loaded", {"source": source, "years": calendar.years()})
    return calendar
