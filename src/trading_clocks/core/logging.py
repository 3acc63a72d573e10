"""JSONL file logger for clock and session events"""
import os
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_jsonl_logger: Optional["JsonlLogger"] = None

DEFAULT_LOG_PATH = "./logs/app.jsonl"


class JsonlLogger:
    def __init__(self, log_path: Optional[str] = None):
        self.log_path = log_path or os.environ.get("TRADING_CLOCKS_LOG_PATH", DEFAULT_LOG_PATH)
        log_dir = os.path.dirname(self.log_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        self._setup_console_logging()

    def _setup_console_logging(self) -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=[logging.StreamHandler(sys.stderr)]
        )
        self._console = logging.getLogger("trading_clocks")

    def log(self, event_type: str, data: Optional[Dict[str, Any]] = None) -> None:
        if data is None:
            data = {}

        entry = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "event": event_type,
            **data
        }

        try:
            with open(self.log_path, "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            self._console.error(f"Failed to write JSONL: {e}")

        level = logging.INFO
        if any(word in event_type for word in ("error", "warn", "exhausted", "fallback", "skipped")):
            level = logging.WARNING
        self._console.log(level, f"[{event_type}] {json.dumps(data, default=str)}")

    def info(self, msg: str, **kwargs: Any) -> None:
        self.log("info", {"message": msg, **kwargs})

    def warn(self, msg: str, **kwargs: Any) -> None:
        self.log("warn", {"message": msg, **kwargs})

    def error(self, msg: str, **kwargs: Any) -> None:
        self.log("error", {"message": msg, **kwargs})


def get_logger() -> JsonlLogger:
    global _jsonl_logger
    if _jsonl_logger is None:
        _jsonl_logger = JsonlLogger()
    return _jsonl_logger


def reset_logger() -> None:
    global _jsonl_logger
    _jsonl_logger = None
