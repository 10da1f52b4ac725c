"""
Configuration — JSON file merged over built-in defaults.

The file lives at config/timesheet.json. Missing keys fall back to
DEFAULT_CONFIG so an old config never breaks a newer build.
"""

from __future__ import annotations

import copy
import getpass
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "timesheet.json"
DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "timesheet_tracker.db"

DEFAULT_CONFIG = {
    "username": "",
    "db_path": "",
    "timer": {
        "tick_interval_ms": 1000,
        "idle_check_interval_ms": 60_000,
        "idle_threshold_minutes": 30,
        "stale_entry_hours": 24,
    },
    "forecast": {
        "history_days": 30,
        "horizon_days": 30,
        "moving_average_window": 3,
        "high_rate_threshold": 2.0,
        "low_rate_threshold": 0.5,
    },
    "budget": {
        "warning_percent": 80.0,
        "exceeded_percent": 100.0,
    },
}


def load_config(path: Optional[Path] = None) -> dict:
    path = path or CONFIG_PATH
    merged = copy.deepcopy(DEFAULT_CONFIG)
    if not path.exists():
        return merged
    try:
        with open(path, encoding="utf-8") as f:
            cfg = json.load(f)
    except (OSError, json.JSONDecodeError):
        logger.warning("Bad config at %s, using defaults.", path)
        return merged
    for key, value in cfg.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def resolve_username(config: dict) -> str:
    """Configured username, else the OS login name."""
    if config.get("username"):
        return config["username"]
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def resolve_db_path(config: dict) -> Path:
    return Path(config["db_path"]) if config.get("db_path") else DEFAULT_DB_PATH


@dataclass(frozen=True)
class TimerSettings:
    tick_interval_ms: int = 1000
    idle_check_interval_ms: int = 60_000
    idle_threshold_minutes: float = 30
    stale_entry_hours: float = 24

    @classmethod
    def from_config(cls, config: dict) -> "TimerSettings":
        t = config.get("timer", {})
        return cls(
            tick_interval_ms=int(t.get("tick_interval_ms", cls.tick_interval_ms)),
            idle_check_interval_ms=int(
                t.get("idle_check_interval_ms", cls.idle_check_interval_ms)
            ),
            idle_threshold_minutes=float(
                t.get("idle_threshold_minutes", cls.idle_threshold_minutes)
            ),
            stale_entry_hours=float(t.get("stale_entry_hours", cls.stale_entry_hours)),
        )


@dataclass(frozen=True)
class ForecastThresholds:
    """Daily-rate cut-offs (hours/day) used for trend labels."""
    history_days: int = 30
    horizon_days: int = 30
    moving_average_window: int = 3
    high_rate_threshold: float = 2.0
    low_rate_threshold: float = 0.5

    @classmethod
    def from_config(cls, config: dict) -> "ForecastThresholds":
        f = config.get("forecast", {})
        return cls(
            history_days=int(f.get("history_days", cls.history_days)),
            horizon_days=int(f.get("horizon_days", cls.horizon_days)),
            moving_average_window=int(
                f.get("moving_average_window", cls.moving_average_window)
            ),
            high_rate_threshold=float(
                f.get("high_rate_threshold", cls.high_rate_threshold)
            ),
            low_rate_threshold=float(f.get("low_rate_threshold", cls.low_rate_threshold)),
        )


@dataclass(frozen=True)
class BudgetThresholds:
    warning_percent: float = 80.0
    exceeded_percent: float = 100.0

    @classmethod
    def from_config(cls, config: dict) -> "BudgetThresholds":
        b = config.get("budget", {})
        return cls(
            warning_percent=float(b.get("warning_percent", cls.warning_percent)),
            exceeded_percent=float(b.get("exceeded_percent", cls.exceeded_percent)),
        )
