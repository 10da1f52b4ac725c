"""
Repository — the single place where storage keys live.

Every service talks to Repository, never to the raw store. Values are JSON;
a failing or corrupt store is logged and treated as best-effort so the app
keeps working in memory even if nothing survives a restart.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, Optional

from timesheet.errors import PersistenceError

from .database import KeyValueStore
from .models import BudgetAlert, EventLogEntry, Project, TimeLogEntry, TimerState

logger = logging.getLogger(__name__)

TIME_LOGS_KEY = "timesheetLogs"
EVENT_LOGS_KEY = "timesheetEventLogs"
PROJECTS_KEY = "timesheetProjects"
TIMER_STATE_KEY = "timesheetTimerState"
ALERTS_KEY = "timesheetBudgetAlerts"
SELECTED_PROJECT_KEY = "timesheetCurrentProject"

ALL_KEYS = (
    TIME_LOGS_KEY,
    EVENT_LOGS_KEY,
    PROJECTS_KEY,
    TIMER_STATE_KEY,
    ALERTS_KEY,
    SELECTED_PROJECT_KEY,
)


class Repository:
    """Typed JSON access on top of a KeyValueStore."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # ── Generic JSON access ─────────────────────────────────────────────────

    def get_json(self, key: str, default: Any = None) -> Any:
        try:
            raw = self.store.get(key)
        except PersistenceError as exc:
            logger.error("Error loading %s: %s", key, exc)
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt JSON under %s, using default.", key)
            return default

    def set_json(self, key: str, value: Any) -> bool:
        try:
            self.store.set(key, json.dumps(value))
            return True
        except PersistenceError as exc:
            logger.error("Error saving %s: %s", key, exc)
            return False

    def remove(self, key: str) -> bool:
        try:
            self.store.remove(key)
            return True
        except PersistenceError as exc:
            logger.error("Error removing %s: %s", key, exc)
            return False

    def _load_list(self, key: str) -> list:
        value = self.get_json(key, [])
        if not isinstance(value, list):
            logger.warning("Expected a list under %s, got %s.", key, type(value).__name__)
            return []
        return value

    def _load_records(self, key: str, from_dict: Callable[[dict], Any]) -> list:
        """Decode each record on its own; unreadable ones are logged and skipped."""
        records = []
        for item in self._load_list(key):
            try:
                if not isinstance(item, dict):
                    raise TypeError(type(item).__name__)
                records.append(from_dict(item))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable record under %s: %s", key, exc)
        return records

    # ── Time logs ───────────────────────────────────────────────────────────

    def load_time_logs(self) -> List[TimeLogEntry]:
        return self._load_records(TIME_LOGS_KEY, TimeLogEntry.from_dict)

    def save_time_logs(self, logs: List[TimeLogEntry]) -> bool:
        return self.set_json(TIME_LOGS_KEY, [log.to_dict() for log in logs])

    def clear_time_logs(self) -> bool:
        return self.remove(TIME_LOGS_KEY)

    # ── Event logs ──────────────────────────────────────────────────────────

    def load_event_logs(self) -> List[EventLogEntry]:
        return self._load_records(EVENT_LOGS_KEY, EventLogEntry.from_dict)

    def save_event_logs(self, events: List[EventLogEntry]) -> bool:
        return self.set_json(EVENT_LOGS_KEY, [e.to_dict() for e in events])

    def clear_event_logs(self) -> bool:
        return self.remove(EVENT_LOGS_KEY)

    # ── Projects ────────────────────────────────────────────────────────────

    def has_projects(self) -> bool:
        return self.get_json(PROJECTS_KEY) is not None

    def load_projects(self) -> List[Project]:
        return self._load_records(PROJECTS_KEY, Project.from_dict)

    def save_projects(self, projects: List[Project]) -> bool:
        return self.set_json(PROJECTS_KEY, [p.to_dict() for p in projects])

    # ── Timer state ─────────────────────────────────────────────────────────

    def load_timer_state(self) -> Optional[TimerState]:
        value = self.get_json(TIMER_STATE_KEY)
        if not isinstance(value, dict):
            return None
        try:
            return TimerState.from_dict(value)
        except (TypeError, ValueError):
            logger.warning("Unreadable timer state %r, ignoring.", value)
            return None

    def save_timer_state(self, state: TimerState) -> bool:
        return self.set_json(TIMER_STATE_KEY, state.to_dict())

    # ── Budget alerts ───────────────────────────────────────────────────────

    def load_alerts(self) -> List[BudgetAlert]:
        return self._load_records(ALERTS_KEY, BudgetAlert.from_dict)

    def save_alerts(self, alerts: List[BudgetAlert]) -> bool:
        return self.set_json(ALERTS_KEY, [a.to_dict() for a in alerts])

    # ── Selected project ────────────────────────────────────────────────────

    def load_selected_project(self) -> Optional[str]:
        value = self.get_json(SELECTED_PROJECT_KEY)
        return value if isinstance(value, str) and value else None

    def save_selected_project(self, code: Optional[str]) -> bool:
        if not code:
            return self.remove(SELECTED_PROJECT_KEY)
        return self.set_json(SELECTED_PROJECT_KEY, code)

    # ── Housekeeping ────────────────────────────────────────────────────────

    def reset_all_data(self) -> None:
        """Delete every tracker key. Requires explicit confirmation in the UI."""
        for key in ALL_KEYS:
            self.remove(key)
        logger.warning("All timesheet data has been reset.")
