"""
Time Log Book — owns the TimeLogEntry collection.

Entries are created by the timer (save / auto-save) and edited or deleted
from the time-entries view. The in-memory cache is re-read from the store
after every mutation so it never drifts from what is persisted.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from timesheet.clock import Clock, iso_from_ms, system_clock
from timesheet.data.models import EventType, TimeLogEntry
from timesheet.data.repository import Repository
from timesheet.errors import NotFoundError, ValidationError
from timesheet.services.event_log import EventLog

logger = logging.getLogger(__name__)


def parse_hhmm(text: str) -> int:
    """'HH:MM' → seconds. Raises ValidationError on anything else."""
    try:
        hours_s, minutes_s = text.strip().split(":")
        hours, minutes = int(hours_s), int(minutes_s)
    except ValueError:
        raise ValidationError(f"Invalid time {text!r}, expected HH:MM") from None
    if hours < 0 or not 0 <= minutes < 60:
        raise ValidationError(f"Invalid time {text!r}, expected HH:MM")
    return hours * 3600 + minutes * 60


class TimeLogBook:
    def __init__(
        self,
        repo: Repository,
        event_log: EventLog,
        clock: Clock = system_clock,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.repo = repo
        self.event_log = event_log
        self.clock = clock
        self.on_change = on_change
        self._entries: List[TimeLogEntry] = self.repo.load_time_logs()

    # ── Queries ─────────────────────────────────────────────────────────────

    @property
    def entries(self) -> List[TimeLogEntry]:
        return list(self._entries)

    def list_entries(self, username: Optional[str] = None) -> List[TimeLogEntry]:
        if username is None:
            return list(self._entries)
        return [e for e in self._entries if e.username == username]

    def for_project(self, project_code: str) -> List[TimeLogEntry]:
        return [e for e in self._entries if e.project_code == project_code]

    def get(self, entry_id: str) -> Optional[TimeLogEntry]:
        for e in self._entries:
            if e.id == entry_id:
                return e
        return None

    def weekly_grid(self, username: str, today: date) -> Dict[str, Dict[str, float]]:
        """
        Hours per project per day for the Monday-start week containing
        ``today``. Only projects the user logged that week appear.
        """
        monday = today - timedelta(days=today.weekday())
        week_keys = [(monday + timedelta(days=i)).isoformat() for i in range(7)]
        grid: Dict[str, Dict[str, float]] = {}
        for e in self.list_entries(username):
            try:
                key = e.date_key
            except ValueError:
                logger.debug("Skipping time log %s with bad timestamp", e.id)
                continue
            if key not in week_keys:
                continue
            row = grid.setdefault(e.project_code, {k: 0.0 for k in week_keys})
            row[key] += e.hours
        return grid

    # ── Mutations ───────────────────────────────────────────────────────────

    def record(
        self,
        project_code: str,
        seconds: int,
        username: str,
        notes: Optional[str] = None,
    ) -> TimeLogEntry:
        """Create and persist a new entry stamped with a fresh id and now()."""
        entry = TimeLogEntry(
            id=uuid.uuid4().hex,
            project_code=project_code,
            time_spent_seconds=int(seconds),
            timestamp=iso_from_ms(self.clock()),
            username=username or "unknown",
            notes=notes,
        )
        self.add(entry)
        return entry

    def add(self, entry: TimeLogEntry) -> None:
        logs = self.repo.load_time_logs()
        logs.append(entry)
        if not self.repo.save_time_logs(logs):
            # keep the entry in memory even if the store refused it
            self._entries.append(entry)
            self._notify()
            return
        self._reload()

    def update(
        self,
        entry_id: str,
        username: str,
        project_code: Optional[str] = None,
        time_spent_seconds: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> TimeLogEntry:
        """Rewrite project/time/notes in place. id and timestamp are preserved."""
        if project_code is not None and not project_code:
            raise ValidationError("Please select a project")
        if time_spent_seconds is not None and time_spent_seconds <= 0:
            raise ValidationError("Please enter a valid time")

        logs = self.repo.load_time_logs()
        for entry in logs:
            if entry.id == entry_id:
                break
        else:
            raise NotFoundError(f"Time entry {entry_id} not found")

        self._check_owner(entry, username)
        if project_code is not None:
            entry.project_code = project_code
        if time_spent_seconds is not None:
            entry.time_spent_seconds = int(time_spent_seconds)
        if notes is not None:
            entry.notes = notes or None
        self.repo.save_time_logs(logs)
        self._reload()

        self.event_log.append(
            EventType.LOG_EDITED,
            f"Edited time entry for project {entry.project_code}",
            username=username,
            project_code=entry.project_code,
        )
        return entry

    def delete(self, entry_id: str, username: str) -> TimeLogEntry:
        logs = self.repo.load_time_logs()
        target = next((e for e in logs if e.id == entry_id), None)
        if target is None:
            raise NotFoundError(f"Time entry {entry_id} not found")
        self._check_owner(target, username)
        self.repo.save_time_logs([e for e in logs if e.id != entry_id])
        self._reload()

        self.event_log.append(
            EventType.LOG_DELETED,
            f"Deleted time entry for project {target.project_code}",
            username=username,
            project_code=target.project_code,
        )
        return target

    def clear(self) -> None:
        self.repo.clear_time_logs()
        self._reload()
        logger.warning("All time logs cleared.")

    def refresh(self) -> None:
        """Re-read from the store (e.g. after another window wrote to it)."""
        self._reload()

    # ── Internal ────────────────────────────────────────────────────────────

    @staticmethod
    def _check_owner(entry: TimeLogEntry, username: str) -> None:
        if entry.username != username:
            raise ValidationError("You can only change your own time entries")

    def _reload(self) -> None:
        self._entries = self.repo.load_time_logs()
        self._notify()

    def _notify(self) -> None:
        if self.on_change:
            self.on_change()
