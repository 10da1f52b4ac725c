"""
Event Log — append-only activity trail.

The timer, the time-log book and the project directory all report what they
did here. The audit view reads it back newest-first with optional filters.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from timesheet.clock import Clock, iso_from_ms, ms_to_datetime, parse_iso, system_clock
from timesheet.data.models import EventLogEntry
from timesheet.data.repository import Repository

logger = logging.getLogger(__name__)


class EventLog:
    def __init__(self, repo: Repository, clock: Clock = system_clock) -> None:
        self.repo = repo
        self.clock = clock

    def append(
        self,
        event_type: str,
        message: str,
        username: Optional[str] = None,
        project_code: Optional[str] = None,
        **details: Any,
    ) -> EventLogEntry:
        """Record one event. Entries are never mutated or reordered afterwards."""
        entry = EventLogEntry(
            type=event_type,
            timestamp=iso_from_ms(self.clock()),
            username=username or "unknown",
            message=message,
            project_code=project_code or None,
            details=details,
        )
        events = self.repo.load_event_logs()
        events.append(entry)
        self.repo.save_event_logs(events)
        logger.debug("Event %s: %s", event_type, message)
        return entry

    def list_events(
        self,
        username: Optional[str] = None,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> List[EventLogEntry]:
        """Filtered events, newest first."""
        events = self.repo.load_event_logs()
        if username:
            events = [e for e in events if e.username == username]
        if event_type:
            events = [e for e in events if e.type == event_type]
        if since is not None:
            events = [e for e in events if self._when(e) >= since]
        if search:
            term = search.lower()
            events = [
                e for e in events
                if term in (e.message or "").lower()
                or term in (e.project_code or "").lower()
                or term in (e.username or "").lower()
            ]
        return sorted(events, key=self._when, reverse=True)

    def activity_summary(self, events: Optional[List[EventLogEntry]] = None) -> Dict[str, Any]:
        """Counts by type and user plus how many happened in the last 24 hours."""
        if events is None:
            events = self.repo.load_event_logs()
        cutoff = ms_to_datetime(self.clock()) - timedelta(days=1)
        return {
            "total": len(events),
            "by_type": dict(Counter(e.type for e in events)),
            "by_user": dict(Counter(e.username for e in events)),
            "recent_24h": sum(1 for e in events if self._when(e) >= cutoff),
        }

    def clear(self) -> None:
        self.repo.clear_event_logs()
        logger.info("Event log cleared.")

    @staticmethod
    def _when(event: EventLogEntry) -> datetime:
        try:
            return parse_iso(event.timestamp)
        except ValueError:
            return _EPOCH


_EPOCH = ms_to_datetime(0)
