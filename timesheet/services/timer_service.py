"""
Timer Service — the stopwatch state machine.

States:
    Stopped(elapsed)  ──start──▶  Running(started_at)
    Running           ──pause──▶  Stopped(elapsed frozen)
    any               ──reset──▶  Stopped(0)
    any, elapsed > 0  ──save───▶  Stopped(0) + TimeLogEntry

While running, elapsed time is always recomputed from the wall clock
(floor((now - started_at) / 1000)) instead of counting ticks, so suspended
processes, throttled event loops and restarts cannot make it drift.
Switching the selected project while running books the accrued time to the
old project and restarts the stopwatch for the new one.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from timesheet.clock import Clock, system_clock
from timesheet.config import TimerSettings
from timesheet.data.models import EventType, TimeLogEntry, TimerState
from timesheet.data.repository import Repository
from timesheet.errors import StaleEntryWarning, ValidationError
from timesheet.services.alerts import BudgetAlertEngine
from timesheet.services.event_log import EventLog
from timesheet.services.time_log import TimeLogBook

logger = logging.getLogger(__name__)


def format_elapsed(seconds: int) -> str:
    """Seconds → 'HH:MM:SS'."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class TimerService:
    """
    Single stopwatch per client session.

    Invalid transitions (pause while stopped, start while running) return
    False and change nothing. Storage failures are logged by the repository
    and otherwise ignored: the timer keeps working, it just won't survive a
    restart.
    """

    def __init__(
        self,
        repo: Repository,
        event_log: EventLog,
        time_logs: TimeLogBook,
        alert_engine: Optional[BudgetAlertEngine] = None,
        clock: Clock = system_clock,
        settings: TimerSettings = TimerSettings(),
        username: str = "unknown",
        on_change: Optional[Callable[[TimerState], None]] = None,
        on_idle: Optional[Callable[[], None]] = None,
        on_time_logged: Optional[Callable[[TimeLogEntry], None]] = None,
    ) -> None:
        self.repo = repo
        self.event_log = event_log
        self.time_logs = time_logs
        self.alert_engine = alert_engine
        self.clock = clock
        self.settings = settings
        self.username = username

        # Callbacks the UI will set
        self.on_change = on_change
        self.on_idle = on_idle
        self.on_time_logged = on_time_logged

        self._running = False
        self._elapsed = 0
        self._started_at: Optional[int] = None
        self._project: Optional[str] = None
        self._project_established = False
        self._last_activity_ms: Optional[int] = None
        self._idle_alert = False

    # ── Read-only view ──────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def started_at_ms(self) -> Optional[int]:
        return self._started_at

    @property
    def project(self) -> Optional[str]:
        return self._project

    @property
    def idle_alert_active(self) -> bool:
        return self._idle_alert

    @property
    def formatted_elapsed(self) -> str:
        return format_elapsed(self._elapsed)

    @property
    def state(self) -> TimerState:
        return TimerState(
            running=self._running,
            elapsed_seconds=self._elapsed,
            started_at_ms=self._started_at if self._running else None,
        )

    # ── Recovery ────────────────────────────────────────────────────────────

    def restore(self) -> TimerState:
        """
        Rebuild state from storage. A running timer's truth is the wall-clock
        delta since it started; a stopped timer's truth is its frozen counter.
        The persisted project selection becomes the baseline assignment.
        """
        now = self.clock()
        saved = self.repo.load_timer_state()

        if saved is not None and saved.running and saved.started_at_ms is not None:
            self._running = True
            self._started_at = saved.started_at_ms
            self._elapsed = self._wall_elapsed(now)
            self._last_activity_ms = now
            logger.info("Restored running timer: %s elapsed", format_elapsed(self._elapsed))
        elif saved is not None:
            self._running = False
            self._started_at = None
            self._elapsed = saved.elapsed_seconds
            logger.info("Restored stopped timer at %s", format_elapsed(self._elapsed))
        else:
            self._running = False
            self._started_at = None
            self._elapsed = 0
        self._idle_alert = False

        selected = self.repo.load_selected_project()
        if selected:
            self._project = selected
            self._project_established = True

        self._persist()
        return self.state

    # ── Transitions ─────────────────────────────────────────────────────────

    def start(self) -> bool:
        """Start counting from zero for the selected project."""
        if self._running:
            logger.debug("Start ignored: timer already running.")
            return False
        if not self._project:
            raise ValidationError("Please select a project before starting the timer")

        now = self.clock()
        self.event_log.append(
            EventType.TIMER_START,
            f"Started timer for project {self._project}",
            username=self.username,
            project_code=self._project,
        )
        self._running = True
        self._started_at = now
        self._elapsed = 0
        self._last_activity_ms = now
        self._idle_alert = False
        self._persist()
        logger.info("Timer started for %s", self._project)
        return True

    def pause(self) -> bool:
        """Freeze the current elapsed value."""
        if not self._running:
            logger.debug("Pause ignored: timer not running.")
            return False

        self._elapsed = self._wall_elapsed(self.clock())
        self.event_log.append(
            EventType.TIMER_PAUSE,
            f"Paused timer at {format_elapsed(self._elapsed)}",
            username=self.username,
            project_code=self._project,
        )
        self._running = False
        self._idle_alert = False
        self._persist()
        logger.info("Timer paused at %s", format_elapsed(self._elapsed))
        return True

    def reset(self) -> bool:
        self.event_log.append(
            EventType.TIMER_RESET,
            "Timer reset",
            username=self.username,
            project_code=self._project,
        )
        self._stop_and_clear()
        logger.info("Timer reset.")
        return True

    def save(self, confirmed: bool = False) -> Optional[TimeLogEntry]:
        """
        Book the elapsed time against the selected project.

        Returns None (and does nothing) when there is no time to save. Raises
        StaleEntryWarning, without changing any state, when the entry spans
        more than the stale threshold and ``confirmed`` is False.
        """
        now = self.clock()
        if self._running:
            self._elapsed = self._wall_elapsed(now)
        if self._elapsed <= 0:
            return None
        if not self._project:
            raise ValidationError("Please select a project before saving time")

        if self._started_at is not None:
            hours = (now - self._started_at) / 3_600_000
            if hours > self.settings.stale_entry_hours and not confirmed:
                raise StaleEntryWarning(hours)

        project, seconds = self._project, self._elapsed
        self._stop_and_clear()

        entry = self.time_logs.record(project, seconds, self.username)
        self.event_log.append(
            EventType.TIME_SAVED,
            f"Saved {format_elapsed(seconds)} for project {project}",
            username=self.username,
            project_code=project,
            timeSpent=seconds,
        )
        logger.info("Saved %s for %s", format_elapsed(seconds), project)
        self._after_time_logged(entry)
        return entry

    def set_project(self, code: Optional[str]) -> Optional[TimeLogEntry]:
        """
        Change the selected project.

        The first assignment only establishes a baseline. Later changes while
        running with accrued time auto-save that time to the old project and
        restart the stopwatch for the new one. Clearing the selection while
        running stops the timer once that time is saved. Returns the
        auto-saved entry.
        """
        code = code or None
        if not self._project_established:
            self._project = code
            self._project_established = True
            self.repo.save_selected_project(code)
            self._notify()
            return None
        if code == self._project:
            return None

        previous = self._project
        auto_saved: Optional[TimeLogEntry] = None
        if self._running and previous and self._started_at is not None:
            now = self.clock()
            elapsed = self._wall_elapsed(now)
            if elapsed > 0:
                auto_saved = self._reassign(previous, code, elapsed, now)

        self._project = code
        if code is None and self._running:
            # no project to book the next stretch against
            self._stop_and_clear()
            logger.info("Timer stopped: project selection cleared.")
        self.repo.save_selected_project(code)
        if previous:
            self.event_log.append(
                EventType.PROJECT_SWITCH,
                f"Switched from {previous} to {code}",
                username=self.username,
                project_code=code,
                previousProject=previous,
            )
        self._notify()
        if auto_saved is not None:
            self._after_time_logged(auto_saved)
        return auto_saved

    # ── Periodic callbacks ──────────────────────────────────────────────────

    def tick(self) -> int:
        """Recompute elapsed from the wall clock. Called every second while running."""
        if not self._running or self._started_at is None:
            return self._elapsed
        elapsed = self._wall_elapsed(self.clock())
        if elapsed != self._elapsed:
            self._elapsed = elapsed
            self._persist()
        return self._elapsed

    def idle_check(self) -> bool:
        """Raise the idle flag after the configured minutes without activity."""
        if not self._running or self._idle_alert:
            return False
        now = self.clock()
        last = self._last_activity_ms if self._last_activity_ms is not None else now
        threshold_ms = self.settings.idle_threshold_minutes * 60_000
        if now - last < threshold_ms:
            return False

        self._idle_alert = True
        self.event_log.append(
            EventType.IDLE_ALERT,
            f"Timer has been running for {self.settings.idle_threshold_minutes:g}+ "
            f"minutes without activity",
            username=self.username,
            project_code=self._project,
        )
        logger.info("Idle alert raised for %s", self._project)
        self._notify()
        if self.on_idle:
            self.on_idle()
        return True

    def acknowledge_idle(self) -> None:
        """User is back: clear the idle flag and restart the idle window."""
        self._last_activity_ms = self.clock()
        self._idle_alert = False
        self._notify()

    # ── Host lifecycle hooks ────────────────────────────────────────────────

    def on_foreground(self) -> int:
        """The host regained visibility; catch up with the wall clock."""
        return self.tick()

    def on_suspend_hint(self) -> None:
        """The host may be about to suspend or exit; persist synchronously."""
        if self._running and self._started_at is not None:
            self._elapsed = self._wall_elapsed(self.clock())
        self.repo.save_timer_state(self.state)

    # ── Internal ────────────────────────────────────────────────────────────

    def _wall_elapsed(self, now: int) -> int:
        if self._started_at is None:
            return self._elapsed
        return max(0, (now - self._started_at) // 1000)

    def _reassign(
        self, old: str, new: Optional[str], elapsed: int, now: int
    ) -> TimeLogEntry:
        # Restart first so nothing observes the old start instant with a
        # zeroed counter. The sub-second remainder carries over.
        self._started_at = self._started_at + elapsed * 1000
        self._elapsed = 0
        self._last_activity_ms = now
        self._idle_alert = False
        self._persist()

        entry = self.time_logs.record(
            old, elapsed, self.username, notes=f"Auto-saved when switching to {new}"
        )
        self.event_log.append(
            EventType.TIME_AUTO_SAVED,
            f"Auto-saved {format_elapsed(elapsed)} for project {old} "
            f"when switching to {new}",
            username=self.username,
            project_code=old,
            timeSpent=elapsed,
            newProject=new,
        )
        logger.info(
            "Auto-saved %s for %s, starting fresh timer for %s",
            format_elapsed(elapsed), old, new,
        )
        return entry

    def _stop_and_clear(self) -> None:
        self._running = False
        self._elapsed = 0
        self._started_at = None
        self._idle_alert = False
        self._persist()

    def _after_time_logged(self, entry: TimeLogEntry) -> None:
        if self.alert_engine is not None:
            self.alert_engine.refresh()
        if self.on_time_logged:
            self.on_time_logged(entry)

    def _persist(self) -> None:
        self.repo.save_timer_state(self.state)
        self._notify()

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self.state)
