"""
Tracking Service — drives the timer's periodic callbacks.

The once-a-second tick and the once-a-minute idle check run as QTimers on
the Qt event loop, the same thread that handles button clicks, so a project
reassignment always finishes before the next tick fires.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QTimer

from timesheet.config import TimerSettings
from timesheet.services.timer_service import TimerService

logger = logging.getLogger(__name__)


class TimerScheduler:
    """
    Starts and stops the tick and idle QTimers alongside the stopwatch.

    Call sync() after any user action that may have started or stopped the
    timer.
    """

    def __init__(
        self,
        timer: TimerService,
        settings: TimerSettings = TimerSettings(),
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.timer = timer
        self.settings = settings

        # Callback the UI will set
        self.on_tick = on_tick

        self._tick_timer = QTimer()
        self._tick_timer.timeout.connect(self._tick)

        self._idle_timer = QTimer()
        self._idle_timer.timeout.connect(self._check_idle)

    # ── Public API ──────────────────────────────────────────────────────────

    @property
    def active(self) -> bool:
        return self._tick_timer.isActive()

    def start(self) -> None:
        if self.active:
            return
        self._tick_timer.start(int(self.settings.tick_interval_ms))
        self._idle_timer.start(int(self.settings.idle_check_interval_ms))
        logger.info(
            "Timer scheduler started: tick every %d ms, idle check every %d ms",
            self.settings.tick_interval_ms, self.settings.idle_check_interval_ms,
        )

    def stop(self) -> None:
        if not self.active:
            return
        self._tick_timer.stop()
        self._idle_timer.stop()
        logger.info("Timer scheduler stopped.")

    def sync(self) -> None:
        """Match the QTimers to the stopwatch's running flag."""
        if self.timer.running:
            self.start()
        else:
            self.stop()

    def shutdown(self) -> None:
        """Cancel pending callbacks and persist the timer before exit."""
        self._tick_timer.stop()
        self._idle_timer.stop()
        self.timer.on_suspend_hint()
        logger.info("Timer scheduler shut down.")

    # ── Timer callbacks ─────────────────────────────────────────────────────

    def _tick(self) -> None:
        if not self.timer.running:
            self.stop()
            return
        elapsed = self.timer.tick()
        if self.on_tick:
            self.on_tick(elapsed)

    def _check_idle(self) -> None:
        if not self.timer.running:
            return
        self.timer.idle_check()
