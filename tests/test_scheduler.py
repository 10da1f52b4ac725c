"""Unit tests for the QTimer-driven timer scheduler."""

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

QtCore = pytest.importorskip("PySide6.QtCore")

from timesheet.config import TimerSettings
from timesheet.data.database import MemoryStore
from timesheet.data.repository import Repository
from timesheet.services.event_log import EventLog
from timesheet.services.time_log import TimeLogBook
from timesheet.services.timer_service import TimerService
from timesheet.services.tracking_service import TimerScheduler


@pytest.fixture
def timer(clock):
    repo = Repository(MemoryStore())
    events = EventLog(repo, clock)
    t = TimerService(repo, events, TimeLogBook(repo, events, clock), clock=clock,
                     settings=TimerSettings(idle_threshold_minutes=1))
    t.restore()
    t.set_project("DEV-001")
    return t


@pytest.fixture
def scheduler(qt_app, timer):
    s = TimerScheduler(timer, timer.settings)
    yield s
    s.stop()


class TestTimerScheduler:
    def test_sync_follows_running_flag(self, scheduler, timer):
        scheduler.sync()
        assert not scheduler.active
        timer.start()
        scheduler.sync()
        assert scheduler.active
        timer.pause()
        scheduler.sync()
        assert not scheduler.active

    def test_tick_updates_elapsed(self, scheduler, timer, clock):
        ticks = []
        scheduler.on_tick = ticks.append
        timer.start()
        scheduler.start()
        clock.advance(3)
        scheduler._tick()
        assert ticks == [3]

    def test_tick_stops_when_timer_stopped(self, scheduler, timer):
        timer.start()
        scheduler.start()
        timer.reset()
        scheduler._tick()
        assert not scheduler.active

    def test_idle_check_runs_through_timer(self, scheduler, timer, clock):
        timer.start()
        clock.advance(61)
        scheduler._check_idle()
        assert timer.idle_alert_active

    def test_shutdown_persists_and_cancels(self, scheduler, timer, clock):
        timer.start()
        scheduler.start()
        clock.advance(9)
        scheduler.shutdown()
        assert not scheduler.active
        assert timer.repo.load_timer_state().elapsed_seconds == 9
