"""Widget tests for the projects panel, audit trail and entry editing."""

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

pytest.importorskip("PySide6.QtWidgets")

from timesheet.data.database import SqliteStore
from timesheet.data.models import EventType, Project, TimeLogEntry
from timesheet.data.repository import Repository
from timesheet.errors import ValidationError
from timesheet.forecasting.engine import ForecastEngine
from timesheet.services.alerts import BudgetAlertEngine
from timesheet.services.event_log import EventLog
from timesheet.services.project_directory import ProjectDirectory
from timesheet.services.time_log import TimeLogBook
from timesheet.services.timer_service import TimerService
from timesheet.services.tracking_service import TimerScheduler
from timesheet.ui.audit_widget import AuditWidget
from timesheet.ui.entry_dialog import EntryEditDialog, format_hhmm
from timesheet.ui.main_window import MainWindow
from timesheet.ui.projects_widget import ProjectsWidget


@pytest.fixture
def store():
    s = SqliteStore(":memory:")
    s.connect()
    yield s
    s.close()


@pytest.fixture
def repo(store):
    return Repository(store)


@pytest.fixture
def events(repo, clock):
    return EventLog(repo, clock)


@pytest.fixture
def directory(repo, events, clock):
    d = ProjectDirectory(repo, events, clock)
    d.seed_defaults()
    return d


@pytest.fixture
def panel(qt_app, directory):
    w = ProjectsWidget(directory, "alice")
    yield w
    w.shutdown()


def _codes(table):
    return [table.item(row, 0).text() for row in range(table.rowCount())]


class TestProjectsWidget:
    def test_lists_all_projects(self, panel, directory):
        assert _codes(panel.table) == [p.code for p in directory.list_projects()]

    def test_suggests_next_code_for_category(self, panel):
        panel.category_combo.setCurrentText("Development")
        assert panel.code_edit.text() == "DEV-004"

    def test_add_from_form(self, panel, directory, events):
        panel.category_combo.setCurrentText("Development")
        panel.name_edit.setText("Mobile App")
        panel.budget_spin.setValue(40)
        project = panel.add_from_form()

        assert project.code == "DEV-004"
        assert directory.get("DEV-004").budget == 40
        assert directory.get("DEV-004").created_by == "alice"
        assert "DEV-004" in _codes(panel.table)
        assert panel.code_edit.text() == "DEV-005"
        assert events.list_events(event_type=EventType.PROJECT_ADDED)

    def test_add_requires_name(self, panel):
        panel.name_edit.setText("  ")
        with pytest.raises(ValidationError):
            panel.add_from_form()

    def test_budget_change_refreshes_table(self, panel, directory):
        directory.set_budget("MEET-001", 12, set_by="alice")
        row = _codes(panel.table).index("MEET-001")
        assert panel.table.item(row, 4).text() == "12"

    def test_selected_code(self, panel):
        panel.table.setCurrentCell(2, 0)
        assert panel.selected_code() == _codes(panel.table)[2]

    def test_search_filters(self, panel):
        panel.search_edit.setText("meet")
        assert _codes(panel.table) == ["MEET-001", "MEET-002"]


class TestAuditWidget:
    @pytest.fixture
    def audit(self, qt_app, events, clock):
        events.append(EventType.TIMER_START, "Started timer for project DEV-001",
                      username="alice", project_code="DEV-001")
        clock.advance(3 * 24 * 3600)
        events.append(EventType.TIME_SAVED, "Saved 00:10:00 for project DEV-002",
                      username="bob", project_code="DEV-002")
        w = AuditWidget(events)
        w.refresh()
        return w

    def test_shows_newest_first(self, audit):
        assert audit.table.rowCount() == 2
        assert audit.table.item(0, 1).text() == EventType.TIME_SAVED
        assert audit.summary_label.text().startswith("2 events, 1 in the last 24 hours")

    def test_type_filter(self, audit):
        audit.type_combo.setCurrentIndex(audit.type_combo.findData(EventType.TIMER_START))
        assert audit.table.rowCount() == 1
        assert audit.table.item(0, 2).text() == "alice"

    def test_user_and_search_filters(self, audit):
        audit.user_edit.setText("bob")
        assert audit.table.rowCount() == 1
        audit.user_edit.clear()
        audit.search_edit.setText("dev-001")
        assert audit.table.rowCount() == 1
        assert audit.table.item(0, 3).text() == "DEV-001"

    def test_period_filter(self, audit):
        audit.period_combo.setCurrentIndex(audit.period_combo.findText("Last 24 hours"))
        assert audit.table.rowCount() == 1
        assert audit.summary_label.text().startswith("1 events")


class TestEntryEditDialog:
    @pytest.fixture
    def entry(self):
        return TimeLogEntry(id="e1", project_code="DEV-001", time_spent_seconds=5400,
                            timestamp="2024-03-15T09:00:00+00:00", username="alice",
                            notes="standup")

    def test_prefills_fields(self, qt_app, directory, entry):
        dialog = EntryEditDialog(entry, directory.active_projects())
        assert dialog.time_edit.text() == "01:30"
        assert dialog.values() == ("DEV-001", 5400, "standup")

    def test_edited_values(self, qt_app, directory, entry):
        dialog = EntryEditDialog(entry, directory.active_projects())
        dialog.project_combo.setCurrentIndex(dialog.project_combo.findData("DEV-002"))
        dialog.time_edit.setText("02:15")
        dialog.notes_edit.setText("")
        assert dialog.values() == ("DEV-002", 8100, "")

    def test_bad_time_raises(self, qt_app, directory, entry):
        dialog = EntryEditDialog(entry, directory.active_projects())
        dialog.time_edit.setText("2h")
        with pytest.raises(ValidationError):
            dialog.values()

    def test_archived_project_stays_selectable(self, qt_app, entry):
        dialog = EntryEditDialog(entry, [Project(code="DEV-002", name="Backend")])
        assert dialog.values()[0] == "DEV-001"

    def test_format_hhmm(self):
        assert format_hhmm(0) == "00:00"
        assert format_hhmm(3725) == "01:02"


class TestMainWindow:
    @pytest.fixture
    def window(self, qt_app, store, repo, events, directory, clock):
        time_logs = TimeLogBook(repo, events, clock)
        time_logs.record("DEV-001", 600, "alice")
        alerts = BudgetAlertEngine(repo, directory, clock)
        timer = TimerService(repo, events, time_logs, alerts, clock, username="alice")
        timer.restore()
        w = MainWindow(
            store, timer, TimerScheduler(timer), directory, time_logs, alerts,
            ForecastEngine(repo, directory, clock), events,
        )
        yield w
        w.scheduler.stop()
        w.projects_widget.shutdown()

    def test_tabs(self, window):
        titles = [window.tabs.tabText(i) for i in range(window.tabs.count())]
        assert titles == ["Timer", "Time Entries", "Projects", "Alerts", "Forecast", "Audit"]

    def test_entries_have_edit_and_delete(self, window):
        assert window.entries_table.rowCount() == 1
        assert window.entries_table.cellWidget(0, 4).text() == "Edit"
        assert window.entries_table.cellWidget(0, 5).text() == "Delete"

    def test_audit_tab_refreshes_on_open(self, window, events, clock):
        clock.advance(1)
        events.append(EventType.PROJECT_SWITCH, "Switched", username="alice")
        window.tabs.setCurrentIndex(window.audit_tab_index)
        table = window.audit_widget.table
        assert table.rowCount() == len(events.list_events())
        assert table.item(0, 4).text() == "Switched"
