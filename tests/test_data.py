"""Unit tests for the data layer (store, repository, models)."""

import json
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from timesheet.data.database import MemoryStore, SqliteStore
from timesheet.data.models import (
    BudgetAlert, EventLogEntry, Project, TimeLogEntry, TimerState,
)
from timesheet.data.repository import (
    ALL_KEYS, SELECTED_PROJECT_KEY, TIME_LOGS_KEY, TIMER_STATE_KEY, Repository,
)
from timesheet.errors import PersistenceError


class FailingStore:
    """Every call raises, like a full or locked disk."""

    def get(self, key):
        raise PersistenceError("read failed")

    def set(self, key, value):
        raise PersistenceError("quota exceeded")

    def remove(self, key):
        raise PersistenceError("remove failed")

    def keys(self):
        raise PersistenceError("listing failed")


@pytest.fixture
def sqlite_store():
    store = SqliteStore(":memory:")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def repo():
    return Repository(MemoryStore())


class TestSqliteStore:
    def test_set_and_get(self, sqlite_store):
        sqlite_store.set("a", "1")
        assert sqlite_store.get("a") == "1"

    def test_set_overwrites(self, sqlite_store):
        sqlite_store.set("a", "1")
        sqlite_store.set("a", "2")
        assert sqlite_store.get("a") == "2"
        assert sqlite_store.keys() == ["a"]

    def test_missing_key(self, sqlite_store):
        assert sqlite_store.get("nope") is None

    def test_remove(self, sqlite_store):
        sqlite_store.set("a", "1")
        sqlite_store.remove("a")
        assert sqlite_store.get("a") is None

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "store.db"
        first = SqliteStore(path)
        first.set("k", "v")
        first.close()

        second = SqliteStore(path)
        assert second.get("k") == "v"
        second.close()

    def test_unopenable_path_raises(self, tmp_path):
        store = SqliteStore(tmp_path / "missing" / "dir" / "x.db")
        with pytest.raises(PersistenceError):
            store.connect()


class TestRepository:
    def test_defaults_when_empty(self, repo):
        assert repo.load_time_logs() == []
        assert repo.load_projects() == []
        assert repo.load_timer_state() is None
        assert repo.load_selected_project() is None
        assert not repo.has_projects()

    def test_time_logs_roundtrip(self, repo):
        entry = TimeLogEntry(id="1", project_code="DEV-001", time_spent_seconds=90,
                             timestamp="2024-03-15T10:00:00+00:00", username="alice")
        assert repo.save_time_logs([entry])
        assert repo.load_time_logs() == [entry]

    def test_corrupt_json_falls_back(self):
        store = MemoryStore({TIME_LOGS_KEY: "{not json"})
        assert Repository(store).load_time_logs() == []

    def test_non_list_falls_back(self):
        store = MemoryStore({TIME_LOGS_KEY: json.dumps({"oops": 1})})
        assert Repository(store).load_time_logs() == []

    def test_bad_records_are_skipped(self):
        good = {"id": "ok", "projectCode": "DEV-001", "timeSpentSeconds": 60,
                "timestamp": "2024-03-15T09:00:00+00:00"}
        store = MemoryStore({TIME_LOGS_KEY: json.dumps(
            [{"id": "bad", "timeSpent": "1h"}, "not a record", good]
        )})
        logs = Repository(store).load_time_logs()
        assert [log.id for log in logs] == ["ok"]

    def test_missing_timestamp_reads_as_empty(self):
        store = MemoryStore({TIME_LOGS_KEY: json.dumps(
            [{"id": "x", "projectCode": "DEV-001", "timeSpentSeconds": 60, "timestamp": None}]
        )})
        assert Repository(store).load_time_logs()[0].timestamp == ""

    def test_bad_timer_state_is_ignored(self):
        store = MemoryStore({TIMER_STATE_KEY: json.dumps({"elapsedSeconds": "abc"})})
        assert Repository(store).load_timer_state() is None

    def test_selected_project_cleared_on_empty(self, repo):
        repo.save_selected_project("DEV-001")
        assert repo.load_selected_project() == "DEV-001"
        repo.save_selected_project(None)
        assert repo.store.get(SELECTED_PROJECT_KEY) is None

    def test_failures_are_swallowed(self):
        repo = Repository(FailingStore())
        assert repo.load_projects() == []
        assert repo.save_projects([Project(code="AB-001", name="x")]) is False
        assert repo.remove(TIME_LOGS_KEY) is False

    def test_reset_all_data(self, repo):
        for key in ALL_KEYS:
            repo.set_json(key, [])
        repo.reset_all_data()
        assert repo.store.keys() == []


class TestModels:
    def test_time_log_uses_camel_case(self):
        entry = TimeLogEntry(id="1", project_code="DEV-001", time_spent_seconds=60,
                             timestamp="2024-03-15T10:00:00+00:00")
        d = entry.to_dict()
        assert d["projectCode"] == "DEV-001"
        assert d["timeSpentSeconds"] == 60
        assert "notes" not in d

    def test_time_log_reads_legacy_field(self):
        entry = TimeLogEntry.from_dict({"id": 5, "projectCode": "X", "timeSpent": 120,
                                        "timestamp": "2024-03-15T10:00:00.000Z"})
        assert entry.id == "5"
        assert entry.time_spent_seconds == 120
        assert entry.hours == pytest.approx(120 / 3600)
        assert entry.date_key == "2024-03-15"

    def test_event_details_flattened(self):
        event = EventLogEntry(type="TIME_SAVED", timestamp="t", username="bob",
                              message="m", project_code="A", details={"timeSpent": 5})
        d = event.to_dict()
        assert d["timeSpent"] == 5
        assert d["projectCode"] == "A"
        assert EventLogEntry.from_dict(d) == event

    def test_timer_state_reads_legacy_fields(self):
        state = TimerState.from_dict({"isRunning": True, "elapsedTime": 12,
                                      "startTime": 1000})
        assert state == TimerState(running=True, elapsed_seconds=12, started_at_ms=1000)

    def test_alert_always_writes_read_flag(self):
        d = BudgetAlert(id="a", project_code="A").to_dict()
        assert d["read"] is False
        assert "readAt" not in d

    def test_project_roundtrip(self):
        p = Project(code="DEV-001", name="Frontend", budget=80, budget_set_by="mgr")
        d = p.to_dict()
        assert d["budgetSetBy"] == "mgr"
        assert Project.from_dict(d) == p
