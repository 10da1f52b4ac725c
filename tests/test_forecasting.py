"""Unit tests for the forecasting engine and CSV export."""

import math
import pytest
from datetime import datetime, timedelta, timezone

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from timesheet.clock import iso_from_ms, ms_to_datetime
from timesheet.config import ForecastThresholds
from timesheet.data.database import MemoryStore
from timesheet.data.models import (
    BudgetForecast, CompletionForecast, ProjectStatus, Regression, TimeLogEntry,
)
from timesheet.data.repository import Repository
from timesheet.forecasting.engine import (
    ForecastEngine, linear_regression, moving_average, realistic_daily_rate,
)
from timesheet.forecasting.export import export_filename, export_forecast_csv
from timesheet.services.event_log import EventLog
from timesheet.services.project_directory import ProjectDirectory


@pytest.fixture
def repo():
    return Repository(MemoryStore())


@pytest.fixture
def directory(repo, clock):
    return ProjectDirectory(repo, EventLog(repo, clock), clock)


@pytest.fixture
def engine(repo, directory, clock):
    return ForecastEngine(repo, directory, clock)


def _add(directory, code, budget, status=ProjectStatus.ACTIVE, name=None):
    directory.add_project({"code": code, "name": name or code, "budget": budget,
                           "status": status})


def _log_daily(repo, clock, code, hours_by_offset):
    """hours_by_offset[i] is logged i days before now."""
    logs = repo.load_time_logs()
    for offset, hours in enumerate(hours_by_offset):
        if not hours:
            continue
        logs.append(TimeLogEntry(
            id=f"{code}-{offset}",
            project_code=code,
            time_spent_seconds=int(round(hours * 3600)),
            timestamp=iso_from_ms(clock() - offset * 86_400_000),
            username="alice",
        ))
    repo.save_time_logs(logs)


class TestSeriesMath:
    @pytest.mark.parametrize("values", [[], [5.0]])
    def test_regression_needs_two_points(self, values):
        assert linear_regression(values) is None

    def test_regression_fits_line(self):
        reg = linear_regression([1.0, 3.0, 5.0, 7.0])
        assert reg.slope == pytest.approx(2.0)
        assert reg.intercept == pytest.approx(1.0)

    def test_regression_flat(self):
        reg = linear_regression([2.0, 2.0])
        assert reg.slope == pytest.approx(0.0)
        assert reg.intercept == pytest.approx(2.0)

    def test_moving_average(self):
        assert moving_average([3, 6, 9, 12], 3) == pytest.approx([3, 4.5, 6, 9])
        assert moving_average([], 3) == []

    @pytest.mark.parametrize("series", [
        [0, 0, 0, 0, 10],
        [1, 1, 1, 1, 1],
        [0, 0, 4, 0, 6],
        [0, 0, 5, 0, 5],
        [0.5, 0, 0, 2.5, 0, 0, 0],
    ])
    def test_realistic_rate_formula(self, series):
        active = [v for v in series if v > 0]
        expected = (sum(active) / len(active)) * (len(active) / len(series))
        assert realistic_daily_rate(series) == pytest.approx(expected)

    def test_realistic_rate_cases(self):
        assert realistic_daily_rate([0, 0, 0, 0, 10]) == pytest.approx(2.0)
        assert realistic_daily_rate([1, 1, 1, 1, 1]) == pytest.approx(1.0)

    def test_realistic_rate_no_activity(self):
        assert realistic_daily_rate([0, 0, 0]) == 0.0
        assert realistic_daily_rate([]) == 0.0


class TestHistoricalSeries:
    def test_oldest_first_zero_filled(self, repo, clock, engine):
        _log_daily(repo, clock, "WEB-001", [1.0, 0, 3.0])
        series = engine.historical_series("WEB-001", 5)
        assert series == pytest.approx([0, 0, 3.0, 0, 1.0])

    def test_same_day_entries_are_summed(self, repo, clock, engine):
        _log_daily(repo, clock, "WEB-001", [1.0])
        _log_daily(repo, clock, "WEB-001", [0.5])
        assert engine.historical_series("WEB-001", 1) == pytest.approx([1.5])

    def test_old_entries_outside_window(self, repo, clock, engine):
        _log_daily(repo, clock, "WEB-001", [0] * 40 + [8.0])
        assert sum(engine.historical_series("WEB-001")) == 0

    def test_other_projects_ignored(self, repo, clock, engine):
        _log_daily(repo, clock, "MOB-002", [4.0])
        assert sum(engine.historical_series("WEB-001")) == 0


class TestBudgetForecast:
    def test_constant_rate_exhaustion(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 100)
        _log_daily(repo, clock, "WEB-001", [2.0] * 30)

        fc = engine.forecast_budget("WEB-001", 30)
        assert fc.current_usage == pytest.approx(60.0)
        assert fc.remaining_budget == pytest.approx(40.0)
        assert fc.predicted_daily_usage == pytest.approx(2.0)
        assert fc.budget_exhaustion_days == math.floor(40.0 / 2.0)
        assert fc.predicted_total_usage == pytest.approx(120.0)
        assert fc.budget_variance == pytest.approx(20.0)
        assert fc.budget_variance_percentage == pytest.approx(20.0)
        assert fc.trend == "stable"
        assert len(fc.historical_data) == 30
        assert len(fc.moving_average) == 30

    def test_usage_counts_all_history(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 100)
        _log_daily(repo, clock, "WEB-001", [0] * 40 + [10.0])
        fc = engine.forecast_budget("WEB-001")
        assert fc.current_usage == pytest.approx(10.0)
        assert fc.predicted_daily_usage == 0
        assert fc.budget_exhaustion_days is None
        assert fc.predicted_total_usage == pytest.approx(10.0)
        assert fc.trend == "decreasing"

    def test_increasing_trend(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 500)
        _log_daily(repo, clock, "WEB-001", [3.0] * 30)
        assert engine.forecast_budget("WEB-001").trend == "increasing"

    def test_over_budget_has_no_exhaustion(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 10)
        _log_daily(repo, clock, "WEB-001", [2.0] * 10)
        fc = engine.forecast_budget("WEB-001")
        assert fc.remaining_budget < 0
        assert fc.budget_exhaustion_days is None

    def test_not_applicable(self, directory, engine):
        _add(directory, "MEET-001", 0)
        assert engine.forecast_budget("MEET-001") is None
        assert engine.forecast_budget("NOPE-001") is None

    def test_short_history_is_unavailable(self, repo, directory, clock):
        _add(directory, "WEB-001", 100)
        short = ForecastEngine(repo, directory, clock, ForecastThresholds(history_days=1))
        assert short.forecast_budget("WEB-001") is None
        assert short.forecast_completion("WEB-001") is None

    def test_thresholds_are_configurable(self, repo, clock, directory):
        _add(directory, "WEB-001", 500)
        _log_daily(repo, clock, "WEB-001", [3.0] * 30)
        relaxed = ForecastEngine(repo, directory, clock,
                                 ForecastThresholds(high_rate_threshold=5.0))
        assert relaxed.forecast_budget("WEB-001").trend == "stable"

    def test_forecast_is_read_only(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 100)
        _log_daily(repo, clock, "WEB-001", [2.0] * 30)
        before = dict(repo.store._data)
        engine.forecast_resource_demand()
        engine.forecasting_summary()
        assert repo.store._data == before


class TestCompletionForecast:
    def test_in_progress(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 100)
        _log_daily(repo, clock, "WEB-001", [2.0] * 30)
        fc = engine.forecast_completion("WEB-001")
        assert fc.status == "in-progress"
        assert fc.current_progress == pytest.approx(60.0)
        assert fc.days_to_completion == 20
        expected = ms_to_datetime(clock()) + timedelta(days=20)
        assert fc.completion_date == expected.isoformat()
        assert fc.trend == "steady"

    def test_days_round_up(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 100)
        _log_daily(repo, clock, "WEB-001", [3.0] * 30)
        # 10 hours left at 3 h/day
        assert engine.forecast_completion("WEB-001").days_to_completion == 4

    def test_completed(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 50)
        _log_daily(repo, clock, "WEB-001", [2.0] * 30)
        fc = engine.forecast_completion("WEB-001")
        assert fc.status == "completed"
        assert fc.current_progress == 100
        assert fc.days_to_completion == 0
        assert fc.variance == pytest.approx(10.0)
        assert fc.trend == "completed"

    def test_no_activity(self, directory, engine):
        _add(directory, "WEB-001", 50)
        fc = engine.forecast_completion("WEB-001")
        assert fc.days_to_completion is None
        assert fc.completion_date is None
        assert fc.trend == "slowing"


def _budget_fc(exhaustion=None, variance_pct=0.0):
    return BudgetForecast(
        project_code="X", project_name="X", current_budget=100, current_usage=0,
        remaining_budget=100, predicted_daily_usage=1, predicted_total_usage=30,
        budget_exhaustion_days=exhaustion, budget_variance=0,
        budget_variance_percentage=variance_pct, trend="stable",
        regression=Regression(0, 0),
    )


def _completion_fc(days=None, progress=0.0):
    return CompletionForecast(
        project_code="X", project_name="X", status="in-progress",
        current_progress=progress, remaining_work=1, predicted_daily_progress=1,
        days_to_completion=days, completion_date=None, trend="steady",
    )


class TestPriority:
    def test_missing_forecast_is_medium(self):
        assert ForecastEngine.project_priority(None, _completion_fc()) == "medium"

    def test_low(self):
        assert ForecastEngine.project_priority(_budget_fc(), _completion_fc()) == "low"

    def test_critical(self):
        assert ForecastEngine.project_priority(
            _budget_fc(exhaustion=5), _completion_fc(days=6)
        ) == "critical"

    def test_high(self):
        assert ForecastEngine.project_priority(
            _budget_fc(exhaustion=10), _completion_fc(days=30, progress=85)
        ) == "high"

    def test_brackets_do_not_stack(self):
        # within 7 days also satisfies "within 14" but only scores 3
        assert ForecastEngine.project_priority(
            _budget_fc(exhaustion=3, variance_pct=50), _completion_fc()
        ) == "high"

    def test_variance_only_counts_without_exhaustion(self):
        assert ForecastEngine.project_priority(
            _budget_fc(variance_pct=25), _completion_fc()
        ) == "medium"

    def test_zero_days_counts_as_urgent(self):
        assert ForecastEngine.project_priority(
            _budget_fc(exhaustion=0), _completion_fc(days=0)
        ) == "critical"


class TestPortfolio:
    @pytest.fixture
    def portfolio(self, repo, clock, directory):
        _add(directory, "WEB-001", 150)
        _add(directory, "MOB-002", 50)
        _add(directory, "OLD-001", 10, status=ProjectStatus.COMPLETED)
        _add(directory, "MEET-001", 0)
        _log_daily(repo, clock, "WEB-001", [2.0] * 30)
        _log_daily(repo, clock, "MOB-002", [2.0] * 30)
        _log_daily(repo, clock, "OLD-001", [2.0] * 30)
        return directory

    def test_resource_demand(self, portfolio, engine):
        demand = engine.forecast_resource_demand(30)
        assert [f.project_code for f in demand.project_forecasts] == ["WEB-001", "MOB-002"]
        priorities = {f.project_code: f.priority for f in demand.project_forecasts}
        assert priorities == {"WEB-001": "low", "MOB-002": "critical"}
        assert demand.total_predicted_hours == pytest.approx(240.0)
        assert demand.critical_projects == 1
        assert demand.high_priority_projects == 0

        util = demand.resource_utilisation
        assert util.total_budget == pytest.approx(200.0)
        assert util.total_predicted == pytest.approx(240.0)
        assert util.utilisation_rate == pytest.approx(120.0)
        assert util.efficiency == pytest.approx(200.0 / 240.0 * 100)

        assert [r.type for r in demand.recommendations] == ["budget_overrun"]
        assert demand.recommendations[0].projects == ["MOB-002"]
        assert demand.recommendations[0].severity == "high"

    def test_completion_delay_recommendation(self, directory, engine):
        _add(directory, "IDLE-001", 40)
        demand = engine.forecast_resource_demand()
        rec = demand.recommendations[-1]
        assert rec.type == "completion_delay"
        assert rec.projects == ["IDLE-001"]

    def test_resource_conflict_recommendation(self, repo, clock, directory, engine):
        for i in range(4):
            code = f"HOT-00{i}"
            _add(directory, code, 5)
            _log_daily(repo, clock, code, [1.0] * 30)
        demand = engine.forecast_resource_demand()
        assert demand.critical_projects == 4
        assert "resource_conflict" in [r.type for r in demand.recommendations]

    def test_empty_portfolio(self, engine):
        demand = engine.forecast_resource_demand()
        assert demand.project_forecasts == []
        assert demand.total_predicted_hours == 0
        assert demand.recommendations == []
        assert demand.resource_utilisation.utilisation_rate == 0

    def test_summary(self, portfolio, engine):
        summary = engine.forecasting_summary(30)
        assert summary.total_projects == 2
        assert summary.critical_projects == 1
        assert summary.delayed_projects == 0
        assert summary.total_predicted_hours == 240.0


class TestExport:
    NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

    def test_filename(self):
        assert export_filename(self.NOW) == "forecasting-data-2024-03-15.csv"

    def test_sections(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 100, name="Website, phase 2")
        _log_daily(repo, clock, "WEB-001", [2.0] * 30)
        text = export_forecast_csv(engine, 30, now=self.NOW)

        assert text.startswith("Forecasting Data Export\n")
        assert "Forecast Period: 30 days\n" in text
        assert "\nSUMMARY STATISTICS\nMetric,Value\nTotal Projects,1\n" in text
        assert "\nPROJECT FORECASTS\nProject Code,Project Name," in text
        assert 'WEB-001,"Website, phase 2",100.0,120.0,20.0,' in text
        assert "\nRESOURCE DEMAND FORECAST\n" in text
        assert "SELECTED PROJECT" not in text
        # sections are separated by exactly one blank line
        assert "\n\n\n" not in text

    def test_selected_project_sections(self, repo, clock, directory, engine):
        _add(directory, "WEB-001", 100)
        _log_daily(repo, clock, "WEB-001", [2.0] * 30)
        text = export_forecast_csv(engine, 30, selected_project="WEB-001", now=self.NOW)

        assert "\nSELECTED PROJECT DETAILED FORECAST\n" in text
        assert "\nCOMPLETION FORECAST DETAILS\n" in text
        assert "Days Remaining,20\n" in text
        assert "\nHISTORICAL DATA\nDate,Hours Logged,Moving Average\n" in text
        assert "2024-02-15,2.00,2.00\n" in text
        assert "2024-03-15,2.00,2.00\n" in text
