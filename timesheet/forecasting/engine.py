"""
Forecasting Engine — budget, completion and resource-demand projections.

Design philosophy:
  - Works from a short trailing window of per-day hour totals (30 days).
  - Projects forward with a frequency-weighted daily rate instead of the
    regression line: mean hours on active days × share of days that were
    active. Weekends and holidays pull the rate down proportionally instead
    of dominating a least-squares fit.
  - Pure reads. Nothing here writes to the store, and missing or empty
    history yields None / empty results rather than exceptions.
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np

from timesheet.clock import Clock, iso_from_ms, ms_to_datetime, system_clock
from timesheet.config import ForecastThresholds
from timesheet.data.models import (
    BudgetForecast,
    CompletionForecast,
    ForecastSummary,
    Project,
    ProjectDemand,
    ProjectStatus,
    Recommendation,
    Regression,
    ResourceDemandForecast,
    ResourceUtilisation,
)
from timesheet.data.repository import Repository
from timesheet.services.project_directory import ProjectDirectory

logger = logging.getLogger(__name__)

MIN_POINTS_FOR_REGRESSION = 2


# ── Series math ─────────────────────────────────────────────────────────────


def linear_regression(values: Sequence[float]) -> Optional[Regression]:
    """
    Ordinary least squares over (index, value) pairs.
    Returns None when fewer than two points are available.
    """
    if len(values) < MIN_POINTS_FOR_REGRESSION:
        return None
    x = np.arange(len(values), dtype=float)
    y = np.asarray(values, dtype=float)

    # Fit y = mx + b
    A = np.vstack([x, np.ones(len(x))]).T
    m, b = np.linalg.lstsq(A, y, rcond=None)[0]
    return Regression(slope=float(m), intercept=float(b))


def moving_average(values: Sequence[float], window: int = 3) -> List[float]:
    """Trailing mean; the first points average over what is available."""
    window = max(1, int(window))
    y = np.asarray(values, dtype=float)
    result: List[float] = []
    for i in range(len(y)):
        start = max(0, i - window + 1)
        result.append(float(np.mean(y[start:i + 1])))
    return result


def realistic_daily_rate(values: Sequence[float]) -> float:
    """
    mean(hours on active days) × (active days / total days).

    A day is active when it has any logged time. No active days → 0.
    """
    y = np.asarray(values, dtype=float)
    active = y[y > 0]
    if active.size == 0:
        return 0.0
    avg_per_work_day = float(np.mean(active))
    work_frequency = active.size / y.size
    return avg_per_work_day * work_frequency


class ForecastEngine:
    """
    Forward projections for budgeted projects.

    Trend words come from two configurable rate lines (hours/day): above
    ``high_rate_threshold`` is increasing/accelerating, above
    ``low_rate_threshold`` stable/steady, anything else decreasing/slowing.
    """

    def __init__(
        self,
        repo: Repository,
        projects: ProjectDirectory,
        clock: Clock = system_clock,
        thresholds: ForecastThresholds = ForecastThresholds(),
    ) -> None:
        self.repo = repo
        self.projects = projects
        self.clock = clock
        self.thresholds = thresholds

    # ── History ─────────────────────────────────────────────────────────────

    def historical_series(self, code: str, days: Optional[int] = None) -> List[float]:
        """
        Hours logged per UTC day for the trailing ``days`` days, oldest first,
        ending today. Days without entries are 0.
        """
        days = days if days is not None else self.thresholds.history_days
        if days <= 0:
            return []
        today = ms_to_datetime(self.clock()).date()
        keys = [(today - timedelta(days=days - 1 - i)).isoformat() for i in range(days)]
        daily: Dict[str, float] = dict.fromkeys(keys, 0.0)
        for log in self.repo.load_time_logs():
            if log.project_code != code:
                continue
            try:
                key = log.date_key
            except ValueError:
                logger.debug("Skipping time log %s with bad timestamp", log.id)
                continue
            if key in daily:
                daily[key] += log.hours
        return [daily[k] for k in keys]

    # ── Per-project forecasts ───────────────────────────────────────────────

    def forecast_budget(
        self, code: str, horizon_days: Optional[int] = None
    ) -> Optional[BudgetForecast]:
        """Project budget burn over the horizon. None without a positive budget."""
        horizon = horizon_days if horizon_days is not None else self.thresholds.horizon_days
        project = self._budgeted(code)
        if project is None:
            return None

        history = self.historical_series(code)
        regression = linear_regression(history)
        if regression is None:
            return None

        current_usage = self.projects.usage_stats(code).total_hours
        remaining = project.budget - current_usage
        daily = max(0.0, realistic_daily_rate(history))
        predicted_total = max(current_usage, current_usage + daily * horizon)

        exhaustion = None
        if remaining > 0 and daily > 0:
            exhaustion = math.floor(remaining / daily)

        variance = predicted_total - project.budget
        return BudgetForecast(
            project_code=code,
            project_name=project.name,
            current_budget=project.budget,
            current_usage=current_usage,
            remaining_budget=remaining,
            predicted_daily_usage=daily,
            predicted_total_usage=predicted_total,
            budget_exhaustion_days=exhaustion,
            budget_variance=variance,
            budget_variance_percentage=variance / project.budget * 100,
            trend=self._trend(daily, ("increasing", "stable", "decreasing")),
            regression=regression,
            historical_data=history,
            moving_average=moving_average(history, self.thresholds.moving_average_window),
        )

    def forecast_completion(self, code: str) -> Optional[CompletionForecast]:
        """When will logged hours reach the budget, at the current rate?"""
        project = self._budgeted(code)
        if project is None:
            return None

        history = self.historical_series(code)
        if linear_regression(history) is None:
            return None

        now_ms = self.clock()
        current_usage = self.projects.usage_stats(code).total_hours
        remaining = project.budget - current_usage

        if remaining <= 0:
            return CompletionForecast(
                project_code=code,
                project_name=project.name,
                status="completed",
                current_progress=100.0,
                remaining_work=0.0,
                predicted_daily_progress=0.0,
                days_to_completion=0,
                completion_date=iso_from_ms(now_ms),
                trend="completed",
                actual_hours=current_usage,
                estimated_hours=project.budget,
                variance=current_usage - project.budget,
            )

        daily = max(0.0, realistic_daily_rate(history))
        days_to_completion = math.ceil(remaining / daily) if daily > 0 else None
        completion_date = None
        if days_to_completion is not None:
            completion_date = (
                ms_to_datetime(now_ms) + timedelta(days=days_to_completion)
            ).isoformat()

        return CompletionForecast(
            project_code=code,
            project_name=project.name,
            status="in-progress",
            current_progress=current_usage / project.budget * 100,
            remaining_work=remaining,
            predicted_daily_progress=daily,
            days_to_completion=days_to_completion,
            completion_date=completion_date,
            trend=self._trend(daily, ("accelerating", "steady", "slowing")),
        )

    @staticmethod
    def project_priority(
        budget_fc: Optional[BudgetForecast],
        completion_fc: Optional[CompletionForecast],
    ) -> str:
        """
        Score urgency and bucket it:
          budget     +3 exhausted within 7 days, +2 within 14, else +1 if >20 % over
          completion +3 done within 7 days, +2 within 14
          progress   +1 past 80 %
        ≥5 critical, ≥3 high, ≥1 medium, else low. Missing forecasts → medium.
        """
        if budget_fc is None or completion_fc is None:
            return "medium"

        score = 0
        exhaustion = budget_fc.budget_exhaustion_days
        if exhaustion is not None and exhaustion <= 7:
            score += 3
        elif exhaustion is not None and exhaustion <= 14:
            score += 2
        elif budget_fc.budget_variance_percentage > 20:
            score += 1

        days = completion_fc.days_to_completion
        if days is not None and days <= 7:
            score += 3
        elif days is not None and days <= 14:
            score += 2

        if completion_fc.current_progress > 80:
            score += 1

        if score >= 5:
            return "critical"
        if score >= 3:
            return "high"
        if score >= 1:
            return "medium"
        return "low"

    # ── Portfolio ───────────────────────────────────────────────────────────

    def forecast_resource_demand(
        self, horizon_days: Optional[int] = None
    ) -> ResourceDemandForecast:
        forecasts: List[ProjectDemand] = []
        for project in self._active_budgeted():
            budget_fc = self.forecast_budget(project.code, horizon_days)
            completion_fc = self.forecast_completion(project.code)
            forecasts.append(ProjectDemand(
                project_code=project.code,
                project_name=project.name,
                category=project.category,
                budget_forecast=budget_fc,
                completion_forecast=completion_fc,
                priority=self.project_priority(budget_fc, completion_fc),
            ))

        total_predicted = sum(
            f.budget_forecast.predicted_total_usage
            for f in forecasts if f.budget_forecast is not None
        )
        return ResourceDemandForecast(
            total_predicted_hours=total_predicted,
            critical_projects=sum(1 for f in forecasts if f.priority == "critical"),
            high_priority_projects=sum(1 for f in forecasts if f.priority == "high"),
            project_forecasts=forecasts,
            resource_utilisation=self._utilisation(forecasts),
            recommendations=self._recommendations(forecasts),
        )

    def forecasting_summary(self, horizon_days: Optional[int] = None) -> ForecastSummary:
        """Headline numbers for the dashboard."""
        active = self._active_budgeted()
        critical = delayed = 0
        total_predicted = 0.0
        for project in active:
            budget_fc = self.forecast_budget(project.code, horizon_days)
            completion_fc = self.forecast_completion(project.code)
            if budget_fc is not None:
                total_predicted += budget_fc.predicted_total_usage
                exhaustion = budget_fc.budget_exhaustion_days
                if (exhaustion is not None and exhaustion <= 7) \
                        or budget_fc.budget_variance_percentage > 20:
                    critical += 1
            if completion_fc is not None and completion_fc.trend == "slowing":
                delayed += 1

        return ForecastSummary(
            total_projects=len(active),
            critical_projects=critical,
            delayed_projects=delayed,
            total_predicted_hours=round(total_predicted, 2),
        )

    # ── Internal ────────────────────────────────────────────────────────────

    def _budgeted(self, code: str) -> Optional[Project]:
        project = self.projects.get(code)
        if project is None or not project.budget or project.budget <= 0:
            return None
        return project

    def _active_budgeted(self) -> List[Project]:
        return [
            p for p in self.projects.list_projects(ProjectStatus.ACTIVE)
            if p.budget > 0
        ]

    def _trend(self, rate: float, words: Sequence[str]) -> str:
        high, mid, low = words
        if rate > self.thresholds.high_rate_threshold:
            return high
        if rate > self.thresholds.low_rate_threshold:
            return mid
        return low

    @staticmethod
    def _utilisation(forecasts: List[ProjectDemand]) -> ResourceUtilisation:
        budgeted = [f.budget_forecast for f in forecasts if f.budget_forecast is not None]
        if not budgeted:
            return ResourceUtilisation()
        total_budget = sum(b.current_budget for b in budgeted)
        total_predicted = sum(b.predicted_total_usage for b in budgeted)
        return ResourceUtilisation(
            total_budget=total_budget,
            total_predicted=total_predicted,
            utilisation_rate=total_predicted / total_budget * 100 if total_budget > 0 else 0.0,
            efficiency=total_budget / total_predicted * 100 if total_predicted > 0 else 0.0,
        )

    @staticmethod
    def _recommendations(forecasts: List[ProjectDemand]) -> List[Recommendation]:
        recommendations: List[Recommendation] = []

        over_budget = [
            f.project_code for f in forecasts
            if f.budget_forecast is not None
            and f.budget_forecast.budget_variance_percentage > 10
        ]
        if over_budget:
            recommendations.append(Recommendation(
                type="budget_overrun",
                severity="high",
                message=f"{len(over_budget)} project(s) are predicted to exceed budget",
                projects=over_budget,
            ))

        critical = [f.project_code for f in forecasts if f.priority == "critical"]
        if len(critical) > 3:
            recommendations.append(Recommendation(
                type="resource_conflict",
                severity="medium",
                message="Multiple critical projects may require resource reallocation",
                projects=critical,
            ))

        delayed = [
            f.project_code for f in forecasts
            if f.completion_forecast is not None
            and f.completion_forecast.trend == "slowing"
        ]
        if delayed:
            recommendations.append(Recommendation(
                type="completion_delay",
                severity="medium",
                message=f"{len(delayed)} project(s) show slowing progress",
                projects=delayed,
            ))

        return recommendations
