"""
Forecast CSV export.

The file is several small CSV tables stacked vertically, each introduced by
an upper-case section title and separated by one blank line.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from timesheet.forecasting.engine import ForecastEngine


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"forecasting-data-{now.date().isoformat()}.csv"


def _fmt(value: Optional[float], suffix: str = "") -> str:
    if value is None:
        return "N/A"
    return f"{value:.1f}{suffix}"


def export_forecast_csv(
    engine: ForecastEngine,
    horizon_days: int = 30,
    selected_project: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Render the forecasting view as CSV text."""
    now = now or datetime.now(timezone.utc)
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")

    def section(title: str, header: List[str]) -> None:
        writer.writerow([title])
        writer.writerow(header)

    writer.writerow(["Forecasting Data Export"])
    writer.writerow([f"Generated: {now.isoformat(timespec='seconds')}"])
    writer.writerow([f"Forecast Period: {horizon_days} days"])
    writer.writerow([])

    summary = engine.forecasting_summary(horizon_days)
    section("SUMMARY STATISTICS", ["Metric", "Value"])
    writer.writerow(["Total Projects", summary.total_projects])
    writer.writerow(["Critical Projects", summary.critical_projects])
    writer.writerow(["Delayed Projects", summary.delayed_projects])
    writer.writerow(["Total Predicted Hours", _fmt(summary.total_predicted_hours)])
    writer.writerow([])

    demand = engine.forecast_resource_demand(horizon_days)
    if demand.project_forecasts:
        section("PROJECT FORECASTS", [
            "Project Code", "Project Name", "Current Budget (hours)",
            "Predicted Usage (hours)", "Budget Variance", "Completion Date",
            "Priority",
        ])
        for f in demand.project_forecasts:
            b, c = f.budget_forecast, f.completion_forecast
            writer.writerow([
                f.project_code,
                f.project_name,
                _fmt(b.current_budget if b else None),
                _fmt(b.predicted_total_usage if b else None),
                _fmt(b.budget_variance if b else None),
                (c.completion_date or "N/A")[:10] if c else "N/A",
                f.priority,
            ])
        writer.writerow([])

    util = demand.resource_utilisation
    section("RESOURCE DEMAND FORECAST", ["Metric", "Value"])
    writer.writerow(["Total Predicted Hours", _fmt(demand.total_predicted_hours)])
    writer.writerow(["Critical Projects", demand.critical_projects])
    writer.writerow(["High Priority Projects", demand.high_priority_projects])
    writer.writerow(["Total Budget (hours)", _fmt(util.total_budget)])
    writer.writerow(["Utilisation Rate", _fmt(util.utilisation_rate, "%")])
    writer.writerow(["Efficiency", _fmt(util.efficiency, "%")])
    for rec in demand.recommendations:
        writer.writerow([f"Recommendation ({rec.severity})", rec.message])
    writer.writerow([])

    if not selected_project:
        return buf.getvalue()

    budget_fc = engine.forecast_budget(selected_project, horizon_days)
    if budget_fc is not None:
        section("SELECTED PROJECT DETAILED FORECAST", [
            "Project Code", "Project Name", "Current Budget", "Current Usage",
            "Predicted Usage", "Variance", "Variance %", "Days To Exhaustion",
            "Trend",
        ])
        writer.writerow([
            budget_fc.project_code,
            budget_fc.project_name,
            _fmt(budget_fc.current_budget),
            _fmt(budget_fc.current_usage),
            _fmt(budget_fc.predicted_total_usage),
            _fmt(budget_fc.budget_variance),
            _fmt(budget_fc.budget_variance_percentage, "%"),
            budget_fc.budget_exhaustion_days
            if budget_fc.budget_exhaustion_days is not None else "N/A",
            budget_fc.trend,
        ])
        writer.writerow([])

    completion_fc = engine.forecast_completion(selected_project)
    if completion_fc is not None:
        section("COMPLETION FORECAST DETAILS", ["Metric", "Value"])
        writer.writerow(["Status", completion_fc.status])
        writer.writerow(["Current Progress", _fmt(completion_fc.current_progress, "%")])
        writer.writerow(["Predicted Completion Date", completion_fc.completion_date or "N/A"])
        writer.writerow([
            "Days Remaining",
            completion_fc.days_to_completion
            if completion_fc.days_to_completion is not None else "N/A",
        ])
        writer.writerow(["Trend", completion_fc.trend])
        writer.writerow([])

    if budget_fc is not None:
        section("HISTORICAL DATA", ["Date", "Hours Logged", "Moving Average"])
        days = len(budget_fc.historical_data)
        today = now.astimezone(timezone.utc).date()
        for i, (hours, avg) in enumerate(
            zip(budget_fc.historical_data, budget_fc.moving_average)
        ):
            day = today - timedelta(days=days - 1 - i)
            writer.writerow([day.isoformat(), f"{hours:.2f}", f"{avg:.2f}"])
        writer.writerow([])

    return buf.getvalue()
