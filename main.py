"""
Timesheet Tracker — desktop timesheet and project-budget tracker.
Entry point for the application.
"""

import faulthandler
import logging
import sys
from pathlib import Path

faulthandler.enable()

# Ensure the timesheet package is importable when run from a checkout
sys.path.insert(0, str(Path(__file__).resolve().parent))

from PySide6.QtWidgets import QApplication

from timesheet.config import (
    BudgetThresholds, ForecastThresholds, TimerSettings,
    load_config, resolve_db_path, resolve_username,
)
from timesheet.data.database import SqliteStore
from timesheet.data.repository import Repository
from timesheet.forecasting.engine import ForecastEngine
from timesheet.services.alerts import BudgetAlertEngine
from timesheet.services.event_log import EventLog
from timesheet.services.project_directory import ProjectDirectory
from timesheet.services.time_log import TimeLogBook
from timesheet.services.timer_service import TimerService
from timesheet.services.tracking_service import TimerScheduler
from timesheet.ui.main_window import MainWindow
from timesheet.ui.styles import DARK_STYLESHEET


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("timesheet_tracker.log", encoding="utf-8"),
        ],
    )


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting Timesheet Tracker...")

    config = load_config()
    username = resolve_username(config)
    timer_settings = TimerSettings.from_config(config)

    store = SqliteStore(resolve_db_path(config))
    store.connect()
    repo = Repository(store)

    events = EventLog(repo)
    projects = ProjectDirectory(
        repo, events, budget_thresholds=BudgetThresholds.from_config(config)
    )
    projects.seed_defaults()
    time_logs = TimeLogBook(repo, events)
    alerts = BudgetAlertEngine(repo, projects)
    forecasts = ForecastEngine(
        repo, projects, thresholds=ForecastThresholds.from_config(config)
    )

    timer = TimerService(
        repo, events, time_logs,
        alert_engine=alerts,
        settings=timer_settings,
        username=username,
    )
    timer.restore()

    app = QApplication(sys.argv)
    app.setApplicationName("Timesheet Tracker")
    app.setOrganizationName("Timesheet Tracker")

    # Apply dark theme globally
    app.setStyleSheet(DARK_STYLESHEET)

    scheduler = TimerScheduler(timer, timer_settings)
    window = MainWindow(
        store, timer, scheduler, projects, time_logs, alerts, forecasts, events,
        horizon_days=ForecastThresholds.from_config(config).horizon_days,
    )
    window.show()

    logger.info("Application started for user %s.", username)
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
