"""
Main Window — the desktop shell around the timesheet services.

Contains:
  - Timer tab: project selector, live stopwatch, Start/Pause/Reset/Save,
    idle banner
  - Time Entries tab: the user's logged entries with edit and delete
  - Projects tab: add projects and manage their budgets and status
  - Alerts tab: budget alert ledger with unread count
  - Forecast tab: headline numbers, per-project demand table, CSV export
  - Audit tab: filterable event log with activity summary
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from PySide6.QtCore import Qt, QEvent, Slot
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel,
    QPushButton, QTabWidget, QComboBox, QMessageBox, QFrame,
    QTableWidget, QTableWidgetItem, QHeaderView, QAbstractItemView,
    QListWidget, QListWidgetItem, QFileDialog,
)

from timesheet.data.database import SqliteStore
from timesheet.errors import StaleEntryWarning, TimesheetError
from timesheet.forecasting.engine import ForecastEngine
from timesheet.forecasting.export import export_filename, export_forecast_csv
from timesheet.services.alerts import BudgetAlertEngine
from timesheet.services.event_log import EventLog
from timesheet.services.project_directory import ProjectDirectory
from timesheet.services.time_log import TimeLogBook
from timesheet.services.timer_service import TimerService, format_elapsed
from timesheet.services.tracking_service import TimerScheduler
from timesheet.ui.audit_widget import AuditWidget
from timesheet.ui.entry_dialog import EntryEditDialog
from timesheet.ui.projects_widget import ProjectsWidget

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """The main application window."""

    def __init__(
        self,
        store: SqliteStore,
        timer: TimerService,
        scheduler: TimerScheduler,
        projects: ProjectDirectory,
        time_logs: TimeLogBook,
        alerts: BudgetAlertEngine,
        forecasts: ForecastEngine,
        event_log: EventLog,
        horizon_days: int = 30,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Timesheet Tracker")
        self.setMinimumSize(900, 650)

        self.store = store
        self.timer = timer
        self.scheduler = scheduler
        self.projects = projects
        self.time_logs = time_logs
        self.alerts = alerts
        self.forecasts = forecasts
        self.event_log = event_log
        self.horizon_days = horizon_days

        # Service callbacks
        self.timer.on_change = lambda _state: self._update_timer_display()
        self.timer.on_idle = self._on_idle
        self.timer.on_time_logged = lambda _entry: self._refresh_after_log()
        self.scheduler.on_tick = lambda _elapsed: self._update_timer_display()
        self._unsubscribe_projects = self.projects.on_change(self._load_projects)

        self._build_ui()
        self._load_projects()
        self._refresh_entries()
        self._refresh_alerts()
        self._update_timer_display()
        self.scheduler.sync()

    # ── UI Construction ─────────────────────────────────────────────────

    def _build_ui(self) -> None:
        self.tabs = QTabWidget()
        self.setCentralWidget(self.tabs)

        self.tabs.addTab(self._build_timer_tab(), "Timer")
        self.tabs.addTab(self._build_entries_tab(), "Time Entries")
        self.projects_widget = ProjectsWidget(self.projects, self.timer.username)
        self.tabs.addTab(self.projects_widget, "Projects")
        self.alerts_tab_index = self.tabs.addTab(self._build_alerts_tab(), "Alerts")
        self.forecast_tab_index = self.tabs.addTab(self._build_forecast_tab(), "Forecast")
        self.audit_widget = AuditWidget(self.event_log)
        self.audit_tab_index = self.tabs.addTab(self.audit_widget, "Audit")

        self.tabs.currentChanged.connect(self._on_tab_changed)

    def _build_timer_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.setSpacing(16)
        layout.setContentsMargins(24, 24, 24, 24)

        # ── Project selector ────────────────────────────────────────
        self.project_combo = QComboBox()
        self.project_combo.currentIndexChanged.connect(self._on_project_selected)
        layout.addWidget(self.project_combo)

        # ── Timer display ───────────────────────────────────────────
        self.state_label = QLabel("Stopped")
        self.state_label.setObjectName("state_label")
        self.state_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.state_label)

        self.timer_label = QLabel("00:00:00")
        self.timer_label.setObjectName("timer")
        self.timer_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.timer_label)

        self.budget_label = QLabel("")
        self.budget_label.setObjectName("subtitle")
        self.budget_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.budget_label)

        # ── Idle banner ─────────────────────────────────────────────
        self.idle_banner = QFrame()
        self.idle_banner.setObjectName("idle_banner")
        banner_layout = QHBoxLayout(self.idle_banner)
        banner_layout.addWidget(QLabel(
            "The timer has been running for a while without activity. Still working?"
        ))
        dismiss = QPushButton("I'm here")
        dismiss.clicked.connect(self._on_dismiss_idle)
        banner_layout.addWidget(dismiss)
        self.idle_banner.setVisible(False)
        layout.addWidget(self.idle_banner)

        # ── Buttons ─────────────────────────────────────────────────
        btn_layout = QHBoxLayout()
        btn_layout.setSpacing(12)

        self.btn_start = QPushButton("Start")
        self.btn_start.setObjectName("primary")
        self.btn_start.clicked.connect(self._on_start)
        btn_layout.addWidget(self.btn_start)

        self.btn_pause = QPushButton("Pause")
        self.btn_pause.setObjectName("warning")
        self.btn_pause.clicked.connect(self._on_pause)
        btn_layout.addWidget(self.btn_pause)

        self.btn_reset = QPushButton("Reset")
        self.btn_reset.clicked.connect(self._on_reset)
        btn_layout.addWidget(self.btn_reset)

        self.btn_save = QPushButton("Save")
        self.btn_save.setObjectName("primary")
        self.btn_save.clicked.connect(self._on_save)
        btn_layout.addWidget(self.btn_save)

        layout.addLayout(btn_layout)
        layout.addStretch()
        return widget

    def _build_entries_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.setContentsMargins(16, 16, 16, 16)

        self.entries_table = self._make_table(
            ["Date", "Project", "Time", "Notes", "", ""]
        )
        header = self.entries_table.horizontalHeader()
        header.setSectionResizeMode(3, QHeaderView.ResizeMode.Stretch)
        self.entries_table.setColumnWidth(4, 70)
        self.entries_table.setColumnWidth(5, 70)
        layout.addWidget(self.entries_table, 1)
        return widget

    def _build_alerts_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.setContentsMargins(16, 16, 16, 16)

        self.alerts_list = QListWidget()
        self.alerts_list.itemDoubleClicked.connect(self._on_alert_clicked)
        layout.addWidget(self.alerts_list, 1)

        row = QHBoxLayout()
        row.addStretch()
        check_btn = QPushButton("Check Budgets")
        check_btn.clicked.connect(self._on_check_budgets)
        row.addWidget(check_btn)
        clear_btn = QPushButton("Clear All")
        clear_btn.setObjectName("danger")
        clear_btn.clicked.connect(self._on_clear_alerts)
        row.addWidget(clear_btn)
        layout.addLayout(row)
        return widget

    def _build_forecast_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.setContentsMargins(16, 16, 16, 16)

        metrics = QHBoxLayout()
        self.metric_labels = {}
        for key, title in (
            ("total", "Budgeted projects"),
            ("critical", "Critical"),
            ("delayed", "Slowing"),
            ("hours", "Predicted hours"),
        ):
            box = QVBoxLayout()
            value = QLabel("0")
            value.setObjectName("metric_value")
            caption = QLabel(title)
            caption.setObjectName("subtitle")
            box.addWidget(value)
            box.addWidget(caption)
            metrics.addLayout(box)
            self.metric_labels[key] = value
        layout.addLayout(metrics)

        self.forecast_table = self._make_table(
            ["Project", "Budget", "Used", "Predicted", "Exhaustion (days)",
             "Trend", "Priority"]
        )
        self.forecast_table.horizontalHeader().setSectionResizeMode(
            0, QHeaderView.ResizeMode.Stretch
        )
        layout.addWidget(self.forecast_table, 1)

        self.recommendations_label = QLabel("")
        self.recommendations_label.setObjectName("subtitle")
        self.recommendations_label.setWordWrap(True)
        layout.addWidget(self.recommendations_label)

        row = QHBoxLayout()
        row.addStretch()
        export_btn = QPushButton("Export CSV")
        export_btn.clicked.connect(self._on_export_csv)
        row.addWidget(export_btn)
        layout.addLayout(row)
        return widget

    @staticmethod
    def _make_table(headers) -> QTableWidget:
        table = QTableWidget()
        table.setColumnCount(len(headers))
        table.setHorizontalHeaderLabels(headers)
        table.verticalHeader().setVisible(False)
        table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        table.setAlternatingRowColors(True)
        return table

    # ── Timer actions ───────────────────────────────────────────────────

    @Slot(int)
    def _on_project_selected(self, index: int) -> None:
        code = self.project_combo.itemData(index)
        try:
            self.timer.set_project(code)
        except TimesheetError as exc:
            QMessageBox.warning(self, "Project Switch", str(exc))
        self._update_budget_label()

    def _on_start(self) -> None:
        try:
            self.timer.start()
        except TimesheetError as exc:
            QMessageBox.warning(self, "Missing Info", str(exc))
            return
        self.scheduler.sync()
        self._update_timer_display()

    def _on_pause(self) -> None:
        self.timer.pause()
        self.scheduler.sync()
        self._update_timer_display()

    def _on_reset(self) -> None:
        self.timer.reset()
        self.scheduler.sync()
        self._update_timer_display()

    def _on_save(self) -> None:
        try:
            entry = self.timer.save()
        except StaleEntryWarning as warning:
            reply = QMessageBox.question(
                self, "Old Time Entry", str(warning),
                QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
                QMessageBox.StandardButton.No,
            )
            if reply != QMessageBox.StandardButton.Yes:
                return
            entry = self.timer.save(confirmed=True)
        except TimesheetError as exc:
            QMessageBox.warning(self, "Missing Info", str(exc))
            return
        self.scheduler.sync()
        self._update_timer_display()
        if entry is None:
            self.statusBar().showMessage("Nothing to save yet.", 3000)
        else:
            self.statusBar().showMessage(
                f"Saved {format_elapsed(entry.time_spent_seconds)} "
                f"for {entry.project_code}", 5000,
            )

    def _on_idle(self) -> None:
        self.idle_banner.setVisible(True)

    def _on_dismiss_idle(self) -> None:
        self.timer.acknowledge_idle()
        self.idle_banner.setVisible(False)

    # ── Display ─────────────────────────────────────────────────────────

    def _update_timer_display(self) -> None:
        self.timer_label.setText(self.timer.formatted_elapsed)
        running = self.timer.running
        if running:
            self.state_label.setText(f"Tracking {self.timer.project}")
        elif self.timer.elapsed_seconds > 0:
            self.state_label.setText("Paused")
        else:
            self.state_label.setText("Stopped")
        self.idle_banner.setVisible(self.timer.idle_alert_active)

        self.btn_start.setEnabled(not running)
        self.btn_pause.setEnabled(running)
        self.btn_save.setEnabled(running or self.timer.elapsed_seconds > 0)

    def _update_budget_label(self) -> None:
        code = self.timer.project
        if not code:
            self.budget_label.setText("")
            return
        status = self.projects.budget_status(code)
        if status.budget:
            self.budget_label.setText(
                f"{status.used:g} / {status.budget:g} h used ({status.percentage:g}%)"
            )
        else:
            self.budget_label.setText("No budget set")

    def _load_projects(self) -> None:
        self.project_combo.blockSignals(True)
        self.project_combo.clear()
        self.project_combo.addItem("Select a project…", None)
        for p in self.projects.active_projects():
            self.project_combo.addItem(f"{p.code} — {p.name}", p.code)
        idx = self.project_combo.findData(self.timer.project)
        self.project_combo.setCurrentIndex(max(idx, 0))
        self.project_combo.blockSignals(False)
        self._update_budget_label()

    def _refresh_after_log(self) -> None:
        self._refresh_entries()
        self._refresh_alerts()
        self._update_budget_label()

    def _refresh_entries(self) -> None:
        entries = sorted(
            self.time_logs.list_entries(self.timer.username),
            key=lambda e: e.timestamp, reverse=True,
        )
        self.entries_table.setRowCount(len(entries))
        for row, e in enumerate(entries):
            self.entries_table.setItem(row, 0, QTableWidgetItem(e.timestamp[:16].replace("T", " ")))
            self.entries_table.setItem(row, 1, QTableWidgetItem(e.project_code))
            self.entries_table.setItem(row, 2, QTableWidgetItem(format_elapsed(e.time_spent_seconds)))
            self.entries_table.setItem(row, 3, QTableWidgetItem(e.notes or ""))
            edit_btn = QPushButton("Edit")
            edit_btn.clicked.connect(lambda _=False, eid=e.id: self._edit_entry(eid))
            self.entries_table.setCellWidget(row, 4, edit_btn)
            del_btn = QPushButton("Delete")
            del_btn.clicked.connect(lambda _=False, eid=e.id: self._delete_entry(eid))
            self.entries_table.setCellWidget(row, 5, del_btn)

    def _edit_entry(self, entry_id: str) -> None:
        entry = self.time_logs.get(entry_id)
        if entry is None:
            return
        dialog = EntryEditDialog(entry, self.projects.active_projects(), self)
        if not dialog.exec():
            return
        try:
            code, seconds, notes = dialog.values()
            self.time_logs.update(
                entry_id, self.timer.username,
                project_code=code, time_spent_seconds=seconds, notes=notes,
            )
        except TimesheetError as exc:
            QMessageBox.warning(self, "Edit Entry", str(exc))
            return
        self.alerts.refresh()
        self._refresh_after_log()

    def _delete_entry(self, entry_id: str) -> None:
        reply = QMessageBox.warning(
            self, "Delete Entry", "Delete this time entry? This cannot be undone.",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if reply != QMessageBox.StandardButton.Yes:
            return
        try:
            self.time_logs.delete(entry_id, self.timer.username)
        except TimesheetError as exc:
            QMessageBox.warning(self, "Delete Entry", str(exc))
        self._refresh_after_log()

    # ── Alerts ──────────────────────────────────────────────────────────

    def _refresh_alerts(self) -> None:
        self.alerts_list.clear()
        for alert in self.alerts.list_alerts():
            prefix = "" if alert.read else "● "
            item = QListWidgetItem(f"{prefix}[{alert.severity}] {alert.message}")
            item.setData(Qt.ItemDataRole.UserRole, alert.id)
            self.alerts_list.addItem(item)
        unread = self.alerts.unread_count()
        title = f"Alerts ({unread})" if unread else "Alerts"
        self.tabs.setTabText(self.alerts_tab_index, title)

    @Slot(QListWidgetItem)
    def _on_alert_clicked(self, item: QListWidgetItem) -> None:
        self.alerts.mark_read(item.data(Qt.ItemDataRole.UserRole))
        self._refresh_alerts()

    def _on_check_budgets(self) -> None:
        self.alerts.refresh()
        self._refresh_alerts()

    def _on_clear_alerts(self) -> None:
        self.alerts.clear_all()
        self._refresh_alerts()

    # ── Forecast ────────────────────────────────────────────────────────

    def _refresh_forecast(self) -> None:
        summary = self.forecasts.forecasting_summary(self.horizon_days)
        self.metric_labels["total"].setText(str(summary.total_projects))
        self.metric_labels["critical"].setText(str(summary.critical_projects))
        self.metric_labels["delayed"].setText(str(summary.delayed_projects))
        self.metric_labels["hours"].setText(f"{summary.total_predicted_hours:.1f}")

        demand = self.forecasts.forecast_resource_demand(self.horizon_days)
        self.forecast_table.setRowCount(len(demand.project_forecasts))
        for row, f in enumerate(demand.project_forecasts):
            b = f.budget_forecast
            cells = [
                f"{f.project_code} — {f.project_name}",
                f"{b.current_budget:g}" if b else "—",
                f"{b.current_usage:.1f}" if b else "—",
                f"{b.predicted_total_usage:.1f}" if b else "—",
                str(b.budget_exhaustion_days) if b and b.budget_exhaustion_days is not None else "—",
                b.trend if b else "—",
                f.priority,
            ]
            for col, text in enumerate(cells):
                self.forecast_table.setItem(row, col, QTableWidgetItem(text))

        self.recommendations_label.setText(
            "\n".join(r.message for r in demand.recommendations)
        )

    def _on_export_csv(self) -> None:
        now = datetime.now(timezone.utc)
        dest, _ = QFileDialog.getSaveFileName(
            self, "Export Forecast", export_filename(now), "CSV (*.csv)"
        )
        if not dest:
            return
        text = export_forecast_csv(
            self.forecasts, self.horizon_days, self.timer.project, now=now
        )
        try:
            Path(dest).write_text(text, encoding="utf-8")
        except OSError as exc:
            logger.error("CSV export failed: %s", exc)
            QMessageBox.warning(self, "Export Failed", str(exc))
            return
        self.statusBar().showMessage(f"Exported {dest}", 5000)

    # ── Misc ────────────────────────────────────────────────────────────

    @Slot(int)
    def _on_tab_changed(self, index: int) -> None:
        if index == self.forecast_tab_index:
            self._refresh_forecast()
        elif index == self.alerts_tab_index:
            self._refresh_alerts()
        elif index == self.audit_tab_index:
            self.audit_widget.refresh()

    def changeEvent(self, event: QEvent) -> None:
        if event.type() == QEvent.Type.ActivationChange and self.isActiveWindow():
            self.timer.on_foreground()
            self.time_logs.refresh()
            self.projects.notify_changed()
            self._update_timer_display()
        super().changeEvent(event)

    def closeEvent(self, event: QCloseEvent) -> None:
        self.scheduler.shutdown()
        self._unsubscribe_projects()
        self.projects_widget.shutdown()
        self.store.close()
        logger.info("Main window closed.")
        event.accept()
