"""
Audit Trail — filterable view over the event log with an activity summary.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QComboBox, QLineEdit,
    QPushButton, QTableWidget, QTableWidgetItem, QHeaderView, QAbstractItemView,
)

from timesheet.clock import ms_to_datetime
from timesheet.data.models import EventLogEntry, EventType
from timesheet.services.event_log import EventLog

logger = logging.getLogger(__name__)

EVENT_TYPES = [value for name, value in vars(EventType).items() if name.isupper()]

# label, days back (None = everything)
PERIODS = [
    ("All time", None),
    ("Last 24 hours", 1),
    ("Last 7 days", 7),
    ("Last 30 days", 30),
]


class AuditWidget(QWidget):
    """Event log table with type / user / period / text filters."""

    def __init__(self, event_log: EventLog, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.event_log = event_log
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)

        # ── Filters ─────────────────────────────────────────────────
        filters = QHBoxLayout()
        self.type_combo = QComboBox()
        self.type_combo.addItem("All events", None)
        for event_type in EVENT_TYPES:
            self.type_combo.addItem(event_type.replace("_", " ").title(), event_type)
        self.type_combo.currentIndexChanged.connect(lambda *_: self.refresh())
        filters.addWidget(self.type_combo)

        self.period_combo = QComboBox()
        for label, days in PERIODS:
            self.period_combo.addItem(label, days)
        self.period_combo.currentIndexChanged.connect(lambda *_: self.refresh())
        filters.addWidget(self.period_combo)

        self.user_edit = QLineEdit()
        self.user_edit.setPlaceholderText("User")
        self.user_edit.textChanged.connect(lambda *_: self.refresh())
        filters.addWidget(self.user_edit)

        self.search_edit = QLineEdit()
        self.search_edit.setPlaceholderText("Search messages, projects…")
        self.search_edit.textChanged.connect(lambda *_: self.refresh())
        filters.addWidget(self.search_edit, 1)

        refresh_btn = QPushButton("Refresh")
        refresh_btn.clicked.connect(lambda *_: self.refresh())
        filters.addWidget(refresh_btn)
        layout.addLayout(filters)

        self.summary_label = QLabel("")
        self.summary_label.setObjectName("subtitle")
        layout.addWidget(self.summary_label)

        # ── Table ───────────────────────────────────────────────────
        self.table = QTableWidget()
        headers = ["Time", "Event", "User", "Project", "Message"]
        self.table.setColumnCount(len(headers))
        self.table.setHorizontalHeaderLabels(headers)
        self.table.verticalHeader().setVisible(False)
        self.table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.table.setAlternatingRowColors(True)
        self.table.horizontalHeader().setSectionResizeMode(4, QHeaderView.ResizeMode.Stretch)
        layout.addWidget(self.table, 1)

    # ── Data ────────────────────────────────────────────────────────────

    def filtered_events(self) -> List[EventLogEntry]:
        days = self.period_combo.currentData()
        since = None
        if days is not None:
            since = ms_to_datetime(self.event_log.clock()) - timedelta(days=days)
        return self.event_log.list_events(
            username=self.user_edit.text().strip() or None,
            event_type=self.type_combo.currentData(),
            since=since,
            search=self.search_edit.text().strip() or None,
        )

    def refresh(self) -> None:
        events = self.filtered_events()
        self.table.setRowCount(len(events))
        for row, e in enumerate(events):
            cells = [
                e.timestamp[:19].replace("T", " "),
                e.type,
                e.username or "",
                e.project_code or "",
                e.message or "",
            ]
            for col, text in enumerate(cells):
                self.table.setItem(row, col, QTableWidgetItem(text))

        summary = self.event_log.activity_summary(events)
        top = sorted(summary["by_type"].items(), key=lambda kv: kv[1], reverse=True)[:3]
        top_text = ", ".join(f"{t} ×{n}" for t, n in top)
        self.summary_label.setText(
            f"{summary['total']} events, {summary['recent_24h']} in the last 24 hours, "
            f"{len(summary['by_user'])} user(s)" + (f"  ·  {top_text}" if top_text else "")
        )
