"""
Projects Panel — project list with usage, add form, budget / status changes
and removal (archive when time has been logged).
"""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QLineEdit, QComboBox,
    QPushButton, QGroupBox, QGridLayout, QDoubleSpinBox, QMessageBox,
    QInputDialog, QTableWidget, QTableWidgetItem, QHeaderView, QAbstractItemView,
)

from timesheet.data.models import PROJECT_CATEGORIES, Project, ProjectStatus
from timesheet.errors import TimesheetError
from timesheet.services.project_directory import ProjectDirectory

logger = logging.getLogger(__name__)


class ProjectsWidget(QWidget):
    """Administer projects and their budgets."""

    def __init__(
        self,
        projects: ProjectDirectory,
        username: str,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.projects = projects
        self.username = username
        self._setup_ui()
        self._unsubscribe = self.projects.on_change(self.refresh)
        self.refresh()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setSpacing(12)
        layout.setContentsMargins(16, 16, 16, 16)

        # ── Add project ─────────────────────────────────────────────
        add_group = QGroupBox("New Project")
        form = QGridLayout(add_group)

        self.category_combo = QComboBox()
        self.category_combo.addItems(PROJECT_CATEGORIES)
        self.category_combo.currentTextChanged.connect(self._suggest_code)
        form.addWidget(QLabel("Category"), 0, 0)
        form.addWidget(self.category_combo, 0, 1)

        self.code_edit = QLineEdit()
        self.code_edit.setPlaceholderText("ABC-001")
        form.addWidget(QLabel("Code"), 0, 2)
        form.addWidget(self.code_edit, 0, 3)

        self.name_edit = QLineEdit()
        form.addWidget(QLabel("Name"), 1, 0)
        form.addWidget(self.name_edit, 1, 1)

        self.budget_spin = QDoubleSpinBox()
        self.budget_spin.setRange(0, 100_000)
        self.budget_spin.setDecimals(1)
        self.budget_spin.setSuffix(" h")
        self.budget_spin.setSpecialValueText("No budget")
        form.addWidget(QLabel("Budget"), 1, 2)
        form.addWidget(self.budget_spin, 1, 3)

        add_btn = QPushButton("Add Project")
        add_btn.setObjectName("primary")
        add_btn.clicked.connect(self._on_add)
        form.addWidget(add_btn, 2, 3)
        layout.addWidget(add_group)

        # ── List ────────────────────────────────────────────────────
        self.search_edit = QLineEdit()
        self.search_edit.setPlaceholderText("Search projects…")
        self.search_edit.textChanged.connect(lambda *_: self.refresh())
        layout.addWidget(self.search_edit)

        self.table = QTableWidget()
        headers = ["Code", "Name", "Category", "Status", "Budget (h)", "Used (h)", "Budget status"]
        self.table.setColumnCount(len(headers))
        self.table.setHorizontalHeaderLabels(headers)
        self.table.verticalHeader().setVisible(False)
        self.table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.table.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.table.setAlternatingRowColors(True)
        self.table.horizontalHeader().setSectionResizeMode(1, QHeaderView.ResizeMode.Stretch)
        layout.addWidget(self.table, 1)

        # ── Actions ─────────────────────────────────────────────────
        row = QHBoxLayout()
        row.addStretch()
        budget_btn = QPushButton("Set Budget…")
        budget_btn.clicked.connect(self._on_set_budget)
        row.addWidget(budget_btn)
        status_btn = QPushButton("Change Status…")
        status_btn.clicked.connect(self._on_change_status)
        row.addWidget(status_btn)
        remove_btn = QPushButton("Remove")
        remove_btn.setObjectName("danger")
        remove_btn.clicked.connect(self._on_remove)
        row.addWidget(remove_btn)
        layout.addLayout(row)

        self._suggest_code(self.category_combo.currentText())

    # ── Data ────────────────────────────────────────────────────────────

    def refresh(self) -> None:
        term = self.search_edit.text().strip()
        listed = self.projects.list_projects()
        if term:
            listed = self.projects.search(term, listed)
        self.table.setRowCount(len(listed))
        for row, p in enumerate(listed):
            status = self.projects.budget_status(p.code)
            cells = [
                p.code,
                p.name,
                p.category,
                p.status,
                f"{p.budget:g}" if p.budget else "—",
                f"{self.projects.usage_stats(p.code).total_hours:g}",
                f"{status.status} ({status.percentage:g}%)" if p.budget else status.status,
            ]
            for col, text in enumerate(cells):
                item = QTableWidgetItem(text)
                item.setData(Qt.ItemDataRole.UserRole, p.code)
                self.table.setItem(row, col, item)

    def shutdown(self) -> None:
        self._unsubscribe()

    def selected_code(self) -> Optional[str]:
        row = self.table.currentRow()
        item = self.table.item(row, 0) if row >= 0 else None
        return item.data(Qt.ItemDataRole.UserRole) if item else None

    def add_from_form(self) -> Project:
        """Create a project from the form fields. Raises ValidationError."""
        project = self.projects.add_project(
            {
                "code": self.code_edit.text().strip().upper(),
                "name": self.name_edit.text(),
                "category": self.category_combo.currentText(),
                "budget": self.budget_spin.value(),
            },
            created_by=self.username,
        )
        self.name_edit.clear()
        self.budget_spin.setValue(0)
        self._suggest_code(self.category_combo.currentText())
        return project

    def _suggest_code(self, category: str) -> None:
        self.code_edit.setText(self.projects.generate_code(category))

    # ── Actions ─────────────────────────────────────────────────────────

    def _on_add(self) -> None:
        try:
            project = self.add_from_form()
        except TimesheetError as exc:
            QMessageBox.warning(self, "New Project", str(exc))
            return
        logger.info("Project %s added from the projects panel", project.code)

    def _on_set_budget(self) -> None:
        code = self.selected_code()
        if not code:
            return
        current = self.projects.require(code).budget
        hours, ok = QInputDialog.getDouble(
            self, "Set Budget", f"Budget hours for {code} (0 = no budget):",
            current, 0, 100_000, 1,
        )
        if not ok:
            return
        try:
            self.projects.set_budget(code, hours, set_by=self.username)
        except TimesheetError as exc:
            QMessageBox.warning(self, "Set Budget", str(exc))

    def _on_change_status(self) -> None:
        code = self.selected_code()
        if not code:
            return
        current = self.projects.require(code).status
        statuses = list(ProjectStatus.ALL)
        index = statuses.index(current) if current in statuses else 0
        status, ok = QInputDialog.getItem(
            self, "Project Status", f"Status for {code}:", statuses, index, False,
        )
        if not ok or status == current:
            return
        try:
            self.projects.update_project(code, {"status": status}, updated_by=self.username)
        except TimesheetError as exc:
            QMessageBox.warning(self, "Project Status", str(exc))

    def _on_remove(self) -> None:
        code = self.selected_code()
        if not code:
            return
        reply = QMessageBox.warning(
            self, "Remove Project",
            f"Remove {code}? Projects with logged time are archived instead.",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if reply != QMessageBox.StandardButton.Yes:
            return
        try:
            self.projects.remove_project(code, removed_by=self.username)
        except TimesheetError as exc:
            QMessageBox.warning(self, "Remove Project", str(exc))
