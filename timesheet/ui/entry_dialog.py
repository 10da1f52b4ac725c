"""
Edit Entry dialog — change the project, duration (HH:MM) and notes of a
logged time entry.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from PySide6.QtWidgets import (
    QDialog, QDialogButtonBox, QFormLayout, QComboBox, QLineEdit, QWidget,
)

from timesheet.data.models import Project, TimeLogEntry
from timesheet.services.time_log import parse_hhmm


def format_hhmm(seconds: int) -> str:
    hours, rest = divmod(max(0, int(seconds)), 3600)
    return f"{hours:02d}:{rest // 60:02d}"


class EntryEditDialog(QDialog):
    def __init__(
        self,
        entry: TimeLogEntry,
        projects: List[Project],
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("Edit Time Entry")
        self.entry = entry

        layout = QFormLayout(self)

        self.project_combo = QComboBox()
        codes = [p.code for p in projects]
        for p in projects:
            self.project_combo.addItem(f"{p.code} — {p.name}", p.code)
        # an archived project is not offered for new work but stays valid here
        if entry.project_code not in codes:
            self.project_combo.addItem(entry.project_code, entry.project_code)
        self.project_combo.setCurrentIndex(self.project_combo.findData(entry.project_code))
        layout.addRow("Project", self.project_combo)

        self.time_edit = QLineEdit(format_hhmm(entry.time_spent_seconds))
        self.time_edit.setPlaceholderText("HH:MM")
        layout.addRow("Time", self.time_edit)

        self.notes_edit = QLineEdit(entry.notes or "")
        layout.addRow("Notes", self.notes_edit)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Save | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    def values(self) -> Tuple[str, int, str]:
        """(project code, seconds, notes). Raises ValidationError on a bad time."""
        return (
            self.project_combo.currentData(),
            parse_hhmm(self.time_edit.text()),
            self.notes_edit.text().strip(),
        )
