"""
Budget Alert Engine — threshold checks and the read/unread alert ledger.

check_budget_alerts() is a pure computation over the project directory.
record()/refresh() merge its output into the persisted ledger, keeping at
most one alert per project: a changed alert replaces the older one, an
unchanged one is left as it is (read flag included).
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from timesheet.clock import Clock, iso_from_ms, system_clock
from timesheet.data.models import AlertType, BudgetAlert, BudgetState, Severity
from timesheet.data.repository import Repository
from timesheet.services.project_directory import ProjectDirectory

logger = logging.getLogger(__name__)


class BudgetAlertEngine:
    def __init__(
        self,
        repo: Repository,
        projects: ProjectDirectory,
        clock: Clock = system_clock,
    ) -> None:
        self.repo = repo
        self.projects = projects
        self.clock = clock

    # ── Threshold check ─────────────────────────────────────────────────────

    def check_budget_alerts(self) -> List[BudgetAlert]:
        """Fresh alerts for every budgeted project at or over the warning line."""
        now = iso_from_ms(self.clock())
        alerts: List[BudgetAlert] = []
        for project in self.projects.list_projects():
            if project.budget <= 0:
                continue
            status = self.projects.budget_status(project.code)
            if status.status == BudgetState.OVER_BUDGET:
                alerts.append(BudgetAlert(
                    type=AlertType.BUDGET_EXCEEDED,
                    severity=Severity.HIGH,
                    project_code=project.code,
                    project_name=project.name,
                    message=(
                        f"{project.name} has exceeded its budget of "
                        f"{project.budget:g} hours ({status.used:g} hours used)"
                    ),
                    timestamp=now,
                    percentage=status.percentage,
                ))
            elif status.status == BudgetState.NEAR_LIMIT:
                alerts.append(BudgetAlert(
                    type=AlertType.BUDGET_WARNING,
                    severity=Severity.MEDIUM,
                    project_code=project.code,
                    project_name=project.name,
                    message=(
                        f"{project.name} is approaching its budget limit "
                        f"({status.percentage:g}% used)"
                    ),
                    timestamp=now,
                    percentage=status.percentage,
                ))
        return alerts

    # ── Ledger ──────────────────────────────────────────────────────────────

    def list_alerts(self) -> List[BudgetAlert]:
        return self.repo.load_alerts()

    def add_alert(self, alert: BudgetAlert) -> BudgetAlert:
        """Prepend to the ledger, stamping a fresh id and creation time."""
        alert.id = uuid.uuid4().hex
        alert.created_at = iso_from_ms(self.clock())
        alert.read = False
        alert.read_at = None
        alerts = self.repo.load_alerts()
        alerts.insert(0, alert)
        self.repo.save_alerts(alerts)
        return alert

    def record(self, new_alerts: List[BudgetAlert]) -> List[BudgetAlert]:
        """
        Merge alerts into the ledger, one per project. An alert whose type and
        percentage match the ledger entry keeps that entry (and its read flag);
        anything else replaces the project's previous alert.
        """
        ledger = self.repo.load_alerts()
        current = {a.project_code: a for a in reversed(ledger)}
        created_at = iso_from_ms(self.clock())
        fresh: List[BudgetAlert] = []
        for alert in new_alerts:
            existing = current.get(alert.project_code)
            if (existing is not None and existing.type == alert.type
                    and existing.percentage == alert.percentage):
                continue
            alert.id = uuid.uuid4().hex
            alert.created_at = created_at
            alert.read = False
            alert.read_at = None
            fresh.append(alert)
        if not fresh:
            return []
        replaced = {a.project_code for a in fresh}
        kept = [a for a in ledger if a.project_code not in replaced]
        self.repo.save_alerts(fresh + kept)
        logger.info("Recorded %d budget alert(s).", len(fresh))
        return fresh

    def refresh(self) -> List[BudgetAlert]:
        """Re-evaluate budgets and merge the result into the ledger."""
        return self.record(self.check_budget_alerts())

    def mark_read(self, alert_id: str) -> Optional[BudgetAlert]:
        alerts = self.repo.load_alerts()
        for alert in alerts:
            if alert.id == alert_id:
                alert.read = True
                alert.read_at = iso_from_ms(self.clock())
                self.repo.save_alerts(alerts)
                return alert
        return None

    def clear_all(self) -> None:
        self.repo.save_alerts([])
        logger.info("Budget alerts cleared.")

    def unread_count(self) -> int:
        return sum(1 for a in self.repo.load_alerts() if not a.read)
