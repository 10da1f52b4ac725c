"""
Project Directory — project metadata, budgets and usage statistics.

Projects are looked up by their unique code. Deletion is soft whenever time
has been logged against a project: it is archived instead of removed so old
entries keep a valid reference.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from timesheet.clock import Clock, iso_from_ms, parse_iso, system_clock
from timesheet.config import BudgetThresholds
from timesheet.data.models import (
    BudgetState, BudgetStatus, EventType, Project, ProjectStatus, UsageStats,
)
from timesheet.data.repository import Repository
from timesheet.errors import NotFoundError, ValidationError
from timesheet.services.event_log import EventLog

logger = logging.getLogger(__name__)

PROJECT_CODE_RE = re.compile(r"^[A-Z]{2,}-\d{3}$")

# (code, name, category, budget hours)
_DEFAULTS = [
    ("DEV-001", "Frontend Development", "Development", 80),
    ("DEV-002", "Backend Development", "Development", 120),
    ("DEV-003", "Database Design", "Development", 40),
    ("TEST-001", "Unit Testing", "Testing", 60),
    ("TEST-002", "Integration Testing", "Testing", 80),
    ("TEST-003", "User Acceptance Testing", "Testing", 100),
    ("DESIGN-001", "UI/UX Design", "Design", 60),
    ("DESIGN-002", "Graphic Design", "Design", 40),
    ("DOCS-001", "Technical Documentation", "Documentation", 30),
    ("DOCS-002", "User Documentation", "Documentation", 25),
    ("MEET-001", "Team Meetings", "Meeting", 0),
    ("MEET-002", "Client Meetings", "Meeting", 0),
    ("ADMIN-001", "Administrative Tasks", "Other", 0),
    ("ADMIN-002", "Project Planning", "Other", 0),
    ("SUPPORT-001", "Technical Support", "Other", 0),
    ("SUPPORT-002", "Bug Fixes", "Other", 0),
    ("RESEARCH-001", "Technology Research", "Research", 50),
    ("RESEARCH-002", "Market Research", "Research", 40),
    ("TRAINING-001", "Employee Training", "Other", 0),
    ("TRAINING-002", "Skill Development", "Other", 0),
]


def default_projects(created_at: str) -> List[Project]:
    return [
        Project(code=code, name=name, category=category, budget=float(budget),
                created_by="system", created_at=created_at)
        for code, name, category, budget in _DEFAULTS
    ]


class ProjectDirectory:
    def __init__(
        self,
        repo: Repository,
        event_log: EventLog,
        clock: Clock = system_clock,
        budget_thresholds: BudgetThresholds = BudgetThresholds(),
    ) -> None:
        self.repo = repo
        self.event_log = event_log
        self.clock = clock
        self.budget_thresholds = budget_thresholds
        self._listeners: List[Callable[[], None]] = []

    # ── Change notification ─────────────────────────────────────────────────

    def on_change(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Subscribe to directory changes. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def notify_changed(self) -> None:
        """Fire listeners. Hosts call this when another process changed the store."""
        for callback in list(self._listeners):
            callback()

    # ── Queries ─────────────────────────────────────────────────────────────

    def seed_defaults(self) -> bool:
        """Write the default project list if no list has ever been saved."""
        if self.repo.has_projects():
            return False
        self.repo.save_projects(default_projects(iso_from_ms(self.clock())))
        logger.info("Seeded %d default projects.", len(_DEFAULTS))
        return True

    def list_projects(self, status: Optional[str] = None) -> List[Project]:
        projects = self.repo.load_projects()
        if status is not None:
            projects = [p for p in projects if p.status == status]
        return projects

    def active_projects(self) -> List[Project]:
        return self.list_projects(ProjectStatus.ACTIVE)

    def by_category(self, category: str) -> List[Project]:
        return [p for p in self.list_projects() if p.category == category]

    def get(self, code: str) -> Optional[Project]:
        for p in self.repo.load_projects():
            if p.code == code:
                return p
        return None

    def require(self, code: str) -> Project:
        project = self.get(code)
        if project is None:
            raise NotFoundError(f"Project {code} not found")
        return project

    def search(self, term: str, projects: Optional[List[Project]] = None) -> List[Project]:
        pool = projects if projects is not None else self.list_projects()
        t = term.lower()
        return [
            p for p in pool
            if t in p.code.lower() or t in p.name.lower() or t in p.category.lower()
        ]

    @staticmethod
    def validate_code(code: str) -> bool:
        return bool(PROJECT_CODE_RE.match(code or ""))

    def generate_code(self, category: str) -> str:
        """Next free code for a category, e.g. 'Development' → 'DEV-004'."""
        prefix = category[:3].upper()
        numbers = []
        for p in self.list_projects():
            if p.code.startswith(prefix):
                match = re.search(r"\d+$", p.code)
                numbers.append(int(match.group()) if match else 0)
        next_number = max(numbers) + 1 if numbers else 1
        return f"{prefix}-{next_number:03d}"

    # ── Mutations ───────────────────────────────────────────────────────────

    def add_project(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Project:
        code = (data.get("code") or "").strip()
        if not self.validate_code(code):
            raise ValidationError(
                f"Invalid project code {code!r}: expected letters-dash-three-digits"
            )
        if not (data.get("name") or "").strip():
            raise ValidationError("Project name is required")
        projects = self.repo.load_projects()
        if any(p.code == code for p in projects):
            raise ValidationError("Project code already exists")

        now = iso_from_ms(self.clock())
        project = Project(
            code=code,
            name=data["name"].strip(),
            category=data.get("category") or "Other",
            status=data.get("status") or ProjectStatus.ACTIVE,
            budget=float(data.get("budget") or 0),
            description=data.get("description"),
            created_by=created_by or "unknown",
            created_at=now,
            updated_at=now,
        )
        projects.append(project)
        self.repo.save_projects(projects)
        self.event_log.append(
            EventType.PROJECT_ADDED,
            f"Project {project.name} was added",
            username=created_by,
            project_code=code,
            projectName=project.name,
        )
        logger.info("Added project %s", code)
        self.notify_changed()
        return project

    def update_project(
        self, code: str, changes: Dict[str, Any], updated_by: Optional[str] = None,
        log_event: bool = True,
    ) -> Project:
        """Merge ``changes`` (persisted camelCase field names) into a project."""
        projects = self.repo.load_projects()
        idx = next((i for i, p in enumerate(projects) if p.code == code), None)
        if idx is None:
            raise NotFoundError(f"Project {code} not found")

        merged = projects[idx].to_dict()
        merged.update(changes)
        merged["code"] = code
        merged["updatedBy"] = updated_by or "unknown"
        merged["updatedAt"] = iso_from_ms(self.clock())
        project = Project.from_dict(merged)
        projects[idx] = project
        self.repo.save_projects(projects)
        if log_event:
            self.event_log.append(
                EventType.PROJECT_UPDATED,
                f"Project {project.name} was updated",
                username=updated_by,
                project_code=code,
                projectName=project.name,
            )
        logger.info("Updated project %s", code)
        self.notify_changed()
        return project

    def remove_project(self, code: str, removed_by: Optional[str] = None) -> Project:
        """Delete a project, or archive it if time was ever logged against it."""
        project = self.require(code)
        in_use = any(log.project_code == code for log in self.repo.load_time_logs())
        if in_use:
            archived = self.update_project(
                code, {"status": ProjectStatus.ARCHIVED}, removed_by, log_event=False
            )
            self.event_log.append(
                EventType.PROJECT_ARCHIVED,
                f"Project {project.name} was archived (time logged against it)",
                username=removed_by,
                project_code=code,
                projectName=project.name,
            )
            return archived

        self.repo.save_projects([p for p in self.repo.load_projects() if p.code != code])
        self.event_log.append(
            EventType.PROJECT_DELETED,
            f"Project {project.name} was deleted",
            username=removed_by,
            project_code=code,
            projectName=project.name,
        )
        logger.info("Deleted project %s", code)
        self.notify_changed()
        return project

    def set_budget(self, code: str, budget: float, set_by: Optional[str] = None) -> Project:
        if budget < 0:
            raise ValidationError("Budget cannot be negative")
        projects = self.repo.load_projects()
        idx = next((i for i, p in enumerate(projects) if p.code == code), None)
        if idx is None:
            raise NotFoundError(f"Project {code} not found")

        project = projects[idx]
        project.budget = float(budget)
        project.budget_set_by = set_by or "unknown"
        project.budget_set_at = iso_from_ms(self.clock())
        self.repo.save_projects(projects)
        self.event_log.append(
            EventType.BUDGET_UPDATED,
            f"Budget for {project.name} set to {budget:g} hours",
            username=set_by,
            project_code=code,
            projectName=project.name,
            budget=budget,
        )
        self.notify_changed()
        return project

    # ── Usage & budget ──────────────────────────────────────────────────────

    def usage_stats(self, code: str) -> UsageStats:
        logs = [log for log in self.repo.load_time_logs() if log.project_code == code]
        if not logs:
            return UsageStats()
        total_hours = sum(log.time_spent_seconds for log in logs) / 3600.0
        stamps = []
        for log in logs:
            try:
                stamps.append(int(parse_iso(log.timestamp).timestamp() * 1000))
            except ValueError:
                logger.debug("Skipping time log %s with bad timestamp", log.id)
        last_activity = max(stamps) if stamps else None
        return UsageStats(
            total_hours=round(total_hours, 2),
            total_entries=len(logs),
            unique_users=len({log.username for log in logs}),
            last_activity_ms=last_activity,
        )

    def budget_status(self, code: str) -> BudgetStatus:
        project = self.get(code)
        budget = project.budget if project else 0.0
        if not budget:
            return BudgetStatus(status=BudgetState.NO_BUDGET)

        used = self.usage_stats(code).total_hours
        percentage = used * 100 / budget
        if percentage >= self.budget_thresholds.exceeded_percent:
            status = BudgetState.OVER_BUDGET
        elif percentage >= self.budget_thresholds.warning_percent:
            status = BudgetState.NEAR_LIMIT
        else:
            status = BudgetState.UNDER_BUDGET
        return BudgetStatus(
            status=status,
            percentage=round(percentage, 2),
            used=round(used, 2),
            remaining=round(budget - used, 2),
            budget=budget,
        )
