"""
Data models for Timesheet Tracker.

Plain dataclasses for every persisted record plus the transient forecast
value objects. Persisted records round-trip through ``to_dict`` /
``from_dict`` using the camelCase field names stored as JSON, so the rest of
the app never handles raw dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Dict, List, Optional

from timesheet.clock import parse_iso


class EventType:
    TIMER_START = "TIMER_START"
    TIMER_PAUSE = "TIMER_PAUSE"
    TIMER_RESET = "TIMER_RESET"
    TIME_SAVED = "TIME_SAVED"
    TIME_AUTO_SAVED = "TIME_AUTO_SAVED"
    PROJECT_SWITCH = "PROJECT_SWITCH"
    IDLE_ALERT = "IDLE_ALERT"
    LOG_EDITED = "LOG_EDITED"
    LOG_DELETED = "LOG_DELETED"
    PROJECT_ADDED = "PROJECT_ADDED"
    PROJECT_UPDATED = "PROJECT_UPDATED"
    PROJECT_DELETED = "PROJECT_DELETED"
    PROJECT_ARCHIVED = "PROJECT_ARCHIVED"
    BUDGET_UPDATED = "BUDGET_UPDATED"


class ProjectStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"

    ALL = (ACTIVE, COMPLETED, ON_HOLD, CANCELLED, ARCHIVED)


PROJECT_CATEGORIES = [
    "Development",
    "Design",
    "Testing",
    "Documentation",
    "Meeting",
    "Research",
    "Maintenance",
    "Other",
]


class AlertType:
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    BUDGET_WARNING = "BUDGET_WARNING"


class Severity:
    HIGH = "high"
    MEDIUM = "medium"


class BudgetState:
    NO_BUDGET = "no-budget"
    UNDER_BUDGET = "under-budget"
    NEAR_LIMIT = "near-limit"
    OVER_BUDGET = "over-budget"


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


# ── Persisted records ───────────────────────────────────────────────────────


@dataclass
class TimeLogEntry:
    """One block of tracked time against a project."""
    id: str = ""
    project_code: str = ""
    time_spent_seconds: int = 0
    timestamp: str = ""
    username: str = "unknown"
    notes: Optional[str] = None

    @property
    def hours(self) -> float:
        return self.time_spent_seconds / 3600.0

    @property
    def date_key(self) -> str:
        """UTC calendar day the entry was logged on (YYYY-MM-DD)."""
        return parse_iso(self.timestamp).astimezone(timezone.utc).date().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "projectCode": self.project_code,
            "timeSpentSeconds": self.time_spent_seconds,
            "timestamp": self.timestamp,
            "username": self.username,
            "notes": self.notes,
        })

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TimeLogEntry":
        # "timeSpent" is the field name older exports used.
        seconds = d.get("timeSpentSeconds", d.get("timeSpent", 0))
        return cls(
            id=str(d.get("id", "")),
            project_code=d.get("projectCode", ""),
            time_spent_seconds=max(0, int(seconds or 0)),
            timestamp=str(d.get("timestamp") or ""),
            username=d.get("username") or "unknown",
            notes=d.get("notes"),
        )


@dataclass
class EventLogEntry:
    """
    An append-only activity record. ``details`` carries the type-specific
    fields (timeSpent, newProject, previousProject, budget, ...).
    """
    type: str = ""
    timestamp: str = ""
    username: str = "unknown"
    message: str = ""
    project_code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    _CORE_KEYS = ("type", "timestamp", "username", "message", "projectCode")

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.details)
        d.update(_drop_none({
            "type": self.type,
            "timestamp": self.timestamp,
            "username": self.username,
            "message": self.message,
            "projectCode": self.project_code,
        }))
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EventLogEntry":
        details = {k: v for k, v in d.items() if k not in cls._CORE_KEYS}
        return cls(
            type=d.get("type", ""),
            timestamp=str(d.get("timestamp") or ""),
            username=d.get("username") or "unknown",
            message=d.get("message", ""),
            project_code=d.get("projectCode"),
            details=details,
        )


@dataclass
class Project:
    """A billable project. ``budget`` is in hours; 0 means unlimited."""
    code: str = ""
    name: str = ""
    category: str = "Other"
    status: str = ProjectStatus.ACTIVE
    budget: float = 0.0
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[str] = None
    budget_set_by: Optional[str] = None
    budget_set_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "status": self.status,
            "budget": self.budget,
            "description": self.description,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedBy": self.updated_by,
            "updatedAt": self.updated_at,
            "budgetSetBy": self.budget_set_by,
            "budgetSetAt": self.budget_set_at,
        })

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Project":
        return cls(
            code=d.get("code", ""),
            name=d.get("name", ""),
            category=d.get("category", "Other"),
            status=d.get("status", ProjectStatus.ACTIVE),
            budget=float(d.get("budget") or 0),
            description=d.get("description"),
            created_by=d.get("createdBy"),
            created_at=d.get("createdAt"),
            updated_by=d.get("updatedBy"),
            updated_at=d.get("updatedAt"),
            budget_set_by=d.get("budgetSetBy"),
            budget_set_at=d.get("budgetSetAt"),
        )


@dataclass
class TimerState:
    """
    Snapshot of the stopwatch. running=True implies started_at_ms is set;
    running=False means elapsed_seconds is the frozen, authoritative value.
    """
    running: bool = False
    elapsed_seconds: int = 0
    started_at_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "elapsedSeconds": self.elapsed_seconds,
            "startedAtEpochMs": self.started_at_ms,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TimerState":
        running = d.get("running", d.get("isRunning", False))
        elapsed = d.get("elapsedSeconds", d.get("elapsedTime", 0))
        started = d.get("startedAtEpochMs", d.get("startTime"))
        return cls(
            running=bool(running),
            elapsed_seconds=max(0, int(elapsed or 0)),
            started_at_ms=int(started) if started is not None else None,
        )


@dataclass
class BudgetAlert:
    id: Optional[str] = None
    type: str = AlertType.BUDGET_WARNING
    severity: str = Severity.MEDIUM
    project_code: str = ""
    project_name: str = ""
    message: str = ""
    timestamp: str = ""
    percentage: Optional[float] = None
    read: bool = False
    read_at: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = _drop_none({
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "projectCode": self.project_code,
            "projectName": self.project_name,
            "message": self.message,
            "timestamp": self.timestamp,
            "percentage": self.percentage,
            "readAt": self.read_at,
            "createdAt": self.created_at,
        })
        d["read"] = self.read
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BudgetAlert":
        return cls(
            id=d.get("id"),
            type=d.get("type", AlertType.BUDGET_WARNING),
            severity=d.get("severity", Severity.MEDIUM),
            project_code=d.get("projectCode", ""),
            project_name=d.get("projectName", ""),
            message=d.get("message", ""),
            timestamp=d.get("timestamp", ""),
            percentage=d.get("percentage"),
            read=bool(d.get("read", False)),
            read_at=d.get("readAt"),
            created_at=d.get("createdAt"),
        )


# ── Derived / transient ─────────────────────────────────────────────────────


@dataclass
class BudgetStatus:
    status: str = BudgetState.NO_BUDGET
    percentage: float = 0.0
    used: float = 0.0
    remaining: float = 0.0
    budget: float = 0.0


@dataclass
class UsageStats:
    total_hours: float = 0.0
    total_entries: int = 0
    unique_users: int = 0
    last_activity_ms: Optional[int] = None


@dataclass
class Regression:
    slope: float
    intercept: float


@dataclass
class BudgetForecast:
    project_code: str
    project_name: str
    current_budget: float
    current_usage: float
    remaining_budget: float
    predicted_daily_usage: float
    predicted_total_usage: float
    budget_exhaustion_days: Optional[int]
    budget_variance: float
    budget_variance_percentage: float
    trend: str
    regression: Regression
    historical_data: List[float] = field(default_factory=list)
    moving_average: List[float] = field(default_factory=list)


@dataclass
class CompletionForecast:
    project_code: str
    project_name: str
    status: str                     # 'completed' | 'in-progress'
    current_progress: float
    remaining_work: float
    predicted_daily_progress: float
    days_to_completion: Optional[int]
    completion_date: Optional[str]
    trend: str
    actual_hours: Optional[float] = None
    estimated_hours: Optional[float] = None
    variance: Optional[float] = None


@dataclass
class ProjectDemand:
    project_code: str
    project_name: str
    category: str
    budget_forecast: Optional[BudgetForecast]
    completion_forecast: Optional[CompletionForecast]
    priority: str


@dataclass
class ResourceUtilisation:
    total_budget: float = 0.0
    total_predicted: float = 0.0
    utilisation_rate: float = 0.0
    efficiency: float = 0.0


@dataclass
class Recommendation:
    type: str
    severity: str
    message: str
    projects: List[str] = field(default_factory=list)


@dataclass
class ResourceDemandForecast:
    total_predicted_hours: float = 0.0
    critical_projects: int = 0
    high_priority_projects: int = 0
    project_forecasts: List[ProjectDemand] = field(default_factory=list)
    resource_utilisation: ResourceUtilisation = field(default_factory=ResourceUtilisation)
    recommendations: List[Recommendation] = field(default_factory=list)


@dataclass
class ForecastSummary:
    total_projects: int = 0
    critical_projects: int = 0
    delayed_projects: int = 0
    total_predicted_hours: float = 0.0
