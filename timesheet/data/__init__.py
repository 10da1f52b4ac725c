from .database import KeyValueStore, MemoryStore, SqliteStore
from .models import (
    BudgetAlert, BudgetStatus, EventLogEntry, EventType, Project,
    ProjectStatus, TimeLogEntry, TimerState,
)
from .repository import Repository

__all__ = [
    "KeyValueStore", "MemoryStore", "SqliteStore", "Repository",
    "BudgetAlert", "BudgetStatus", "EventLogEntry", "EventType", "Project",
    "ProjectStatus", "TimeLogEntry", "TimerState",
]
