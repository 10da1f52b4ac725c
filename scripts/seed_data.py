"""
Seed Data Generator — budgeted sample projects and 30 days of time logs,
so the forecast tab has something to project from.

Run: python scripts/seed_data.py [days]
"""

import random
import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from timesheet.config import load_config, resolve_db_path
from timesheet.data.database import SqliteStore
from timesheet.data.models import TimeLogEntry
from timesheet.data.repository import Repository
from timesheet.errors import ValidationError
from timesheet.services.event_log import EventLog
from timesheet.services.project_directory import ProjectDirectory
from timesheet.services.time_log import TimeLogBook

SAMPLE_PROJECTS = [
    ("WEB-001", "Website Redesign", "Development", 120),
    ("MOB-002", "Mobile App Development", "Development", 200),
    ("MKT-003", "Marketing Campaign", "Other", 80),
    ("RES-004", "Research Project", "Research", 150),
    ("SUP-005", "Support System", "Maintenance", 60),
]

SAMPLE_USERS = ["alex", "sam", "jordan"]


def seed(days: int = 30) -> None:
    store = SqliteStore(resolve_db_path(load_config()))
    store.connect()
    repo = Repository(store)
    events = EventLog(repo)
    projects = ProjectDirectory(repo, events)
    time_logs = TimeLogBook(repo, events)

    projects.seed_defaults()

    # ── Projects ────────────────────────────────────────────────────────
    for code, name, category, budget in SAMPLE_PROJECTS:
        try:
            projects.add_project(
                {"code": code, "name": name, "category": category, "budget": budget},
                created_by="seed",
            )
        except ValidationError:
            pass  # already seeded

    # ── Time logs ───────────────────────────────────────────────────────
    now = datetime.now(timezone.utc)
    count = 0
    for code, *_ in SAMPLE_PROJECTS:
        for offset in range(days - 1, -1, -1):
            day = now - timedelta(days=offset)
            # weekends are mostly quiet
            if day.weekday() >= 5 and random.random() < 0.8:
                continue
            when = day.replace(hour=random.randint(8, 17), minute=random.randint(0, 59))
            if when > now:
                when = now
            hours = random.uniform(0.5, 4.0)
            time_logs.add(TimeLogEntry(
                id=uuid.uuid4().hex,
                project_code=code,
                time_spent_seconds=int(hours * 3600),
                timestamp=when.isoformat(),
                username=random.choice(SAMPLE_USERS),
                notes="Sample data",
            ))
            count += 1

    store.close()
    print(f"Seeded {len(SAMPLE_PROJECTS)} projects and {count} time entries.")


if __name__ == "__main__":
    seed(int(sys.argv[1]) if len(sys.argv) > 1 else 30)
