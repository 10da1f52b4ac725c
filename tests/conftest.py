"""Shared fixtures: a controllable wall clock and one Qt application."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock returning epoch milliseconds; advance() moves it forward."""

    def __init__(self, start: datetime = NOW) -> None:
        self.ms = int(start.timestamp() * 1000)

    def __call__(self) -> int:
        return self.ms

    def advance(self, seconds: float = 0, ms: int = 0) -> None:
        self.ms += int(seconds * 1000) + ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def qt_app():
    # Widgets need a QApplication, and Qt allows only one per process.
    QtWidgets = pytest.importorskip("PySide6.QtWidgets")
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app
