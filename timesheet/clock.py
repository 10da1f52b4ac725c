"""Wall-clock helpers. Every time-dependent service takes a ``clock`` callable."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


def iso_from_ms(ms: int) -> str:
    return ms_to_datetime(ms).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 instant, accepting a trailing 'Z'. Naive values are UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
