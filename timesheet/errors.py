"""
Error taxonomy shared by every layer.

All errors are local to the operation that raised them. Callers (usually the
UI) turn them into inline messages or confirmation dialogs.
"""

from __future__ import annotations


class TimesheetError(Exception):
    """Base class for every error raised by the tracker."""


class ValidationError(TimesheetError):
    """A required field is missing or malformed. Never retried automatically."""


class StaleEntryWarning(TimesheetError):
    """The entry being saved spans more hours than the stale threshold.

    The save is aborted with no state change; the caller may retry with
    explicit confirmation.
    """

    def __init__(self, hours: float) -> None:
        self.hours = hours
        super().__init__(
            f"This time entry is {round(hours)} hours old. Memory decay may "
            f"affect accuracy. Save anyway?"
        )


class PersistenceError(TimesheetError):
    """The key-value store could not be read or written."""


class NotFoundError(TimesheetError):
    """The referenced project or time log no longer exists."""
