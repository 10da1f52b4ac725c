"""Timesheet Tracker — local-first time logging and project budget forecasting."""

__version__ = "0.1.0"
