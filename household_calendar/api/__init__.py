"""
FastAPI application for Household Calendar.

Exports the app and server runner.
"""

from household_calendar.api.main import app, run_server

__all__ = ["app", "run_server"]
