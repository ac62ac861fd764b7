"""
SQLAlchemy models for Household Calendar.

This module exports all database models for easy importing and
ensures Alembic can discover them for migrations.
"""

from household_calendar.models.base import Base, CalendarRecord, GUID, get_json_type
from household_calendar.models.events import CalendarEventRecord

__all__ = [
    # Base classes
    "Base",
    "CalendarRecord",
    "GUID",
    "get_json_type",
    # Event model
    "CalendarEventRecord",
]
