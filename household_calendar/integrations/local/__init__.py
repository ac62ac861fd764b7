"""
Local database integration for Household Calendar.

Provides the calendar_events table as a storage backend for events.
"""

from household_calendar.integrations.local.adapter import LocalCalendarAdapter
from household_calendar.integrations.local.repository import SQLAlchemyCalendarRepository

__all__ = [
    "LocalCalendarAdapter",
    "SQLAlchemyCalendarRepository",
]
