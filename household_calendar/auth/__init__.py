"""
Authentication context for Household Calendar.

Tracks which user background reminder work runs for.
"""

from household_calendar.auth.context import UserContext

__all__ = [
    "UserContext",
]
