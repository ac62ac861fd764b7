"""
Exceptions for calendar operations.

Provides structured error handling with retryable flags.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from household_calendar.services.recurrence import RecurrenceValidationError


class HouseholdCalendarError(Exception):
    """Base exception for calendar operations."""

    retryable: bool = False

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(HouseholdCalendarError):
    """
    Invalid input.

    Causes:
    - Malformed recurrence rule (type, interval or end date)
    - Inverted date range
    - Non-positive limits
    """

    retryable = False

    def __init__(
        self,
        message: str,
        errors: Optional[list["RecurrenceValidationError"]] = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, original_error=original_error)
        self.errors = list(errors or [])


class InvalidStateError(HouseholdCalendarError):
    """
    Operation not possible for the object's current state.

    Causes:
    - Series expansion requested for an event without a recurrence rule
    """

    retryable = False


class AuthenticationError(HouseholdCalendarError):
    """
    No current user.

    Raised by operations that must be scoped to a user
    (series materialization, series edits, upcoming-event queries).
    """

    retryable = False


class NotFoundError(HouseholdCalendarError):
    """
    Event or series not found.

    Causes:
    - Event was deleted
    - Series ID has no remaining instances
    """

    retryable = False


class TransientIOError(HouseholdCalendarError):
    """
    Failure reading or writing calendar storage.

    Retryable; the reminder scheduler retries on its next pass.
    """

    retryable = True
