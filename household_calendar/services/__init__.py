"""
Service layer for Household Calendar.

Provides business logic for:
- Recurrence calculation (validation, stepping, expansion, membership)
- Series materialization from a recurring template
- In-app notifications and reminder scheduling
- User-scoped calendar operations over a repository
"""

from household_calendar.services.recurrence import (
    MAX_INTERVAL,
    RecurrenceValidationError,
    RecurrenceValidationResult,
    describe_rule,
    generate_series_id,
    is_in_recurrence,
    iter_occurrences,
    next_occurrence,
    occurrences_in_range,
    total_occurrences,
    validate_rule,
)

from household_calendar.services.series import (
    generate_recurring_events,
    generate_recurring_events_for_range,
)

from household_calendar.services.notifications import (
    NOTIFICATION_TYPES,
    InAppNotification,
    NotificationStore,
    NotificationSummary,
)

from household_calendar.services.reminders import ReminderScheduler

from household_calendar.services.calendar_service import (
    CalendarService,
    get_calendar_service,
    reset_calendar_service,
)

__all__ = [
    # Recurrence
    "MAX_INTERVAL",
    "RecurrenceValidationError",
    "RecurrenceValidationResult",
    "describe_rule",
    "generate_series_id",
    "is_in_recurrence",
    "iter_occurrences",
    "next_occurrence",
    "occurrences_in_range",
    "total_occurrences",
    "validate_rule",
    # Series
    "generate_recurring_events",
    "generate_recurring_events_for_range",
    # Notifications
    "NOTIFICATION_TYPES",
    "InAppNotification",
    "NotificationStore",
    "NotificationSummary",
    "ReminderScheduler",
    # Calendar service
    "CalendarService",
    "get_calendar_service",
    "reset_calendar_service",
]
