"""
FastAPI dependency injection providers.

Provides the calendar service, notification store, reminder scheduler
and user context.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from household_calendar.auth import UserContext
from household_calendar.config import get_settings
from household_calendar.integrations.webhook import WebhookNotifier
from household_calendar.services.calendar_service import (
    CalendarService,
    get_calendar_service,
)
from household_calendar.services.notifications import NotificationStore
from household_calendar.services.reminders import ReminderScheduler

logger = logging.getLogger(__name__)

# Process-wide instances (scheduler is created at startup)
_user_context = UserContext()
_notification_store: Optional[NotificationStore] = None
_scheduler: Optional[ReminderScheduler] = None


def get_user_context() -> UserContext:
    """Dependency injection for the active-user context."""
    return _user_context


def get_notification_store() -> NotificationStore:
    """Dependency injection for the in-app notification store."""
    global _notification_store
    if _notification_store is None:
        _notification_store = NotificationStore()
    return _notification_store


def get_service() -> CalendarService:
    """Dependency injection for the calendar service."""
    return get_calendar_service()


async def start_scheduler() -> ReminderScheduler:
    """Create the reminder scheduler and run its first pass (application startup)."""
    global _scheduler

    if _scheduler is None:
        _scheduler = ReminderScheduler(
            get_notification_store(),
            get_calendar_service().repository,
            _user_context,
            WebhookNotifier.from_settings(get_settings()),
        )

    await _scheduler.start_notification_scheduler()
    return _scheduler


async def stop_scheduler() -> None:
    """Stop the reminder scheduler (application shutdown)."""
    global _scheduler

    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> ReminderScheduler:
    """
    Dependency injection for the reminder scheduler.

    Raises:
        HTTPException: If the scheduler is not running
    """
    if _scheduler is None:
        logger.error("Reminder scheduler not initialized")
        raise HTTPException(
            status_code=503,
            detail="Service temporarily unavailable - scheduler not initialized",
        )
    return _scheduler


def resolve_user_id(
    x_user_id: Optional[str] = Header(None, description="User ID"),
    context: UserContext = Depends(get_user_context),
) -> str:
    """
    Resolve the requesting user and make them the active user.

    Raises:
        HTTPException: 401 if the X-User-ID header is missing
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")

    context.set_user(x_user_id)
    return x_user_id


def reset_dependencies() -> None:
    """Drop process-wide instances (for testing)."""
    global _notification_store, _scheduler
    _notification_store = None
    _scheduler = None
    _user_context.clear()
