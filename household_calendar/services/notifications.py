"""
In-app notification store.

Holds the ordered list of notifications shown to the user (newest first),
their read state, and the listeners that mirror changes into the UI.

The store is confined to one asyncio event loop: every mutation, including
auto-hide expiry, runs on that loop, so no locking is needed.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from household_calendar.config import get_settings
from household_calendar.timeutils import utcnow

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("info", "warning", "error", "success")

AddedListener = Callable[["InAppNotification"], None]
RemovedListener = Callable[[str], None]


@dataclass
class InAppNotification:
    """A notification shown inside the app."""

    id: str
    message: str
    type: str
    event_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)
    read: bool = False
    auto_hide: bool = True
    duration: Optional[int] = None  # milliseconds


@dataclass
class NotificationSummary:
    """Counts for the dashboard badge."""

    total: int
    unread: int
    by_type: dict[str, int]


class NotificationStore:
    """
    Ordered collection of in-app notifications with change listeners.

    Construct one per session and pass it to the ReminderScheduler and
    the API layer.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize an empty store.

        Args:
            loop: Event loop that runs auto-hide timers
                  (defaults to the loop running when show() is called)
        """
        self._loop = loop
        self._notifications: list[InAppNotification] = []
        self._hide_handles: dict[str, asyncio.TimerHandle] = {}
        self._added_listeners: list[AddedListener] = []
        self._removed_listeners: list[RemovedListener] = []

    def _get_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    @property
    def notifications(self) -> list[InAppNotification]:
        """Snapshot of current notifications, newest first."""
        return list(self._notifications)

    def get(self, notification_id: str) -> Optional[InAppNotification]:
        """Find a notification by ID."""
        return next((n for n in self._notifications if n.id == notification_id), None)

    def show(
        self,
        message: str,
        type: str = "info",
        *,
        event_id: Optional[str] = None,
        auto_hide: bool = True,
        duration: Optional[int] = None,
    ) -> str:
        """
        Add a notification and notify listeners.

        Args:
            message: Text to display
            type: One of NOTIFICATION_TYPES
            event_id: Calendar event this notification refers to
            auto_hide: Remove automatically after `duration`
            duration: Auto-hide delay in milliseconds
                      (default: settings.notification_duration_ms)

        Returns:
            ID of the new notification

        Raises:
            ValueError: If type is not a known notification type
        """
        if type not in NOTIFICATION_TYPES:
            raise ValueError(
                f"Notification type must be one of: {', '.join(NOTIFICATION_TYPES)}"
            )

        if duration is None:
            duration = get_settings().notification_duration_ms

        notification = InAppNotification(
            id=f"notification-{uuid.uuid4().hex}",
            message=message,
            type=type,
            event_id=event_id,
            auto_hide=auto_hide,
            duration=duration,
        )
        self._notifications.insert(0, notification)

        for callback in list(self._added_listeners):
            callback(notification)

        if notification.auto_hide and notification.duration:
            self._schedule_hide(notification)

        return notification.id

    def _schedule_hide(self, notification: InAppNotification) -> None:
        loop = self._get_loop()
        if loop is None:
            logger.debug(
                f"No event loop available; notification {notification.id} will not auto-hide"
            )
            return

        self._hide_handles[notification.id] = loop.call_later(
            notification.duration / 1000,
            self._expire,
            notification.id,
        )

    def _expire(self, notification_id: str) -> None:
        self._hide_handles.pop(notification_id, None)
        self.clear(notification_id)

    def mark_read(self, notification_id: str) -> bool:
        """
        Mark a notification as read.

        Returns:
            True if the notification exists
        """
        notification = self.get(notification_id)
        if notification is None:
            return False
        notification.read = True
        return True

    def clear(self, notification_id: str) -> bool:
        """
        Remove a notification and notify listeners.

        Returns:
            True if the notification existed
        """
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                del self._notifications[index]
                break
        else:
            return False

        handle = self._hide_handles.pop(notification_id, None)
        if handle is not None:
            handle.cancel()

        for callback in list(self._removed_listeners):
            callback(notification_id)
        return True

    def clear_all(self) -> None:
        """Remove every notification, notifying listeners once per removal."""
        ids = [n.id for n in self._notifications]
        self._notifications = []

        for handle in self._hide_handles.values():
            handle.cancel()
        self._hide_handles.clear()

        for notification_id in ids:
            for callback in list(self._removed_listeners):
                callback(notification_id)

    def clear_for_event(self, event_id: str) -> int:
        """
        Remove every notification emitted for a calendar event.

        Returns:
            Number of notifications removed
        """
        ids = [n.id for n in self._notifications if n.event_id == event_id]
        for notification_id in ids:
            self.clear(notification_id)
        return len(ids)

    def summary(self) -> NotificationSummary:
        """Count notifications by read state and type."""
        by_type: dict[str, int] = {}
        for notification in self._notifications:
            by_type[notification.type] = by_type.get(notification.type, 0) + 1

        return NotificationSummary(
            total=len(self._notifications),
            unread=sum(1 for n in self._notifications if not n.read),
            by_type=by_type,
        )

    def on_added(self, callback: AddedListener) -> Callable[[], None]:
        """
        Register a listener for new notifications.

        Returns:
            Function that unsubscribes the listener
        """
        self._added_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._added_listeners:
                self._added_listeners.remove(callback)

        return unsubscribe

    def on_removed(self, callback: RemovedListener) -> Callable[[], None]:
        """
        Register a listener for removed notification IDs.

        Returns:
            Function that unsubscribes the listener
        """
        self._removed_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._removed_listeners:
                self._removed_listeners.remove(callback)

        return unsubscribe
