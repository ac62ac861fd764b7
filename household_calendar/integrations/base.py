"""
Calendar repository protocol and base types.

Defines the records exchanged with calendar storage backends and the
interface those backends implement.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Protocol, Sequence

RECURRENCE_TYPES = ("daily", "weekly", "monthly", "yearly")
EVENT_TYPES = ("task", "project", "plant_care", "custom")
EVENT_STATUSES = ("pending", "completed", "cancelled")


@dataclass
class RecurrenceRule:
    """
    How a template event repeats.

    `interval` counts units of `type` (every N days/weeks/months/years).
    `series_id` is shared by every materialized instance of one series.
    """

    type: str
    interval: int = 1
    end_date: Optional[datetime] = None
    series_id: Optional[str] = None


@dataclass
class NotificationSetting:
    """A single reminder: fire `timing` minutes before the event starts."""

    enabled: bool = True
    timing: int = 15


@dataclass
class CalendarEvent:
    """
    Normalized event representation.

    One concrete instance on the calendar; recurring series are stored as
    sibling instances linked by `recurrence.series_id`.
    """

    id: Optional[str]
    user_id: str
    title: str
    start_date: datetime
    end_date: datetime
    description: Optional[str] = None
    all_day: bool = False
    type: str = "custom"
    status: str = "pending"
    source_id: Optional[str] = None
    notifications: list[NotificationSetting] = field(default_factory=list)
    recurrence: Optional[RecurrenceRule] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def duration(self) -> timedelta:
        """Time between start and end."""
        return self.end_date - self.start_date

    @property
    def series_id(self) -> Optional[str]:
        """Series this instance belongs to, if any."""
        return self.recurrence.series_id if self.recurrence else None


class CalendarRepository(Protocol):
    """
    Protocol for calendar storage backends.

    Implementations:
    - SQLAlchemyCalendarRepository: Uses local database

    All methods are async so scheduler passes never block the event loop.
    Every operation is scoped to one user's events.
    """

    @abstractmethod
    async def get_upcoming_events(
        self,
        user_id: str,
        start: datetime,
        limit: int,
    ) -> Sequence[CalendarEvent]:
        """
        Get events starting at or after `start`, earliest first.

        Args:
            user_id: Owner of the events
            start: Lower bound on start_date (inclusive)
            limit: Maximum number of events to return

        Returns:
            Sequence of events ordered by start_date
        """
        ...

    @abstractmethod
    async def get_events_by_series(
        self,
        user_id: str,
        series_id: str,
    ) -> Sequence[CalendarEvent]:
        """
        Get every instance of a recurring series, earliest first.

        Args:
            user_id: Owner of the events
            series_id: Series identifier

        Returns:
            Sequence of events ordered by start_date
        """
        ...

    @abstractmethod
    async def get_event_by_id(
        self,
        user_id: str,
        event_id: str,
    ) -> Optional[CalendarEvent]:
        """
        Get a single event by ID.

        Returns:
            Event or None if not found
        """
        ...

    @abstractmethod
    async def create_event(
        self,
        user_id: str,
        event: CalendarEvent,
    ) -> CalendarEvent:
        """
        Persist a new event.

        Returns:
            Created event with assigned ID and timestamps
        """
        ...

    @abstractmethod
    async def update_event(
        self,
        user_id: str,
        event_id: str,
        updates: dict,
    ) -> CalendarEvent:
        """
        Update an existing event.

        Args:
            user_id: Owner of the event
            event_id: Event to update
            updates: Field name to new value

        Returns:
            Updated event
        """
        ...

    @abstractmethod
    async def delete_event(
        self,
        user_id: str,
        event_id: str,
    ) -> bool:
        """
        Delete an event.

        Returns:
            True if deleted, False if not found
        """
        ...


class PlatformNotifier(Protocol):
    """
    Protocol for notifications outside the app (OS, push, chat).

    Implementations:
    - WebhookNotifier: Posts signed reminders to an HTTPS endpoint

    Delivery is best-effort; callers log failures and carry on.
    """

    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask for permission to deliver; returns whether it is granted."""
        ...

    @abstractmethod
    def has_permission(self) -> bool:
        """Check whether delivery is currently permitted."""
        ...

    @abstractmethod
    async def show(
        self,
        title: str,
        body: str,
        tag: Optional[str] = None,
        require_interaction: bool = True,
    ) -> bool:
        """
        Deliver a notification.

        Args:
            title: Notification title
            body: Notification text
            tag: Deduplication key (one visible notification per tag)
            require_interaction: Keep visible until dismissed

        Returns:
            True if delivered
        """
        ...
