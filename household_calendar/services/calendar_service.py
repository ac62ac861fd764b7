"""
Calendar service - user-scoped facade over a calendar repository.

Combines storage access with series materialization so callers (the API,
scripts) can expand, edit and delete whole recurring series in one call.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

from household_calendar.exceptions import (
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from household_calendar.integrations.base import CalendarEvent, CalendarRepository
from household_calendar.services.recurrence import generate_series_id
from household_calendar.services.series import (
    generate_recurring_events,
    generate_recurring_events_for_range,
)
from household_calendar.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

# Fields a series-wide edit may not touch; instance timing stays per-instance
PROTECTED_SERIES_FIELDS = frozenset({"id", "user_id", "created_at", "start_date", "end_date"})

# Singleton instance
_calendar_service: Optional["CalendarService"] = None


def _require_user(user_id: Optional[str], action: str) -> str:
    if not user_id:
        raise AuthenticationError(f"Cannot {action}: User not authenticated.")
    return user_id


class CalendarService:
    """
    Calendar operations for the signed-in user.

    Every method takes the user ID explicitly; AuthenticationError is raised
    when it is missing.
    """

    def __init__(self, repository: CalendarRepository):
        """
        Initialize calendar service.

        Args:
            repository: Calendar storage backend
        """
        self._repository = repository

    @property
    def repository(self) -> CalendarRepository:
        """Underlying storage backend."""
        return self._repository

    async def get_upcoming_events(
        self,
        user_id: Optional[str],
        limit: int = 10,
    ) -> Sequence[CalendarEvent]:
        """
        Get the user's next events, earliest first.

        Args:
            user_id: Current user
            limit: Maximum number of events (must be positive)

        Returns:
            Events starting now or later
        """
        user_id = _require_user(user_id, "get upcoming events")
        if limit <= 0:
            raise ValidationError("Limit must be a positive number")

        return await self._repository.get_upcoming_events(user_id, utcnow(), limit)

    async def get_event(self, user_id: Optional[str], event_id: str) -> CalendarEvent:
        """
        Get a single event.

        Raises:
            NotFoundError: If the event does not exist for this user
        """
        user_id = _require_user(user_id, "get event")
        event = await self._repository.get_event_by_id(user_id, event_id)
        if event is None:
            raise NotFoundError(f"Event not found: {event_id}")
        return event

    async def create_event(self, user_id: Optional[str], event: CalendarEvent) -> CalendarEvent:
        """Store a new event owned by the user."""
        user_id = _require_user(user_id, "create event")
        if event.end_date < event.start_date:
            raise ValidationError("End date must not be before start date")
        return await self._repository.create_event(user_id, replace(event, user_id=user_id))

    async def get_events_by_series(
        self,
        user_id: Optional[str],
        series_id: str,
    ) -> Sequence[CalendarEvent]:
        """Get every instance of a series, ordered by start date."""
        user_id = _require_user(user_id, "get recurring series")
        return await self._repository.get_events_by_series(user_id, series_id)

    # =========================================================================
    # Series materialization
    # =========================================================================

    async def _ensure_series_id(self, user_id: str, template: CalendarEvent) -> CalendarEvent:
        """Give a stored template its series ID before its siblings are created."""
        rule = template.recurrence
        if rule is None or rule.series_id:
            return template

        stamped = replace(template, recurrence=replace(rule, series_id=generate_series_id()))
        if template.id:
            await self._repository.update_event(
                user_id, template.id, {"recurrence": stamped.recurrence}
            )
        return stamped

    async def _persist(self, user_id: str, instances: list[CalendarEvent]) -> list[CalendarEvent]:
        return [await self._repository.create_event(user_id, instance) for instance in instances]

    async def materialize_series(
        self,
        user_id: Optional[str],
        template: CalendarEvent,
        end_date: Optional[datetime] = None,
    ) -> list[CalendarEvent]:
        """
        Expand a recurring template and store every new instance.

        The template itself is stamped with the series ID when it had none.

        Args:
            user_id: Current user
            template: Event carrying the recurrence rule
            end_date: Optional explicit generation bound

        Returns:
            Stored instances (template excluded), ordered by start date
        """
        user_id = _require_user(user_id, "generate recurring events")
        generate_recurring_events(user_id, template, end_date)  # validate before writing
        template = await self._ensure_series_id(user_id, template)

        created = await self._persist(
            user_id, generate_recurring_events(user_id, template, end_date)
        )

        logger.info(
            f"Materialized {len(created)} instances of series "
            f"{template.recurrence.series_id} for user {user_id}"
        )
        return created

    async def materialize_range(
        self,
        user_id: Optional[str],
        template: CalendarEvent,
        range_start: datetime,
        range_end: datetime,
    ) -> list[CalendarEvent]:
        """Store the instances of a series that fall inside a window."""
        user_id = _require_user(user_id, "generate recurring events")
        generate_recurring_events_for_range(user_id, template, range_start, range_end)
        template = await self._ensure_series_id(user_id, template)

        created = await self._persist(
            user_id,
            generate_recurring_events_for_range(user_id, template, range_start, range_end),
        )

        logger.info(
            f"Materialized {len(created)} instances of series "
            f"{template.recurrence.series_id} between {range_start} and {range_end}"
        )
        return created

    # =========================================================================
    # Series edits
    # =========================================================================

    async def _series_targets(
        self,
        user_id: str,
        series_id: str,
        future_only: bool,
    ) -> Sequence[CalendarEvent]:
        events = await self._repository.get_events_by_series(user_id, series_id)
        if future_only:
            now = utcnow()
            events = [event for event in events if as_utc(event.start_date) >= now]
        return events

    async def update_recurring_series(
        self,
        user_id: Optional[str],
        series_id: str,
        updates: dict,
        future_only: bool = False,
    ) -> list[CalendarEvent]:
        """
        Apply the same field updates to every instance of a series.

        Args:
            user_id: Current user
            series_id: Series to edit
            updates: CalendarEvent attribute name -> new value
            future_only: Only edit instances starting now or later

        Returns:
            Updated instances

        Raises:
            ValidationError: If updates touch id, user_id, created_at or instance dates
            NotFoundError: If the series has no instances
        """
        user_id = _require_user(user_id, "update recurring series")

        protected = sorted(PROTECTED_SERIES_FIELDS.intersection(updates))
        if protected:
            raise ValidationError(
                f"Fields cannot be changed for a whole series: {', '.join(protected)}"
            )

        all_events = await self._repository.get_events_by_series(user_id, series_id)
        if not all_events:
            raise NotFoundError(f"Series not found: {series_id}")

        targets = await self._series_targets(user_id, series_id, future_only)
        updated = [
            await self._repository.update_event(user_id, event.id, updates)
            for event in targets
        ]

        logger.info(
            f"Updated {len(updated)} instances of series {series_id}: {list(updates.keys())}"
        )
        return updated

    async def delete_recurring_series(
        self,
        user_id: Optional[str],
        series_id: str,
        future_only: bool = False,
    ) -> int:
        """
        Delete the instances of a series.

        Args:
            user_id: Current user
            series_id: Series to delete
            future_only: Only delete instances starting now or later

        Returns:
            Number of instances deleted (0 for an empty series)
        """
        user_id = _require_user(user_id, "delete recurring series")

        targets = await self._series_targets(user_id, series_id, future_only)
        deleted = 0
        for event in targets:
            if await self._repository.delete_event(user_id, event.id):
                deleted += 1

        logger.info(f"Deleted {deleted} instances of series {series_id}")
        return deleted


def get_calendar_service() -> CalendarService:
    """
    Get the singleton calendar service backed by the local database.

    Returns:
        CalendarService instance
    """
    global _calendar_service

    if _calendar_service is None:
        from household_calendar.database import get_session_factory
        from household_calendar.integrations.local import SQLAlchemyCalendarRepository

        _calendar_service = CalendarService(
            SQLAlchemyCalendarRepository(get_session_factory())
        )
        logger.info("Calendar service initialized")

    return _calendar_service


def reset_calendar_service():
    """Reset the singleton (for testing)."""
    global _calendar_service
    _calendar_service = None
