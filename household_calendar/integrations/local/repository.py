"""
Local database repository implementation.

Implements CalendarRepository protocol on the calendar_events table.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from functools import partial
from typing import Generator, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from household_calendar.exceptions import (
    NotFoundError,
    TransientIOError,
    ValidationError,
)
from household_calendar.integrations.base import CalendarEvent, CalendarRepository
from household_calendar.integrations.local.adapter import (
    LocalCalendarAdapter,
    parse_event_id,
)
from household_calendar.models.events import CalendarEventRecord
from household_calendar.timeutils import as_utc

logger = logging.getLogger(__name__)

# Retry on dropped connections and locked databases
_retry_operational = retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, max=2),
    reraise=True,
)


class SQLAlchemyCalendarRepository(CalendarRepository):
    """
    CalendarRepository implementation using the local database.

    SQLAlchemy sessions are synchronous, so each operation runs in a
    thread pool for async compatibility. Deleted events are soft-deleted
    and never returned again.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the repository.

        Args:
            session_factory: Creates database sessions
            executor: Thread pool for running sync session work (creates default if None)
        """
        self._session_factory = session_factory
        self._executor = executor or ThreadPoolExecutor(max_workers=4)
        self._adapter = LocalCalendarAdapter()

    @contextmanager
    def _session_scope(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    async def _run_in_executor(self, func, *args, **kwargs):
        """Run a synchronous function in the thread pool."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self._executor,
                partial(func, *args, **kwargs),
            )
        except SQLAlchemyError as e:
            logger.error(f"Calendar storage error: {e}")
            raise TransientIOError(
                "Calendar storage is unavailable",
                original_error=e,
            ) from e

    def _active_events(self, user_id: str):
        return select(CalendarEventRecord).where(
            CalendarEventRecord.user_id == user_id,
            CalendarEventRecord.active(),
        )

    def _load(self, session: Session, user_id: str, event_id: str) -> Optional[CalendarEventRecord]:
        record_id = parse_event_id(event_id)
        if record_id is None:
            return None
        return session.scalars(
            self._active_events(user_id).where(CalendarEventRecord.id == record_id)
        ).first()

    # =========================================================================
    # Sync implementations (run in executor)
    # =========================================================================

    @_retry_operational
    def _get_upcoming_events_sync(
        self, user_id: str, start: datetime, limit: int
    ) -> list[CalendarEvent]:
        with self._session_scope() as session:
            records = session.scalars(
                self._active_events(user_id)
                .where(CalendarEventRecord.start_date >= as_utc(start))
                .order_by(CalendarEventRecord.start_date)
                .limit(limit)
            ).all()
            return [self._adapter.from_record(record) for record in records]

    @_retry_operational
    def _get_events_by_series_sync(self, user_id: str, series_id: str) -> list[CalendarEvent]:
        with self._session_scope() as session:
            records = session.scalars(
                self._active_events(user_id)
                .where(CalendarEventRecord.series_id == series_id)
                .order_by(CalendarEventRecord.start_date)
            ).all()
            return [self._adapter.from_record(record) for record in records]

    @_retry_operational
    def _get_event_by_id_sync(self, user_id: str, event_id: str) -> Optional[CalendarEvent]:
        with self._session_scope() as session:
            record = self._load(session, user_id, event_id)
            return self._adapter.from_record(record) if record else None

    @_retry_operational
    def _create_event_sync(self, user_id: str, event: CalendarEvent) -> CalendarEvent:
        with self._session_scope() as session:
            record = self._adapter.to_record(user_id, event)
            session.add(record)
            session.flush()
            session.refresh(record)
            return self._adapter.from_record(record)

    @_retry_operational
    def _update_event_sync(self, user_id: str, event_id: str, columns: dict) -> Optional[CalendarEvent]:
        with self._session_scope() as session:
            record = self._load(session, user_id, event_id)
            if record is None:
                return None
            for name, value in columns.items():
                setattr(record, name, value)
            session.flush()
            session.refresh(record)
            return self._adapter.from_record(record)

    @_retry_operational
    def _delete_event_sync(self, user_id: str, event_id: str) -> bool:
        with self._session_scope() as session:
            record = self._load(session, user_id, event_id)
            if record is None:
                return False
            return record.soft_delete()

    # =========================================================================
    # CalendarRepository protocol
    # =========================================================================

    async def get_upcoming_events(
        self,
        user_id: str,
        start: datetime,
        limit: int,
    ) -> Sequence[CalendarEvent]:
        """
        Get a user's events starting at or after `start`.

        Args:
            user_id: Owner of the events
            start: Lower bound on start_date (inclusive)
            limit: Maximum number of events to return

        Returns:
            Events ordered by start_date
        """
        events = await self._run_in_executor(
            self._get_upcoming_events_sync, user_id, start, limit
        )
        logger.debug(f"Retrieved {len(events)} upcoming events for user {user_id}")
        return events

    async def get_events_by_series(
        self,
        user_id: str,
        series_id: str,
    ) -> Sequence[CalendarEvent]:
        """Get every instance of a series, ordered by start_date."""
        return await self._run_in_executor(
            self._get_events_by_series_sync, user_id, series_id
        )

    async def get_event_by_id(
        self,
        user_id: str,
        event_id: str,
    ) -> Optional[CalendarEvent]:
        """
        Get a single event by ID.

        Returns:
            Event or None if not found (or owned by another user)
        """
        return await self._run_in_executor(self._get_event_by_id_sync, user_id, event_id)

    async def create_event(
        self,
        user_id: str,
        event: CalendarEvent,
    ) -> CalendarEvent:
        """
        Store a new event.

        Args:
            user_id: Owner of the event
            event: Event data (a UUID `id` is kept, otherwise one is assigned)

        Returns:
            Created event with ID and timestamps

        Raises:
            ValidationError: If the event ID is not a UUID
        """
        try:
            created = await self._run_in_executor(self._create_event_sync, user_id, event)
        except ValueError as e:
            raise ValidationError(str(e), original_error=e) from e

        logger.info(f"Created event '{event.title}' with ID {created.id}")
        return created

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
            updates: CalendarEvent attribute name -> new value

        Returns:
            Updated event

        Raises:
            ValidationError: If an update names a field that cannot change
            NotFoundError: If the event does not exist
        """
        try:
            columns = self._adapter.to_column_updates(updates)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e), original_error=e) from e

        updated = await self._run_in_executor(
            self._update_event_sync, user_id, event_id, columns
        )
        if updated is None:
            raise NotFoundError(f"Event not found: {event_id}")

        logger.info(f"Updated event {event_id}: {list(updates.keys())}")
        return updated

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
        deleted = await self._run_in_executor(self._delete_event_sync, user_id, event_id)
        if deleted:
            logger.info(f"Deleted event {event_id}")
        else:
            logger.warning(f"Event {event_id} not found for deletion")
        return deleted
