"""
Pytest configuration and fixtures for Household Calendar tests.

Provides database fixtures, a repository over in-memory SQLite,
and sample calendar events.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from household_calendar.config import get_settings
from household_calendar.database import (
    create_db_engine,
    create_session_factory,
    drop_all_tables,
    init_db,
)
from household_calendar.integrations.base import (
    CalendarEvent,
    NotificationSetting,
    RecurrenceRule,
)
from household_calendar.integrations.local import SQLAlchemyCalendarRepository


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reload settings for every test so environment overrides apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """
    Create an in-memory SQLite engine with all tables.

    The database is torn down after each test.
    """
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    try:
        yield engine
    finally:
        drop_all_tables(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the in-memory engine."""
    return create_session_factory(engine)


@pytest.fixture
def repository(session_factory: sessionmaker) -> Generator[SQLAlchemyCalendarRepository, None, None]:
    """Calendar repository over the in-memory database."""
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        yield SQLAlchemyCalendarRepository(session_factory, executor=executor)
    finally:
        executor.shutdown(wait=True)


@pytest.fixture
def anchor() -> datetime:
    """Fixed series anchor: 2024-01-01 10:00 UTC."""
    return datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_event():
    """
    Factory for CalendarEvent instances.

    Defaults to a one-hour pending custom event for user-1.
    """

    def _make_event(
        start: datetime,
        duration: timedelta = timedelta(hours=1),
        **overrides,
    ) -> CalendarEvent:
        values = {
            "id": None,
            "user_id": "user-1",
            "title": "Water the ferns",
            "start_date": start,
            "end_date": start + duration,
        }
        values.update(overrides)
        return CalendarEvent(**values)

    return _make_event


@pytest.fixture
def recurring_template(make_event, anchor) -> CalendarEvent:
    """Daily one-hour template from 2024-01-01 10:00 UTC through 2024-01-05 10:00 UTC."""
    return make_event(
        anchor,
        id="template-1",
        description="Mist and water",
        type="plant_care",
        source_id="plant-42",
        notifications=[NotificationSetting(enabled=True, timing=15)],
        recurrence=RecurrenceRule(
            type="daily",
            interval=1,
            end_date=datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc),
        ),
    )
