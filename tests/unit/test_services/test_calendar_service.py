"""
Unit tests for household_calendar/services/calendar_service.py

Series operations run against the SQLite-backed repository; argument
checks use a mocked repository to prove nothing is written.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from household_calendar.exceptions import (
    AuthenticationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from household_calendar.integrations.base import NotificationSetting, RecurrenceRule
from household_calendar.services.calendar_service import CalendarService
from household_calendar.timeutils import utcnow


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def service(repository) -> CalendarService:
    return CalendarService(repository)


@pytest.fixture
def mock_repository() -> MagicMock:
    repository = MagicMock()
    for name in (
        "get_upcoming_events",
        "get_events_by_series",
        "get_event_by_id",
        "create_event",
        "update_event",
        "delete_event",
    ):
        setattr(repository, name, AsyncMock())
    return repository


async def _stored_template(service, recurring_template):
    return await service.create_event("user-1", replace(recurring_template, id=None))


class TestEventAccess:
    """Test single-event and upcoming queries."""

    @pytest.mark.asyncio
    async def test_upcoming_requires_user(self, service):
        with pytest.raises(AuthenticationError):
            await service.get_upcoming_events(None)

    @pytest.mark.asyncio
    async def test_upcoming_requires_positive_limit(self, service):
        with pytest.raises(ValidationError):
            await service.get_upcoming_events("user-1", limit=0)

    @pytest.mark.asyncio
    async def test_upcoming_starts_now(self, service, make_event):
        await service.create_event("user-1", make_event(utcnow() - timedelta(days=1)))
        future = await service.create_event("user-1", make_event(utcnow() + timedelta(days=1)))

        events = await service.get_upcoming_events("user-1")

        assert [e.id for e in events] == [future.id]

    @pytest.mark.asyncio
    async def test_upcoming_passes_limit(self, mock_repository):
        mock_repository.get_upcoming_events.return_value = []
        await CalendarService(mock_repository).get_upcoming_events("user-1", limit=3)

        user_id, start, limit = mock_repository.get_upcoming_events.await_args.args
        assert (user_id, limit) == ("user-1", 3)
        assert start.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_event_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.get_event("user-1", "00000000-0000-0000-0000-000000000000")

    @pytest.mark.asyncio
    async def test_create_stamps_owner(self, service, make_event):
        created = await service.create_event("user-2", make_event(utc(2024, 1, 1), user_id="someone"))
        assert created.user_id == "user-2"

    @pytest.mark.asyncio
    async def test_create_rejects_inverted_dates(self, service, make_event):
        with pytest.raises(ValidationError):
            await service.create_event(
                "user-1", make_event(utc(2024, 1, 2), duration=timedelta(hours=-1))
            )


class TestMaterializeSeries:
    """Test persisting generated series."""

    @pytest.mark.asyncio
    async def test_persists_instances_and_stamps_template(self, service, recurring_template):
        template = await _stored_template(service, recurring_template)

        created = await service.materialize_series("user-1", template)

        assert len(created) == 4
        series_id = created[0].series_id
        assert series_id.startswith("series_")

        stored_template = await service.get_event("user-1", template.id)
        assert stored_template.series_id == series_id

        series = await service.get_events_by_series("user-1", series_id)
        assert [e.start_date.day for e in series] == [1, 2, 3, 4, 5]
        assert all(e.notifications == [NotificationSetting(True, 15)] for e in series)

    @pytest.mark.asyncio
    async def test_materialize_range(self, service, recurring_template):
        template = await _stored_template(service, recurring_template)

        created = await service.materialize_range(
            "user-1", template, utc(2024, 1, 1), utc(2024, 1, 3, 23)
        )

        assert [e.start_date.day for e in created] == [2, 3]
        series = await service.get_events_by_series("user-1", created[0].series_id)
        assert len(series) == 3

    @pytest.mark.asyncio
    async def test_requires_user(self, mock_repository, recurring_template):
        with pytest.raises(AuthenticationError):
            await CalendarService(mock_repository).materialize_series(None, recurring_template)

        mock_repository.create_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_recurrence(self, mock_repository, make_event):
        with pytest.raises(InvalidStateError):
            await CalendarService(mock_repository).materialize_series(
                "user-1", make_event(utc(2024, 1, 1))
            )

        mock_repository.update_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_rule_writes_nothing(self, mock_repository, recurring_template):
        template = replace(
            recurring_template,
            recurrence=RecurrenceRule(type="fortnightly"),
        )

        with pytest.raises(ValidationError):
            await CalendarService(mock_repository).materialize_series("user-1", template)

        mock_repository.update_event.assert_not_awaited()
        mock_repository.create_event.assert_not_awaited()


class TestSeriesEdits:
    """Test series-wide updates and deletes."""

    async def _series(self, service, make_event):
        """Daily series from two days ago through two days from now."""
        start = utcnow().replace(microsecond=0) - timedelta(days=2)
        template = await service.create_event(
            "user-1",
            make_event(
                start,
                recurrence=RecurrenceRule(type="daily", end_date=start + timedelta(days=4)),
            ),
        )
        created = await service.materialize_series("user-1", template)
        return created[0].series_id

    @pytest.mark.asyncio
    async def test_update_all(self, service, make_event):
        series_id = await self._series(service, make_event)

        updated = await service.update_recurring_series(
            "user-1", series_id, {"title": "Mist orchids"}
        )

        assert len(updated) == 5
        series = await service.get_events_by_series("user-1", series_id)
        assert {e.title for e in series} == {"Mist orchids"}

    @pytest.mark.asyncio
    async def test_update_future_only(self, service, make_event):
        series_id = await self._series(service, make_event)
        now = utcnow()

        updated = await service.update_recurring_series(
            "user-1", series_id, {"status": "cancelled"}, future_only=True
        )

        assert updated and all(e.start_date >= now for e in updated)
        series = await service.get_events_by_series("user-1", series_id)
        past = [e for e in series if e.start_date < now]
        assert past and all(e.status == "pending" for e in past)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["id", "user_id", "created_at", "start_date", "end_date"])
    async def test_update_protected_fields(self, mock_repository, field):
        with pytest.raises(ValidationError):
            await CalendarService(mock_repository).update_recurring_series(
                "user-1", "series_1", {field: "x"}
            )

        mock_repository.get_events_by_series.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_empty_series(self, service):
        with pytest.raises(NotFoundError):
            await service.update_recurring_series("user-1", "series_missing", {"title": "x"})

    @pytest.mark.asyncio
    async def test_delete_all(self, service, make_event):
        series_id = await self._series(service, make_event)

        assert await service.delete_recurring_series("user-1", series_id) == 5
        assert await service.get_events_by_series("user-1", series_id) == []

    @pytest.mark.asyncio
    async def test_delete_future_only(self, service, make_event):
        series_id = await self._series(service, make_event)
        now = utcnow()

        deleted = await service.delete_recurring_series("user-1", series_id, future_only=True)

        remaining = await service.get_events_by_series("user-1", series_id)
        assert deleted + len(remaining) == 5
        assert all(e.start_date < now for e in remaining)

    @pytest.mark.asyncio
    async def test_delete_empty_series(self, service):
        assert await service.delete_recurring_series("user-1", "series_missing") == 0

    @pytest.mark.asyncio
    async def test_other_users_series_untouched(self, service, make_event):
        series_id = await self._series(service, make_event)

        assert await service.delete_recurring_series("user-2", series_id) == 0
        assert len(await service.get_events_by_series("user-1", series_id)) == 5
