"""
Mapping between CalendarEvent records and CalendarEventRecord rows.

Handles:
- UUID primary keys exposed as strings
- UTC normalization (SQLite returns naive datetimes)
- Reminder settings stored as a JSON list
- Recurrence rules flattened into recurrence_* columns
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from household_calendar.integrations.base import (
    CalendarEvent,
    NotificationSetting,
    RecurrenceRule,
)
from household_calendar.models.events import CalendarEventRecord
from household_calendar.timeutils import as_utc

# CalendarEvent attribute -> column for plain fields
_FIELD_TO_COLUMN = {
    "title": "title",
    "description": "description",
    "start_date": "start_date",
    "end_date": "end_date",
    "all_day": "all_day",
    "type": "event_type",
    "status": "status",
    "source_id": "source_id",
}

_DATETIME_FIELDS = {"start_date", "end_date"}


def _optional_utc(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


def parse_event_id(event_id: str) -> Optional[uuid.UUID]:
    """Parse an event ID, returning None when it is not a UUID."""
    try:
        return uuid.UUID(str(event_id))
    except (TypeError, ValueError):
        return None


class LocalCalendarAdapter:
    """Maps between CalendarEvent and the calendar_events table."""

    @staticmethod
    def notifications_to_json(settings: list) -> list[dict]:
        """Serialize reminder settings; plain dicts are accepted as-is."""
        serialized = []
        for setting in settings or []:
            if isinstance(setting, NotificationSetting):
                serialized.append({"enabled": setting.enabled, "timing": setting.timing})
            else:
                serialized.append(
                    {
                        "enabled": bool(setting.get("enabled", True)),
                        "timing": int(setting["timing"]),
                    }
                )
        return serialized

    @staticmethod
    def notifications_from_json(data: Optional[list]) -> list[NotificationSetting]:
        """Deserialize reminder settings, preserving order."""
        return [
            NotificationSetting(
                enabled=bool(item.get("enabled", True)),
                timing=int(item.get("timing", 0)),
            )
            for item in data or []
        ]

    @staticmethod
    def recurrence_columns(rule: Optional[RecurrenceRule]) -> dict[str, Any]:
        """Flatten a recurrence rule into column values (all None without one)."""
        if rule is None:
            return {
                "recurrence_type": None,
                "recurrence_interval": None,
                "recurrence_end_date": None,
                "series_id": None,
            }
        return {
            "recurrence_type": rule.type,
            "recurrence_interval": int(rule.interval),
            "recurrence_end_date": _optional_utc(rule.end_date),
            "series_id": rule.series_id,
        }

    @classmethod
    def to_record(cls, user_id: str, event: CalendarEvent) -> CalendarEventRecord:
        """
        Build a new row from an event.

        Args:
            user_id: Owner stamped on the row (overrides event.user_id)
            event: Event to store; its ID is kept when it is a UUID

        Returns:
            Unsaved CalendarEventRecord
        """
        record = CalendarEventRecord(
            user_id=user_id,
            title=event.title,
            description=event.description,
            start_date=as_utc(event.start_date),
            end_date=as_utc(event.end_date),
            all_day=event.all_day,
            event_type=event.type,
            status=event.status,
            source_id=event.source_id,
            notifications=cls.notifications_to_json(event.notifications),
            **cls.recurrence_columns(event.recurrence),
        )

        if event.id:
            parsed = parse_event_id(event.id)
            if parsed is None:
                raise ValueError(f"Event ID must be a UUID: {event.id}")
            record.id = parsed

        return record

    @classmethod
    def to_column_updates(cls, updates: dict) -> dict[str, Any]:
        """
        Convert CalendarEvent field updates to column values.

        Args:
            updates: CalendarEvent attribute name -> new value

        Returns:
            Column name -> value

        Raises:
            ValueError: On a field that cannot be updated
        """
        columns: dict[str, Any] = {}

        for name, value in updates.items():
            if name in _FIELD_TO_COLUMN:
                if name in _DATETIME_FIELDS:
                    value = as_utc(value)
                columns[_FIELD_TO_COLUMN[name]] = value
            elif name == "notifications":
                columns["notifications"] = cls.notifications_to_json(value)
            elif name == "recurrence":
                if isinstance(value, dict):
                    value = RecurrenceRule(**value)
                columns.update(cls.recurrence_columns(value))
            else:
                raise ValueError(f"Field cannot be updated: {name}")

        return columns

    @classmethod
    def from_record(cls, record: CalendarEventRecord) -> CalendarEvent:
        """Convert a row to a CalendarEvent with UTC-aware datetimes."""
        recurrence = None
        if record.recurrence_type:
            recurrence = RecurrenceRule(
                type=record.recurrence_type,
                interval=record.recurrence_interval or 1,
                end_date=_optional_utc(record.recurrence_end_date),
                series_id=record.series_id,
            )

        return CalendarEvent(
            id=str(record.id),
            user_id=record.user_id,
            title=record.title,
            description=record.description,
            start_date=as_utc(record.start_date),
            end_date=as_utc(record.end_date),
            all_day=record.all_day,
            type=record.event_type,
            status=record.status,
            source_id=record.source_id,
            notifications=cls.notifications_from_json(record.notifications),
            recurrence=recurrence,
            created_at=_optional_utc(record.created_at),
            updated_at=_optional_utc(record.updated_at),
        )
