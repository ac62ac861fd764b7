"""
Calendar event model.

Entities:
- CalendarEventRecord: One concrete calendar instance owned by a user.
  Recurring series are stored as sibling rows sharing `series_id`.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from household_calendar.models.base import CalendarRecord, get_json_type


class CalendarEventRecord(CalendarRecord):
    """
    Stored calendar event.

    Events can be:
    - Mirrors of tasks, projects or plant-care tasks (via source_id)
    - Custom entries created on the calendar
    - Instances of a recurring series (recurrence_* columns + series_id)
    """

    __tablename__ = "calendar_events"

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="User who owns this event"
    )

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Event title"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Detailed event description"
    )

    # Timing (stored as UTC)
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Event start time (UTC)"
    )

    end_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Event end time (UTC)"
    )

    all_day: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether this is an all-day event"
    )

    # Classification
    event_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="custom",
        doc="Type: 'task', 'project', 'plant_care', 'custom'"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="pending",
        doc="Status: 'pending', 'completed', 'cancelled'"
    )

    source_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="ID of the task, project or plant this event mirrors"
    )

    # Reminders
    notifications: Mapped[list] = mapped_column(
        get_json_type(),
        nullable=False,
        default=list,
        doc="Ordered reminder settings: [{'enabled': bool, 'timing': minutes}]"
    )

    # Recurrence
    recurrence_type: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="Recurrence unit: 'daily', 'weekly', 'monthly', 'yearly'"
    )

    recurrence_interval: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Repeat every N units"
    )

    recurrence_end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="No occurrences after this time"
    )

    series_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Identifier shared by every instance of a recurring series"
    )

    __table_args__ = (
        Index("ix_calendar_events_user_start", "user_id", "start_date"),
        Index("ix_calendar_events_user_series", "user_id", "series_id"),
        Index("ix_calendar_events_status", "status"),
        Index("ix_calendar_events_deleted", "deleted_at"),
    )

    def __repr__(self) -> str:
        """String representation showing title and time."""
        return (
            f"<CalendarEventRecord(title='{self.title}', start='{self.start_date}', "
            f"status='{self.status}')>"
        )
