"""
Pydantic request and response models for the Household Calendar API.
"""

from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from household_calendar.integrations.base import (
    CalendarEvent,
    NotificationSetting,
    RecurrenceRule,
)
from household_calendar.services.notifications import (
    InAppNotification,
    NotificationSummary,
)
from household_calendar.services.recurrence import RecurrenceValidationResult
from household_calendar.timeutils import as_utc


# =============================================================================
# Shared Models
# =============================================================================


def _utc_or_none(value: Optional[datetime]) -> Optional[datetime]:
    # ISO 8601 allows offset-less times; those are read as UTC
    return as_utc(value) if value is not None else None


class RecurrenceRuleModel(BaseModel):
    """Recurrence rule as sent and returned by the API."""

    # Checked by the recurrence validator rather than rejected here, so
    # /recurrence/validate can report every problem with a field name.
    type: str = Field(..., description="daily, weekly, monthly or yearly")
    interval: Union[int, float] = Field(default=1, description="Repeat every N units")
    end_date: Optional[datetime] = Field(None, description="No occurrences after this time")
    series_id: Optional[str] = Field(None, description="Series this rule belongs to")

    @field_validator("end_date", mode="after")
    @classmethod
    def normalize_end_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc_or_none(value)

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            type=self.type,
            interval=self.interval,
            end_date=self.end_date,
            series_id=self.series_id,
        )

    @classmethod
    def from_rule(cls, rule: RecurrenceRule) -> "RecurrenceRuleModel":
        return cls(
            type=rule.type,
            interval=rule.interval,
            end_date=rule.end_date,
            series_id=rule.series_id,
        )


class NotificationSettingModel(BaseModel):
    """A reminder N minutes before an event starts."""

    enabled: bool = Field(default=True, description="Whether the reminder is active")
    timing: int = Field(..., ge=0, description="Minutes before the event starts")

    def to_setting(self) -> NotificationSetting:
        return NotificationSetting(enabled=self.enabled, timing=self.timing)


# =============================================================================
# Request Models
# =============================================================================


class CreateEventRequest(BaseModel):
    """Request to store a calendar event."""

    title: str = Field(..., min_length=1, max_length=200, examples=["Water the ferns"])
    description: Optional[str] = None
    start_date: datetime = Field(..., description="Start time (ISO 8601)")
    end_date: datetime = Field(..., description="End time (ISO 8601)")
    all_day: bool = False
    type: Literal["task", "project", "plant_care", "custom"] = "custom"
    status: Literal["pending", "completed", "cancelled"] = "pending"
    source_id: Optional[str] = Field(None, description="Task, project or plant this event mirrors")
    notifications: list[NotificationSettingModel] = Field(default_factory=list)
    recurrence: Optional[RecurrenceRuleModel] = None

    @field_validator("start_date", "end_date", mode="after")
    @classmethod
    def normalize_dates(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def check_dates(self) -> "CreateEventRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def to_event(self, user_id: str) -> CalendarEvent:
        return CalendarEvent(
            id=None,
            user_id=user_id,
            title=self.title,
            description=self.description,
            start_date=self.start_date,
            end_date=self.end_date,
            all_day=self.all_day,
            type=self.type,
            status=self.status,
            source_id=self.source_id,
            notifications=[n.to_setting() for n in self.notifications],
            recurrence=self.recurrence.to_rule() if self.recurrence else None,
        )


class OccurrencesRequest(BaseModel):
    """Expand a rule over a window without storing anything."""

    start: datetime = Field(..., description="Start of the first occurrence (anchor)")
    rule: RecurrenceRuleModel
    range_start: datetime = Field(..., description="Window start (inclusive)")
    range_end: datetime = Field(..., description="Window end (inclusive)")
    max_count: int = Field(default=50, ge=1, le=500, description="Maximum occurrences to return")

    @field_validator("start", "range_start", "range_end", mode="after")
    @classmethod
    def normalize_dates(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def check_range(self) -> "OccurrencesRequest":
        if self.range_start > self.range_end:
            raise ValueError("range_start must not be after range_end")
        return self


class MaterializeSeriesRequest(BaseModel):
    """
    Expand a stored recurring event into stored instances.

    With range_start and range_end only that window is materialized;
    otherwise the series runs to end_date, the rule's end date or the
    configured horizon.
    """

    end_date: Optional[datetime] = Field(None, description="Explicit generation bound")
    range_start: Optional[datetime] = Field(None, description="Window start (inclusive)")
    range_end: Optional[datetime] = Field(None, description="Window end (inclusive)")

    @field_validator("end_date", "range_start", "range_end", mode="after")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc_or_none(value)

    @model_validator(mode="after")
    def check_range_pair(self) -> "MaterializeSeriesRequest":
        if (self.range_start is None) != (self.range_end is None):
            raise ValueError("range_start and range_end must be given together")
        return self


class UpdateSeriesRequest(BaseModel):
    """Field updates applied to every instance of a series."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    all_day: Optional[bool] = None
    type: Optional[Literal["task", "project", "plant_care", "custom"]] = None
    status: Optional[Literal["pending", "completed", "cancelled"]] = None
    source_id: Optional[str] = None
    notifications: Optional[list[NotificationSettingModel]] = None
    future_only: bool = Field(default=False, description="Only edit instances starting now or later")

    def to_updates(self) -> dict[str, Any]:
        """CalendarEvent field updates for the fields that were sent."""
        updates = self.model_dump(exclude_unset=True, exclude={"future_only", "notifications"})
        if self.notifications is not None:
            updates["notifications"] = [n.to_setting() for n in self.notifications]
        return updates


# =============================================================================
# Response Models
# =============================================================================


class ValidationErrorItem(BaseModel):
    """One problem with a recurrence rule."""

    field: str
    message: str


class ValidationResultResponse(BaseModel):
    """Result of validating a recurrence rule."""

    is_valid: bool
    errors: list[ValidationErrorItem] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RecurrenceValidationResult) -> "ValidationResultResponse":
        return cls(
            is_valid=result.is_valid,
            errors=[ValidationErrorItem(field=e.field, message=e.message) for e in result.errors],
        )


class OccurrencesResponse(BaseModel):
    """Occurrence dates in ascending order."""

    occurrences: list[datetime]
    count: int
    description: str = Field(..., description="Human-readable rule, e.g. 'Every 2 weeks'")


class EventResponse(BaseModel):
    """A stored calendar event."""

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    all_day: bool = False
    type: str
    status: str
    source_id: Optional[str] = None
    notifications: list[NotificationSettingModel] = Field(default_factory=list)
    recurrence: Optional[RecurrenceRuleModel] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "EventResponse":
        return cls(
            id=event.id,
            user_id=event.user_id,
            title=event.title,
            description=event.description,
            start_date=event.start_date,
            end_date=event.end_date,
            all_day=event.all_day,
            type=event.type,
            status=event.status,
            source_id=event.source_id,
            notifications=[
                NotificationSettingModel(enabled=n.enabled, timing=n.timing)
                for n in event.notifications
            ],
            recurrence=RecurrenceRuleModel.from_rule(event.recurrence) if event.recurrence else None,
            created_at=event.created_at,
            updated_at=event.updated_at,
        )


class SeriesResponse(BaseModel):
    """Instances of one recurring series."""

    series_id: Optional[str]
    count: int
    events: list[EventResponse]


class DeleteSeriesResponse(BaseModel):
    """Response for deleting a series."""

    series_id: str
    deleted: int = Field(..., description="Number of instances deleted")


class NotificationResponse(BaseModel):
    """An in-app notification."""

    id: str
    message: str
    type: str
    event_id: Optional[str] = None
    timestamp: datetime
    read: bool
    auto_hide: bool
    duration: Optional[int] = None

    @classmethod
    def from_notification(cls, notification: InAppNotification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            message=notification.message,
            type=notification.type,
            event_id=notification.event_id,
            timestamp=notification.timestamp,
            read=notification.read,
            auto_hide=notification.auto_hide,
            duration=notification.duration,
        )


class NotificationSummaryResponse(BaseModel):
    """Notification counts."""

    total: int
    unread: int
    by_type: dict[str, int]

    @classmethod
    def from_summary(cls, summary: NotificationSummary) -> "NotificationSummaryResponse":
        return cls(total=summary.total, unread=summary.unread, by_type=summary.by_type)


class ErrorResponse(BaseModel):
    """Error information for failed requests."""

    error_type: Literal[
        "validation_error",
        "invalid_state",
        "authentication_error",
        "not_found",
        "storage_error",
        "http_error",
        "internal_error",
    ] = Field(..., description="Type of error")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Additional error details")
    retryable: bool = Field(default=False, description="Whether request can be retried")


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    scheduler_running: bool = Field(..., description="Reminder scheduler active")
    database_connected: bool = Field(..., description="Database connection status")
