"""
FastAPI application for Household Calendar.

This is the main entry point for the HTTP API, providing:
- Event storage and upcoming-event listing
- Recurrence validation and preview
- Recurring series materialization, editing and deletion
- In-app notification endpoints
- Health endpoint
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from household_calendar import __version__
from household_calendar.api.dependencies import (
    get_notification_store,
    get_scheduler,
    get_service,
    resolve_user_id,
    start_scheduler,
    stop_scheduler,
)
from household_calendar.api.middleware import RequestLoggingMiddleware, TimingMiddleware
from household_calendar.api.models import (
    CreateEventRequest,
    DeleteSeriesResponse,
    ErrorResponse,
    EventResponse,
    HealthResponse,
    MaterializeSeriesRequest,
    NotificationResponse,
    NotificationSummaryResponse,
    OccurrencesRequest,
    OccurrencesResponse,
    RecurrenceRuleModel,
    SeriesResponse,
    UpdateSeriesRequest,
    ValidationResultResponse,
)
from household_calendar.config import get_settings
from household_calendar.database import check_connection, init_db
from household_calendar.exceptions import (
    AuthenticationError,
    HouseholdCalendarError,
    InvalidStateError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)
from household_calendar.services.calendar_service import CalendarService
from household_calendar.services.notifications import NotificationStore
from household_calendar.services.recurrence import (
    describe_rule,
    occurrences_in_range,
    validate_rule,
)
from household_calendar.services.reminders import ReminderScheduler
from household_calendar.timeutils import as_utc

logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Household Calendar API")
    if get_settings().is_development:
        await run_in_threadpool(init_db)
    await start_scheduler()
    logger.info("Household Calendar API started")

    yield

    # Shutdown
    logger.info("Shutting down Household Calendar API")
    await stop_scheduler()


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Household Calendar API",
    description="""
# Household Calendar API

Calendar events with recurring series and reminder notifications.

## Identity

Every calendar and notification endpoint requires the **X-User-ID** header.
The user sent there becomes the active user for reminder scheduling.

## Error Handling

- **401** - Missing user
- **404** - Event or series not found
- **409** - Operation not possible in the event's current state
- **422** - Validation error (recurrence rule, date range, request body)
- **503** - Calendar storage temporarily unavailable (retryable)
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================


_ERROR_STATUS = (
    (ValidationError, 422, "validation_error"),
    (InvalidStateError, 409, "invalid_state"),
    (AuthenticationError, 401, "authentication_error"),
    (NotFoundError, 404, "not_found"),
    (TransientIOError, 503, "storage_error"),
)


@app.exception_handler(HouseholdCalendarError)
async def calendar_exception_handler(request, exc: HouseholdCalendarError):
    """Map calendar errors to HTTP statuses."""
    status_code, error_type = 500, "internal_error"
    for error_class, status, name in _ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code, error_type = status, name
            break

    details = None
    if isinstance(exc, ValidationError) and exc.errors:
        details = [{"field": e.field, "message": e.message} for e in exc.errors]

    if status_code >= 500:
        logger.error(f"{error_type}: {exc.message}", exc_info=exc.original_error)
    else:
        logger.info(f"{error_type}: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error_type=error_type,
            message=exc.message,
            details=details,
            retryable=exc.retryable,
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_type": "http_error",
            "message": exc.detail,
            "retryable": exc.status_code >= 500,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error_type": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": True,
        },
    )


def _scheduler_or_none() -> Optional[ReminderScheduler]:
    try:
        return get_scheduler()
    except HTTPException:
        return None


# =============================================================================
# Health & Status Endpoints
# =============================================================================


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    tags=["System"],
)
async def health_check():
    """
    Check API health status.

    Returns:
        Health status including scheduler and database status
    """
    scheduler = _scheduler_or_none()
    scheduler_running = scheduler is not None and scheduler.is_running
    database_connected = await run_in_threadpool(check_connection)

    return HealthResponse(
        status="healthy" if scheduler_running and database_connected else "unhealthy",
        version=__version__,
        scheduler_running=scheduler_running,
        database_connected=database_connected,
    )


# =============================================================================
# Recurrence Endpoints
# =============================================================================


@app.post(
    "/recurrence/validate",
    response_model=ValidationResultResponse,
    summary="Validate a recurrence rule",
    tags=["Recurrence"],
)
async def validate_recurrence(rule: RecurrenceRuleModel) -> ValidationResultResponse:
    """Report every problem with a rule, tagged by field (type, interval, endDate)."""
    return ValidationResultResponse.from_result(validate_rule(rule.to_rule()))


@app.post(
    "/recurrence/occurrences",
    response_model=OccurrencesResponse,
    summary="Preview occurrences of a rule",
    tags=["Recurrence"],
)
async def preview_occurrences(request: OccurrencesRequest) -> OccurrencesResponse:
    """
    Expand a rule over a window without storing anything.

    Times without an offset are read as UTC.
    """
    rule = request.rule.to_rule()
    errors = [e for e in validate_rule(rule).errors if e.field != "endDate"]
    if errors:
        raise ValidationError("Invalid recurrence pattern", errors=errors)

    if rule.end_date is not None:
        rule.end_date = as_utc(rule.end_date)

    occurrences = occurrences_in_range(
        as_utc(request.start),
        rule,
        as_utc(request.range_start),
        as_utc(request.range_end),
        max_count=request.max_count,
    )

    return OccurrencesResponse(
        occurrences=occurrences,
        count=len(occurrences),
        description=describe_rule(rule),
    )


# =============================================================================
# Event Endpoints
# =============================================================================


@app.post(
    "/events",
    response_model=EventResponse,
    status_code=201,
    summary="Store an event",
    tags=["Events"],
)
async def create_event(
    request: CreateEventRequest,
    user_id: str = Depends(resolve_user_id),
    service: CalendarService = Depends(get_service),
) -> EventResponse:
    """
    Store a calendar event.

    A recurrence rule is validated in full, so its end date must be in the
    future. Reminders inside the upcoming window are armed right away.
    """
    event = request.to_event(user_id)
    if event.recurrence is not None:
        result = validate_rule(event.recurrence)
        if not result.is_valid:
            raise ValidationError("Invalid recurrence pattern", errors=result.errors)

    created = await service.create_event(user_id, event)

    scheduler = _scheduler_or_none()
    if scheduler is not None and created.notifications:
        await scheduler.schedule_upcoming_notifications()

    return EventResponse.from_event(created)


@app.get(
    "/events/upcoming",
    response_model=list[EventResponse],
    summary="List upcoming events",
    tags=["Events"],
)
async def list_upcoming_events(
    limit: int = Query(10, ge=1, le=100, description="Maximum events to return"),
    user_id: str = Depends(resolve_user_id),
    service: CalendarService = Depends(get_service),
) -> list[EventResponse]:
    """List the user's next events, earliest first."""
    events = await service.get_upcoming_events(user_id, limit)
    return [EventResponse.from_event(event) for event in events]


@app.post(
    "/events/{event_id}/series",
    response_model=SeriesResponse,
    status_code=201,
    summary="Materialize a recurring series",
    tags=["Series"],
)
async def materialize_series(
    event_id: str,
    request: Optional[MaterializeSeriesRequest] = None,
    user_id: str = Depends(resolve_user_id),
    service: CalendarService = Depends(get_service),
) -> SeriesResponse:
    """
    Store the instances that follow a recurring event.

    The event stays the first instance and is stamped with the series ID.
    """
    request = request or MaterializeSeriesRequest()
    template = await service.get_event(user_id, event_id)

    if request.range_start is not None:
        created = await service.materialize_range(
            user_id,
            template,
            as_utc(request.range_start),
            as_utc(request.range_end),
        )
    else:
        end_date = as_utc(request.end_date) if request.end_date else None
        created = await service.materialize_series(user_id, template, end_date)

    template = await service.get_event(user_id, event_id)

    scheduler = _scheduler_or_none()
    if scheduler is not None and template.notifications:
        await scheduler.schedule_upcoming_notifications()

    return SeriesResponse(
        series_id=template.series_id,
        count=len(created),
        events=[EventResponse.from_event(event) for event in created],
    )


# =============================================================================
# Series Endpoints
# =============================================================================


@app.get(
    "/series/{series_id}",
    response_model=SeriesResponse,
    summary="List the instances of a series",
    tags=["Series"],
)
async def get_series(
    series_id: str,
    user_id: str = Depends(resolve_user_id),
    service: CalendarService = Depends(get_service),
) -> SeriesResponse:
    """List every instance of a series, earliest first."""
    events = await service.get_events_by_series(user_id, series_id)
    if not events:
        raise NotFoundError(f"Series not found: {series_id}")

    return SeriesResponse(
        series_id=series_id,
        count=len(events),
        events=[EventResponse.from_event(event) for event in events],
    )


@app.patch(
    "/series/{series_id}",
    response_model=SeriesResponse,
    summary="Edit every instance of a series",
    tags=["Series"],
)
async def update_series(
    series_id: str,
    request: UpdateSeriesRequest,
    user_id: str = Depends(resolve_user_id),
    service: CalendarService = Depends(get_service),
) -> SeriesResponse:
    """
    Apply the same changes to a series.

    With future_only, instances that already started keep their values.
    """
    updates = request.to_updates()
    if not updates:
        raise ValidationError("No fields to update")

    updated = await service.update_recurring_series(
        user_id, series_id, updates, future_only=request.future_only
    )

    scheduler = _scheduler_or_none()
    if scheduler is not None and "notifications" in updates:
        for event in updated:
            scheduler.cancel_notification(event.id)
        await scheduler.schedule_upcoming_notifications()

    return SeriesResponse(
        series_id=series_id,
        count=len(updated),
        events=[EventResponse.from_event(event) for event in updated],
    )


@app.delete(
    "/series/{series_id}",
    response_model=DeleteSeriesResponse,
    summary="Delete a series",
    tags=["Series"],
)
async def delete_series(
    series_id: str,
    future_only: bool = Query(False, description="Only delete instances starting now or later"),
    user_id: str = Depends(resolve_user_id),
    service: CalendarService = Depends(get_service),
) -> DeleteSeriesResponse:
    """Delete a series; reminders and notifications of deleted instances go with it."""
    before = {event.id for event in await service.get_events_by_series(user_id, series_id)}
    deleted = await service.delete_recurring_series(user_id, series_id, future_only=future_only)

    scheduler = _scheduler_or_none()
    if scheduler is not None and deleted:
        remaining = {event.id for event in await service.get_events_by_series(user_id, series_id)}
        for event_id in before - remaining:
            scheduler.cancel_all_notifications_for_event(event_id)

    return DeleteSeriesResponse(series_id=series_id, deleted=deleted)


# =============================================================================
# Notification Endpoints
# =============================================================================


@app.get(
    "/notifications",
    response_model=list[NotificationResponse],
    summary="List in-app notifications",
    tags=["Notifications"],
)
async def list_notifications(
    unread_only: bool = Query(False, description="Only unread notifications"),
    user_id: str = Depends(resolve_user_id),
    store: NotificationStore = Depends(get_notification_store),
) -> list[NotificationResponse]:
    """List notifications, newest first."""
    return [
        NotificationResponse.from_notification(notification)
        for notification in store.notifications
        if not (unread_only and notification.read)
    ]


@app.get(
    "/notifications/summary",
    response_model=NotificationSummaryResponse,
    summary="Notification counts",
    tags=["Notifications"],
)
async def notification_summary(
    user_id: str = Depends(resolve_user_id),
    store: NotificationStore = Depends(get_notification_store),
) -> NotificationSummaryResponse:
    """Count notifications by read state and type."""
    return NotificationSummaryResponse.from_summary(store.summary())


@app.post(
    "/notifications/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification as read",
    tags=["Notifications"],
)
async def mark_notification_read(
    notification_id: str,
    user_id: str = Depends(resolve_user_id),
    store: NotificationStore = Depends(get_notification_store),
) -> NotificationResponse:
    """Mark a notification as read."""
    if not store.mark_read(notification_id):
        raise NotFoundError(f"Notification not found: {notification_id}")
    return NotificationResponse.from_notification(store.get(notification_id))


@app.delete(
    "/notifications/{notification_id}",
    status_code=204,
    summary="Dismiss a notification",
    tags=["Notifications"],
)
async def clear_notification(
    notification_id: str,
    user_id: str = Depends(resolve_user_id),
    store: NotificationStore = Depends(get_notification_store),
) -> Response:
    """Remove a notification."""
    if not store.clear(notification_id):
        raise NotFoundError(f"Notification not found: {notification_id}")
    return Response(status_code=204)


@app.delete(
    "/notifications",
    status_code=204,
    summary="Dismiss all notifications",
    tags=["Notifications"],
)
async def clear_all_notifications(
    user_id: str = Depends(resolve_user_id),
    store: NotificationStore = Depends(get_notification_store),
) -> Response:
    """Remove every notification."""
    store.clear_all()
    return Response(status_code=204)


# =============================================================================
# Run with Uvicorn
# =============================================================================


def run_server(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False):
    """Run the API server with Uvicorn."""
    import uvicorn

    from household_calendar.logging_config import configure_logging

    settings = get_settings()
    configure_logging()

    uvicorn.run(
        "household_calendar.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


if __name__ == "__main__":
    run_server(reload=True)
