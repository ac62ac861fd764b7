"""
Series materialization service.

Expands a template event with a recurrence rule into concrete sibling
instances that share one series ID. Pure with respect to storage: the caller
persists the returned instances (see CalendarService.materialize_series).
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from household_calendar.config import get_settings
from household_calendar.exceptions import (
    AuthenticationError,
    InvalidStateError,
    ValidationError,
)
from household_calendar.integrations.base import CalendarEvent
from household_calendar.services.recurrence import (
    generate_series_id,
    occurrences_in_range,
    validate_rule,
)
from household_calendar.timeutils import ensure_aware, utcnow

logger = logging.getLogger(__name__)


def _require_recurring_template(user_id: Optional[str], template: CalendarEvent) -> None:
    if not user_id:
        raise AuthenticationError(
            "Cannot generate recurring events: User not authenticated."
        )

    if template.recurrence is None:
        raise InvalidStateError(
            "Cannot generate recurring events without a recurrence pattern"
        )

    # End dates are only required to be in the future when the rule is created.
    errors = [
        error
        for error in validate_rule(template.recurrence).errors
        if error.field != "endDate"
    ]
    if errors:
        raise ValidationError(
            "Invalid recurrence pattern: " + ", ".join(error.message for error in errors),
            errors=errors,
        )


def _build_instances(
    user_id: str,
    template: CalendarEvent,
    occurrence_dates: list[datetime],
    series_id: str,
) -> list[CalendarEvent]:
    """Copy the template onto each date, preserving its duration."""
    duration = template.duration
    recurrence = replace(template.recurrence, series_id=series_id)
    template_start = ensure_aware(template.start_date)

    return [
        replace(
            template,
            id=str(uuid.uuid4()),
            user_id=user_id,
            start_date=occurrence,
            end_date=occurrence + duration,
            notifications=[replace(n) for n in template.notifications],
            recurrence=replace(recurrence),
            created_at=None,
            updated_at=None,
        )
        for occurrence in occurrence_dates
        if occurrence != template_start
    ]


def generate_recurring_events(
    user_id: Optional[str],
    template: CalendarEvent,
    end_date: Optional[datetime] = None,
) -> list[CalendarEvent]:
    """
    Generate the instances that follow a template event.

    The template stays the first instance of the series and is not
    duplicated. Generation stops at the first of: `end_date`, the rule's
    end date, or settings.series_horizon_days from now; at most
    settings.max_series_instances occurrences are considered.

    Args:
        user_id: Current user (required)
        template: Event carrying the recurrence rule
        end_date: Optional explicit generation bound

    Returns:
        New instances ordered by start_date, all sharing one series ID

    Raises:
        AuthenticationError: If no user is given
        InvalidStateError: If the template has no recurrence rule
        ValidationError: If the rule type or interval is malformed
    """
    _require_recurring_template(user_id, template)
    settings = get_settings()
    rule = template.recurrence

    generation_end = end_date or rule.end_date
    if generation_end is None:
        generation_end = utcnow() + timedelta(days=settings.series_horizon_days)

    occurrence_dates = occurrences_in_range(
        template.start_date,
        rule,
        template.start_date,
        generation_end,
        max_count=settings.max_series_instances,
    )

    series_id = rule.series_id or generate_series_id()
    instances = _build_instances(user_id, template, occurrence_dates, series_id)

    logger.info(
        f"Generated {len(instances)} instances for series {series_id} "
        f"(template '{template.title}')"
    )
    return instances


def generate_recurring_events_for_range(
    user_id: Optional[str],
    template: CalendarEvent,
    range_start: datetime,
    range_end: datetime,
) -> list[CalendarEvent]:
    """
    Generate instances of a series that fall within a visible window.

    The template's own date is skipped if it falls inside the window.
    At most settings.max_range_instances occurrences are considered.

    Raises:
        AuthenticationError: If no user is given
        InvalidStateError: If the template has no recurrence rule
        ValidationError: If the rule is malformed or range_start > range_end
    """
    _require_recurring_template(user_id, template)

    if ensure_aware(range_start) > ensure_aware(range_end):
        raise ValidationError("Start date must be before end date")

    rule = template.recurrence
    occurrence_dates = occurrences_in_range(
        template.start_date,
        rule,
        range_start,
        range_end,
        max_count=get_settings().max_range_instances,
    )

    series_id = rule.series_id or generate_series_id()
    instances = _build_instances(user_id, template, occurrence_dates, series_id)

    logger.debug(
        f"Generated {len(instances)} instances for series {series_id} "
        f"between {range_start} and {range_end}"
    )
    return instances
