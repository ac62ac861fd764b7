"""
Recurrence calculation service.

Pure functions over a RecurrenceRule anchored at a template event's start:
- Rule validation with field-level errors
- Next-occurrence stepping (daily/weekly by days, monthly/yearly by calendar)
- Bounded expansion over a time range
- Total occurrence counts and membership tests

Month and year steps use python-dateutil's relativedelta. Days past the end
of a short month clamp to its last day, and every step is re-anchored on the
template's day-of-month, so a series anchored on Jan 31 runs
Jan 31, Feb 29 (2024), Mar 31, Apr 30 ... without drifting.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from itertools import islice
from typing import Iterator, Optional, Union

from dateutil.relativedelta import relativedelta

from household_calendar.integrations.base import RECURRENCE_TYPES, RecurrenceRule
from household_calendar.timeutils import as_utc, ensure_aware, utcnow

MAX_INTERVAL = 365

_UNIT_LABELS = {
    "daily": ("Daily", "days"),
    "weekly": ("Weekly", "weeks"),
    "monthly": ("Monthly", "months"),
    "yearly": ("Yearly", "years"),
}


@dataclass
class RecurrenceValidationError:
    """A single problem with a recurrence rule, tagged by field."""

    field: str
    message: str


@dataclass
class RecurrenceValidationResult:
    """Outcome of validate_rule()."""

    is_valid: bool
    errors: list[RecurrenceValidationError] = field(default_factory=list)


def _is_integer(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    return False


def _has_valid_interval(rule: RecurrenceRule) -> bool:
    return _is_integer(rule.interval) and 1 <= rule.interval <= MAX_INTERVAL


def validate_rule(
    rule: RecurrenceRule,
    now: Optional[datetime] = None,
) -> RecurrenceValidationResult:
    """
    Validate a recurrence rule.

    Every violation is reported, not just the first.

    Args:
        rule: Rule to validate
        now: Reference time for the end-date check (default: current UTC time)

    Returns:
        RecurrenceValidationResult with field-tagged errors
    """
    errors: list[RecurrenceValidationError] = []

    if rule.type not in RECURRENCE_TYPES:
        errors.append(
            RecurrenceValidationError(
                field="type",
                message=f"Recurrence type must be one of: {', '.join(RECURRENCE_TYPES)}",
            )
        )

    if not _is_integer(rule.interval) or rule.interval < 1:
        errors.append(
            RecurrenceValidationError(
                field="interval",
                message="Interval must be a positive integer",
            )
        )
    elif rule.interval > MAX_INTERVAL:
        errors.append(
            RecurrenceValidationError(
                field="interval",
                message=f"Interval cannot exceed {MAX_INTERVAL}",
            )
        )

    if rule.end_date is not None:
        reference = as_utc(now) if now is not None else utcnow()
        if as_utc(rule.end_date) <= reference:
            errors.append(
                RecurrenceValidationError(
                    field="endDate",
                    message="End date must be in the future",
                )
            )

    return RecurrenceValidationResult(is_valid=not errors, errors=errors)


def _advance(
    current: datetime,
    anchor: datetime,
    rule: RecurrenceRule,
) -> Optional[datetime]:
    """Add one interval to `current`, keeping the anchor's day-of-month."""
    interval = int(rule.interval)

    if rule.type == "daily":
        return current + timedelta(days=interval)
    if rule.type == "weekly":
        return current + timedelta(weeks=interval)
    if rule.type == "monthly":
        return current + relativedelta(months=+interval, day=anchor.day)
    if rule.type == "yearly":
        return current + relativedelta(years=+interval, day=anchor.day)
    return None


def _end_date(rule: RecurrenceRule) -> Optional[datetime]:
    return ensure_aware(rule.end_date) if rule.end_date is not None else None


def next_occurrence(
    anchor: datetime,
    rule: RecurrenceRule,
    from_date: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Get the occurrence one interval after `from_date`.

    Args:
        anchor: Start of the template event (first occurrence)
        rule: Recurrence rule
        from_date: Occurrence to step from (default: anchor)

    Returns:
        Next occurrence, or None once the rule's end date is passed or
        the rule cannot be stepped (unknown type, bad interval)
    """
    anchor = ensure_aware(anchor)
    current = ensure_aware(from_date) if from_date is not None else anchor
    end_date = _end_date(rule)

    if end_date is not None and current >= end_date:
        return None

    if not _has_valid_interval(rule):
        return None

    candidate = _advance(current, anchor, rule)
    if candidate is None:
        return None

    if end_date is not None and candidate > end_date:
        return None

    return candidate


def iter_occurrences(
    anchor: datetime,
    rule: RecurrenceRule,
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
) -> Iterator[datetime]:
    """
    Lazily yield occurrences in ascending order.

    The anchor is yielded first when it lies inside the range. Without a
    range_end or rule end date the generator is unbounded; bound it with
    islice() or use occurrences_in_range().
    """
    anchor = ensure_aware(anchor)
    if range_start is not None:
        range_start = ensure_aware(range_start)
    if range_end is not None:
        range_end = ensure_aware(range_end)

    if (range_start is None or anchor >= range_start) and (
        range_end is None or anchor <= range_end
    ):
        yield anchor

    current = anchor
    while True:
        candidate = next_occurrence(anchor, rule, current)
        if candidate is None:
            return
        if range_end is not None and candidate > range_end:
            return
        if range_start is None or candidate >= range_start:
            yield candidate
        current = candidate


def occurrences_in_range(
    anchor: datetime,
    rule: RecurrenceRule,
    range_start: datetime,
    range_end: datetime,
    max_count: Optional[int] = None,
) -> list[datetime]:
    """
    Expand a recurrence into occurrence dates within [range_start, range_end].

    Args:
        anchor: Start of the template event
        rule: Recurrence rule
        range_start: Window start (inclusive)
        range_end: Window end (inclusive)
        max_count: Maximum number of dates to return (None for no cap)

    Returns:
        Ascending list of occurrence datetimes
    """
    if max_count is not None and max_count <= 0:
        return []

    occurrences = iter_occurrences(anchor, rule, range_start, range_end)
    return list(islice(occurrences, max_count))


def total_occurrences(
    anchor: datetime,
    rule: RecurrenceRule,
    max_calculation_date: Optional[datetime] = None,
) -> Union[int, float]:
    """
    Count occurrences of a series, anchor included.

    Args:
        anchor: Start of the template event
        rule: Recurrence rule
        max_calculation_date: Optional cap on the counting window

    Returns:
        Occurrence count up to the tighter of rule.end_date and
        max_calculation_date, or math.inf for an open-ended series
    """
    bounds = [ensure_aware(d) for d in (rule.end_date, max_calculation_date) if d is not None]
    if not bounds:
        return math.inf

    bound = min(bounds)
    anchor = ensure_aware(anchor)
    if anchor > bound:
        return 0

    return sum(1 for _ in iter_occurrences(anchor, rule, range_end=bound))


def is_in_recurrence(
    candidate: datetime,
    anchor: datetime,
    rule: RecurrenceRule,
) -> bool:
    """
    Check whether `candidate` falls on an occurrence of the series.

    Daily and weekly rules compare calendar-day distance. Monthly and yearly
    rules require the same (clamped) day-of-month as the series would produce.
    Time of day is not compared.
    """
    candidate = ensure_aware(candidate)
    anchor = ensure_aware(anchor)
    end_date = _end_date(rule)

    if candidate < anchor:
        return False

    if end_date is not None and candidate > end_date:
        return False

    if candidate == anchor:
        return True

    if not _has_valid_interval(rule):
        return False

    interval = int(rule.interval)

    if rule.type == "daily":
        days = (candidate.date() - anchor.date()).days
        return days % interval == 0

    if rule.type == "weekly":
        days = (candidate.date() - anchor.date()).days
        return days % (interval * 7) == 0

    if rule.type == "monthly":
        months = (candidate.year - anchor.year) * 12 + (candidate.month - anchor.month)
        if months % interval != 0:
            return False
        return candidate.date() == (anchor + relativedelta(months=months)).date()

    if rule.type == "yearly":
        years = candidate.year - anchor.year
        if years % interval != 0:
            return False
        return candidate.date() == (anchor + relativedelta(years=years)).date()

    return False


def generate_series_id() -> str:
    """Create an identifier shared by every instance of one series."""
    return f"series_{uuid.uuid4().hex}"


def describe_rule(rule: RecurrenceRule) -> str:
    """
    Format a recurrence rule for display.

    Examples:
        "Daily", "Every 3 weeks", "Monthly until 2026-12-31"
    """
    single, plural = _UNIT_LABELS.get(rule.type, (rule.type, rule.type))

    if rule.interval == 1:
        description = single
    else:
        description = f"Every {rule.interval} {plural}"

    if rule.end_date is not None:
        description += f" until {rule.end_date:%Y-%m-%d}"

    return description
