"""
Unit tests for household_calendar/services/recurrence.py

Tests rule validation, occurrence stepping, range expansion,
occurrence counting and membership checks.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from household_calendar.integrations.base import RecurrenceRule
from household_calendar.services.recurrence import (
    describe_rule,
    generate_series_id,
    is_in_recurrence,
    iter_occurrences,
    next_occurrence,
    occurrences_in_range,
    total_occurrences,
    validate_rule,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2024, 1, 1, 0, 0)


# =============================================================================
# validate_rule
# =============================================================================


class TestValidateRule:
    """Test recurrence rule validation."""

    def test_valid_rule(self):
        """A known type with an interval in range is valid."""
        result = validate_rule(RecurrenceRule(type="weekly", interval=2), now=NOW)

        assert result.is_valid is True
        assert result.errors == []

    def test_unknown_type(self):
        """An unknown type is reported on the type field."""
        result = validate_rule(RecurrenceRule(type="hourly"), now=NOW)

        assert result.is_valid is False
        assert [e.field for e in result.errors] == ["type"]
        assert "daily, weekly, monthly, yearly" in result.errors[0].message

    @pytest.mark.parametrize("interval", [0, -1, 1.5, "2", None, True])
    def test_non_positive_or_non_integer_interval(self, interval):
        """Intervals must be positive integers."""
        result = validate_rule(RecurrenceRule(type="daily", interval=interval), now=NOW)

        assert result.is_valid is False
        assert result.errors[0].field == "interval"
        assert result.errors[0].message == "Interval must be a positive integer"

    def test_integral_float_interval_accepted(self):
        """2.0 counts as an integer interval."""
        assert validate_rule(RecurrenceRule(type="daily", interval=2.0), now=NOW).is_valid

    def test_interval_upper_bound(self):
        """365 is allowed, 366 is not."""
        assert validate_rule(RecurrenceRule(type="daily", interval=365), now=NOW).is_valid

        result = validate_rule(RecurrenceRule(type="daily", interval=366), now=NOW)
        assert result.errors[0].field == "interval"
        assert result.errors[0].message == "Interval cannot exceed 365"

    def test_end_date_must_be_in_future(self):
        """An end date at or before now is reported on endDate."""
        result = validate_rule(
            RecurrenceRule(type="daily", end_date=NOW),
            now=NOW,
        )

        assert result.is_valid is False
        assert result.errors[0].field == "endDate"
        assert result.errors[0].message == "End date must be in the future"

    def test_future_end_date_is_valid(self):
        """An end date after now is accepted."""
        rule = RecurrenceRule(type="daily", end_date=NOW + timedelta(days=1))
        assert validate_rule(rule, now=NOW).is_valid

    def test_naive_end_date_treated_as_utc(self):
        """Naive end dates are compared as UTC."""
        rule = RecurrenceRule(type="daily", end_date=datetime(2023, 12, 31))
        assert not validate_rule(rule, now=NOW).is_valid

    def test_reports_every_error(self):
        """All violations are returned, not just the first."""
        result = validate_rule(
            RecurrenceRule(type="hourly", interval=0, end_date=NOW - timedelta(days=1)),
            now=NOW,
        )

        assert [e.field for e in result.errors] == ["type", "interval", "endDate"]


# =============================================================================
# next_occurrence
# =============================================================================


class TestNextOccurrence:
    """Test stepping from one occurrence to the next."""

    def test_daily(self):
        anchor = utc(2024, 1, 1, 10)
        assert next_occurrence(anchor, RecurrenceRule(type="daily")) == utc(2024, 1, 2, 10)

    def test_daily_interval(self):
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="daily", interval=3)
        assert next_occurrence(anchor, rule) == utc(2024, 1, 4, 10)

    def test_weekly(self):
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="weekly", interval=2)
        assert next_occurrence(anchor, rule) == utc(2024, 1, 15, 10)

    def test_monthly(self):
        anchor = utc(2024, 1, 1, 10)
        assert next_occurrence(anchor, RecurrenceRule(type="monthly")) == utc(2024, 2, 1, 10)

    def test_yearly(self):
        anchor = utc(2024, 3, 15, 9, 30)
        assert next_occurrence(anchor, RecurrenceRule(type="yearly")) == utc(2025, 3, 15, 9, 30)

    def test_from_date(self):
        """Steps from from_date rather than the anchor."""
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="daily", interval=2)
        assert next_occurrence(anchor, rule, utc(2024, 1, 5, 10)) == utc(2024, 1, 7, 10)

    def test_month_end_clamps(self):
        """Jan 31 monthly steps to the last day of February."""
        anchor = utc(2024, 1, 31, 10)
        assert next_occurrence(anchor, RecurrenceRule(type="monthly")) == utc(2024, 2, 29, 10)

    def test_month_end_does_not_drift(self):
        """After a clamped month the series returns to the anchor's day."""
        anchor = utc(2024, 1, 31, 10)
        rule = RecurrenceRule(type="monthly")
        assert next_occurrence(anchor, rule, utc(2024, 2, 29, 10)) == utc(2024, 3, 31, 10)

    def test_leap_day_yearly_clamps(self):
        anchor = utc(2024, 2, 29, 10)
        assert next_occurrence(anchor, RecurrenceRule(type="yearly")) == utc(2025, 2, 28, 10)

    def test_end_date_equal_to_current(self):
        """No occurrence once the current date reached the end date."""
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="daily", end_date=anchor)
        assert next_occurrence(anchor, rule) is None

    def test_candidate_past_end_date(self):
        """A candidate after the end date is not returned."""
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="weekly", end_date=utc(2024, 1, 5))
        assert next_occurrence(anchor, rule) is None

    def test_candidate_on_end_date(self):
        """The end date itself is inclusive."""
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="daily", end_date=utc(2024, 1, 2, 10))
        assert next_occurrence(anchor, rule) == utc(2024, 1, 2, 10)

    def test_naive_dates_read_as_utc(self):
        """Naive and aware inputs can be mixed; naive ones are UTC."""
        rule = RecurrenceRule(type="daily", end_date=datetime(2024, 1, 2, 10))
        assert next_occurrence(datetime(2024, 1, 1, 10), rule, utc(2024, 1, 1, 10)) == utc(
            2024, 1, 2, 10
        )
        assert next_occurrence(utc(2024, 1, 2, 10), rule) is None

    @pytest.mark.parametrize("interval", [0, -2, 400])
    def test_invalid_interval(self, interval):
        anchor = utc(2024, 1, 1, 10)
        assert next_occurrence(anchor, RecurrenceRule(type="daily", interval=interval)) is None

    def test_unknown_type(self):
        anchor = utc(2024, 1, 1, 10)
        assert next_occurrence(anchor, RecurrenceRule(type="hourly")) is None


# =============================================================================
# Expansion
# =============================================================================


class TestOccurrencesInRange:
    """Test bounded expansion over a window."""

    def test_weekly_range_includes_both_ends(self):
        """Weekly over four weeks yields five dates including both bounds."""
        anchor = utc(2024, 1, 1, 10)
        result = occurrences_in_range(
            anchor,
            RecurrenceRule(type="weekly"),
            anchor,
            utc(2024, 1, 29, 10),
        )

        assert result == [utc(2024, 1, d, 10) for d in (1, 8, 15, 22, 29)]

    def test_range_after_anchor(self):
        """The anchor is omitted when it lies before the window."""
        anchor = utc(2024, 1, 1, 10)
        result = occurrences_in_range(
            anchor,
            RecurrenceRule(type="daily"),
            utc(2024, 1, 5),
            utc(2024, 1, 7, 23, 59),
        )

        assert result == [utc(2024, 1, 5, 10), utc(2024, 1, 6, 10), utc(2024, 1, 7, 10)]

    def test_stops_at_rule_end_date(self):
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="daily", end_date=utc(2024, 1, 3, 10))
        result = occurrences_in_range(anchor, rule, anchor, utc(2024, 2, 1))

        assert result == [utc(2024, 1, 1, 10), utc(2024, 1, 2, 10), utc(2024, 1, 3, 10)]

    def test_max_count(self):
        anchor = utc(2024, 1, 1, 10)
        result = occurrences_in_range(
            anchor, RecurrenceRule(type="daily"), anchor, utc(2025, 1, 1), max_count=4
        )

        assert len(result) == 4
        assert result[-1] == utc(2024, 1, 4, 10)

    def test_zero_max_count(self):
        anchor = utc(2024, 1, 1, 10)
        assert occurrences_in_range(
            anchor, RecurrenceRule(type="daily"), anchor, utc(2025, 1, 1), max_count=0
        ) == []

    def test_ascending_and_unique(self):
        anchor = utc(2024, 1, 31, 8)
        result = occurrences_in_range(
            anchor, RecurrenceRule(type="monthly"), anchor, utc(2025, 1, 31, 8)
        )

        assert result == sorted(set(result))
        assert len(result) == 13
        assert utc(2024, 4, 30, 8) in result

    def test_invalid_rule_yields_only_anchor(self):
        anchor = utc(2024, 1, 1, 10)
        result = occurrences_in_range(
            anchor, RecurrenceRule(type="hourly"), anchor, utc(2024, 2, 1)
        )
        assert result == [anchor]


class TestIterOccurrences:
    """Test the lazy occurrence generator."""

    def test_unbounded_generator(self):
        from itertools import islice

        anchor = utc(2024, 1, 1, 10)
        first = list(islice(iter_occurrences(anchor, RecurrenceRule(type="yearly")), 3))

        assert first == [utc(2024, 1, 1, 10), utc(2025, 1, 1, 10), utc(2026, 1, 1, 10)]


# =============================================================================
# Counting and membership
# =============================================================================


class TestTotalOccurrences:
    """Test occurrence counting."""

    def test_open_ended_is_infinite(self):
        assert total_occurrences(utc(2024, 1, 1), RecurrenceRule(type="daily")) == math.inf

    def test_counts_anchor_through_end_date(self):
        rule = RecurrenceRule(type="daily", end_date=utc(2024, 1, 10))
        assert total_occurrences(utc(2024, 1, 1), rule) == 10

    def test_uses_tighter_bound(self):
        rule = RecurrenceRule(type="daily", end_date=utc(2024, 1, 10))
        assert total_occurrences(utc(2024, 1, 1), rule, utc(2024, 1, 3)) == 3

    def test_max_calculation_date_alone(self):
        rule = RecurrenceRule(type="weekly")
        assert total_occurrences(utc(2024, 1, 1), rule, utc(2024, 1, 31)) == 5

    def test_anchor_after_bound(self):
        rule = RecurrenceRule(type="daily", end_date=utc(2023, 12, 1))
        assert total_occurrences(utc(2024, 1, 1), rule) == 0

    def test_mixed_naive_and_aware_bounds(self):
        rule = RecurrenceRule(type="daily", end_date=datetime(2024, 1, 10))
        assert total_occurrences(utc(2024, 1, 1), rule, utc(2024, 1, 3)) == 3


class TestIsInRecurrence:
    """Test membership checks."""

    def test_anchor_is_member(self):
        anchor = utc(2024, 1, 1, 10)
        assert is_in_recurrence(anchor, anchor, RecurrenceRule(type="monthly"))

    def test_before_anchor(self):
        anchor = utc(2024, 1, 10, 10)
        assert not is_in_recurrence(utc(2024, 1, 3, 10), anchor, RecurrenceRule(type="daily"))

    def test_after_end_date(self):
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="daily", end_date=utc(2024, 1, 5))
        assert not is_in_recurrence(utc(2024, 1, 6, 10), anchor, rule)

    def test_naive_candidate(self):
        rule = RecurrenceRule(type="daily", end_date=datetime(2024, 1, 5))
        anchor = utc(2024, 1, 1, 10)
        assert is_in_recurrence(datetime(2024, 1, 3, 10), anchor, rule)
        assert not is_in_recurrence(datetime(2024, 1, 6, 10), anchor, rule)

    def test_daily_interval(self):
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="daily", interval=2)

        assert is_in_recurrence(utc(2024, 1, 3, 10), anchor, rule)
        assert not is_in_recurrence(utc(2024, 1, 4, 10), anchor, rule)

    def test_time_of_day_ignored(self):
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="daily", interval=2)
        assert is_in_recurrence(utc(2024, 1, 3, 23, 0), anchor, rule)

    def test_weekly(self):
        anchor = utc(2024, 1, 1, 10)
        rule = RecurrenceRule(type="weekly")

        assert is_in_recurrence(utc(2024, 1, 15, 10), anchor, rule)
        assert not is_in_recurrence(utc(2024, 1, 16, 10), anchor, rule)

    def test_monthly_clamped_day(self):
        """Only the clamped month-end date is a member."""
        anchor = utc(2024, 1, 31, 10)
        rule = RecurrenceRule(type="monthly")

        assert is_in_recurrence(utc(2024, 2, 29, 10), anchor, rule)
        assert not is_in_recurrence(utc(2024, 2, 28, 10), anchor, rule)
        assert is_in_recurrence(utc(2024, 4, 30, 10), anchor, rule)

    def test_monthly_interval(self):
        anchor = utc(2024, 1, 15, 10)
        rule = RecurrenceRule(type="monthly", interval=3)

        assert is_in_recurrence(utc(2024, 4, 15, 10), anchor, rule)
        assert not is_in_recurrence(utc(2024, 3, 15, 10), anchor, rule)

    def test_yearly(self):
        anchor = utc(2024, 6, 1, 10)
        rule = RecurrenceRule(type="yearly", interval=2)

        assert is_in_recurrence(utc(2026, 6, 1, 10), anchor, rule)
        assert not is_in_recurrence(utc(2025, 6, 1, 10), anchor, rule)
        assert not is_in_recurrence(utc(2026, 6, 2, 10), anchor, rule)

    def test_agrees_with_expansion(self):
        """Every expanded date is a member."""
        anchor = utc(2024, 1, 31, 10)
        rule = RecurrenceRule(type="monthly", interval=2)

        for occurrence in occurrences_in_range(anchor, rule, anchor, utc(2026, 1, 1)):
            assert is_in_recurrence(occurrence, anchor, rule)


# =============================================================================
# Helpers
# =============================================================================


class TestHelpers:
    """Test series IDs and rule descriptions."""

    def test_series_ids_are_unique(self):
        first, second = generate_series_id(), generate_series_id()

        assert first.startswith("series_")
        assert first != second

    @pytest.mark.parametrize(
        "rule,expected",
        [
            (RecurrenceRule(type="daily"), "Daily"),
            (RecurrenceRule(type="weekly", interval=3), "Every 3 weeks"),
            (
                RecurrenceRule(type="monthly", end_date=utc(2026, 12, 31)),
                "Monthly until 2026-12-31",
            ),
            (RecurrenceRule(type="yearly", interval=2), "Every 2 years"),
        ],
    )
    def test_describe_rule(self, rule, expected):
        assert describe_rule(rule) == expected
