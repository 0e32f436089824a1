"""Tests for next-occurrence calculation and schedule unrolling."""

from datetime import date

import pytest

from obligations.engine.cycles import cycles_for_recurrence
from obligations.engine.errors import ValidationError
from obligations.engine.limits import EngineLimits
from obligations.engine.models import OccurrenceStatus, RecurrenceDefinition
from obligations.engine.scheduler import (
    count_occurrences_between,
    days_until,
    describe_recurrence,
    generate_schedule,
    is_overdue,
    next_occurrence,
    occurrence_status,
)


def make_def(unit="month", start=date(2024, 1, 1), **kwargs) -> RecurrenceDefinition:
    """Helper to create recurrence definitions."""
    return RecurrenceDefinition(unit=unit, start_date=start, **kwargs)


class TestRecurrenceDefinition:
    """Test construction-time validation."""

    def test_interval_below_one_rejected(self):
        with pytest.raises(ValidationError):
            make_def(interval=0)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            make_def(end_date=date(2023, 12, 31))

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            make_def(interval=-1)


class TestNextOccurrence:
    """Test next-occurrence rules per unit."""

    def test_daily_interval(self):
        assert next_occurrence(make_def("day", interval=3), date(2024, 1, 1)) == date(2024, 1, 4)

    def test_weekly_without_day(self):
        assert next_occurrence(make_def("week", interval=2), date(2024, 1, 1)) == date(2024, 1, 15)

    def test_weekly_target_weekday(self):
        # 2024-01-03 is a Wednesday; 1 = Monday
        definition = make_def("week", day_of_occurrence=1)
        assert next_occurrence(definition, date(2024, 1, 3)) == date(2024, 1, 8)

    def test_weekly_sunday_is_a_valid_day(self):
        definition = make_def("week", day_of_occurrence=0)
        assert next_occurrence(definition, date(2024, 1, 3)) == date(2024, 1, 7)

    def test_weekly_same_weekday_moves_a_week(self):
        definition = make_def("week", day_of_occurrence=1)
        assert next_occurrence(definition, date(2024, 1, 1)) == date(2024, 1, 8)

    def test_weekly_extra_intervals(self):
        definition = make_def("week", interval=2, day_of_occurrence=1)
        assert next_occurrence(definition, date(2024, 1, 3)) == date(2024, 1, 15)

    def test_monthly_same_day(self):
        assert next_occurrence(make_def(), date(2024, 1, 1)) == date(2024, 2, 1)

    def test_monthly_clamps_to_month_end(self):
        definition = make_def(start=date(2024, 1, 31))
        assert next_occurrence(definition, date(2024, 1, 31)) == date(2024, 2, 29)

    def test_monthly_day_of_occurrence_recovers_after_short_month(self):
        definition = make_def(start=date(2024, 1, 31), day_of_occurrence=31)
        assert next_occurrence(definition, date(2024, 1, 31)) == date(2024, 2, 29)
        assert next_occurrence(definition, date(2024, 2, 29)) == date(2024, 3, 31)

    def test_monthly_interval_with_day(self):
        definition = make_def(interval=2, day_of_occurrence=15)
        assert next_occurrence(definition, date(2024, 1, 1)) == date(2024, 3, 15)

    def test_quarterly(self):
        definition = make_def("quarter", start=date(2024, 1, 15))
        assert next_occurrence(definition, date(2024, 1, 15)) == date(2024, 4, 15)

    def test_yearly_leap_day(self):
        definition = make_def("year", start=date(2024, 2, 29))
        assert next_occurrence(definition, date(2024, 2, 29)) == date(2025, 2, 28)

    def test_yearly_day_of_year(self):
        definition = make_def("year", day_of_occurrence=60)
        assert next_occurrence(definition, date(2024, 1, 1)) == date(2025, 3, 1)

    def test_custom_unit(self):
        definition = make_def("custom", custom_unit="day", custom_interval=10)
        assert next_occurrence(definition, date(2024, 1, 1)) == date(2024, 1, 11)

    def test_biweekly_token_carries_interval(self):
        assert next_occurrence(make_def("biweekly"), date(2024, 1, 1)) == date(2024, 1, 15)
        assert next_occurrence(make_def("fortnightly"), date(2024, 1, 1)) == date(2024, 1, 15)

    def test_halfyearly_and_bimonthly(self):
        start = date(2024, 1, 15)
        assert next_occurrence(make_def("halfyearly", start=start), start) == date(2024, 7, 15)
        assert next_occurrence(make_def("bimonthly", start=start), start) == date(2024, 3, 15)

    def test_from_before_start_is_clamped(self):
        assert next_occurrence(make_def(), date(2023, 6, 1)) == date(2024, 2, 1)

    def test_at_end_date_returns_none(self):
        definition = make_def(end_date=date(2024, 3, 1))
        assert next_occurrence(definition, date(2024, 3, 1)) is None

    def test_past_end_date_returns_none(self):
        definition = make_def(end_date=date(2024, 3, 1))
        assert next_occurrence(definition, date(2024, 2, 15)) is None


class TestSchedule:
    """Test schedule unrolling."""

    def test_occurrences_follow_start(self):
        schedule = generate_schedule(
            make_def(), end_date=date(2024, 6, 30), as_of=date(2024, 3, 1)
        )
        dates = [o.date for o in schedule]
        assert dates == [date(2024, m, 1) for m in range(2, 7)]

    def test_statuses_relative_to_as_of(self):
        schedule = generate_schedule(
            make_def(), end_date=date(2024, 4, 30), as_of=date(2024, 3, 1)
        )
        occurrences = schedule.to_list()
        assert occurrences[0].status == OccurrenceStatus.OVERDUE
        assert occurrences[0].days_from_now == -29
        assert occurrences[1].status == OccurrenceStatus.DUE_TODAY
        assert occurrences[2].status == OccurrenceStatus.UPCOMING
        assert occurrences[2].days_from_now == 31

    def test_schedule_is_reiterable(self):
        schedule = generate_schedule(make_def(), max_occurrences=4, as_of=date(2024, 1, 1))
        assert list(schedule) == list(schedule)
        assert len(list(schedule)) == 4

    def test_definition_end_stops_schedule(self):
        definition = make_def(end_date=date(2024, 4, 15))
        schedule = generate_schedule(definition, as_of=date(2024, 1, 1))
        assert [o.date for o in schedule] == [date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1)]

    def test_safety_cap_truncates_with_warning(self, caplog):
        schedule = generate_schedule(
            make_def("day"),
            as_of=date(2024, 1, 1),
            limits=EngineLimits(max_schedule_occurrences=5),
        )
        assert len(schedule.to_list()) == 5
        assert "safety limit" in caplog.text

    def test_biweekly_schedule_follows_cycle_starts(self):
        definition = make_def("biweekly")
        cycles = cycles_for_recurrence(definition, 500, minimum_cycles=3, as_of=date(2024, 1, 1))
        schedule = generate_schedule(definition, max_occurrences=2, as_of=date(2024, 1, 1))

        assert [o.date for o in schedule] == [c.start_date for c in cycles[1:]]
        assert [o.date for o in schedule] == [date(2024, 1, 15), date(2024, 1, 29)]

    def test_count_occurrences_between(self):
        definition = make_def("day")
        assert count_occurrences_between(definition, date(2024, 1, 1), date(2024, 1, 10)) == 9


class TestOccurrenceStatus:
    """Test single-occurrence status."""

    def test_final_status_preserved(self):
        status = occurrence_status(date(2024, 1, 1), date(2024, 3, 1), OccurrenceStatus.COMPLETED)
        assert status == OccurrenceStatus.COMPLETED

    def test_overdue(self):
        assert occurrence_status(date(2024, 1, 1), date(2024, 1, 2)) == OccurrenceStatus.OVERDUE

    def test_days_until(self):
        assert days_until(date(2024, 1, 10), date(2024, 1, 1)) == 9
        assert days_until("2024-01-01", "2024-01-10") == -9

    def test_is_overdue(self):
        assert is_overdue(date(2024, 1, 1), date(2024, 1, 2))
        assert not is_overdue(date(2024, 1, 2), date(2024, 1, 2))


class TestDescribeRecurrence:
    """Test human-readable descriptions."""

    def test_monthly_with_day_and_end(self):
        definition = make_def(interval=2, day_of_occurrence=15, end_date=date(2025, 12, 31))
        assert describe_recurrence(definition) == "Every 2 months on the 15th until 2025-12-31"

    def test_weekly_on_sunday(self):
        definition = make_def("week", day_of_occurrence=0)
        assert describe_recurrence(definition) == "Every 1 week on Sunday"

    def test_multiplied_tokens(self):
        assert describe_recurrence(make_def("biweekly")) == "Every 2 weeks"
        assert describe_recurrence(make_def("halfyearly")) == "Every 6 months"

    def test_custom_interval(self):
        definition = make_def("custom", custom_unit="day", custom_interval=10)
        assert describe_recurrence(definition) == "Every 10 days"

    def test_ordinal_suffixes(self):
        assert "on the 1st" in describe_recurrence(make_def(day_of_occurrence=1))
        assert "on the 22nd" in describe_recurrence(make_def(day_of_occurrence=22))
        assert "on the 11th" in describe_recurrence(make_def(day_of_occurrence=11))
