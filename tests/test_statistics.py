"""Tests for cycle statistics."""

from datetime import date, timedelta
from decimal import Decimal

from obligations.engine.models import Cycle, CycleStatus, TimingStatus
from obligations.engine.statistics import current_streak, cycle_statistics


def make_cycle(
    number: int,
    status: CycleStatus,
    actual: str = "0.00",
    within: bool = False,
    timing: TimingStatus = TimingStatus.NONE,
    expected: str = "1000.00",
) -> Cycle:
    """Helper to create classified cycles."""
    start = date(2024, 1, 1) + timedelta(days=30 * (number - 1))
    return Cycle(
        cycle_number=number,
        start_date=start,
        end_date=start + timedelta(days=29),
        expected_amount=Decimal(expected),
        expected_date=start + timedelta(days=9),
        status=status,
        actual_amount=Decimal(actual),
        timing_status=timing,
        is_within_window=within,
    )


class TestCycleStatistics:
    """Test counts, totals and rates."""

    def test_mixed_history(self):
        cycles = [
            make_cycle(1, CycleStatus.PAID_ON_TIME, "1000.00", True, TimingStatus.ON_TIME),
            make_cycle(2, CycleStatus.PAID_LATE, "1000.00", False, TimingStatus.LATE),
            make_cycle(3, CycleStatus.UNDERPAID, "400.00", False, TimingStatus.LATE),
            make_cycle(4, CycleStatus.NOT_PAID),
            make_cycle(5, CycleStatus.UPCOMING),
        ]
        stats = cycle_statistics(cycles)

        assert stats.total == 5
        assert stats.paid == 2
        assert stats.paid_on_time == 1
        assert stats.paid_late == 1
        assert stats.underpaid == 1
        assert stats.not_paid == 1
        assert stats.upcoming == 1
        assert stats.within_window == 1
        assert stats.outside_window == 2
        assert stats.total_expected == Decimal("5000.00")
        assert stats.total_actual == Decimal("2400.00")
        assert stats.average_payment == Decimal("1200.00")
        assert stats.amount_difference == Decimal("-2600.00")
        assert stats.completion_rate == 40.0
        assert stats.on_time_rate == 50.0
        assert stats.window_compliance_rate == 33.3
        assert stats.current_streak == 0

    def test_early_counts_timing_axis(self):
        cycles = [
            make_cycle(1, CycleStatus.PAID_EARLY, "1000.00", True, TimingStatus.EARLY),
            make_cycle(2, CycleStatus.PARTIAL, "300.00", True, TimingStatus.EARLY),
        ]
        stats = cycle_statistics(cycles)

        assert stats.early == 2
        assert stats.paid_early == 1
        assert stats.partial == 1
        assert stats.window_compliance_rate == 100.0

    def test_overpaid_not_in_on_time_rate(self):
        stats = cycle_statistics([
            make_cycle(1, CycleStatus.OVERPAID, "1100.00", True, TimingStatus.ON_TIME),
        ])
        assert stats.paid == 1
        assert stats.overpaid == 1
        assert stats.completion_rate == 100.0
        assert stats.on_time_rate == 0.0

    def test_empty_list(self):
        stats = cycle_statistics([])

        assert stats.total == 0
        assert stats.completion_rate == 0.0
        assert stats.on_time_rate == 0.0
        assert stats.window_compliance_rate == 100.0
        assert stats.average_payment == Decimal("0.00")

    def test_nothing_paid(self):
        stats = cycle_statistics([
            make_cycle(1, CycleStatus.NOT_PAID),
            make_cycle(2, CycleStatus.NOT_PAID),
        ])

        assert stats.completion_rate == 0.0
        assert stats.on_time_rate == 0.0
        # No cycle carries money, so none is outside the window
        assert stats.outside_window == 0
        assert stats.window_compliance_rate == 100.0

    def test_rates_rounded_to_one_decimal(self):
        cycles = [make_cycle(n, CycleStatus.NOT_PAID) for n in range(1, 3)]
        cycles.append(make_cycle(3, CycleStatus.PAID_ON_TIME, "1000.00", True, TimingStatus.ON_TIME))
        assert cycle_statistics(cycles).completion_rate == 33.3


class TestCurrentStreak:
    """Test the run of good payments."""

    def test_skips_upcoming(self):
        cycles = [
            make_cycle(1, CycleStatus.NOT_PAID),
            make_cycle(2, CycleStatus.PAID_ON_TIME),
            make_cycle(3, CycleStatus.PAID_EARLY),
            make_cycle(4, CycleStatus.UPCOMING),
        ]
        assert current_streak(cycles) == 2

    def test_late_breaks_streak(self):
        cycles = [
            make_cycle(1, CycleStatus.PAID_ON_TIME),
            make_cycle(2, CycleStatus.PAID_LATE),
            make_cycle(3, CycleStatus.PAID_WITHIN_WINDOW),
        ]
        assert current_streak(cycles) == 1

    def test_order_independent(self):
        cycles = [
            make_cycle(3, CycleStatus.OVERPAID),
            make_cycle(1, CycleStatus.UNDERPAID),
            make_cycle(2, CycleStatus.PAID_ON_TIME),
        ]
        assert current_streak(cycles) == 2

    def test_all_upcoming(self):
        assert current_streak([make_cycle(1, CycleStatus.UPCOMING)]) == 0
