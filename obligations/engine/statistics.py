"""Summary statistics over classified cycles."""

from decimal import Decimal
from typing import List

from obligations.engine.models import (
    GOOD_STATUSES,
    PAID_STATUSES,
    Cycle,
    CycleStatistics,
    CycleStatus,
    TimingStatus,
)
from obligations.engine.money import ZERO, money


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1)


def current_streak(cycles: List[Cycle]) -> int:
    """Consecutive good payments counted back from the latest cycle; upcoming cycles are skipped."""
    streak = 0
    for cycle in sorted(cycles, key=lambda c: c.cycle_number, reverse=True):
        if cycle.status in GOOD_STATUSES:
            streak += 1
        elif cycle.status != CycleStatus.UPCOMING:
            break
    return streak


def cycle_statistics(cycles: List[Cycle]) -> CycleStatistics:
    """
    Aggregate counts, totals and rates for a list of cycles.

    The on-time rate is measured against paid cycles only and is 0 when
    nothing has been paid; window compliance is 100 when no cycle has money.
    """
    def count(status: CycleStatus) -> int:
        return sum(1 for c in cycles if c.status == status)

    stats = CycleStatistics(total=len(cycles))
    stats.paid = sum(1 for c in cycles if c.status in PAID_STATUSES)
    stats.not_paid = count(CycleStatus.NOT_PAID)
    stats.upcoming = count(CycleStatus.UPCOMING)
    stats.paid_early = count(CycleStatus.PAID_EARLY)
    stats.paid_on_time = count(CycleStatus.PAID_ON_TIME)
    stats.paid_within_window = count(CycleStatus.PAID_WITHIN_WINDOW)
    stats.paid_late = count(CycleStatus.PAID_LATE)
    stats.underpaid = count(CycleStatus.UNDERPAID)
    stats.overpaid = count(CycleStatus.OVERPAID)
    stats.partial = count(CycleStatus.PARTIAL)
    stats.early = sum(1 for c in cycles if c.timing_status == TimingStatus.EARLY)

    stats.within_window = sum(1 for c in cycles if c.is_within_window)
    stats.outside_window = sum(
        1 for c in cycles if not c.is_within_window and c.actual_amount > 0
    )

    stats.total_expected = money(sum((c.expected_amount for c in cycles), ZERO))
    stats.total_actual = money(sum((c.actual_amount for c in cycles), ZERO))
    if stats.paid:
        stats.average_payment = money(stats.total_actual / stats.paid)
    else:
        stats.average_payment = Decimal("0.00")

    if stats.total:
        stats.completion_rate = _rate(stats.paid, stats.total)
    if stats.paid:
        good_timing = stats.paid_early + stats.paid_on_time + stats.paid_within_window
        stats.on_time_rate = _rate(good_timing, stats.paid)
    windowed = stats.within_window + stats.outside_window
    if windowed:
        stats.window_compliance_rate = _rate(stats.within_window, windowed)

    stats.current_streak = current_streak(cycles)
    return stats
