"""Matching of payments to cycles and two-axis status classification."""

import logging
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from obligations.engine.dates import to_date
from obligations.engine.models import (
    AmountStatus,
    Cycle,
    CycleStatus,
    TimingStatus,
    Transaction,
)
from obligations.engine.money import ZERO, Number, money, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_DAYS = 2
DEFAULT_LIABILITY_TOLERANCE_DAYS = 7
DEFAULT_AMOUNT_TOLERANCE = 0.01

INTEREST_KEYS = ("interest", "interest_component", "interest_amount")
PRINCIPAL_KEYS = ("principal", "principal_component", "principal_amount")

_AMOUNT_LABELS = {
    AmountStatus.OVER: "Overpaid",
    AmountStatus.TARGET: "Full payment",
    AmountStatus.MINIMUM_MET: "Minimum paid",
    AmountStatus.BELOW_MINIMUM: "Below minimum",
    AmountStatus.PARTIAL: "Partial",
    AmountStatus.NONE: "No payment",
}

_PAID_BY_TIMING = {
    TimingStatus.EARLY: CycleStatus.PAID_EARLY,
    TimingStatus.ON_TIME: CycleStatus.PAID_ON_TIME,
    TimingStatus.WITHIN_WINDOW: CycleStatus.PAID_WITHIN_WINDOW,
    TimingStatus.LATE: CycleStatus.PAID_LATE,
}


def _plural(n: int) -> str:
    return "s" if n > 1 else ""


def _metadata_amount(txn: Transaction, keys: Tuple[str, ...]) -> Decimal:
    """First numeric metadata value among ``keys``, or zero."""
    for key in keys:
        value = txn.metadata.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            continue
        return to_decimal(value)
    return ZERO


class CycleMatcher:
    """
    Attaches payments to cycles and classifies each cycle.

    Matching Strategy:
    1. Explicit: the payment's metadata names the cycle number
    2. Window: the payment date falls within the cycle extended by the
       date tolerance on both sides

    Classification runs on two axes (timing of the first payment against the
    due date, paid total against the expected amount) that are combined into
    a single composite status.
    """

    def __init__(
        self,
        tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
        amount_tolerance: float = DEFAULT_AMOUNT_TOLERANCE,
    ):
        """
        Initialize the matcher.

        Args:
            tolerance_days: Days a payment may land outside the cycle (and after
                the due date) and still count as within the window.
            amount_tolerance: Relative amount tolerance (0.01 = 1%).
        """
        self.tolerance_days = tolerance_days
        self.tolerance = timedelta(days=tolerance_days)
        self.amount_tolerance = to_decimal(amount_tolerance)

    def match(
        self,
        cycles: List[Cycle],
        transactions: List[Transaction],
        as_of=None,
    ) -> List[Cycle]:
        """
        Match transactions to cycles and determine their status.

        A payment may match more than one cycle when windows overlap; every
        payment matching a cycle is aggregated into it.

        Args:
            cycles: Cycles to classify.
            transactions: Candidate payments.
            as_of: Reference date deciding upcoming vs not_paid (defaults to today).

        Returns:
            New cycles with actuals and statuses filled in.
        """
        today = to_date(as_of) if as_of is not None else date.today()
        result = [self._classify(cycle, self._select_transactions(cycle, transactions), today)
                  for cycle in cycles]
        logger.debug(
            "Matched %d transactions against %d cycles", len(transactions), len(cycles)
        )
        return result

    def matches(self, cycle: Cycle, txn: Transaction) -> bool:
        """Check whether a transaction belongs to a cycle."""
        if txn.cycle_number is not None and txn.cycle_number == cycle.cycle_number:
            return True
        txn_date = to_date(txn.date)
        return cycle.start_date - self.tolerance <= txn_date <= cycle.end_date + self.tolerance

    def _select_transactions(
        self, cycle: Cycle, transactions: List[Transaction]
    ) -> List[Transaction]:
        selected = [txn for txn in transactions if self.matches(cycle, txn)]
        return sorted(selected, key=lambda t: to_date(t.date))

    def _split_components(
        self, cycle: Cycle, transactions: List[Transaction], total: Decimal
    ) -> Tuple[Optional[Decimal], Optional[Decimal]]:
        """Actual (principal, interest) of the matched payments."""
        interest = sum((_metadata_amount(t, INTEREST_KEYS) for t in transactions), ZERO)
        principal = sum((_metadata_amount(t, PRINCIPAL_KEYS) for t in transactions), ZERO)

        if interest == 0 and principal == 0 and total > 0:
            has_breakdown = (
                cycle.expected_principal is not None and cycle.expected_interest is not None
            )
            expected_total = (
                cycle.expected_principal + cycle.expected_interest if has_breakdown else ZERO
            )
            if expected_total > 0:
                ratio = total / (cycle.expected_amount or expected_total)
                principal = cycle.expected_principal * ratio
                interest = cycle.expected_interest * ratio
            else:
                principal = total / 2
                interest = total / 2

        if interest > 0 or principal > 0:
            return money(principal), money(interest)
        return None, None

    def _classify_timing(self, days_diff: int) -> Tuple[TimingStatus, bool]:
        if days_diff < 0:
            return TimingStatus.EARLY, True
        if days_diff == 0:
            return TimingStatus.ON_TIME, True
        if days_diff <= self.tolerance_days:
            return TimingStatus.WITHIN_WINDOW, True
        return TimingStatus.LATE, False

    def _classify_amount(
        self, total: Decimal, expected: Decimal, minimum: Optional[Decimal]
    ) -> AmountStatus:
        floor = expected * (1 - self.amount_tolerance)
        ceil = expected * (1 + self.amount_tolerance)

        if total >= ceil:
            return AmountStatus.OVER
        if total >= floor:
            return AmountStatus.TARGET
        if minimum is not None and minimum > 0:
            if total < minimum:
                return AmountStatus.BELOW_MINIMUM
            return AmountStatus.MINIMUM_MET
        if total > 0:
            return AmountStatus.PARTIAL
        return AmountStatus.NONE

    def _resolve_status(
        self, timing: TimingStatus, amount: AmountStatus, within_window: bool
    ) -> CycleStatus:
        if amount == AmountStatus.OVER and timing == TimingStatus.ON_TIME:
            return CycleStatus.OVERPAID
        if amount in (AmountStatus.OVER, AmountStatus.TARGET, AmountStatus.MINIMUM_MET):
            return _PAID_BY_TIMING[timing]
        if amount in (AmountStatus.BELOW_MINIMUM, AmountStatus.PARTIAL):
            return CycleStatus.PARTIAL if within_window else CycleStatus.UNDERPAID
        return CycleStatus.NOT_PAID

    def _timing_label(self, timing: TimingStatus, days_diff: int) -> str:
        days = abs(days_diff)
        if timing == TimingStatus.EARLY:
            if days > self.tolerance_days:
                return f"{days} days early"
            return f"{days} day{_plural(days)} before due"
        if timing == TimingStatus.ON_TIME:
            return "On time"
        if timing == TimingStatus.WITHIN_WINDOW:
            return f"{days} day{_plural(days)} after due (within window)"
        return f"{days} day{_plural(days)} late (outside window)"

    def _classify(self, cycle: Cycle, transactions: List[Transaction], today: date) -> Cycle:
        if not transactions:
            if cycle.end_date >= today:
                status, label = CycleStatus.UPCOMING, "Upcoming - no payments yet"
            else:
                status, label = CycleStatus.NOT_PAID, "Missed - no payment"
            return replace(
                cycle,
                status=status,
                status_label=label,
                actual_amount=money(0),
                timing_status=TimingStatus.NONE,
                amount_status=AmountStatus.NONE,
                is_within_window=False,
                payment_count=0,
                transactions=(),
            )

        total = money(sum((t.abs_amount for t in transactions), ZERO))
        first_date = to_date(transactions[0].date)
        last_date = to_date(transactions[-1].date)
        days_diff = (first_date - cycle.expected_date).days

        timing, within_window = self._classify_timing(days_diff)
        amount = self._classify_amount(total, cycle.expected_amount, cycle.minimum_amount)
        status = self._resolve_status(timing, amount, within_window)
        principal, interest = self._split_components(cycle, transactions, total)

        amount_over = None
        amount_short = None
        if amount == AmountStatus.OVER:
            amount_over = money(total - cycle.expected_amount)
        elif amount != AmountStatus.TARGET and cycle.expected_amount > 0:
            amount_short = money(cycle.expected_amount - total)

        window_mark = "✓" if within_window else "✗"
        label = f"{_AMOUNT_LABELS[amount]} - {self._timing_label(timing, days_diff)} {window_mark}"

        return replace(
            cycle,
            status=status,
            status_label=label,
            actual_amount=total,
            actual_date=first_date,
            last_payment_date=last_date,
            payment_count=len(transactions),
            timing_status=timing,
            amount_status=amount,
            is_within_window=within_window,
            days_from_due=days_diff,
            days_early=-days_diff if days_diff < 0 else None,
            days_late=days_diff if days_diff > 0 else None,
            amount_over=amount_over,
            amount_short=amount_short,
            actual_principal=principal,
            actual_interest=interest,
            transactions=tuple(transactions),
        )

    def unmatched(self, cycles: List[Cycle], transactions: List[Transaction]) -> List[Transaction]:
        """Transactions that match no cycle."""
        return [t for t in transactions if not any(self.matches(c, t) for c in cycles)]


def match_transactions_to_cycles(
    cycles: List[Cycle],
    transactions: List[Transaction],
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
    amount_tolerance: Number = DEFAULT_AMOUNT_TOLERANCE,
    as_of=None,
) -> List[Cycle]:
    """Match payments to cycles with the given tolerances."""
    matcher = CycleMatcher(tolerance_days=tolerance_days, amount_tolerance=amount_tolerance)
    return matcher.match(cycles, transactions, as_of=as_of)


def find_cycle_for_payment(
    cycles: List[Cycle],
    payment_date,
    tolerance_days: int = DEFAULT_LIABILITY_TOLERANCE_DAYS,
) -> Optional[int]:
    """Number of the first cycle whose extended window contains ``payment_date``."""
    day = to_date(payment_date)
    tolerance = timedelta(days=tolerance_days)
    for cycle in cycles:
        if cycle.start_date - tolerance <= day <= cycle.end_date + tolerance:
            return cycle.cycle_number
    return None


def unmatched_transactions(
    cycles: List[Cycle],
    transactions: List[Transaction],
    tolerance_days: int = DEFAULT_TOLERANCE_DAYS,
) -> List[Transaction]:
    """Transactions that no cycle picks up."""
    return CycleMatcher(tolerance_days=tolerance_days).unmatched(cycles, transactions)
