"""Cycle generation for recurring obligations."""

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from obligations.engine.amortization import amortization_step
from obligations.engine.dates import add_months, to_date, weekday_index, with_day
from obligations.engine.errors import CycleSequenceError, ValidationError
from obligations.engine.frequency import periods_per_year, resolve_with_interval
from obligations.engine.limits import DEFAULT_LIMITS, EngineLimits
from obligations.engine.models import CanonicalUnit, Cycle, CycleStatus, RecurrenceDefinition
from obligations.engine.money import PAYOFF_THRESHOLD, Number, money, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_MAX_CYCLES = 12
MINIMUM_OPEN_ENDED_CYCLES = 6
BILLING_LEAD_DAYS = 3

_MONTHS_PER_UNIT = {
    CanonicalUnit.MONTHLY: 1,
    CanonicalUnit.QUARTERLY: 3,
    CanonicalUnit.YEARLY: 12,
}


@dataclass(frozen=True)
class AmortizationTerms:
    """Interest-bearing balance that each cycle's payment pays down."""
    annual_rate_percent: Decimal
    starting_balance: Decimal
    interest_included: bool = True


@dataclass(frozen=True)
class CycleOptions:
    """Parameters for generate_cycles."""
    start_date: date
    expected_amount: Decimal
    unit: str = "monthly"
    interval: int = 1
    end_date: Optional[date] = None
    custom_unit: Optional[str] = None
    day_of_occurrence: Optional[int] = None
    max_cycles: int = DEFAULT_MAX_CYCLES
    minimum_amount: Optional[Decimal] = None
    amortization: Optional[AmortizationTerms] = None

    def __post_init__(self):
        if self.interval < 1:
            raise ValidationError(f"interval must be >= 1, got {self.interval}")
        if self.end_date is not None and to_date(self.end_date) < to_date(self.start_date):
            raise ValidationError(
                f"end_date {self.end_date} is before start_date {self.start_date}"
            )
        if to_decimal(self.expected_amount) < 0:
            raise ValidationError(f"expected_amount must be >= 0, got {self.expected_amount}")


def _cycle_start(anchor: date, unit: CanonicalUnit, interval: int, index: int) -> date:
    """Start of the cycle ``index`` periods after the anchor (0-based)."""
    if unit == CanonicalUnit.DAILY:
        return anchor + timedelta(days=interval * index)
    if unit == CanonicalUnit.WEEKLY:
        return anchor + timedelta(days=7 * interval * index)
    return add_months(anchor, _MONTHS_PER_UNIT[unit] * interval * index)


def _expected_date(start: date, end: date, day: Optional[int], unit: CanonicalUnit) -> date:
    if day is None or unit == CanonicalUnit.DAILY:
        return start

    if unit == CanonicalUnit.WEEKLY:
        delta = (day % 7) - weekday_index(start)
        if delta < 0:
            delta += 7
        return min(start + timedelta(days=delta), end)

    day = max(1, day)
    expected = with_day(start.year, start.month, day)
    if expected < start:
        expected = add_months(expected, 1, day=day)
    return min(expected, end)


def generate_cycles(
    options: CycleOptions,
    as_of=None,
    limits: EngineLimits = DEFAULT_LIMITS,
) -> List[Cycle]:
    """
    Generate the contiguous cycles of an obligation.

    Args:
        options: Cycle options (recurrence, amounts, optional amortization).
        as_of: Reference date for initial statuses (defaults to today).
        limits: Safety caps.

    Returns:
        Cycles numbered from 1, each ending the day before the next starts.
    """
    unit, interval = resolve_with_interval(options.unit, options.interval, options.custom_unit)
    anchor = to_date(options.start_date)
    end = to_date(options.end_date) if options.end_date is not None else None
    today = to_date(as_of) if as_of is not None else date.today()
    expected_amount = money(options.expected_amount)
    minimum = money(options.minimum_amount) if options.minimum_amount is not None else None

    terms = options.amortization
    amortized = terms is not None and to_decimal(terms.starting_balance) > 0
    balance = money(terms.starting_balance) if amortized else None
    period_rate = Decimal(0)
    if amortized:
        period_rate = to_decimal(terms.annual_rate_percent) / 100 / periods_per_year(unit)

    cycles: List[Cycle] = []
    index = 0

    while len(cycles) < options.max_cycles:
        if index >= limits.max_cycle_iterations:
            logger.warning(
                "Cycle generation hit safety limit (%d iterations)", limits.max_cycle_iterations
            )
            break

        start = _cycle_start(anchor, unit, interval, index)
        if end is not None and start > end:
            break
        cycle_end = _cycle_start(anchor, unit, interval, index + 1) - timedelta(days=1)

        breakdown = {}
        if amortized:
            split = amortization_step(balance, expected_amount, period_rate, terms.interest_included)
            breakdown = {
                "expected_principal": split.principal,
                "expected_interest": split.interest,
                "remaining_balance": split.remaining,
            }
            balance = split.remaining

        cycles.append(Cycle(
            cycle_number=index + 1,
            start_date=start,
            end_date=cycle_end,
            expected_amount=expected_amount,
            expected_date=_expected_date(start, cycle_end, options.day_of_occurrence, unit),
            status=CycleStatus.NOT_PAID if cycle_end < today else CycleStatus.UPCOMING,
            minimum_amount=minimum,
            **breakdown,
        ))
        index += 1

        if amortized and balance <= PAYOFF_THRESHOLD:
            break

    ensure_contiguous(cycles)
    logger.debug("Generated %d %s cycles from %s", len(cycles), unit.value, anchor)
    return cycles


def ensure_contiguous(cycles: List[Cycle]) -> None:
    """
    Check that cycles are numbered 1..n without gaps and tile time exactly.

    Raises:
        CycleSequenceError: On a duplicate, overlapping or gapped sequence.
    """
    for previous, current in zip(cycles, cycles[1:]):
        if current.cycle_number != previous.cycle_number + 1:
            raise CycleSequenceError(
                f"cycle {current.cycle_number} follows cycle {previous.cycle_number}"
            )
        if current.start_date != previous.end_date + timedelta(days=1):
            raise CycleSequenceError(
                f"cycle {current.cycle_number} starts {current.start_date}, "
                f"expected {previous.end_date + timedelta(days=1)}"
            )
    for cycle in cycles:
        if cycle.end_date < cycle.start_date:
            raise CycleSequenceError(f"cycle {cycle.cycle_number} ends before it starts")


def cycles_for_recurrence(
    definition: RecurrenceDefinition,
    expected_amount: Number,
    minimum_cycles: int = MINIMUM_OPEN_ENDED_CYCLES,
    minimum_amount: Optional[Number] = None,
    amortization: Optional[AmortizationTerms] = None,
    as_of=None,
    limits: EngineLimits = DEFAULT_LIMITS,
) -> List[Cycle]:
    """
    Build cycles straight from a recurrence definition.

    Definitions without an end date get ``minimum_cycles`` cycles; bounded
    ones run to their end date.
    """
    unit = definition.unit
    interval = definition.interval
    if str(unit).lower() == "custom":
        unit = definition.custom_unit or "monthly"
        interval = definition.custom_interval or definition.interval

    options = CycleOptions(
        start_date=definition.start_date,
        end_date=definition.end_date,
        unit=unit,
        interval=interval,
        day_of_occurrence=definition.day_of_occurrence,
        expected_amount=money(expected_amount),
        minimum_amount=money(minimum_amount) if minimum_amount is not None else None,
        max_cycles=limits.max_cycle_iterations if definition.end_date else minimum_cycles,
        amortization=amortization,
    )
    return generate_cycles(options, as_of=as_of, limits=limits)


@dataclass(frozen=True)
class CycleOverride:
    """Per-cycle adjustment of the generated expectation."""
    cycle_number: int
    expected_date: Optional[date] = None
    expected_amount: Optional[Decimal] = None
    minimum_amount: Optional[Decimal] = None
    notes: Optional[str] = None


def apply_cycle_overrides(cycles: List[Cycle], overrides: Iterable[CycleOverride]) -> List[Cycle]:
    """Return cycles with overrides applied; cycles without one are unchanged."""
    by_number: Dict[int, CycleOverride] = {o.cycle_number: o for o in overrides}
    result = []
    for cycle in cycles:
        override = by_number.get(cycle.cycle_number)
        if override is None:
            result.append(cycle)
            continue

        changes = {}
        if override.expected_date is not None:
            changes["expected_date"] = to_date(override.expected_date)
        if override.expected_amount is not None:
            changes["expected_amount"] = money(override.expected_amount)
        if override.minimum_amount is not None:
            changes["minimum_amount"] = money(override.minimum_amount)
        if override.notes is not None:
            changes["notes"] = override.notes
        result.append(replace(cycle, **changes))
    return result


def get_cycle_by_number(cycles: List[Cycle], cycle_number: int) -> Optional[Cycle]:
    return next((c for c in cycles if c.cycle_number == cycle_number), None)


def get_current_cycle(cycles: List[Cycle], as_of=None) -> Optional[Cycle]:
    """Cycle whose period contains ``as_of`` (default today)."""
    today = to_date(as_of) if as_of is not None else date.today()
    return next((c for c in cycles if c.start_date <= today <= c.end_date), None)


def get_upcoming_cycles(cycles: List[Cycle], as_of=None) -> List[Cycle]:
    today = to_date(as_of) if as_of is not None else date.today()
    return [c for c in cycles if c.start_date > today]


def get_past_cycles(cycles: List[Cycle], as_of=None) -> List[Cycle]:
    today = to_date(as_of) if as_of is not None else date.today()
    return [c for c in cycles if c.end_date < today]


def cycles_due_for_billing(
    cycles: List[Cycle],
    today=None,
    days_before: int = BILLING_LEAD_DAYS,
) -> List[Cycle]:
    """Cycles whose bill should be raised today (``days_before`` ahead of the due date)."""
    today = to_date(today) if today is not None else date.today()
    return [c for c in cycles if c.expected_date - timedelta(days=days_before) == today]
