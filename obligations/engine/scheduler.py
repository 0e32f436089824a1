"""Next-occurrence calculation and schedule unrolling for simple recurring items."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, List, Optional

from obligations.engine.dates import (
    WEEKDAY_NAMES,
    add_months,
    add_years,
    day_of_year,
    ordinal_suffix,
    to_date,
    weekday_index,
)
from obligations.engine.frequency import resolve_with_interval, to_ui_token
from obligations.engine.limits import DEFAULT_LIMITS, EngineLimits
from obligations.engine.models import (
    CanonicalUnit,
    Occurrence,
    OccurrenceStatus,
    RecurrenceDefinition,
)

logger = logging.getLogger(__name__)

_FINAL_STATUSES = (
    OccurrenceStatus.COMPLETED,
    OccurrenceStatus.SKIPPED,
    OccurrenceStatus.CANCELLED,
)


def _effective(definition: RecurrenceDefinition):
    """Resolved unit and interval; custom units and biweekly-style tokens fold into the interval."""
    return resolve_with_interval(
        definition.unit, definition.interval, definition.custom_unit, definition.custom_interval
    )


def _advance_months(from_date: date, months: int, step: int, day: Optional[int]) -> date:
    if day is None:
        return add_months(from_date, months)
    candidate = add_months(from_date, months, day=day)
    if candidate <= from_date:
        candidate = add_months(candidate, step, day=day)
    return candidate


def next_occurrence(definition: RecurrenceDefinition, from_date) -> Optional[date]:
    """
    Calculate the next occurrence strictly after ``from_date``.

    Args:
        definition: Recurrence definition.
        from_date: Reference date; dates before the start are clamped to it.

    Returns:
        The next occurrence, or None once the recurrence is past its end date.
    """
    current = max(to_date(from_date), definition.start_date)
    end = definition.end_date

    if end is not None and current >= end:
        return None

    unit, interval = _effective(definition)
    day = definition.day_of_occurrence

    if unit == CanonicalUnit.DAILY:
        nxt = current + timedelta(days=interval)
    elif unit == CanonicalUnit.WEEKLY:
        if day is not None:
            delta = (day % 7) - weekday_index(current)
            if delta <= 0:
                delta += 7
            delta += (interval - 1) * 7
            nxt = current + timedelta(days=delta)
        else:
            nxt = current + timedelta(days=7 * interval)
    elif unit == CanonicalUnit.MONTHLY:
        nxt = _advance_months(current, interval, 1, day)
    elif unit == CanonicalUnit.QUARTERLY:
        nxt = _advance_months(current, interval * 3, 3, day)
    else:
        if day is not None:
            nxt = day_of_year(current.year + interval, day)
            if nxt <= current:
                nxt = day_of_year(nxt.year + 1, day)
        else:
            nxt = add_years(current, interval)

    if end is not None and nxt > end:
        return None
    return nxt


def days_until(target, as_of) -> int:
    """Days from ``as_of`` to ``target`` (negative = past)."""
    return (to_date(target) - to_date(as_of)).days


def is_overdue(due, as_of) -> bool:
    return days_until(due, as_of) < 0


def occurrence_status(
    due,
    as_of,
    existing: Optional[OccurrenceStatus] = None,
) -> OccurrenceStatus:
    """Status of an occurrence; completed/skipped/cancelled are preserved."""
    if existing in _FINAL_STATUSES:
        return existing
    diff = days_until(due, as_of)
    if diff > 0:
        return OccurrenceStatus.UPCOMING
    if diff == 0:
        return OccurrenceStatus.DUE_TODAY
    return OccurrenceStatus.OVERDUE


@dataclass(frozen=True)
class Schedule:
    """
    Bounded, re-iterable sequence of occurrences.

    Every iteration recomputes the walk from scratch, so the same schedule can
    be iterated any number of times with identical results.
    """
    definition: RecurrenceDefinition
    start_date: date
    end_date: Optional[date]
    max_occurrences: Optional[int]
    as_of: date
    limits: EngineLimits = DEFAULT_LIMITS

    def __iter__(self) -> Iterator[Occurrence]:
        current = self.start_date
        count = 0
        cap = self.limits.max_schedule_occurrences

        while True:
            if self.max_occurrences is not None and count >= self.max_occurrences:
                return
            if count >= cap:
                logger.warning("Schedule generation hit safety limit (%d occurrences)", cap)
                return

            nxt = next_occurrence(self.definition, current)
            if nxt is None:
                return
            if self.end_date is not None and nxt > self.end_date:
                return

            yield Occurrence(
                date=nxt,
                status=occurrence_status(nxt, self.as_of),
                days_from_now=days_until(nxt, self.as_of),
            )
            current = nxt
            count += 1

    def to_list(self) -> List[Occurrence]:
        return list(self)


def generate_schedule(
    definition: RecurrenceDefinition,
    start_date=None,
    end_date=None,
    max_occurrences: Optional[int] = None,
    as_of=None,
    limits: EngineLimits = DEFAULT_LIMITS,
) -> Schedule:
    """
    Unroll a recurrence into occurrences.

    Args:
        definition: Recurrence definition.
        start_date: Anchor to walk from (defaults to the definition's start).
        end_date: Last date to include (defaults to the definition's end).
        max_occurrences: Optional cap on the number of occurrences.
        as_of: Reference date for statuses (defaults to today).
        limits: Safety caps.

    Returns:
        A re-iterable Schedule.
    """
    start = to_date(start_date) if start_date is not None else definition.start_date
    if end_date is not None:
        end = to_date(end_date)
    else:
        end = definition.end_date
    return Schedule(
        definition=definition,
        start_date=start,
        end_date=end,
        max_occurrences=max_occurrences,
        as_of=to_date(as_of) if as_of is not None else date.today(),
        limits=limits,
    )


def count_occurrences_between(definition: RecurrenceDefinition, start, end) -> int:
    """Number of occurrences after ``start`` up to and including ``end``."""
    return sum(1 for _ in generate_schedule(definition, start_date=start, end_date=end))


def describe_recurrence(definition: RecurrenceDefinition) -> str:
    """Human-readable description, e.g. "Every 2 months on the 15th"."""
    unit, interval = _effective(definition)
    name = to_ui_token(unit)
    description = f"Every {interval} {name}{'s' if interval > 1 else ''}"

    day = definition.day_of_occurrence
    if day is not None:
        if unit in (CanonicalUnit.MONTHLY, CanonicalUnit.QUARTERLY):
            description += f" on the {day}{ordinal_suffix(day)}"
        elif unit == CanonicalUnit.WEEKLY:
            description += f" on {WEEKDAY_NAMES[day % 7]}"

    if definition.end_date is not None:
        description += f" until {definition.end_date.isoformat()}"
    return description
