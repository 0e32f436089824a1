"""Calendar helpers shared by the scheduler, cycle generator and matcher."""

import calendar
from datetime import date, datetime, timedelta
from typing import Optional, Union

DateLike = Union[date, datetime, str]

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def to_date(value: DateLike) -> date:
    """Strip time-of-day; accepts date, datetime or an ISO string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()


def last_day_of_month(year: int, month: int) -> int:
    """Number of days in the given month."""
    return calendar.monthrange(year, month)[1]


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def with_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping the day to the month's last day."""
    return date(year, month, min(day, last_day_of_month(year, month)))


def add_months(value: date, months: int, day: Optional[int] = None) -> date:
    """
    Shift a date by whole months, clamping to the target month's length.

    Args:
        value: Date to shift.
        months: Number of months (may be negative).
        day: Day-of-month to land on instead of ``value.day``.
    """
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    return with_day(year, month + 1, day if day is not None else value.day)


def add_years(value: date, years: int) -> date:
    """Shift by whole years; Feb 29 becomes Feb 28 in non-leap years."""
    return with_day(value.year + years, value.month, value.day)


def day_of_year(year: int, ordinal: int) -> date:
    """Date for a 1-based day of year, clamped to the year's length."""
    ordinal = max(1, min(ordinal, days_in_year(year)))
    return date(year, 1, 1) + timedelta(days=ordinal - 1)


def weekday_index(value: date) -> int:
    """Weekday with Sunday = 0 ... Saturday = 6."""
    return (value.weekday() + 1) % 7


def ordinal_suffix(n: int) -> str:
    """English ordinal suffix: 1st, 2nd, 3rd, 11th ..."""
    if n % 100 in (11, 12, 13):
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
