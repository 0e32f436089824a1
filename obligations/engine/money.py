"""Decimal helpers for monetary values."""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Balances at or below this are considered paid off.
PAYOFF_THRESHOLD = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without picking up float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Number) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def ceil_whole(value: Number) -> Decimal:
    """Round up to the nearest whole currency unit."""
    return to_decimal(value).to_integral_value(rounding=ROUND_CEILING)
