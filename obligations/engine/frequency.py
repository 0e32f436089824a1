"""Normalization of the frequency vocabularies (UI, database, custom units)."""

import logging
from typing import Dict, Optional, Tuple

from obligations.engine.models import CanonicalUnit

logger = logging.getLogger(__name__)

CUSTOM = "custom"

_UNIT_TOKENS: Dict[str, CanonicalUnit] = {
    "day": CanonicalUnit.DAILY,
    "days": CanonicalUnit.DAILY,
    "daily": CanonicalUnit.DAILY,
    "week": CanonicalUnit.WEEKLY,
    "weeks": CanonicalUnit.WEEKLY,
    "weekly": CanonicalUnit.WEEKLY,
    "month": CanonicalUnit.MONTHLY,
    "months": CanonicalUnit.MONTHLY,
    "monthly": CanonicalUnit.MONTHLY,
    "quarter": CanonicalUnit.QUARTERLY,
    "quarters": CanonicalUnit.QUARTERLY,
    "quarterly": CanonicalUnit.QUARTERLY,
    "year": CanonicalUnit.YEARLY,
    "years": CanonicalUnit.YEARLY,
    "yearly": CanonicalUnit.YEARLY,
}

# Bill-style tokens that carry their own multiplier.
_MULTIPLIED_TOKENS: Dict[str, Tuple[CanonicalUnit, int]] = {
    "biweekly": (CanonicalUnit.WEEKLY, 2),
    "bi-weekly": (CanonicalUnit.WEEKLY, 2),
    "fortnightly": (CanonicalUnit.WEEKLY, 2),
    "bimonthly": (CanonicalUnit.MONTHLY, 2),
    "bi-monthly": (CanonicalUnit.MONTHLY, 2),
    "halfyearly": (CanonicalUnit.MONTHLY, 6),
    "half-yearly": (CanonicalUnit.MONTHLY, 6),
    "semiannual": (CanonicalUnit.MONTHLY, 6),
}

_UI_TOKENS: Dict[CanonicalUnit, str] = {
    CanonicalUnit.DAILY: "day",
    CanonicalUnit.WEEKLY: "week",
    CanonicalUnit.MONTHLY: "month",
    CanonicalUnit.QUARTERLY: "quarter",
    CanonicalUnit.YEARLY: "year",
}

PERIODS_PER_YEAR: Dict[CanonicalUnit, int] = {
    CanonicalUnit.DAILY: 365,
    CanonicalUnit.WEEKLY: 52,
    CanonicalUnit.MONTHLY: 12,
    CanonicalUnit.QUARTERLY: 4,
    CanonicalUnit.YEARLY: 1,
}


def _normalize(token) -> str:
    if isinstance(token, CanonicalUnit):
        return token.value
    return str(token or "month").strip().lower()


def _lookup(token: str) -> CanonicalUnit:
    unit = _UNIT_TOKENS.get(token)
    if unit is None:
        unit, _ = _MULTIPLIED_TOKENS.get(token, (None, 1))
    if unit is None:
        # Unknown units fall back to monthly.
        logger.debug("Unrecognized frequency %r, falling back to monthly", token)
        return CanonicalUnit.MONTHLY
    return unit


def resolve_frequency(unit, custom_unit: Optional[str] = None) -> CanonicalUnit:
    """
    Resolve any frequency spelling to a canonical unit.

    Args:
        unit: UI, database, singular or plural token, or ``"custom"``.
        custom_unit: Unit to resolve when ``unit`` is ``"custom"``.

    Returns:
        The canonical unit; unrecognized tokens resolve to monthly.
    """
    token = _normalize(unit)
    if token == CUSTOM:
        return _lookup(_normalize(custom_unit))
    return _lookup(token)


def resolve_with_interval(
    unit,
    interval: int = 1,
    custom_unit: Optional[str] = None,
    custom_interval: Optional[int] = None,
) -> Tuple[CanonicalUnit, int]:
    """
    Resolve a frequency together with its interval multiplier.

    Bill tokens such as ``biweekly`` or ``halfyearly`` fold their multiplier
    into the interval (``biweekly`` with interval 1 is weekly x 2).
    """
    token = _normalize(unit)
    if token == CUSTOM:
        token = _normalize(custom_unit)
        if custom_interval is not None:
            interval = custom_interval

    if token in _MULTIPLIED_TOKENS:
        resolved, multiplier = _MULTIPLIED_TOKENS[token]
        return resolved, max(1, interval) * multiplier
    return _lookup(token), max(1, interval)


def to_ui_token(unit) -> str:
    """Map a unit back to the UI vocabulary (day, week, month, quarter, year)."""
    return _UI_TOKENS[resolve_frequency(unit)]


def periods_per_year(unit) -> int:
    return PERIODS_PER_YEAR[resolve_frequency(unit)]
