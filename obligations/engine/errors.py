"""Exceptions raised by the cycle engine."""


class ObligationError(Exception):
    """Base exception for the obligation engine."""

    pass


class ValidationError(ObligationError, ValueError):
    """Input violates the engine's contract (caller bug, not a runtime condition)."""

    pass


class CycleSequenceError(ObligationError):
    """Generated cycles are duplicated, overlapping or not contiguous."""

    pass
