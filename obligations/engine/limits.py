"""Safety caps that bound every iterative computation in the engine."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineLimits:
    """
    Iteration caps for the engine's loops.

    Hitting a cap truncates the output (and logs a warning); it never raises.
    Tests pass smaller limits to exercise truncation cheaply.
    """
    max_cycle_iterations: int = 1000
    max_schedule_occurrences: int = 10000
    max_amortization_periods: int = 600
    max_solver_iterations: int = 100


DEFAULT_LIMITS = EngineLimits()
