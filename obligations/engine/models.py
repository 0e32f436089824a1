"""Data models for the obligation cycle engine."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from obligations.engine.errors import ValidationError


class TransactionType(Enum):
    """Transaction type classification."""
    CREDIT = "credit"
    DEBIT = "debit"


class CanonicalUnit(Enum):
    """Resolved recurrence unit."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class OccurrenceStatus(Enum):
    """Status of a single scheduled occurrence."""
    UPCOMING = "upcoming"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class CycleStatus(Enum):
    """Composite status of a cycle (amount axis modified by timing axis)."""
    PAID_ON_TIME = "paid_on_time"
    PAID_EARLY = "paid_early"
    PAID_WITHIN_WINDOW = "paid_within_window"
    PAID_LATE = "paid_late"
    UNDERPAID = "underpaid"
    OVERPAID = "overpaid"
    NOT_PAID = "not_paid"
    UPCOMING = "upcoming"
    PARTIAL = "partial"


class TimingStatus(Enum):
    """When the first payment landed relative to the due date."""
    NONE = "none"
    EARLY = "early"
    ON_TIME = "on_time"
    WITHIN_WINDOW = "within_window"
    LATE = "late"


class AmountStatus(Enum):
    """How the paid total compares with the expected amount."""
    NONE = "none"
    OVER = "over"
    TARGET = "target"
    PARTIAL = "partial"
    BELOW_MINIMUM = "below_minimum"
    MINIMUM_MET = "minimum_met"


class SuggestionReason(Enum):
    """Scenario that produced a payment suggestion."""
    FIRST_PAYMENT = "first_payment"
    CATCH_UP = "catch_up"
    MISSED_PAYMENTS = "missed_payments"
    CONSISTENT_OVERPAYMENT = "consistent_overpayment"
    LATE_PAYMENT_REMINDER = "late_payment_reminder"
    HIGH_INTEREST = "high_interest"
    NEAR_PAYOFF = "near_payoff"
    STANDARD = "standard"


class Urgency(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Statuses counted as "paid" by the statistics aggregator.
PAID_STATUSES = frozenset({
    CycleStatus.PAID_ON_TIME,
    CycleStatus.PAID_EARLY,
    CycleStatus.PAID_WITHIN_WINDOW,
    CycleStatus.PAID_LATE,
    CycleStatus.OVERPAID,
})

# Statuses that extend the current streak.
GOOD_STATUSES = frozenset({
    CycleStatus.PAID_ON_TIME,
    CycleStatus.PAID_EARLY,
    CycleStatus.PAID_WITHIN_WINDOW,
    CycleStatus.OVERPAID,
})


@dataclass
class Transaction:
    """Represents a single payment transaction."""
    id: str
    date: datetime
    amount: Decimal
    description: str
    type: TransactionType
    reference: Optional[str] = None
    source: str = ""  # "ledger" or "bank"
    raw_data: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)  # interest, principal, cycle_number

    @property
    def abs_amount(self) -> Decimal:
        """Return absolute value of transaction amount."""
        return abs(self.amount)

    @property
    def cycle_number(self) -> Optional[int]:
        """Cycle explicitly assigned to this payment, if any."""
        value = self.metadata.get("cycle_number")
        if isinstance(value, bool) or value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    def __repr__(self) -> str:
        return (
            f"Transaction(id={self.id!r}, date={self.date.strftime('%Y-%m-%d')}, "
            f"amount={self.amount}, desc={self.description[:30]!r})"
        )


@dataclass(frozen=True)
class RecurrenceDefinition:
    """
    How an obligation repeats over time.

    ``unit`` accepts any token the frequency resolver understands, including
    ``"custom"`` (then ``custom_unit``/``custom_interval`` apply).
    ``day_of_occurrence`` is the day of month for month/quarter units, the
    weekday (0 = Sunday) for weeks and the day of year for years.
    """
    unit: str
    start_date: date
    interval: int = 1
    end_date: Optional[date] = None
    day_of_occurrence: Optional[int] = None
    custom_unit: Optional[str] = None
    custom_interval: Optional[int] = None

    def __post_init__(self):
        if self.interval < 1:
            raise ValidationError(f"interval must be >= 1, got {self.interval}")
        if self.custom_interval is not None and self.custom_interval < 1:
            raise ValidationError(f"custom_interval must be >= 1, got {self.custom_interval}")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValidationError(
                f"end_date {self.end_date} is before start_date {self.start_date}"
            )


@dataclass(frozen=True)
class Occurrence:
    """A single date in an unrolled recurrence schedule."""
    date: date
    status: OccurrenceStatus
    days_from_now: int  # negative = past, 0 = today


@dataclass(frozen=True)
class Cycle:
    """One period of an obligation with its due date, expectation and outcome."""
    cycle_number: int
    start_date: date
    end_date: date
    expected_amount: Decimal
    expected_date: date
    status: CycleStatus
    actual_amount: Decimal = Decimal("0.00")
    timing_status: TimingStatus = TimingStatus.NONE
    amount_status: AmountStatus = AmountStatus.NONE
    is_within_window: bool = False
    minimum_amount: Optional[Decimal] = None
    # Amortized liabilities only
    expected_principal: Optional[Decimal] = None
    expected_interest: Optional[Decimal] = None
    remaining_balance: Optional[Decimal] = None
    actual_principal: Optional[Decimal] = None
    actual_interest: Optional[Decimal] = None
    # Filled in by the matcher
    actual_date: Optional[date] = None
    last_payment_date: Optional[date] = None
    payment_count: int = 0
    days_from_due: Optional[int] = None
    days_early: Optional[int] = None
    days_late: Optional[int] = None
    amount_short: Optional[Decimal] = None
    amount_over: Optional[Decimal] = None
    status_label: str = ""
    notes: Optional[str] = None
    transactions: Tuple[Transaction, ...] = ()

    @property
    def is_paid(self) -> bool:
        """Check if the cycle counts as paid."""
        return self.status in PAID_STATUSES

    @property
    def shortfall(self) -> Decimal:
        """Expected minus actual, floored at zero."""
        return max(Decimal("0.00"), self.expected_amount - self.actual_amount)


@dataclass(frozen=True)
class AmortizationEntry:
    """One period of a reducing-balance schedule."""
    payment_number: int
    due_date: date
    amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal


@dataclass
class CycleStatistics:
    """Summary statistics for a list of cycles."""
    total: int = 0
    paid: int = 0
    not_paid: int = 0
    upcoming: int = 0
    paid_early: int = 0
    paid_on_time: int = 0
    paid_within_window: int = 0
    paid_late: int = 0
    early: int = 0
    underpaid: int = 0
    overpaid: int = 0
    partial: int = 0
    within_window: int = 0
    outside_window: int = 0
    total_expected: Decimal = Decimal("0.00")
    total_actual: Decimal = Decimal("0.00")
    average_payment: Decimal = Decimal("0.00")
    completion_rate: float = 0.0
    on_time_rate: float = 0.0
    window_compliance_rate: float = 100.0
    current_streak: int = 0

    @property
    def amount_difference(self) -> Decimal:
        """Calculate total paid minus total expected."""
        return self.total_actual - self.total_expected


@dataclass(frozen=True)
class PaymentSuggestion:
    """Recommended next payment."""
    suggested_amount: Decimal
    reason: SuggestionReason
    explanation: str
    urgency: Urgency
