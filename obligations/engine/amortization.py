"""Loan payment math and reducing-balance amortization schedules."""

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from obligations.engine.dates import add_months, to_date
from obligations.engine.errors import ValidationError
from obligations.engine.limits import DEFAULT_LIMITS, EngineLimits
from obligations.engine.models import AmortizationEntry
from obligations.engine.money import PAYOFF_THRESHOLD, ZERO, Number, money, to_decimal

logger = logging.getLogger(__name__)

# Newton solver settings for interest_rate_from_terms.
INITIAL_RATE_GUESS = 0.10
RATE_PRECISION = 0.0001
RATE_STEP = 0.001
MIN_RATE = 0.001
MAX_RATE = 0.99

SCHEDULE_PERIODS_PER_YEAR: Dict[str, int] = {
    "daily": 365,
    "weekly": 52,
    "biweekly": 26,
    "monthly": 12,
    "quarterly": 4,
    "yearly": 1,
}

_DAY_STEPS = {"daily": 1, "weekly": 7, "biweekly": 14}
_MONTH_STEPS = {"monthly": 1, "quarterly": 3, "yearly": 12}


class SolverTermination(Enum):
    """Why the interest-rate solver stopped."""
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    FLAT_DERIVATIVE = "flat_derivative"
    NO_INTEREST = "no_interest"


@dataclass(frozen=True)
class RateSolution:
    """Result of the interest-rate solver."""
    rate_percent: Decimal
    iterations: int
    termination: SolverTermination

    @property
    def converged(self) -> bool:
        return self.termination in (SolverTermination.CONVERGED, SolverTermination.NO_INTEREST)


@dataclass(frozen=True)
class PeriodSplit:
    """Interest/principal split of one payment against a balance."""
    interest: Decimal
    principal: Decimal
    remaining: Decimal


def amortization_step(
    balance: Decimal,
    payment: Decimal,
    period_rate: Decimal,
    interest_included: bool = True,
) -> PeriodSplit:
    """
    Apply one payment to a balance.

    Interest accrues on the opening balance and is rounded to cents. When
    interest is included in the payment only the remainder reduces principal;
    otherwise the whole payment is principal.
    """
    interest = money(balance * period_rate)
    if interest_included:
        principal = max(ZERO, payment - interest)
    else:
        principal = payment
    remaining = money(max(ZERO, balance - principal))
    return PeriodSplit(interest=interest, principal=money(principal), remaining=remaining)


def monthly_payment(principal: Number, annual_rate_percent: Number, months: int) -> Decimal:
    """
    Level monthly payment for a fully amortizing loan.

    Args:
        principal: Loan principal.
        annual_rate_percent: Annual rate as a percentage (8.5 for 8.5%).
        months: Number of monthly payments.

    Returns:
        Payment rounded to cents.

    Raises:
        ValidationError: If months is not positive.
    """
    if months < 1:
        raise ValidationError(f"months must be >= 1, got {months}")
    principal = to_decimal(principal)
    rate = to_decimal(annual_rate_percent)

    if rate == 0:
        return money(principal / months)

    r = rate / 100 / 12
    growth = (1 + r) ** months
    return money(principal * r * growth / (growth - 1))


def loan_term_months(principal: Number, annual_rate_percent: Number, payment: Number):
    """
    Months needed to pay off a loan with a fixed monthly payment.

    Returns ``math.inf`` when the payment never covers the first month's
    interest; the loan does not amortize.
    """
    principal = float(principal)
    rate = float(annual_rate_percent)
    payment = float(payment)

    if principal <= 0:
        return 0
    if payment <= 0:
        return math.inf
    if rate == 0:
        return math.ceil(principal / payment)

    r = rate / 100 / 12
    if payment <= principal * r:
        return math.inf
    months = math.log(payment / (payment - principal * r)) / math.log(1 + r)
    return math.ceil(round(months, 9))


def _payment_for_rate(principal: float, annual_rate: float, months: int) -> float:
    if annual_rate == 0:
        return principal / months
    r = annual_rate / 12
    growth = (1 + r) ** months
    return principal * r * growth / (growth - 1)


def solve_interest_rate(
    principal: Number,
    payment: Number,
    months: int,
    limits: EngineLimits = DEFAULT_LIMITS,
) -> RateSolution:
    """
    Solve for the annual rate that makes ``payment`` amortize ``principal``.

    Newton's method on the payment formula with a central-difference
    derivative, starting at 10%. The rate is clamped to [0.1%, 99%] each step.
    When the iteration cap is hit the last iterate is returned and the
    termination reason says so.
    """
    if months < 1:
        raise ValidationError(f"months must be >= 1, got {months}")
    principal = float(principal)
    payment = float(payment)

    if payment * months <= principal:
        return RateSolution(Decimal("0.00"), 0, SolverTermination.NO_INTEREST)

    rate = INITIAL_RATE_GUESS
    termination = SolverTermination.MAX_ITERATIONS
    iterations = 0

    for iterations in range(1, limits.max_solver_iterations + 1):
        diff = _payment_for_rate(principal, rate, months) - payment
        if abs(diff) < RATE_PRECISION:
            termination = SolverTermination.CONVERGED
            break

        up = _payment_for_rate(principal, rate + RATE_STEP, months)
        down = _payment_for_rate(principal, rate - RATE_STEP, months)
        derivative = (up - down) / (2 * RATE_STEP)
        if abs(derivative) < RATE_PRECISION:
            termination = SolverTermination.FLAT_DERIVATIVE
            break

        rate = min(MAX_RATE, max(MIN_RATE, rate - diff / derivative))

    if termination == SolverTermination.MAX_ITERATIONS:
        logger.warning(
            "Interest rate solver did not converge in %d iterations", limits.max_solver_iterations
        )
    return RateSolution(money(rate * 100), iterations, termination)


def interest_rate_from_terms(
    principal: Number,
    payment: Number,
    months: int,
    limits: EngineLimits = DEFAULT_LIMITS,
) -> Decimal:
    """Annual rate in percent implied by principal, payment and term."""
    return solve_interest_rate(principal, payment, months, limits).rate_percent


def _next_due_date(
    start: date, frequency: str, index: int, interval: int = 1, day: Optional[int] = None
) -> date:
    if frequency in _DAY_STEPS:
        return start + timedelta(days=_DAY_STEPS[frequency] * interval * index)
    return add_months(start, _MONTH_STEPS.get(frequency, 1) * interval * index, day=day)


def _normalize_frequency(frequency: str) -> str:
    token = str(frequency or "monthly").lower().replace("-", "").replace("_", "")
    aliases = {"day": "daily", "week": "weekly", "fortnightly": "biweekly",
               "month": "monthly", "quarter": "quarterly", "year": "yearly"}
    token = aliases.get(token, token)
    return token if token in SCHEDULE_PERIODS_PER_YEAR else "monthly"


def generate_amortization_schedule(
    principal: Number,
    annual_rate_percent: Number,
    payment: Number,
    start_date,
    frequency: str = "monthly",
    interest_included: bool = True,
    starting_payment_number: int = 1,
    interval: int = 1,
    day_of_month: Optional[int] = None,
    limits: EngineLimits = DEFAULT_LIMITS,
) -> List[AmortizationEntry]:
    """
    Generate a reducing-balance schedule.

    Args:
        principal: Opening balance.
        annual_rate_percent: Annual rate as a percentage.
        payment: Payment per period.
        start_date: Due date of the first payment.
        frequency: daily, weekly, biweekly, monthly, quarterly or yearly.
        interest_included: Whether interest is paid out of ``payment``.
        starting_payment_number: Number of the first entry.
        interval: Frequency units between due dates. Interest still accrues at
            the per-unit rate, matching generate_cycles.
        day_of_month: Due day for month-based frequencies (clamped to month end).
        limits: Safety caps.

    Returns:
        Entries until the balance is paid off or the period cap is reached.
        The last entry absorbs the remaining balance exactly.
    """
    if interval < 1:
        raise ValidationError(f"interval must be >= 1, got {interval}")
    frequency = _normalize_frequency(frequency)
    balance = money(principal)
    payment = money(payment)
    rate = to_decimal(annual_rate_percent)
    period_rate = rate / 100 / SCHEDULE_PERIODS_PER_YEAR[frequency] if rate > 0 else Decimal(0)
    start = to_date(start_date)

    entries: List[AmortizationEntry] = []
    index = 0

    while balance > PAYOFF_THRESHOLD:
        if index >= limits.max_amortization_periods:
            logger.warning(
                "Amortization schedule hit safety limit (%d periods), balance %s left",
                limits.max_amortization_periods, balance,
            )
            break

        split = amortization_step(balance, payment, period_rate, interest_included)
        principal_amount = split.principal
        if principal_amount >= balance or balance - principal_amount <= PAYOFF_THRESHOLD:
            principal_amount = balance

        amount = principal_amount + split.interest
        balance = money(max(ZERO, balance - principal_amount))

        entries.append(AmortizationEntry(
            payment_number=starting_payment_number + index,
            due_date=_next_due_date(start, frequency, index, interval, day_of_month),
            amount=money(amount),
            principal_amount=principal_amount,
            interest_amount=split.interest,
            remaining_balance=balance,
        ))
        index += 1

    return entries


def total_interest(entries: List[AmortizationEntry]) -> Decimal:
    return money(sum((e.interest_amount for e in entries), ZERO))


def total_principal(entries: List[AmortizationEntry]) -> Decimal:
    return money(sum((e.principal_amount for e in entries), ZERO))


@dataclass(frozen=True)
class PaymentBreakdown:
    """Principal/interest split of an ad-hoc payment."""
    total_amount: Decimal
    principal: Decimal
    interest: Decimal
    remaining_balance: Decimal


def payment_breakdown(
    payment: Number,
    balance: Number,
    annual_rate_percent: Number,
    payment_date=None,
    last_payment_date=None,
) -> PaymentBreakdown:
    """
    Split a payment into interest and principal against the current balance.

    Interest is one month at the annual rate divided by 12. When both dates
    are given it accrues for the days between them (at least one) over a
    30-day month instead. A payment covering balance plus interest pays the
    balance off exactly. Interest the payment does not cover is added to
    the remaining balance.
    """
    payment = money(payment)
    balance = money(balance)
    if payment <= 0:
        return PaymentBreakdown(ZERO, ZERO, ZERO, balance)

    rate = to_decimal(annual_rate_percent)
    interest = ZERO
    if rate > 0:
        monthly_rate = rate / 12 / 100
        if payment_date is not None and last_payment_date is not None:
            days = max(1, (to_date(payment_date) - to_date(last_payment_date)).days)
            interest = money(balance * monthly_rate * days / 30)
        else:
            interest = money(balance * monthly_rate)

    if payment >= balance + interest:
        return PaymentBreakdown(payment, balance, interest, ZERO)

    principal = min(payment - interest, balance)
    return PaymentBreakdown(
        total_amount=payment,
        principal=max(ZERO, principal),
        interest=interest,
        remaining_balance=money(max(ZERO, balance - principal)),
    )


@dataclass(frozen=True)
class PaymentImpact:
    """Effect of one payment on a liability's balance and dates."""
    current_balance: Decimal
    new_balance: Decimal
    principal_paid: Decimal
    interest_paid: Decimal
    fees_paid: Decimal
    next_due_date: Optional[date] = None
    new_next_due_date: Optional[date] = None
    payoff_date: Optional[date] = None
    new_payoff_date: Optional[date] = None
    days_ahead: Optional[int] = None
    months_reduced: Optional[int] = None


def _months_between(later: date, earlier: date) -> int:
    return (later.year - earlier.year) * 12 + later.month - earlier.month


def _months_prepaid(extra_payments: int, frequency: str) -> int:
    if frequency in _DAY_STEPS:
        return extra_payments * _DAY_STEPS[frequency] // 30
    return extra_payments * _MONTH_STEPS.get(frequency, 1)


def payment_impact(
    current_balance: Number,
    payment: Number,
    interest: Number = 0,
    fees: Number = 0,
    payment_date=None,
    expected_payment: Optional[Number] = None,
    frequency: Optional[str] = None,
    next_due_date=None,
    payoff_date=None,
    start_date=None,
    annual_rate_percent: Optional[Number] = None,
) -> PaymentImpact:
    """
    Work out how far a payment puts a liability ahead.

    Args:
        current_balance: Balance before the payment.
        payment: Amount paid.
        interest: Part of the payment that went to interest.
        fees: Part of the payment that went to fees.
        payment_date: When it was paid (defaults to today).
        expected_payment: Regular payment per period.
        frequency: Payment frequency token; whole extra payments push the
            next due date out by the months they cover.
        next_due_date: Current next due date.
        payoff_date: Targeted payoff date.
        start_date: Loan start; the new payoff date is counted from it.
        annual_rate_percent: Annual rate as a percentage.

    Returns:
        The new balance plus any new due or payoff dates. ``days_ahead`` and
        ``months_reduced`` are None unless positive.
    """
    paid_on = to_date(payment_date) if payment_date is not None else date.today()
    balance = money(current_balance)
    payment = money(payment)
    interest = money(interest)
    fees = money(fees)
    principal_paid = payment - interest - fees
    new_balance = money(max(ZERO, balance - principal_paid))
    expected = money(expected_payment) if expected_payment is not None else ZERO

    due = to_date(next_due_date) if next_due_date is not None else None
    new_due = None
    days_ahead = None
    if due is not None:
        if (due - paid_on).days > 0:
            days_ahead = (due - paid_on).days
        if expected > 0 and payment > expected and frequency:
            extra_payments = int((payment - expected) // expected)
            months = _months_prepaid(extra_payments, _normalize_frequency(frequency))
            if months > 0:
                new_due = add_months(due, months)

    target = to_date(payoff_date) if payoff_date is not None else None
    new_payoff = None
    months_reduced = None
    if new_balance <= 0:
        new_payoff = paid_on
        if target is not None and _months_between(target, paid_on) > 0:
            months_reduced = _months_between(target, paid_on)
    elif (target is not None and start_date is not None and expected > 0
          and annual_rate_percent is not None):
        term = loan_term_months(new_balance, annual_rate_percent, expected)
        if term != math.inf:
            new_payoff = add_months(to_date(start_date), int(term))
            if _months_between(target, new_payoff) > 0:
                months_reduced = _months_between(target, new_payoff)

    logger.debug("Payment of %s moves balance %s -> %s", payment, balance, new_balance)
    return PaymentImpact(
        current_balance=balance,
        new_balance=new_balance,
        principal_paid=money(principal_paid),
        interest_paid=interest,
        fees_paid=fees,
        next_due_date=due,
        new_next_due_date=new_due,
        payoff_date=target,
        new_payoff_date=new_payoff,
        days_ahead=days_ahead,
        months_reduced=months_reduced,
    )


@dataclass(frozen=True)
class ExtraPaymentOption:
    """One way of applying a lump-sum extra payment to a loan."""
    type: str  # reduce_payment, reduce_term, skip_payments, reduce_principal
    label: str
    description: str
    new_monthly_payment: Optional[Decimal] = None
    new_end_date: Optional[date] = None
    interest_saved: Decimal = Decimal("0.00")
    months_skipped: int = 0


def extra_payment_options(
    balance: Number,
    annual_rate_percent: Number,
    monthly_payment_amount: Number,
    remaining_months: int,
    extra_amount: Number,
    next_due_date,
) -> List[ExtraPaymentOption]:
    """
    Compare the ways an extra payment can be applied to a monthly loan.

    Interest saved is measured against the schedule without the extra payment.
    """
    if remaining_months < 1:
        return []

    balance = money(balance)
    payment = money(monthly_payment_amount)
    extra = money(extra_amount)
    first_due = to_date(next_due_date)
    new_balance = money(max(ZERO, balance - extra))
    current_end = add_months(first_due, remaining_months - 1)

    baseline_interest = total_interest(
        generate_amortization_schedule(balance, annual_rate_percent, payment, first_due)
    )
    options: List[ExtraPaymentOption] = []

    new_payment = monthly_payment(new_balance, annual_rate_percent, remaining_months)
    if new_payment < payment:
        schedule = generate_amortization_schedule(new_balance, annual_rate_percent, new_payment, first_due)
        options.append(ExtraPaymentOption(
            type="reduce_payment",
            label="Reduce Monthly Payment",
            description=f"Lower your payment to {new_payment} while keeping the same end date",
            new_monthly_payment=new_payment,
            new_end_date=current_end,
            interest_saved=money(baseline_interest - total_interest(schedule)),
        ))

    new_months = loan_term_months(new_balance, annual_rate_percent, payment)
    if new_months != math.inf and 0 < new_months < remaining_months:
        new_end = add_months(first_due, int(new_months) - 1)
        schedule = generate_amortization_schedule(new_balance, annual_rate_percent, payment, first_due)
        options.append(ExtraPaymentOption(
            type="reduce_term",
            label="Reduce Loan Term",
            description=(
                f"Finish {remaining_months - int(new_months)} months earlier "
                f"({new_end.isoformat()})"
            ),
            new_monthly_payment=payment,
            new_end_date=new_end,
            interest_saved=money(baseline_interest - total_interest(schedule)),
        ))

    skipped = int(extra // payment) if payment > 0 else 0
    if 0 < skipped < remaining_months:
        resume = add_months(first_due, skipped)
        options.append(ExtraPaymentOption(
            type="skip_payments",
            label="Skip Next Payments",
            description=(
                f"Pre-pay for next {skipped} month(s). "
                f"No payment due until {resume.isoformat()}"
            ),
            new_end_date=current_end,
            months_skipped=skipped,
        ))

    options.append(ExtraPaymentOption(
        type="reduce_principal",
        label="Just Reduce Principal",
        description=f"Keep everything the same but owe {extra} less",
        new_monthly_payment=payment,
        new_end_date=current_end,
    ))
    return options
