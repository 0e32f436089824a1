"""Next-payment suggestions derived from a cycle's payment history."""

import logging
from decimal import Decimal
from typing import List, Optional

from obligations.engine.models import (
    Cycle,
    CycleStatus,
    PaymentSuggestion,
    SuggestionReason,
    Urgency,
)
from obligations.engine.money import ZERO, Number, ceil_whole, money, to_decimal

logger = logging.getLogger(__name__)

HIGH_INTEREST_RATE = Decimal("10")
HIGH_INTEREST_BALANCE_MULTIPLE = 10
HIGH_INTEREST_EXTRA = Decimal("0.2")
NEAR_PAYOFF_MULTIPLE = Decimal("1.5")

# Statuses treated as a completed payment when looking for patterns.
_SETTLED = (CycleStatus.PAID_ON_TIME, CycleStatus.PAID_LATE, CycleStatus.OVERPAID)


def _whole(value: Number) -> Decimal:
    """Round up to a whole unit, keeping two decimal places."""
    return money(ceil_whole(value))


def suggest_payment(
    expected_amount: Number,
    previous_cycles: List[Cycle],
    outstanding_balance: Number,
    interest_rate_percent: Optional[Number] = None,
) -> Optional[PaymentSuggestion]:
    """
    Suggest what to pay next.

    Scenarios are checked in order and the first that applies wins: first
    payment, catching up on underpayments, missed payments, continuing a
    habit of overpaying, a late-payment reminder, high interest, near payoff
    and finally the standard expected amount.

    Args:
        expected_amount: Amount due per cycle.
        previous_cycles: Classified cycles before the one being paid.
        outstanding_balance: Remaining balance of the obligation.
        interest_rate_percent: Annual rate, when the obligation bears interest.

    Returns:
        The suggestion; amounts are rounded up to whole units.
    """
    expected = money(expected_amount)
    balance = money(outstanding_balance)

    if not previous_cycles:
        return PaymentSuggestion(
            suggested_amount=_whole(expected),
            reason=SuggestionReason.FIRST_PAYMENT,
            explanation="This is your first payment. Pay the expected amount.",
            urgency=Urgency.LOW,
        )

    settled = [c for c in previous_cycles if c.status in _SETTLED]
    short = [c for c in previous_cycles if c.status in (CycleStatus.UNDERPAID, CycleStatus.PARTIAL)]
    missed = [c for c in previous_cycles if c.status == CycleStatus.NOT_PAID]

    shortfall = sum((c.shortfall for c in short), ZERO)
    if len(short) >= 2 and shortfall > 0:
        amount = _whole(expected + shortfall / 2)
        logger.debug("Suggesting catch-up of %s over shortfall %s", amount, shortfall)
        return PaymentSuggestion(
            suggested_amount=amount,
            reason=SuggestionReason.CATCH_UP,
            explanation=(
                f"You've underpaid in {len(short)} cycles. "
                f"Pay {amount} to catch up gradually."
            ),
            urgency=Urgency.MEDIUM,
        )

    missed_total = sum((c.expected_amount for c in missed), ZERO)
    if missed and missed_total > 0:
        amount = _whole(expected + missed_total / max(2, len(missed)))
        return PaymentSuggestion(
            suggested_amount=amount,
            reason=SuggestionReason.MISSED_PAYMENTS,
            explanation=f"You've missed {len(missed)} payment(s). Pay {amount} to catch up.",
            urgency=Urgency.HIGH,
        )

    if len(settled) >= 3:
        overpaid = [c for c in settled if c.status == CycleStatus.OVERPAID]
        if len(overpaid) >= 2:
            average_extra = sum((c.actual_amount - c.expected_amount for c in overpaid), ZERO) / len(overpaid)
            amount = _whole(expected + average_extra)
            return PaymentSuggestion(
                suggested_amount=amount,
                reason=SuggestionReason.CONSISTENT_OVERPAYMENT,
                explanation=f"You've been paying extra. Continue with {amount} to pay off faster.",
                urgency=Urgency.LOW,
            )

    late = sum(1 for c in previous_cycles if c.status == CycleStatus.PAID_LATE)
    if late >= 2 and len(previous_cycles) >= 3:
        amount = _whole(expected)
        return PaymentSuggestion(
            suggested_amount=amount,
            reason=SuggestionReason.LATE_PAYMENT_REMINDER,
            explanation=f"You've paid late {late} times. Pay {amount} on time to avoid interest charges.",
            urgency=Urgency.MEDIUM,
        )

    if interest_rate_percent is not None:
        rate = to_decimal(interest_rate_percent)
        if rate > HIGH_INTEREST_RATE and balance > expected * HIGH_INTEREST_BALANCE_MULTIPLE:
            amount = _whole(expected * (1 + HIGH_INTEREST_EXTRA))
            return PaymentSuggestion(
                suggested_amount=amount,
                reason=SuggestionReason.HIGH_INTEREST,
                explanation=f"High interest rate ({rate}%). Pay {amount} to save on interest.",
                urgency=Urgency.MEDIUM,
            )

    if balance <= expected * NEAR_PAYOFF_MULTIPLE:
        amount = _whole(balance)
        return PaymentSuggestion(
            suggested_amount=amount,
            reason=SuggestionReason.NEAR_PAYOFF,
            explanation=f"You're close to paying off! Pay {amount} to clear the debt completely.",
            urgency=Urgency.LOW,
        )

    amount = _whole(expected)
    return PaymentSuggestion(
        suggested_amount=amount,
        reason=SuggestionReason.STANDARD,
        explanation=f"Pay the expected amount of {amount}.",
        urgency=Urgency.LOW,
    )


calculate_smart_suggestion = suggest_payment


def cycle_suggestion(
    cycle: Cycle,
    previous_cycles: List[Cycle],
    outstanding_balance: Number,
    interest_rate_percent: Optional[Number] = None,
) -> Optional[PaymentSuggestion]:
    """Suggestion for paying ``cycle`` given the cycles before it."""
    return suggest_payment(
        cycle.expected_amount, previous_cycles, outstanding_balance, interest_rate_percent
    )
