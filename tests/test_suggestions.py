"""Tests for next-payment suggestions."""

from datetime import date, timedelta
from decimal import Decimal

from obligations.engine.models import Cycle, CycleStatus, SuggestionReason, Urgency
from obligations.engine.suggestions import (
    calculate_smart_suggestion,
    cycle_suggestion,
    suggest_payment,
)


def make_cycle(number: int, status: CycleStatus, actual: str = "1000.00") -> Cycle:
    """Helper to create a classified 1000.00 cycle."""
    start = date(2024, 1, 1) + timedelta(days=30 * (number - 1))
    return Cycle(
        cycle_number=number,
        start_date=start,
        end_date=start + timedelta(days=29),
        expected_amount=Decimal("1000.00"),
        expected_date=start,
        status=status,
        actual_amount=Decimal(actual),
    )


class TestSuggestPayment:
    """Test each suggestion scenario."""

    def test_first_payment(self):
        suggestion = suggest_payment(Decimal("999.50"), [], Decimal("12000"))

        assert suggestion.reason == SuggestionReason.FIRST_PAYMENT
        assert suggestion.suggested_amount == Decimal("1000.00")
        assert suggestion.urgency == Urgency.LOW

    def test_catch_up_after_underpayments(self):
        history = [
            make_cycle(1, CycleStatus.UNDERPAID, "900.00"),
            make_cycle(2, CycleStatus.UNDERPAID, "850.00"),
            make_cycle(3, CycleStatus.PARTIAL, "950.00"),
        ]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("9000"))

        assert suggestion.reason == SuggestionReason.CATCH_UP
        assert suggestion.suggested_amount == Decimal("1150.00")
        assert str(suggestion.suggested_amount) == "1150.00"
        assert suggestion.urgency == Urgency.MEDIUM
        assert suggestion.explanation == (
            "You've underpaid in 3 cycles. Pay 1150.00 to catch up gradually."
        )

    def test_single_underpayment_is_not_catch_up(self):
        history = [make_cycle(1, CycleStatus.UNDERPAID, "900.00")]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("9000"))
        assert suggestion.reason == SuggestionReason.STANDARD

    def test_missed_payment(self):
        history = [make_cycle(1, CycleStatus.PAID_ON_TIME), make_cycle(2, CycleStatus.NOT_PAID, "0")]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("9000"))

        assert suggestion.reason == SuggestionReason.MISSED_PAYMENTS
        assert suggestion.suggested_amount == Decimal("1500.00")
        assert suggestion.urgency == Urgency.HIGH

    def test_many_missed_payments_spread_over_count(self):
        history = [make_cycle(n, CycleStatus.NOT_PAID, "0") for n in range(1, 4)]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("9000"))
        assert suggestion.suggested_amount == Decimal("2000.00")

    def test_consistent_overpayment(self):
        history = [
            make_cycle(1, CycleStatus.OVERPAID, "1100.00"),
            make_cycle(2, CycleStatus.PAID_ON_TIME),
            make_cycle(3, CycleStatus.OVERPAID, "1200.00"),
        ]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("9000"))

        assert suggestion.reason == SuggestionReason.CONSISTENT_OVERPAYMENT
        assert suggestion.suggested_amount == Decimal("1150.00")
        assert suggestion.urgency == Urgency.LOW

    def test_late_payment_reminder(self):
        history = [
            make_cycle(1, CycleStatus.PAID_LATE),
            make_cycle(2, CycleStatus.PAID_ON_TIME),
            make_cycle(3, CycleStatus.PAID_LATE),
        ]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("9000"))

        assert suggestion.reason == SuggestionReason.LATE_PAYMENT_REMINDER
        assert suggestion.suggested_amount == Decimal("1000.00")
        assert suggestion.urgency == Urgency.MEDIUM

    def test_high_interest(self):
        history = [make_cycle(1, CycleStatus.PAID_ON_TIME)]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("20000"), 18)

        assert suggestion.reason == SuggestionReason.HIGH_INTEREST
        assert suggestion.suggested_amount == Decimal("1200.00")
        assert suggestion.urgency == Urgency.MEDIUM

    def test_rate_at_threshold_is_not_high(self):
        history = [make_cycle(1, CycleStatus.PAID_ON_TIME)]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("20000"), 10)
        assert suggestion.reason == SuggestionReason.STANDARD

    def test_near_payoff(self):
        history = [make_cycle(1, CycleStatus.PAID_ON_TIME)]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("1200.40"))

        assert suggestion.reason == SuggestionReason.NEAR_PAYOFF
        assert suggestion.suggested_amount == Decimal("1201.00")

    def test_standard(self):
        history = [make_cycle(1, CycleStatus.PAID_ON_TIME)]
        suggestion = suggest_payment(Decimal("1000.00"), history, Decimal("10000"))

        assert suggestion.reason == SuggestionReason.STANDARD
        assert suggestion.suggested_amount == Decimal("1000.00")
        assert suggestion.urgency == Urgency.LOW


class TestHelpers:
    """Test the alias and the cycle wrapper."""

    def test_alias(self):
        assert calculate_smart_suggestion is suggest_payment

    def test_cycle_suggestion_uses_cycle_amount(self):
        cycle = make_cycle(2, CycleStatus.UPCOMING, "0")
        suggestion = cycle_suggestion(cycle, [], Decimal("5000"))
        assert suggestion.suggested_amount == Decimal("1000.00")
