"""CLI entry point for the obligation cycle engine."""

import logging
import math
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import click

from obligations.engine.amortization import (
    extra_payment_options,
    generate_amortization_schedule,
    loan_term_months,
    monthly_payment,
    solve_interest_rate,
    total_interest,
)
from obligations.engine.cycles import (
    AmortizationTerms,
    CycleOptions,
    generate_cycles,
    get_past_cycles,
)
from obligations.engine.frequency import resolve_with_interval
from obligations.engine.matcher import CycleMatcher
from obligations.engine.models import Cycle, RecurrenceDefinition, Transaction
from obligations.engine.money import ZERO, money
from obligations.engine.scheduler import describe_recurrence, generate_schedule
from obligations.engine.statistics import cycle_statistics
from obligations.engine.suggestions import suggest_payment
from obligations.parsers.csv_parser import CSVParser
from obligations.parsers.ofx_parser import OFXParser
from obligations.reports.excel_report import ExcelReportGenerator

logger = logging.getLogger(__name__)

DATE = click.DateTime(formats=["%Y-%m-%d"])


def validate_tolerance(ctx, param, value):
    """Validate date tolerance is non-negative."""
    if value < 0:
        raise click.BadParameter("Date tolerance must be non-negative.")
    return value


def validate_threshold(ctx, param, value):
    """Validate amount tolerance is between 0 and 1."""
    if value < 0 or value > 1:
        raise click.BadParameter("Amount tolerance must be between 0 and 1.")
    return value


def validate_positive(ctx, param, value):
    """Validate an optional count or amount is positive."""
    if value is not None and value <= 0:
        raise click.BadParameter("Must be greater than zero.")
    return value


def _as_date(value) -> Optional[date]:
    return value.date() if value is not None else None


def outstanding_balance(cycles: List[Cycle], as_of: date, starting_balance: Optional[Decimal]) -> Decimal:
    """Balance still owed: the last closed cycle's balance, or the unpaid expectation."""
    past = get_past_cycles(cycles, as_of)
    if starting_balance is not None:
        balances = [c.remaining_balance for c in past if c.remaining_balance is not None]
        return balances[-1] if balances else money(starting_balance)
    closed = {c.cycle_number for c in past}
    return money(sum((c.expected_amount for c in cycles if c.cycle_number not in closed), ZERO))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """
    Obligation Cycle Engine

    Generates payment cycles for recurring obligations, matches payments
    against them and reports how each cycle was paid.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@cli.command()
@click.option("--start", required=True, type=DATE, help="First cycle start date (YYYY-MM-DD).")
@click.option("--end", type=DATE, help="Last date a cycle may start on.")
@click.option("--unit", default="monthly", show_default=True,
              help="Frequency: day/week/month/quarter/year, biweekly or custom.")
@click.option("--interval", default=1, type=int, callback=validate_positive,
              help="Number of units per cycle (default: 1).")
@click.option("--custom-unit", help="Unit to use when --unit is custom.")
@click.option("--due-day", type=int,
              help="Day of month (month units), weekday 0=Sunday (week) or day of year.")
@click.option("--amount", "-a", required=True, type=float, help="Expected amount per cycle.")
@click.option("--minimum", type=float, help="Minimum acceptable payment per cycle.")
@click.option("--max-cycles", default=12, type=int, callback=validate_positive,
              help="Maximum number of cycles (default: 12).")
@click.option("--rate", type=float, help="Annual interest rate in percent (amortized obligations).")
@click.option("--balance", type=float, help="Starting balance (amortized obligations).")
@click.option("--interest-separate", is_flag=True,
              help="Interest is charged on top of the payment instead of inside it.")
@click.option("--tolerance-days", "-d", default=2, type=int, callback=validate_tolerance,
              help="Days a payment may land after the due date (default: 2).")
@click.option("--amount-tolerance", default=0.01, type=float, callback=validate_threshold,
              help="Relative amount tolerance (default: 0.01 = 1%).")
@click.option("--payments", "-p", multiple=True, type=click.Path(exists=True),
              help="Payment ledger file(s) (CSV or Excel).")
@click.option("--bank", "-b", multiple=True, type=click.Path(exists=True),
              help="Bank statement file(s) in OFX/QFX format.")
@click.option("--match-text", help="Only use payments whose description contains this text.")
@click.option("--as-of", type=DATE, help="Reference date (default: today).")
@click.option("--output", "-o", type=click.Path(), help="Path for the output Excel report.")
def reconcile(
    start, end, unit: str, interval: int, custom_unit: Optional[str], due_day: Optional[int],
    amount: float, minimum: Optional[float], max_cycles: int, rate: Optional[float],
    balance: Optional[float], interest_separate: bool, tolerance_days: int,
    amount_tolerance: float, payments: tuple, bank: tuple, match_text: Optional[str],
    as_of, output: Optional[str],
) -> None:
    """
    Match payments against an obligation's cycles.

    Example:
        obligations reconcile --start 2024-01-01 --amount 1000 --due-day 10 \\
            --payments payments.csv --as-of 2024-06-30 --output report.xlsx
    """
    click.echo("=" * 60)
    click.echo("  OBLIGATION CYCLE RECONCILIATION")
    click.echo("=" * 60)

    try:
        today = _as_date(as_of) or date.today()
        amortization = None
        if balance is not None:
            amortization = AmortizationTerms(
                annual_rate_percent=money(rate or 0),
                starting_balance=money(balance),
                interest_included=not interest_separate,
            )

        options = CycleOptions(
            start_date=start.date(),
            end_date=_as_date(end),
            unit=unit,
            interval=interval,
            custom_unit=custom_unit,
            day_of_occurrence=due_day,
            expected_amount=money(amount),
            max_cycles=max_cycles,
            minimum_amount=money(minimum) if minimum is not None else None,
            amortization=amortization,
        )
        cycles = generate_cycles(options, as_of=today)
        click.echo(f"\n  Generated {len(cycles)} cycles")

        transactions: List[Transaction] = []
        if payments:
            click.echo(f"\n  Parsing {len(payments)} payment ledger(s)...")
            csv_parser = CSVParser()
            for path in payments:
                transactions.extend(csv_parser.parse(Path(path)))
        if bank:
            click.echo(f"\n  Parsing {len(bank)} bank statement(s)...")
            ofx_parser = OFXParser(payments_only=True)
            transactions.extend(ofx_parser.parse_multiple([Path(p) for p in bank]))
        if match_text:
            needle = match_text.lower()
            transactions = [t for t in transactions if needle in t.description.lower()]
        click.echo(f"   Found {len(transactions)} payments")

        click.echo(
            f"\n  Matching (tolerance: {tolerance_days}d, amount: {amount_tolerance:.0%})..."
        )
        matcher = CycleMatcher(tolerance_days=tolerance_days, amount_tolerance=amount_tolerance)
        cycles = matcher.match(cycles, transactions, as_of=today)
        unmatched = matcher.unmatched(cycles, transactions)
        stats = cycle_statistics(cycles)

        owed = outstanding_balance(cycles, today, amortization.starting_balance if amortization else None)
        suggestion = suggest_payment(options.expected_amount, get_past_cycles(cycles, today), owed, rate)

        schedule = None
        if amortization is not None:
            frequency, step = resolve_with_interval(unit, interval, custom_unit)
            schedule = generate_amortization_schedule(
                amortization.starting_balance,
                amortization.annual_rate_percent,
                options.expected_amount,
                cycles[0].expected_date if cycles else options.start_date,
                frequency=frequency.value,
                interest_included=amortization.interest_included,
                interval=step,
                day_of_month=max(1, due_day) if due_day is not None else None,
            )

        click.echo("\n" + "=" * 60)
        click.echo("  CYCLE SUMMARY")
        click.echo("=" * 60)
        for cycle in cycles:
            click.echo(
                f"  #{cycle.cycle_number:<3} due {cycle.expected_date}  "
                f"{cycle.actual_amount:>10,.2f} / {cycle.expected_amount:>10,.2f}  "
                f"{cycle.status.value}"
            )
        click.echo("-" * 60)
        click.echo(f"  Completion Rate:      {stats.completion_rate:.1f}%")
        click.echo(f"  On-Time Rate:         {stats.on_time_rate:.1f}%")
        click.echo(f"  Window Compliance:    {stats.window_compliance_rate:.1f}%")
        click.echo(f"  Current Streak:       {stats.current_streak}")
        click.echo(f"  Unmatched Payments:   {len(unmatched)}")
        click.echo(f"  Amount Difference:    {stats.amount_difference:,.2f}")
        if suggestion is not None:
            click.echo(f"  Suggested Payment:    {suggestion.suggested_amount:,.2f} "
                       f"({suggestion.reason.value})")
            click.echo(f"    {suggestion.explanation}")
        click.echo("=" * 60)

        if output:
            report_gen = ExcelReportGenerator()
            output_path = report_gen.generate(
                cycles, stats, output,
                suggestion=suggestion, schedule=schedule, unmatched=unmatched,
            )
            click.echo(f"\n  Report saved to: {output_path.absolute()}")

    except FileNotFoundError as e:
        click.echo(f"\n  ERROR: {e}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"\n  ERROR: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error during reconciliation")
        click.echo(f"\n  UNEXPECTED ERROR: {e}", err=True)
        sys.exit(2)


@cli.command()
@click.option("--principal", required=True, type=float, callback=validate_positive,
              help="Loan principal.")
@click.option("--rate", required=True, type=float, help="Annual interest rate in percent.")
@click.option("--months", type=int, callback=validate_positive, help="Loan term in months.")
@click.option("--payment", type=float, callback=validate_positive, help="Payment per period.")
@click.option("--start", type=DATE, help="First due date (default: today).")
@click.option("--frequency", default="monthly", show_default=True,
              type=click.Choice(["daily", "weekly", "biweekly", "monthly", "quarterly", "yearly"]),
              help="Payment frequency.")
@click.option("--interest-separate", is_flag=True, help="Interest is paid on top of the payment.")
@click.option("--extra", type=float, callback=validate_positive,
              help="Compare ways of applying an extra lump-sum payment (monthly loans).")
def amortize(
    principal: float, rate: float, months: Optional[int], payment: Optional[float], start,
    frequency: str, interest_separate: bool, extra: Optional[float],
) -> None:
    """
    Print an amortization schedule.

    Give --months to compute the monthly payment, --payment to compute the
    term, or both to solve for the implied interest rate.
    """
    try:
        if months is None and payment is None:
            raise ValueError("Provide --months, --payment or both.")

        if payment is None:
            level_payment = monthly_payment(principal, rate, months)
            click.echo(f"  Monthly payment:  {level_payment:,.2f}")
        else:
            level_payment = money(payment)
            term = loan_term_months(principal, rate, payment)
            click.echo("  Term:             " + ("never pays off" if term == math.inf else f"{term} months"))
            if months is not None:
                solution = solve_interest_rate(principal, payment, months)
                click.echo(
                    f"  Implied rate:     {solution.rate_percent}% "
                    f"({solution.termination.value}, {solution.iterations} iterations)"
                )

        first_due = _as_date(start) or date.today()
        schedule = generate_amortization_schedule(
            principal, rate, level_payment, first_due,
            frequency=frequency, interest_included=not interest_separate,
        )
        click.echo(f"  Total interest:   {total_interest(schedule):,.2f}")
        click.echo("-" * 60)
        click.echo(f"  {'#':>4}  {'Due':<10}  {'Amount':>10}  {'Principal':>10}  "
                   f"{'Interest':>9}  {'Balance':>11}")
        for entry in schedule:
            click.echo(
                f"  {entry.payment_number:>4}  {entry.due_date.isoformat():<10}  "
                f"{entry.amount:>10,.2f}  {entry.principal_amount:>10,.2f}  "
                f"{entry.interest_amount:>9,.2f}  {entry.remaining_balance:>11,.2f}"
            )

        if extra is not None and frequency == "monthly":
            click.echo("-" * 60)
            click.echo(f"  Extra payment of {extra:,.2f}:")
            for option in extra_payment_options(
                principal, rate, level_payment, len(schedule), extra, first_due
            ):
                click.echo(f"    {option.label}: {option.description} "
                           f"(interest saved {option.interest_saved:,.2f})")

    except ValueError as e:
        click.echo(f"\n  ERROR: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error while building the schedule")
        click.echo(f"\n  UNEXPECTED ERROR: {e}", err=True)
        sys.exit(2)


@cli.command()
@click.option("--start", required=True, type=DATE, help="Recurrence start date (YYYY-MM-DD).")
@click.option("--unit", default="month", show_default=True, help="day/week/month/quarter/year or custom.")
@click.option("--interval", default=1, type=int, callback=validate_positive, help="Units between occurrences.")
@click.option("--custom-unit", help="Unit to use when --unit is custom.")
@click.option("--due-day", type=int, help="Day of month, weekday (0=Sunday) or day of year.")
@click.option("--end", type=DATE, help="Recurrence end date.")
@click.option("--count", default=12, type=int, callback=validate_positive,
              help="Number of occurrences to print (default: 12).")
@click.option("--as-of", type=DATE, help="Reference date for statuses (default: today).")
def schedule(start, unit: str, interval: int, custom_unit: Optional[str], due_day: Optional[int],
             end, count: int, as_of) -> None:
    """Print the upcoming occurrences of a recurrence."""
    try:
        definition = RecurrenceDefinition(
            unit=unit,
            start_date=start.date(),
            interval=interval,
            end_date=_as_date(end),
            day_of_occurrence=due_day,
            custom_unit=custom_unit,
        )
        click.echo(f"  {describe_recurrence(definition)}")
        for occurrence in generate_schedule(definition, max_occurrences=count, as_of=_as_date(as_of)):
            click.echo(
                f"  {occurrence.date.isoformat()}  {occurrence.status.value:<10}  "
                f"{occurrence.days_from_now:>+5}d"
            )

    except ValueError as e:
        click.echo(f"\n  ERROR: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error while building the schedule")
        click.echo(f"\n  UNEXPECTED ERROR: {e}", err=True)
        sys.exit(2)


if __name__ == "__main__":
    cli()
