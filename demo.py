"""
Demo script for the Obligation Cycle Engine.

Run this script to see cycle generation, payment matching and the loan
calculator in action using the example ledger in the examples/ directory.

Usage:
    python demo.py
"""

import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# Ensure the project root is in the Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from obligations.engine.amortization import (
    generate_amortization_schedule,
    monthly_payment,
    total_interest,
)
from obligations.engine.cycles import CycleOptions, generate_cycles, get_past_cycles
from obligations.engine.matcher import CycleMatcher
from obligations.engine.statistics import cycle_statistics
from obligations.engine.suggestions import suggest_payment
from obligations.parsers.csv_parser import CSVParser
from obligations.reports.excel_report import ExcelReportGenerator


def main():
    """Run the obligation cycle demo."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    examples_dir = project_root / "examples"
    payments_file = examples_dir / "payments.csv"
    output_file = examples_dir / "cycle_report.xlsx"
    as_of = date(2024, 7, 15)

    print("=" * 60)
    print("  OBLIGATION CYCLE ENGINE - DEMO")
    print("=" * 60)

    if not payments_file.exists():
        print(f"\n  ERROR: Payment ledger not found: {payments_file}")
        sys.exit(1)

    # Step 1: Generate cycles
    print("\n  [1/5] Generating monthly cycles (1000.00 due on the 10th)")
    options = CycleOptions(
        start_date=date(2024, 1, 1),
        expected_amount=Decimal("1000.00"),
        unit="monthly",
        day_of_occurrence=10,
        max_cycles=6,
    )
    cycles = generate_cycles(options, as_of=as_of)
    for cycle in cycles:
        print(f"        - #{cycle.cycle_number} {cycle.start_date} .. {cycle.end_date} "
              f"due {cycle.expected_date}")

    # Step 2: Parse payments (CSV)
    print(f"\n  [2/5] Parsing payment ledger: {payments_file.name}")
    try:
        payments = CSVParser().parse(payments_file)
    except (FileNotFoundError, ValueError) as e:
        print(f"  ERROR parsing CSV: {e}")
        sys.exit(1)
    print(f"        Found {len(payments)} payments")
    for txn in payments:
        print(f"        - {txn.date.strftime('%Y-%m-%d')} | {txn.amount:>10} | {txn.description[:40]}")

    # Step 3: Match and classify
    print("\n  [3/5] Matching payments to cycles...")
    matcher = CycleMatcher(tolerance_days=2, amount_tolerance=0.01)
    cycles = matcher.match(cycles, payments, as_of=as_of)
    unmatched = matcher.unmatched(cycles, payments)
    stats = cycle_statistics(cycles)
    suggestion = suggest_payment(
        options.expected_amount, get_past_cycles(cycles, as_of), Decimal("6000.00")
    )

    # Step 4: Loan calculator
    print("\n  [4/5] Loan calculator: 12000.00 at 12% over 12 months")
    payment = monthly_payment(Decimal("12000"), Decimal("12"), 12)
    schedule = generate_amortization_schedule(
        Decimal("12000"), Decimal("12"), payment, date(2024, 2, 1)
    )
    print(f"        Monthly payment: {payment:,.2f}")
    print(f"        Total interest:  {total_interest(schedule):,.2f}")

    # Step 5: Generate report
    print(f"\n  [5/5] Generating Excel report: {output_file.name}")
    output_path = ExcelReportGenerator().generate(
        cycles, stats, output_file,
        suggestion=suggestion, schedule=schedule, unmatched=unmatched,
    )

    print("\n" + "=" * 60)
    print("  CYCLE SUMMARY")
    print("=" * 60)
    print(f"  Cycles:               {stats.total}")
    print(f"  Paid:                 {stats.paid}")
    print(f"  Completion Rate:      {stats.completion_rate:.1f}%")
    print(f"  On-Time Rate:         {stats.on_time_rate:.1f}%")
    print(f"  Window Compliance:    {stats.window_compliance_rate:.1f}%")
    print(f"  Current Streak:       {stats.current_streak}")
    print(f"  Expected:             {stats.total_expected:>12,.2f}")
    print(f"  Paid Amount:          {stats.total_actual:>12,.2f}")
    print(f"  Amount Difference:    {stats.amount_difference:>12,.2f}")
    print(f"  Unmatched Payments:   {len(unmatched)}")
    print("=" * 60)

    print("\n  DETAILED RESULTS:")
    print("-" * 60)
    for cycle in cycles:
        print(f"  [{cycle.status.value.upper():>20}] #{cycle.cycle_number} {cycle.status_label}")

    if suggestion is not None:
        print(f"\n  Next payment: {suggestion.suggested_amount:,.2f} ({suggestion.reason.value})")
        print(f"  {suggestion.explanation}")

    print(f"\n  Report saved to: {output_path.absolute()}")
    print("  Open the Excel file to see the formatted cycle report.\n")


if __name__ == "__main__":
    main()
