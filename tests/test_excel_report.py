"""Tests for the Excel report generator."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from obligations.engine.amortization import generate_amortization_schedule
from obligations.engine.cycles import CycleOptions, generate_cycles
from obligations.engine.matcher import CycleMatcher
from obligations.engine.models import (
    CycleStatistics,
    PaymentSuggestion,
    SuggestionReason,
    Transaction,
    TransactionType,
    Urgency,
)
from obligations.engine.statistics import cycle_statistics
from obligations.reports.excel_report import ExcelReportGenerator


AS_OF = date(2024, 4, 15)


def make_txn(
    id: str,
    date: str,
    amount: str,
    desc: str = "Test",
    source: str = "ledger",
    ref: str = None,
) -> Transaction:
    """Helper to create test transactions."""
    amt = Decimal(amount)
    return Transaction(
        id=id,
        date=datetime.strptime(date, "%Y-%m-%d"),
        amount=amt,
        description=desc,
        type=TransactionType.CREDIT if amt >= 0 else TransactionType.DEBIT,
        reference=ref,
        source=source,
    )


@pytest.fixture
def payments():
    return [
        make_txn("P1", "2024-01-10", "1000.00", "January", ref="REF001"),
        make_txn("P2", "2024-02-20", "1000.00", "February late"),
        make_txn("P3", "2024-03-11", "400.00", "March partial"),
    ]


@pytest.fixture
def sample_cycles(payments):
    """Four monthly cycles: on time, late, partial, upcoming."""
    options = CycleOptions(
        start_date=date(2024, 1, 1),
        expected_amount=Decimal("1000.00"),
        day_of_occurrence=10,
        max_cycles=4,
    )
    cycles = generate_cycles(options, as_of=AS_OF)
    return CycleMatcher(tolerance_days=2).match(cycles, payments, as_of=AS_OF)


@pytest.fixture
def unmatched():
    return [make_txn("P9", "2024-09-15", "75.00", "Parking fee")]


def generate(tmp_path, cycles, **kwargs):
    output = tmp_path / "cycle_report.xlsx"
    ExcelReportGenerator().generate(cycles, cycle_statistics(cycles), output, **kwargs)
    return output


class TestExcelReportGenerator:
    """Test Excel report generation functionality."""

    def test_generate_creates_file(self, tmp_path, sample_cycles):
        """Test that generate() creates an Excel file."""
        output = tmp_path / "test_report.xlsx"
        result_path = ExcelReportGenerator().generate(
            sample_cycles, cycle_statistics(sample_cycles), output
        )

        assert result_path.exists()
        assert result_path.suffix == ".xlsx"

    def test_report_has_five_tabs(self, tmp_path, sample_cycles):
        """Test that the report has exactly 5 tabs."""
        wb = load_workbook(generate(tmp_path, sample_cycles))
        assert wb.sheetnames == ["Summary", "Cycles", "Payments", "Unmatched", "Amortization"]

    def test_summary_tab_has_kpis(self, tmp_path, sample_cycles):
        """Test that Summary tab contains KPI data."""
        ws = load_workbook(generate(tmp_path, sample_cycles))["Summary"]

        assert ws["A1"].value == "Obligation Cycle Report"

        kpis = {ws[f"A{row}"].value: ws[f"B{row}"].value for row in range(5, 16)}
        assert kpis["Completion Rate"] == "50.0%"
        assert kpis["Total Cycles"] == "4"
        assert kpis["Upcoming"] == "1"

    def test_summary_shows_suggestion(self, tmp_path, sample_cycles):
        """Test that a suggestion is written below the amounts."""
        suggestion = PaymentSuggestion(
            suggested_amount=Decimal("1300.00"),
            reason=SuggestionReason.MISSED_PAYMENTS,
            explanation="Catch up.",
            urgency=Urgency.HIGH,
        )
        ws = load_workbook(generate(tmp_path, sample_cycles, suggestion=suggestion))["Summary"]

        values = [ws[f"B{row}"].value for row in range(1, ws.max_row + 1)]
        assert 1300.0 in values
        assert "missed_payments" in values

    def test_cycles_tab_rows(self, tmp_path, sample_cycles):
        """Test one row per cycle with statuses."""
        ws = load_workbook(generate(tmp_path, sample_cycles))["Cycles"]

        assert ws["A1"].value == "Cycle"
        assert ws["J1"].value == "Status"
        assert [ws[f"J{row}"].value for row in range(2, 6)] == [
            "paid_on_time", "paid_late", "partial", "upcoming",
        ]
        assert ws["D2"].value == "2024-01-10"

    def test_cycles_tab_status_fills(self, tmp_path, sample_cycles):
        """Test that rows are coloured by status."""
        ws = load_workbook(generate(tmp_path, sample_cycles))["Cycles"]

        assert ws["A2"].fill.start_color.rgb.endswith("C6EFCE")
        assert ws["A3"].fill.start_color.rgb.endswith("FFEB9C")

    def test_payments_tab(self, tmp_path, sample_cycles):
        """Test that every matched payment gets a row."""
        ws = load_workbook(generate(tmp_path, sample_cycles))["Payments"]

        assert ws["A1"].value == "Cycle"
        assert [ws[f"A{row}"].value for row in range(2, 5)] == [1, 2, 3]
        assert ws["E2"].value == "REF001"

    def test_unmatched_tab(self, tmp_path, sample_cycles, unmatched):
        """Test that unmatched payments are listed."""
        ws = load_workbook(generate(tmp_path, sample_cycles, unmatched=unmatched))["Unmatched"]

        assert ws["A1"].value == "Date"
        assert ws["A2"].value == "2024-09-15"
        assert ws["B2"].value == 75.0

    def test_amortization_tab(self, tmp_path, sample_cycles):
        """Test that the schedule is written when given."""
        schedule = generate_amortization_schedule(
            12000, 12, Decimal("1066.19"), date(2024, 2, 1)
        )
        ws = load_workbook(generate(tmp_path, sample_cycles, schedule=schedule))["Amortization"]

        assert ws["A1"].value == "Payment"
        assert ws["A13"].value == 12
        assert ws["E2"].value == 120.0
        assert ws["F13"].value == 0.0

    def test_empty_results(self, tmp_path):
        """Test report generation with no cycles."""
        output = tmp_path / "empty_report.xlsx"
        result_path = ExcelReportGenerator().generate([], CycleStatistics(), output)

        assert result_path.exists()
        wb = load_workbook(output)
        assert len(wb.sheetnames) == 5

    def test_output_directory_created(self, tmp_path, sample_cycles):
        """Test that output directory is created if it doesn't exist."""
        output = tmp_path / "subdir" / "nested" / "report.xlsx"
        result_path = ExcelReportGenerator().generate(
            sample_cycles, cycle_statistics(sample_cycles), output
        )

        assert result_path.exists()

    def test_frozen_panes(self, tmp_path, sample_cycles):
        """Test that header rows are frozen."""
        ws = load_workbook(generate(tmp_path, sample_cycles))["Cycles"]
        assert ws.freeze_panes == "A2"

    def test_number_formatting(self, tmp_path, sample_cycles):
        """Test that amount cells have proper number formatting."""
        ws = load_workbook(generate(tmp_path, sample_cycles))["Cycles"]
        assert ws["E2"].number_format == "#,##0.00"
