"""Excel report generator for obligation cycles."""

from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from obligations.engine.models import (
    AmortizationEntry,
    Cycle,
    CycleStatistics,
    CycleStatus,
    PaymentSuggestion,
    Transaction,
)


class ExcelReportGenerator:
    """Generate Excel reports from classified cycles."""

    # Style constants
    HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
    HEADER_FONT = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
    PAID_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
    MISSED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
    WARNING_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
    UPCOMING_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
    TITLE_FONT = Font(name="Calibri", size=16, bold=True, color="1F4E79")
    SUBTITLE_FONT = Font(name="Calibri", size=12, bold=True, color="1F4E79")
    KPI_FONT = Font(name="Calibri", size=14, bold=True)
    THIN_BORDER = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin"),
    )
    AMOUNT_FORMAT = "#,##0.00"

    STATUS_FILLS = {
        CycleStatus.PAID_ON_TIME: PAID_FILL,
        CycleStatus.PAID_EARLY: PAID_FILL,
        CycleStatus.PAID_WITHIN_WINDOW: PAID_FILL,
        CycleStatus.OVERPAID: PAID_FILL,
        CycleStatus.PAID_LATE: WARNING_FILL,
        CycleStatus.PARTIAL: WARNING_FILL,
        CycleStatus.UNDERPAID: MISSED_FILL,
        CycleStatus.NOT_PAID: MISSED_FILL,
        CycleStatus.UPCOMING: UPCOMING_FILL,
    }

    def generate(
        self,
        cycles: List[Cycle],
        statistics: CycleStatistics,
        output_path: str | Path,
        suggestion: Optional[PaymentSuggestion] = None,
        schedule: Optional[List[AmortizationEntry]] = None,
        unmatched: Iterable[Transaction] = (),
    ) -> Path:
        """
        Generate Excel report with 5 tabs.

        Args:
            cycles: Classified cycles.
            statistics: Statistics over the cycles.
            output_path: Path for the output Excel file.
            suggestion: Optional next-payment suggestion shown on the summary.
            schedule: Optional amortization schedule.
            unmatched: Payments that matched no cycle.

        Returns:
            Path to the generated report.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        wb = Workbook()

        # Tab 1: Summary
        self._create_summary_tab(wb, statistics, suggestion)

        # Tab 2: Cycles
        self._create_cycles_tab(wb, cycles)

        # Tab 3: Payments matched to each cycle
        self._create_payments_tab(wb, cycles)

        # Tab 4: Payments outside every cycle window
        self._create_unmatched_tab(wb, list(unmatched))

        # Tab 5: Amortization
        self._create_amortization_tab(wb, schedule or [])

        wb.save(str(output_path))
        return output_path

    def _create_summary_tab(
        self,
        wb: Workbook,
        stats: CycleStatistics,
        suggestion: Optional[PaymentSuggestion],
    ) -> None:
        """Create the Summary dashboard tab."""
        ws = wb.active
        ws.title = "Summary"
        ws.sheet_properties.tabColor = "1F4E79"

        # Title
        ws.merge_cells("A1:F1")
        ws["A1"] = "Obligation Cycle Report"
        ws["A1"].font = self.TITLE_FONT
        ws["A1"].alignment = Alignment(horizontal="center")

        # Generated date
        ws.merge_cells("A2:F2")
        ws["A2"] = f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ws["A2"].alignment = Alignment(horizontal="center")

        kpis = [
            ("Completion Rate", f"{stats.completion_rate:.1f}%"),
            ("On-Time Rate", f"{stats.on_time_rate:.1f}%"),
            ("Window Compliance", f"{stats.window_compliance_rate:.1f}%"),
            ("Current Streak", str(stats.current_streak)),
            ("Total Cycles", str(stats.total)),
            ("Paid", str(stats.paid)),
            ("Paid Late", str(stats.paid_late)),
            ("Partial", str(stats.partial)),
            ("Underpaid", str(stats.underpaid)),
            ("Missed", str(stats.not_paid)),
            ("Upcoming", str(stats.upcoming)),
        ]

        ws["A4"] = "Key Performance Indicators"
        ws["A4"].font = self.SUBTITLE_FONT

        for i, (label, value) in enumerate(kpis, start=5):
            ws[f"A{i}"] = label
            ws[f"A{i}"].font = Font(bold=True)
            ws[f"B{i}"] = value
            ws[f"B{i}"].font = self.KPI_FONT

            # Color coding
            if label in ("Missed", "Underpaid") and int(value) > 0:
                ws[f"B{i}"].fill = self.MISSED_FILL
            elif label == "Completion Rate":
                ws[f"B{i}"].fill = (
                    self.PAID_FILL if stats.completion_rate >= 95 else self.WARNING_FILL
                )

        # Amounts section
        row = len(kpis) + 7
        ws[f"A{row}"] = "Amount Summary"
        ws[f"A{row}"].font = self.SUBTITLE_FONT
        row += 1

        amounts = [
            ("Total Expected", stats.total_expected),
            ("Total Paid", stats.total_actual),
            ("Amount Difference", stats.amount_difference),
            ("Average Payment", stats.average_payment),
        ]

        for label, amount in amounts:
            ws[f"A{row}"] = label
            ws[f"A{row}"].font = Font(bold=True)
            ws[f"B{row}"] = float(amount)
            ws[f"B{row}"].number_format = self.AMOUNT_FORMAT
            row += 1

        if suggestion is not None:
            row += 1
            ws[f"A{row}"] = "Next Payment"
            ws[f"A{row}"].font = self.SUBTITLE_FONT
            row += 1
            ws[f"A{row}"] = "Suggested Amount"
            ws[f"A{row}"].font = Font(bold=True)
            ws[f"B{row}"] = float(suggestion.suggested_amount)
            ws[f"B{row}"].number_format = self.AMOUNT_FORMAT
            ws[f"B{row}"].font = self.KPI_FONT
            ws[f"A{row + 1}"] = "Reason"
            ws[f"B{row + 1}"] = suggestion.reason.value
            ws[f"A{row + 2}"] = "Urgency"
            ws[f"B{row + 2}"] = suggestion.urgency.value
            ws[f"A{row + 3}"] = "Explanation"
            ws[f"B{row + 3}"] = suggestion.explanation

        ws.column_dimensions["A"].width = 25
        ws.column_dimensions["B"].width = 20

    def _create_cycles_tab(self, wb: Workbook, cycles: List[Cycle]) -> None:
        """Create the Cycles tab, one row per cycle coloured by status."""
        ws = wb.create_sheet("Cycles")
        ws.sheet_properties.tabColor = "00B050"

        headers = [
            "Cycle", "Start", "End", "Due Date", "Expected", "Paid", "Payments",
            "First Payment", "Days From Due", "Status", "Timing", "Amount Status",
            "Within Window", "Principal", "Interest", "Balance", "Details",
        ]
        self._write_headers(ws, headers)

        for i, cycle in enumerate(cycles, start=2):
            ws[f"A{i}"] = cycle.cycle_number
            ws[f"B{i}"] = cycle.start_date.isoformat()
            ws[f"C{i}"] = cycle.end_date.isoformat()
            ws[f"D{i}"] = cycle.expected_date.isoformat()
            ws[f"E{i}"] = float(cycle.expected_amount)
            ws[f"E{i}"].number_format = self.AMOUNT_FORMAT
            ws[f"F{i}"] = float(cycle.actual_amount)
            ws[f"F{i}"].number_format = self.AMOUNT_FORMAT
            ws[f"G{i}"] = cycle.payment_count
            ws[f"H{i}"] = cycle.actual_date.isoformat() if cycle.actual_date else ""
            ws[f"I{i}"] = cycle.days_from_due if cycle.days_from_due is not None else ""
            ws[f"J{i}"] = cycle.status.value
            ws[f"K{i}"] = cycle.timing_status.value
            ws[f"L{i}"] = cycle.amount_status.value
            ws[f"M{i}"] = "Yes" if cycle.is_within_window else "No"
            for col, value in (("N", cycle.expected_principal),
                               ("O", cycle.expected_interest),
                               ("P", cycle.remaining_balance)):
                if value is not None:
                    ws[f"{col}{i}"] = float(value)
                    ws[f"{col}{i}"].number_format = self.AMOUNT_FORMAT
            ws[f"Q{i}"] = cycle.status_label or (cycle.notes or "")

            fill = self.STATUS_FILLS.get(cycle.status)
            if fill is not None:
                for col in range(1, len(headers) + 1):
                    ws.cell(row=i, column=col).fill = fill

        self._auto_width(ws, headers)

    def _create_payments_tab(self, wb: Workbook, cycles: List[Cycle]) -> None:
        """Create the Payments tab listing every matched payment."""
        ws = wb.create_sheet("Payments")
        ws.sheet_properties.tabColor = "5B9BD5"

        headers = ["Cycle", "Date", "Amount", "Description", "Reference", "Source", "Type"]
        self._write_headers(ws, headers)

        row = 2
        for cycle in cycles:
            for txn in cycle.transactions:
                ws[f"A{row}"] = cycle.cycle_number
                ws[f"B{row}"] = txn.date.strftime("%Y-%m-%d")
                ws[f"C{row}"] = float(txn.abs_amount)
                ws[f"C{row}"].number_format = self.AMOUNT_FORMAT
                ws[f"D{row}"] = txn.description[:80]
                ws[f"E{row}"] = txn.reference or ""
                ws[f"F{row}"] = txn.source
                ws[f"G{row}"] = txn.type.value
                row += 1

        self._auto_width(ws, headers)

    def _create_unmatched_tab(self, wb: Workbook, unmatched: List[Transaction]) -> None:
        """Create the Unmatched tab."""
        ws = wb.create_sheet("Unmatched")
        ws.sheet_properties.tabColor = "FF0000"

        headers = ["Date", "Amount", "Description", "Reference", "Source", "Type"]
        self._write_headers(ws, headers)

        for i, txn in enumerate(unmatched, start=2):
            ws[f"A{i}"] = txn.date.strftime("%Y-%m-%d")
            ws[f"B{i}"] = float(txn.amount)
            ws[f"B{i}"].number_format = self.AMOUNT_FORMAT
            ws[f"C{i}"] = txn.description[:80]
            ws[f"D{i}"] = txn.reference or ""
            ws[f"E{i}"] = txn.source
            ws[f"F{i}"] = txn.type.value

            for col in range(1, len(headers) + 1):
                ws.cell(row=i, column=col).fill = self.MISSED_FILL

        self._auto_width(ws, headers)

    def _create_amortization_tab(self, wb: Workbook, schedule: List[AmortizationEntry]) -> None:
        """Create the Amortization tab."""
        ws = wb.create_sheet("Amortization")
        ws.sheet_properties.tabColor = "FFC000"

        headers = ["Payment", "Due Date", "Amount", "Principal", "Interest", "Balance"]
        self._write_headers(ws, headers)

        for i, entry in enumerate(schedule, start=2):
            ws[f"A{i}"] = entry.payment_number
            ws[f"B{i}"] = entry.due_date.isoformat()
            for col, value in (("C", entry.amount),
                               ("D", entry.principal_amount),
                               ("E", entry.interest_amount),
                               ("F", entry.remaining_balance)):
                ws[f"{col}{i}"] = float(value)
                ws[f"{col}{i}"].number_format = self.AMOUNT_FORMAT

        self._auto_width(ws, headers)

    def _write_headers(self, ws, headers: List[str]) -> None:
        """Write styled header row."""
        for col_idx, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = Alignment(horizontal="center")
            cell.border = self.THIN_BORDER

        # Freeze top row
        ws.freeze_panes = "A2"

        # Auto-filter
        ws.auto_filter.ref = f"A1:{get_column_letter(len(headers))}1"

    def _auto_width(self, ws, headers: List[str]) -> None:
        """Auto-adjust column widths."""
        for col_idx, header in enumerate(headers, start=1):
            col_letter = get_column_letter(col_idx)
            max_len = len(header) + 4
            ws.column_dimensions[col_letter].width = min(max_len, 35)
