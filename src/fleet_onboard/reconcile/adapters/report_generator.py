"""Report generator adapter.

This adapter implements IReportGenerator to create end-of-run reports:
one row per input record, in input order, plus verdict tallies.
"""

import io
import logging
from datetime import datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from ..domain.entities import Verdict
from ..domain.ports import IReportGenerator
from ..domain.reporter import OutcomeReporter

logger = logging.getLogger(__name__)


class OutcomeReportGenerator(IReportGenerator):
    """Generates JSON reports and Excel files from an OutcomeReporter."""

    def generate(self, reporter: OutcomeReporter, **context: Any) -> dict[str, Any]:
        """Generate a JSON report.

        Args:
            reporter: Outcome sink of the run
            **context: Extra run details (tenant name, duration, ...) copied
                into the report as-is

        Returns:
            Report data structure
        """
        outcomes = reporter.ordered_outcomes()
        total = len(outcomes)
        succeeded = sum(1 for o in outcomes if o.verdict.is_success)

        return {
            "generated_at": datetime.now().isoformat(),
            "run": context,
            "summary": {
                "total_records": total,
                "succeeded": succeeded,
                "skipped": reporter.counts[Verdict.SKIPPED_CONFLICT.value],
                "failed": reporter.counts[Verdict.FAILED.value],
                "success_rate": f"{(succeeded / total * 100):.1f}%" if total > 0 else "N/A",
            },
            "by_verdict": reporter.counts,
            "outcomes": [o.to_dict() for o in outcomes],
            "failed_serials": reporter.failed_serials(),
        }

    def generate_excel(self, reporter: OutcomeReporter, **context: Any) -> bytes:
        """Generate an Excel report with Summary and Outcomes sheets.

        Returns:
            Excel file bytes
        """
        wb = Workbook()

        # Styling
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        header_font = Font(bold=True, color="FFFFFF")
        success_fill = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
        error_fill = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
        warning_fill = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
        thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin"),
        )

        def fill_for(verdict: Verdict) -> PatternFill:
            if verdict.is_success:
                return success_fill
            if verdict == Verdict.SKIPPED_CONFLICT:
                return warning_fill
            return error_fill

        outcomes = reporter.ordered_outcomes()

        # ========== Summary Sheet ==========
        ws_summary = wb.active
        ws_summary.title = "Summary"

        ws_summary["A1"] = "Device Onboarding Report"
        ws_summary["A1"].font = Font(bold=True, size=16)
        ws_summary.merge_cells("A1:C1")

        ws_summary["A3"] = "Generated At:"
        ws_summary["B3"] = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        row = 4
        for key, value in context.items():
            ws_summary.cell(row=row, column=1, value=f"{key.replace('_', ' ').title()}:")
            ws_summary.cell(row=row, column=2, value=str(value))
            row += 1

        row += 1
        ws_summary.cell(row=row, column=1, value="Outcomes by Verdict").font = Font(bold=True, size=12)
        row += 1

        for col, header in enumerate(["Verdict", "Label", "Records"], 1):
            cell = ws_summary.cell(row=row, column=col, value=header)
            cell.fill = header_fill
            cell.font = header_font
            cell.border = thin_border
        row += 1

        for verdict in Verdict:
            count = reporter.counts[verdict.value]
            ws_summary.cell(row=row, column=1, value=verdict.value).border = thin_border
            ws_summary.cell(row=row, column=2, value=verdict.label).border = thin_border
            count_cell = ws_summary.cell(row=row, column=3, value=count)
            count_cell.border = thin_border
            if count:
                count_cell.fill = fill_for(verdict)
            row += 1

        ws_summary.cell(row=row, column=1, value="Total").font = Font(bold=True)
        ws_summary.cell(row=row, column=3, value=len(outcomes)).font = Font(bold=True)

        ws_summary.column_dimensions["A"].width = 25
        ws_summary.column_dimensions["B"].width = 20
        ws_summary.column_dimensions["C"].width = 12

        # ========== Outcomes Sheet ==========
        ws_outcomes = wb.create_sheet("Outcomes")

        headers = ["Row", "Serial Number", "Device", "Result", "Verdict", "Reason"]
        for col, header in enumerate(headers, 1):
            cell = ws_outcomes.cell(row=1, column=col, value=header)
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")
            cell.border = thin_border

        for row_num, outcome in enumerate(outcomes, 2):
            ws_outcomes.cell(row=row_num, column=1, value=outcome.row_number).border = thin_border
            ws_outcomes.cell(row=row_num, column=2, value=outcome.serial_number).border = thin_border
            ws_outcomes.cell(row=row_num, column=3, value=outcome.record_id).border = thin_border

            label_cell = ws_outcomes.cell(row=row_num, column=4, value=outcome.label)
            label_cell.fill = fill_for(outcome.verdict)
            label_cell.border = thin_border

            ws_outcomes.cell(row=row_num, column=5, value=outcome.verdict.value).border = thin_border
            ws_outcomes.cell(row=row_num, column=6, value=outcome.reason).border = thin_border

        ws_outcomes.column_dimensions["A"].width = 8
        ws_outcomes.column_dimensions["B"].width = 20
        ws_outcomes.column_dimensions["C"].width = 40
        ws_outcomes.column_dimensions["D"].width = 14
        ws_outcomes.column_dimensions["E"].width = 22
        ws_outcomes.column_dimensions["F"].width = 80

        output = io.BytesIO()
        wb.save(output)
        logger.info(f"Generated Excel report with {len(outcomes)} outcome rows")
        return output.getvalue()
