"""
Export Service Module
=====================
Turns report variants into single-sheet Excel workbooks.

DISPATCH:
--------
Every report carries a literal ``kind``; each exportable kind maps to a
row builder returning (columns, rows, totals_row). Kinds without a
builder (status, suggestions, single-record reports) return None and the
caller reports that the report cannot be exported.

WORKBOOK:
--------
- Sheet title: report name, max 31 characters
- Header row bold on E0E0E0, totals row bold on FFF2CC
- Column width min(longest value + 4, 50)
- Columns holding mostly numbers use the Indian format #,##,##0.00
"""

import re
from datetime import datetime
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from ..config import ExportConfig, config
from ..models.response import ExportFile
from ..utils.helpers import format_tally_date
from ..utils.logger import logger

Table = Tuple[List[str], List[List[Any]], Optional[List[Any]]]

HEADER_FILL = PatternFill(start_color="E0E0E0", end_color="E0E0E0", fill_type="solid")
TOTALS_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
BOLD = Font(bold=True, size=11)
INDIAN_NUMBER_FORMAT = "#,##,##0.00"

_UNSAFE_NAME = re.compile(r"[^a-zA-Z0-9 _-]")


def safe_report_name(name: str, max_length: int = 40) -> str:
    return _UNSAFE_NAME.sub("", name or "")[:max_length]


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------

def _balances_table(report) -> Table:
    rows = [[i + 1, e.name, abs(e.closing_balance)] for i, e in enumerate(report.entries)]
    total = sum(abs(e.closing_balance) for e in report.entries)
    return ["#", "Name", "Balance (₹)"], rows, ["", "Total", total]


def _expense_table(report) -> Table:
    rows = [[i + 1, e.name, abs(e.amount), e.parent] for i, e in enumerate(report.entries)]
    total = sum(abs(e.amount) for e in report.entries)
    return ["#", "Name", "Amount (₹)", "Group"], rows, ["", "Total", total, ""]


def _stock_table(report) -> Table:
    rows = [
        [i + 1, item.name, item.qty, item.unit, item.closing_rate, item.closing_value]
        for i, item in enumerate(report.items)
    ]
    total = sum(item.closing_value for item in report.items)
    return ["#", "Item", "Qty", "Unit", "Rate (₹)", "Value (₹)"], rows, ["", "Total", "", "", "", total]


def _groups_table(report) -> Table:
    groups = report.groups if hasattr(report, "groups") else report.assets + report.liabilities
    rows = [[i + 1, g.name, g.closing_balance] for i, g in enumerate(groups)]
    return ["#", "Group", "Closing Balance (₹)"], rows, None


def _sales_purchase_table(report) -> Table:
    rows = [
        [i + 1, format_tally_date(v.date), v.number, v.party or "", abs(v.amount)]
        for i, v in enumerate(report.entries)
    ]
    total = sum(abs(v.amount) for v in report.entries)
    return ["#", "Date", "Voucher No", "Party", "Amount (₹)"], rows, ["", "", "", "Total", total]


def _bills_table(report) -> Table:
    rows = [
        [i + 1, b.name, abs(b.closing_balance), format_tally_date(b.due_date)]
        for i, b in enumerate(report.bills)
    ]
    total = sum(abs(b.closing_balance) for b in report.bills)
    return ["#", "Bill Name", "Balance (₹)", "Due Date"], rows, ["", "Total", total, ""]


def _invoices_table(report) -> Table:
    rows = [
        [i + 1, format_tally_date(v.date), v.number, abs(v.amount), v.narration or ""]
        for i, v in enumerate(report.invoices)
    ]
    total = sum(abs(v.amount) for v in report.invoices)
    return ["#", "Date", "Invoice No", "Amount (₹)", "Narration"], rows, ["", "", "Total", total, ""]


def _ageing_table(report) -> Table:
    total = report.total_outstanding or sum(b.amount for b in report.buckets)

    def pct(amount: float) -> str:
        return f"{amount / total * 100:.1f}%" if total > 0 else "0%"

    rows = [[b.label, b.amount, b.count, pct(b.amount)] for b in report.buckets]
    if report.undated_count:
        rows.append(["No due date", report.undated_amount, report.undated_count, pct(report.undated_amount)])
    return ["Age Bucket", "Amount (₹)", "Bills", "Percentage"], rows, ["Total", total, report.total_bills, "100%"]


def _statement_table(report) -> Table:
    rows = [
        [i + 1, format_tally_date(e.date), e.voucher_type, e.number, e.narration or "", e.amount]
        for i, e in enumerate(report.entries)
    ]
    return ["#", "Date", "Type", "Voucher No", "Narration", "Amount (₹)"], rows, None


def _ledger_list_table(report) -> Table:
    rows = [[i + 1, l.name, l.parent] for i, l in enumerate(report.ledgers)]
    return ["#", "Ledger Name", "Group"], rows, None


def _voucher_list_table(report) -> Table:
    rows = [
        [i + 1, format_tally_date(v.date), v.voucher_type, v.number, v.party or "", abs(v.amount), v.narration or ""]
        for i, v in enumerate(report.vouchers)
    ]
    total = sum(abs(v.amount) for v in report.vouchers)
    columns = ["#", "Date", "Type", "Voucher No", "Party", "Amount (₹)", "Narration"]
    return columns, rows, ["", "", "", "", "Total", total, ""]


TABLE_BUILDERS: Dict[str, Callable[[Any], Table]] = {
    "outstanding": _balances_table,
    "gst": _balances_table,
    "cash_bank": _balances_table,
    "expense": _expense_table,
    "stock": _stock_table,
    "trial_balance": _groups_table,
    "profit_loss": _groups_table,
    "balance_sheet": _groups_table,
    "sales_purchase": _sales_purchase_table,
    "bill_outstanding": _bills_table,
    "party_invoices": _invoices_table,
    "ageing": _ageing_table,
    "ledger_statement": _statement_table,
    "ledger_list": _ledger_list_table,
    "voucher_list": _voucher_list_table,
}


class ExportService:
    """Excel workbook writer for report variants"""

    def __init__(self, settings: Optional[ExportConfig] = None):
        self.settings = settings or config.export

    def can_export(self, report: Any) -> bool:
        return getattr(report, "kind", None) in TABLE_BUILDERS

    def generate_workbook(self, title: str, columns: List[str], rows: List[List[Any]], totals_row: Optional[List[Any]] = None) -> bytes:
        """Single-sheet workbook as bytes"""
        wb = Workbook()
        wb.properties.creator = self.settings.creator
        wb.properties.created = datetime.now()
        ws = wb.active
        ws.title = (title or "Report")[:31]

        ws.append(columns)
        for cell in ws[1]:
            cell.font = BOLD
            cell.fill = HEADER_FILL
            cell.alignment = Alignment(horizontal="center")

        for row in rows:
            ws.append(row)

        if totals_row:
            ws.append(totals_row)
            for cell in ws[ws.max_row]:
                cell.font = BOLD
                cell.fill = TOTALS_FILL

        for col_idx, header in enumerate(columns, 1):
            max_len = len(header)
            for row in rows:
                value = row[col_idx - 1] if col_idx - 1 < len(row) else None
                max_len = max(max_len, len(str(value)) if value is not None else 0)
            letter = get_column_letter(col_idx)
            ws.column_dimensions[letter].width = min(max_len + 4, 50)

            numeric = sum(1 for row in rows if isinstance(row[col_idx - 1], (int, float)))
            if rows and numeric > len(rows) * 0.5:
                for cell in ws[letter][1:]:
                    cell.number_format = INDIAN_NUMBER_FORMAT
                    cell.alignment = Alignment(horizontal="right")

        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    def report_to_excel(self, report_name: str, report: Any) -> Optional[ExportFile]:
        """Workbook for the report, None when its kind has no renderer"""
        builder = TABLE_BUILDERS.get(getattr(report, "kind", None))
        if builder is None:
            logger.info(f"No Excel renderer for report kind {getattr(report, 'kind', None)!r}")
            return None

        name = safe_report_name(report_name, self.settings.max_name_length) or "Report"
        columns, rows, totals_row = builder(report)
        content = self.generate_workbook(name, columns, rows, totals_row)
        logger.info(f"Exported {report.kind} report to {name}.xlsx ({len(rows)} rows)")
        return ExportFile(filename=f"{name}.xlsx", content=content)


# Global export service instance
export_service = ExportService()
