from io import BytesIO

from openpyxl import load_workbook

from tally_engine.config import ExportConfig
from tally_engine.models.master import Ledger
from tally_engine.models.reports import (
    AgeingBucket, AgeingReport, LedgerBalanceReport, OutstandingReport, VoucherListReport,
)
from tally_engine.models.transaction import Voucher
from tally_engine.services.export_service import INDIAN_NUMBER_FORMAT, ExportService, safe_report_name


def open_sheet(content: bytes):
    return load_workbook(BytesIO(content)).active


def outstanding_report() -> OutstandingReport:
    return OutstandingReport(
        group="Sundry Debtors",
        label="Receivable",
        entries=[
            Ledger(name="Meril", parent="Sundry Debtors", closing_balance=-3000),
            Ledger(name="Atul Singh", parent="Sundry Debtors", closing_balance=-1000),
        ],
        total=-4000,
    )


def test_safe_report_name():
    assert safe_report_name("P&L / FY 24-25") == "PL  FY 24-25"
    assert safe_report_name("x" * 60, max_length=40) == "x" * 40
    assert safe_report_name("") == ""


def test_outstanding_workbook_layout():
    export = ExportService(ExportConfig()).report_to_excel("Receivables", outstanding_report())

    assert export.filename == "Receivables.xlsx"
    ws = open_sheet(export.content)
    assert ws.title == "Receivables"
    assert [c.value for c in ws[1]] == ["#", "Name", "Balance (₹)"]
    assert [c.value for c in ws[2]] == [1, "Meril", 3000]
    assert [c.value for c in ws[3]] == [2, "Atul Singh", 1000]
    assert ws["B4"].value == "Total"
    assert ws["C4"].value == 4000


def test_header_and_totals_styling():
    export = ExportService().report_to_excel("Receivables", outstanding_report())
    ws = open_sheet(export.content)

    assert ws["A1"].font.bold
    assert ws["A1"].fill.start_color.rgb.endswith("E0E0E0")
    assert ws["C4"].font.bold
    assert ws["C4"].fill.start_color.rgb.endswith("FFF2CC")
    assert ws["C2"].number_format == INDIAN_NUMBER_FORMAT
    assert ws["B2"].number_format != INDIAN_NUMBER_FORMAT
    assert ws.column_dimensions["B"].width == 14


def test_sheet_title_is_capped():
    content = ExportService().generate_workbook("A" * 40, ["Name"], [["x"]])
    assert open_sheet(content).title == "A" * 31


def test_voucher_list_dates_are_formatted():
    report = VoucherListReport(
        vouchers=[
            Voucher(date="20250601", voucher_type="Sales", number="S-1", party="Meril", amount=-1000),
            Voucher(date="20250602", voucher_type="Receipt", number="R-1", amount=500, narration="Cash"),
        ],
        total_count=2,
    )
    ws = open_sheet(ExportService().report_to_excel("Day Book", report).content)

    assert [c.value for c in ws[2]][:6] == [1, "01-06-2025", "Sales", "S-1", "Meril", 1000]
    assert ws["G3"].value == "Cash"
    assert ws["F4"].value == 1500


def test_ageing_percentages():
    report = AgeingReport(
        label="Receivable",
        buckets=[
            AgeingBucket(key="0-30", label="0-30 days", amount=750, count=3),
            AgeingBucket(key="31-60", label="31-60 days", amount=250, count=1),
        ],
        total_outstanding=1000,
        total_bills=4,
    )
    ws = open_sheet(ExportService().report_to_excel("Ageing", report).content)

    assert [c.value for c in ws[2]] == ["0-30 days", 750, 3, "75.0%"]
    assert [c.value for c in ws[4]] == ["Total", 1000, 4, "100%"]


def test_unsupported_kind_is_not_exported():
    service = ExportService()
    report = LedgerBalanceReport(name="Cash")

    assert not service.can_export(report)
    assert service.report_to_excel("Cash", report) is None
    assert service.can_export(outstanding_report())
