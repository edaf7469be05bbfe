import pytest

from tally_engine.models.master import CompanyInfo, PartyDetail
from tally_engine.models.reports import InvoiceReport
from tally_engine.models.transaction import LedgerEntry, Voucher
from tally_engine.services.invoice_service import (
    InvoiceService, bank_lines, invoice_attachment, invoice_title, render_invoice_html, split_entries,
)

from conftest import FakeTally, envelope, ledger_xml, voucher_xml


SALE = voucher_xml(
    "20250605", "Sales", "INV-42", "R&D Labs", -11800, "June supply",
    entries=[("R&D Labs", -11800, True), ("Sales", 10000, False), ("Output CGST", 900, False), ("Output SGST", 900, False)],
    items=[("Widget", 2, 5000, 10000)],
)

COMPANY = (
    '<COMPANY NAME="Demo Traders" RESERVEDNAME="">'
    "<GSTIN>27AAAAA0000A1Z5</GSTIN><BANKNAME>HDFC Bank</BANKNAME><IFSCCODE>HDFC0000123</IFSCCODE>"
    "</COMPANY>"
)


def test_invoice_title_by_voucher_type():
    assert invoice_title("Sales") == "Tax Invoice"
    assert invoice_title("Purchase") == "Purchase Invoice"
    assert invoice_title("Credit Note") == "Credit Note"
    assert invoice_title("Debit Note") == "Debit Note"
    assert invoice_title("Receipt") == "Receipt"
    assert invoice_title("Payment") == "Payment Voucher"
    assert invoice_title("") == "Tax Invoice"


def test_split_entries_separates_tax_ledgers():
    voucher = Voucher(ledger_entries=[
        LedgerEntry(name="Meril", amount=-1180, is_party=True),
        LedgerEntry(name="Sales", amount=1000),
        LedgerEntry(name="IGST @18%", amount=180),
    ])
    income, tax = split_entries(voucher)

    assert [e.name for e in income] == ["Sales"]
    assert [e.name for e in tax] == ["IGST @18%"]


def test_bank_lines_skip_missing_fields():
    company = CompanyInfo(bank_name="HDFC Bank", ifsc_code="HDFC0000123")
    assert bank_lines(company) == ["Bank: HDFC Bank", "IFSC: HDFC0000123"]


@pytest.mark.asyncio
async def test_fetch_collects_voucher_company_and_party():
    tally = FakeTally({
        "InvoiceDetail": envelope(SALE),
        "CompanyInfo": envelope(COMPANY),
        "PartyDetail": envelope(ledger_xml("R&D Labs", statename="Maharashtra", ledgerphone="022-1234")),
    })
    report = await InvoiceService(tally).fetch("INV-42", "Demo Traders")

    assert report.voucher.number == "INV-42"
    assert report.company.name == "Demo Traders"
    assert report.company.gstin == "27AAAAA0000A1Z5"
    assert report.party.state == "Maharashtra"
    assert report.party.phone == "022-1234"
    assert tally.ids() == ["InvoiceDetail", "CompanyInfo", "PartyDetail"]


@pytest.mark.asyncio
async def test_fetch_unknown_invoice():
    tally = FakeTally()
    assert await InvoiceService(tally).fetch("NOPE-1", None) is None
    assert tally.ids() == ["InvoiceDetail"]


@pytest.mark.asyncio
async def test_rendered_invoice_contents():
    tally = FakeTally({"InvoiceDetail": envelope(SALE), "CompanyInfo": envelope(COMPANY)})
    report = await InvoiceService(tally).fetch("INV-42", "Demo Traders")
    html = render_invoice_html(report)

    assert "<title>Tax Invoice INV-42</title>" in html
    assert "R&amp;D Labs" in html
    assert "Widget" in html
    assert "5,000.00" in html
    assert "Output CGST" in html and "Output SGST" in html
    assert "₹ 11,800.00" in html
    assert "Eleven Thousand Eight Hundred Rupees Only" in html
    assert "Bank: HDFC Bank" in html
    assert "Narration: June supply" in html


def test_invoice_without_items_lists_income_ledgers():
    voucher = Voucher(
        date="20250605", voucher_type="Sales", number="S-9", party="Meril", amount=-1180,
        ledger_entries=[
            LedgerEntry(name="Meril", amount=-1180, is_party=True),
            LedgerEntry(name="Consulting Fees", amount=1000),
            LedgerEntry(name="IGST", amount=180),
        ],
    )
    html = render_invoice_html(InvoiceReport(voucher=voucher, party=PartyDetail(name="Meril")))

    assert "Consulting Fees" in html
    assert "One Thousand One Hundred Eighty Rupees Only" in html


def test_attachment_is_html():
    voucher = Voucher(date="20250605", voucher_type="Sales", number="MB/25-26/001", party="Meril", amount=-500)
    attachment = invoice_attachment(InvoiceReport(voucher=voucher))

    assert attachment.filename == "MB_25-26_001.html"
    assert attachment.media_type == "text/html"
    assert attachment.caption == "Invoice #MB/25-26/001 — Meril — ₹500.00"
    assert attachment.content.startswith(b"<!DOCTYPE html>")


def test_attachment_filename_is_truncated():
    voucher = Voucher(date="20250605", voucher_type="Sales", number="X" * 150, party="Meril", amount=-500)
    attachment = invoice_attachment(InvoiceReport(voucher=voucher))

    assert attachment.filename == "X" * 100 + ".html"
