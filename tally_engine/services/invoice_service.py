"""
Invoice Service Module
Renders a Tally invoice voucher as a printable HTML document

LAYOUT:
------
- Company header (address, GSTIN) and document title by voucher type
- Bill-to block from the party ledger master
- Item rows from inventory entries; ledger entries when there are none
- Tax rows for ledgers named like CGST/SGST/IGST/cess/TDS/TCS
- Total in figures and Indian-system words, bank details, signatory block
"""

from typing import Dict, List, Optional, Tuple

from ..models.master import CompanyInfo, PartyDetail
from ..models.reports import InvoiceReport
from ..models.response import Attachment
from ..models.transaction import LedgerEntry, Voucher
from ..utils.constants import TAX_KEYWORDS
from ..utils.formatters import amount_in_words, inr
from ..utils.helpers import format_tally_date, safe_filename
from ..utils.logger import logger
from ..views.html_view import html_view
from .reports.company import build_company_info_xml, parse_company_info
from .reports.ledgers import build_party_detail_xml, parse_party_detail
from .reports.vouchers import build_invoice_detail_xml, parse_invoice_detail
from .tally_service import TallyService

INVOICE_TEMPLATE = "invoice.html"


def invoice_title(voucher_type: str) -> str:
    t = (voucher_type or "").lower()
    if "purchase" in t:
        return "Purchase Invoice"
    if "credit" in t:
        return "Credit Note"
    if "debit" in t:
        return "Debit Note"
    if "receipt" in t:
        return "Receipt"
    if "payment" in t:
        return "Payment Voucher"
    return "Tax Invoice"


def is_tax_ledger(name: str) -> bool:
    lowered = (name or "").lower()
    return any(keyword in lowered for keyword in TAX_KEYWORDS)


def split_entries(voucher: Voucher) -> Tuple[List[LedgerEntry], List[LedgerEntry]]:
    """Non-party ledger entries split into (income, tax)"""
    income, tax = [], []
    for entry in voucher.ledger_entries:
        if entry.is_party:
            continue
        (tax if is_tax_ledger(entry.name) else income).append(entry)
    return income, tax


def item_rows(voucher: Voucher, income: List[LedgerEntry]) -> List[Dict[str, str]]:
    if voucher.inventory_entries:
        return [
            {
                "name": item.name,
                "qty": f"{item.qty:g}" if item.qty else "-",
                "rate": inr(item.rate) if item.rate else "-",
                "amount": inr(abs(item.amount)),
            }
            for item in voucher.inventory_entries
        ]
    return [{"name": entry.name, "qty": "-", "rate": "-", "amount": inr(abs(entry.amount))} for entry in income]


def bank_lines(company: CompanyInfo) -> List[str]:
    lines = []
    if company.bank_name:
        lines.append(f"Bank: {company.bank_name}")
    if company.account_number:
        lines.append(f"A/c No: {company.account_number}")
    if company.ifsc_code:
        lines.append(f"IFSC: {company.ifsc_code}")
    if company.bank_branch:
        lines.append(f"Branch: {company.bank_branch}")
    return lines


def render_invoice_html(report: InvoiceReport) -> str:
    voucher = report.voucher
    income, tax = split_entries(voucher)
    total = abs(voucher.amount)
    context = {
        "title": invoice_title(voucher.voucher_type),
        "voucher": voucher,
        "company": report.company,
        "party": report.party,
        "party_name": voucher.party or report.party.name,
        "date": format_tally_date(voucher.date),
        "rows": item_rows(voucher, income),
        "subtotal": inr(sum(abs(entry.amount) for entry in income)),
        "taxes": [{"name": entry.name, "amount": inr(abs(entry.amount))} for entry in tax],
        "total": inr(total),
        "total_words": amount_in_words(total),
        "bank_lines": bank_lines(report.company),
    }
    return html_view.render_string(INVOICE_TEMPLATE, context)


def invoice_filename(voucher_number: str) -> str:
    return f"{safe_filename(voucher_number)}.html"


def invoice_message(voucher: Voucher) -> str:
    return f"🧾 Invoice *#{voucher.number}* for *{voucher.party or 'N/A'}* — ₹{inr(abs(voucher.amount))}"


def invoice_attachment(report: InvoiceReport) -> Attachment:
    voucher = report.voucher
    return Attachment(
        filename=invoice_filename(voucher.number),
        content=render_invoice_html(report).encode("utf-8"),
        caption=f"Invoice #{voucher.number} — {voucher.party or 'N/A'} — ₹{inr(abs(voucher.amount))}",
        media_type="text/html",
    )


class InvoiceService:
    """Fetches the voucher, company and party details behind an invoice document"""

    def __init__(self, tally: TallyService):
        self.tally = tally

    async def fetch(self, voucher_number: str, company: Optional[str], voucher_type: str = "Sales") -> Optional[InvoiceReport]:
        """Invoice with its company and party details, None when the number is unknown"""
        response = await self.tally.send_xml(build_invoice_detail_xml(voucher_number, company))
        voucher = parse_invoice_detail(response, voucher_type)
        if voucher is None:
            logger.info(f'Invoice "{voucher_number}" not found in Tally')
            return None

        company_info = parse_company_info(await self.tally.send_xml(build_company_info_xml(company)))
        party = PartyDetail()
        if voucher.party:
            party = parse_party_detail(await self.tally.send_xml(build_party_detail_xml(voucher.party, company)))
        return InvoiceReport(voucher=voucher, company=company_info, party=party)
