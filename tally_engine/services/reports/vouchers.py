"""
Voucher Reports
Day book, sales/purchase register, party invoices and single invoice lookups

Voucher collections ignore SVFROMDATE/SVTODATE often enough that every
parser here re-applies the requested window on the client.
"""

from typing import List, Optional

from ...config import config
from ...models.reports import PartyInvoicesReport, SalesPurchaseReport, VoucherListReport, VoucherTypesReport
from ...models.transaction import Voucher, VoucherTypeCount
from ...utils.formatters import SEP, inr, plural, vch_emoji
from ...utils.helpers import format_tally_date
from ..analytics import filter_by_window, summarize_by_party, summarize_by_type
from ..response_parser import iter_vouchers, parse_voucher, parse_vouchers
from ..xml_builder import CollectionSpec, equals_formula, xml_builder


HEADER_FETCH = ["Date", "VoucherTypeName", "VoucherNumber", "Narration", "Amount", "PartyLedgerName"]
LEDGER_ENTRY_FETCH = "AllLedgerEntries.LedgerName, AllLedgerEntries.Amount, AllLedgerEntries.IsPartyLedger"
INVENTORY_FETCH = (
    "AllInventoryEntries.StockItemName, AllInventoryEntries.Rate, "
    "AllInventoryEntries.Amount, AllInventoryEntries.BilledQty"
)


def _date_span(vouchers: List[Voucher]) -> tuple:
    dates = sorted(v.date for v in vouchers if v.date)
    return (dates[0], dates[-1]) if dates else (None, None)


def register_type(report_type: Optional[str]) -> str:
    """'purchase' -> Purchase, anything else -> Sales"""
    return "Purchase" if (report_type or "").lower() == "purchase" else "Sales"


# ---------------------------------------------------------------------------
# Voucher list / day book
# ---------------------------------------------------------------------------

def build_vouchers_xml(
    company: Optional[str],
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    voucher_type: Optional[str] = None,
) -> str:
    filters = {}
    if voucher_type:
        filters["VchTypeFilter"] = equals_formula("VoucherTypeName", voucher_type)
    spec = CollectionSpec(name="VoucherList", type="Voucher", fetch=HEADER_FETCH, filters=filters)
    return xml_builder.build_collection(spec, company=company, from_date=from_date, to_date=to_date)


def voucher_list_report(
    vouchers: List[Voucher],
    limit: Optional[int] = None,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> VoucherListReport:
    """Window-filter, cap at limit and summarise per type"""
    limit = config.report.default_voucher_limit if limit is None else limit
    kept = filter_by_window(vouchers, from_date, to_date)
    if limit:
        kept = kept[:limit]
    first, last = _date_span(kept)
    return VoucherListReport(
        vouchers=kept,
        by_type=summarize_by_type(kept),
        total_count=len(kept),
        from_date=first,
        to_date=last,
    )


def parse_voucher_list(
    xml: str,
    limit: Optional[int] = None,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> VoucherListReport:
    return voucher_list_report(parse_vouchers(xml), limit, from_date, to_date)


def format_voucher_list(report: VoucherListReport) -> str:
    if not report.vouchers:
        return "No vouchers found for the given period."

    single_day = report.from_date is not None and report.from_date == report.to_date
    if single_day:
        header = f"📋 *Day Book: {format_tally_date(report.from_date)}* ({report.total_count} entries)"
    else:
        header = (
            f"📋 *Vouchers: {format_tally_date(report.from_date)} to "
            f"{format_tally_date(report.to_date)}* ({report.total_count} entries)"
        )
    lines = [header, ""]

    for v in report.vouchers:
        date_part = f"{format_tally_date(v.date)} | " if not single_day and v.date else ""
        number = f" #{v.number}" if v.number else ""
        party = f" — {v.party}" if v.party else ""
        narration = f" _{v.narration[:30]}_" if v.narration else ""
        lines.append(f"{vch_emoji(v.voucher_type)} {date_part}{v.voucher_type}{number} — ₹{inr(v.amount)}{party}{narration}")

    lines.extend(["", SEP])
    for summary in report.by_type:
        label = plural(summary.count, "entry", "entries")
        lines.append(f"{vch_emoji(summary.name)} {summary.name}: {summary.count} {label}, ₹{inr(summary.total)}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Sales / purchase register
# ---------------------------------------------------------------------------

def build_sales_purchase_xml(
    company: Optional[str],
    report_type: str = "sales",
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> str:
    spec = CollectionSpec(
        name="SalesPurchaseReport",
        type="Voucher",
        fetch=["Date", "VoucherTypeName", "VoucherNumber", "Amount", "PartyLedgerName", "Narration"],
        filters={"SPReportFilter": equals_formula("VoucherTypeName", register_type(report_type))},
    )
    return xml_builder.build_collection(spec, company=company, from_date=from_date, to_date=to_date)


def parse_sales_purchase(
    xml: str,
    report_type: str = "sales",
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> SalesPurchaseReport:
    entries = filter_by_window(parse_vouchers(xml), from_date, to_date)
    by_party = summarize_by_party(entries)
    first, last = _date_span(entries)
    return SalesPurchaseReport(
        report_type=register_type(report_type).lower(),
        entries=entries,
        by_party=by_party,
        total=sum(p.total for p in by_party),
        from_date=first,
        to_date=last,
    )


def format_sales_purchase(report: SalesPurchaseReport) -> str:
    label = register_type(report.report_type)
    if not report.entries:
        return f"No {label.lower()} found for the given period."

    lines = [
        f"📊 *{label} Report: {format_tally_date(report.from_date)} to {format_tally_date(report.to_date)}*",
        f"🧾 {len(report.entries)} invoices | Total: ₹{inr(report.total)}",
        "",
    ]
    for i, party in enumerate(report.by_party):
        lines.append(f"{i + 1}. {party.name} — ₹{inr(party.total)} ({party.count})")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Party invoices
# ---------------------------------------------------------------------------

def build_party_invoices_xml(
    party_name: str,
    company: Optional[str],
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    voucher_type: Optional[str] = None,
) -> str:
    spec = CollectionSpec(
        name="PartyInvoices",
        type="Voucher",
        fetch=[", ".join(HEADER_FETCH), LEDGER_ENTRY_FETCH, INVENTORY_FETCH],
        filters={
            "PartyInvFilter": equals_formula("PartyLedgerName", party_name),
            "VchTypeInvFilter": equals_formula("VoucherTypeName", voucher_type or "Sales"),
        },
    )
    return xml_builder.build_collection(spec, company=company, from_date=from_date, to_date=to_date)


def parse_party_invoices(
    xml: str,
    party_name: str,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    voucher_type: Optional[str] = None,
) -> PartyInvoicesReport:
    """Window-filtered invoices for one party, newest first"""
    invoices = [parse_voucher(record) for record in iter_vouchers(xml, require_vchtype=True)]
    invoices = filter_by_window(invoices, from_date, to_date)
    invoices.sort(key=lambda v: v.date, reverse=True)
    first, last = _date_span(invoices)
    return PartyInvoicesReport(
        party_name=party_name,
        voucher_type=voucher_type or "Sales",
        invoices=invoices,
        total=sum(abs(v.amount) for v in invoices),
        from_date=first,
        to_date=last,
    )


def format_party_invoices_header(report: PartyInvoicesReport) -> str:
    return f"🧾 *Invoices: {report.party_name}* ({len(report.invoices)} total, ₹{inr(report.total)})"


def format_party_invoice_line(invoice: Voucher, index: int) -> str:
    line = (
        f"{index + 1}. *#{invoice.number or 'N/A'}* — {format_tally_date(invoice.date)} — "
        f"₹{inr(abs(invoice.amount))}"
    )
    if invoice.narration:
        line += f"\n   _{invoice.narration[:60]}_"
    return line


def format_party_invoices(report: PartyInvoicesReport) -> str:
    """Full rendering with item and ledger breakup per invoice"""
    if not report.invoices:
        return f"No invoices found for *{report.party_name}*."

    start, end = format_tally_date(report.from_date), format_tally_date(report.to_date)
    date_range = f"{start} to {end}" if start and end and start != end else (start or "Current FY")
    count = len(report.invoices)
    lines = [
        f"🧾 *Invoices: {report.party_name}*",
        f"📅 {date_range} | {count} invoices | Total: ₹{inr(report.total)}",
        "",
    ]

    for i, invoice in enumerate(report.invoices):
        lines.append(f"{i + 1}. *#{invoice.number or 'N/A'}* — {format_tally_date(invoice.date)}")
        lines.append(f"   ₹{inr(abs(invoice.amount))}")
        for item in invoice.inventory_entries:
            qty = f" — {item.qty:g} x ₹{inr(item.rate)}" if item.qty else ""
            lines.append(f"   📦 {item.name}{qty}")
        for entry in invoice.ledger_entries:
            if not entry.is_party:
                lines.append(f"   ↳ {entry.name}: ₹{inr(entry.amount)}")
        if invoice.narration:
            lines.append(f"   _{invoice.narration[:60]}_")
        if i < count - 1:
            lines.append("")

    lines.extend(["", SEP, f"*Total: ₹{inr(report.total)} ({count} invoices)*"])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Invoice detail
# ---------------------------------------------------------------------------

def build_invoice_detail_xml(voucher_number: str, company: Optional[str]) -> str:
    spec = CollectionSpec(
        name="InvoiceDetail",
        type="Voucher",
        fetch=[
            "Date, VoucherTypeName, VoucherNumber, PartyLedgerName, Amount, Narration",
            LEDGER_ENTRY_FETCH,
            INVENTORY_FETCH,
        ],
        filters={"InvNumberFilter": equals_formula("VoucherNumber", voucher_number)},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_invoice_detail(xml: str, voucher_type: Optional[str] = None) -> Optional[Voucher]:
    """
    The voucher with the requested number, None when absent.

    Numbers are only unique per voucher type, so a voucher of the
    requested type is preferred over the first match.
    """
    vouchers = [parse_voucher(record) for record in iter_vouchers(xml, require_vchtype=True)]
    if not vouchers:
        return None
    if voucher_type:
        wanted = voucher_type.lower()
        for voucher in vouchers:
            if voucher.voucher_type.lower() == wanted:
                return voucher
    return vouchers[0]


# ---------------------------------------------------------------------------
# Voucher type counts
# ---------------------------------------------------------------------------

def build_voucher_type_counts_xml(company: Optional[str]) -> str:
    spec = CollectionSpec(name="VchTypeCounts", type="Voucher", fetch=["VoucherTypeName"])
    return xml_builder.build_collection(spec, company=company)


def parse_voucher_type_counts(xml: str) -> List[VoucherTypeCount]:
    """Voucher count per type name, most used first"""
    counts = {}
    for record in iter_vouchers(xml):
        name = record.text("VOUCHERTYPENAME") or record.vchtype
        if name:
            counts[name] = counts.get(name, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [VoucherTypeCount(name=name, count=count) for name, count in ranked]


def format_voucher_types(report: VoucherTypesReport, pending: bool = False) -> str:
    """Offer the voucher types that do exist when the requested one has none"""
    if pending:
        lines = [f"No *{report.requested}* vouchers found.", "", "📋 *Available voucher types:*", ""]
    else:
        lines = [f"No *{report.requested}* vouchers found in this company.", "", "📋 *Available voucher types:*", ""]
    for i, vch_type in enumerate(report.types):
        lines.append(f"{i + 1}. {vch_type.name} — {vch_type.count} vouchers")
    if pending:
        lines.extend(["", "Reply with a voucher type name to track those."])
    else:
        lines.extend(["", "Reply with a voucher type name to see those entries.", 'Example: "show me all Payment vouchers"'])
    return "\n".join(lines)
