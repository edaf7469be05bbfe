"""
Activity Reports
Top customers, suppliers and items, and parties or items gone quiet

Both reports fetch every Sales (or Purchase) voucher and aggregate on the
client: Tally has no collection that ranks parties, and voucher
collections do not honour SVFROMDATE/SVTODATE reliably.
"""

from datetime import date
from typing import List, Optional

from ...models.reports import InactiveReport, TopReport
from ...models.transaction import ActivityEntry, Voucher
from ...utils.formatters import SEP, inr
from ...utils.helpers import format_tally_date
from ..analytics import filter_by_window, find_inactive, rank_top
from ..response_parser import parse_vouchers
from ..xml_builder import CollectionSpec, equals_formula, xml_builder
from .vouchers import register_type


PARTIES = "parties"
ITEMS = "items"


def _activity_xml(name: str, filter_name: str, inventory_fetch: str, company: Optional[str], report_type: str) -> str:
    spec = CollectionSpec(
        name=name,
        type="Voucher",
        fetch=["Date, VoucherTypeName, PartyLedgerName, Amount", inventory_fetch],
        filters={filter_name: equals_formula("VoucherTypeName", register_type(report_type))},
    )
    return xml_builder.build_collection(spec, company=company)


def party_activity(vouchers: List[Voucher]) -> List[ActivityEntry]:
    return [
        ActivityEntry(name=v.party, date=v.date, amount=abs(v.amount))
        for v in vouchers
        if v.party
    ]


def item_activity(vouchers: List[Voucher]) -> List[ActivityEntry]:
    """One row per inventory line, dated by its voucher"""
    rows = []
    for voucher in vouchers:
        for item in voucher.inventory_entries:
            rows.append(ActivityEntry(
                name=item.name,
                date=voucher.date,
                amount=abs(item.amount),
                qty=abs(item.qty),
            ))
    return rows


def _activity(vouchers: List[Voucher], entity: str) -> List[ActivityEntry]:
    return item_activity(vouchers) if entity == ITEMS else party_activity(vouchers)


# ---------------------------------------------------------------------------
# Top customers / suppliers / items
# ---------------------------------------------------------------------------

def build_top_xml(company: Optional[str], report_type: str = "sales") -> str:
    return _activity_xml(
        "TopReportVouchers", "TopReportTypeFilter",
        "AllInventoryEntries.StockItemName, AllInventoryEntries.Amount, AllInventoryEntries.BilledQty",
        company, report_type,
    )


def parse_top(
    xml: str,
    entity: str = PARTIES,
    report_type: str = "sales",
    limit: int = 10,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> TopReport:
    vouchers = filter_by_window(parse_vouchers(xml), from_date, to_date)
    entries, grand_total, count = rank_top(_activity(vouchers, entity), limit)
    return TopReport(
        entity=entity,
        report_type=register_type(report_type).lower(),
        entries=entries,
        grand_total=grand_total,
        entity_count=count,
    )


def format_top(report: TopReport) -> str:
    purchase = report.report_type == "purchase"
    items = report.entity == ITEMS
    if not report.entries:
        if items:
            return f"No items {'purchased' if purchase else 'sold'} in this period."
        return f"No {'suppliers' if purchase else 'customers'} found for this period."

    if items:
        label = "Purchased Items" if purchase else "Sold Items"
    else:
        label = "Suppliers (by Purchase)" if purchase else "Customers (by Sales)"
    emoji = "🟠" if purchase else "🟢"

    lines = [f"🏆 *Top {len(report.entries)} {label}*", ""]
    for i, entry in enumerate(report.entries):
        qty = f" | Qty: {entry.qty:g}" if items and entry.qty > 0 else ""
        lines.append(f"{i + 1}. {emoji} {entry.name}")
        lines.append(f"   ₹{inr(entry.total)} ({entry.count} txns, {entry.pct:.1f}%{qty})")
    lines.extend([
        "",
        SEP,
        f"*Grand Total: ₹{inr(report.grand_total)}* ({report.entity_count} {'items' if items else 'parties'})",
    ])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Inactive customers / suppliers / items
# ---------------------------------------------------------------------------

def build_inactive_xml(company: Optional[str], report_type: str = "sales") -> str:
    return _activity_xml(
        "InactiveReportVouchers", "InactiveTypeFilter",
        "AllInventoryEntries.StockItemName, AllInventoryEntries.Amount",
        company, report_type,
    )


def parse_inactive(
    xml: str,
    entity: str = PARTIES,
    report_type: str = "sales",
    days: int = 30,
    today: Optional[date] = None,
) -> InactiveReport:
    days = days or 30
    entries, total = find_inactive(_activity(parse_vouchers(xml), entity), days, today)
    return InactiveReport(
        entity=entity,
        report_type=register_type(report_type).lower(),
        days=days,
        entries=entries,
        total_count=total,
    )


def format_inactive(report: InactiveReport) -> str:
    purchase = report.report_type == "purchase"
    if report.entity == ITEMS:
        verb = "purchased" if purchase else "sold"
        if not report.entries:
            return f"All items have been {verb} in the last {report.days} days. 👍"
        header = f"😴 *Inactive Items* (not {verb} in {report.days}+ days)"
        noun = "items"
    else:
        noun = "suppliers" if purchase else "customers"
        if not report.entries:
            return f"All {noun} have been active in the last {report.days} days. 👍"
        header = f"😴 *Inactive {noun.capitalize()}* (no activity in {report.days}+ days)"

    lines = [header, ""]
    for i, entry in enumerate(report.entries):
        lines.append(f"{i + 1}. {entry.name}")
        lines.append(
            f"   Last: {format_tally_date(entry.last_date)} ({entry.days_ago}d ago) | ₹{inr(entry.total)} total"
        )
    lines.extend(["", SEP, f"*{len(report.entries)} inactive {noun}* out of {report.total_count} total"])
    return "\n".join(lines)
