"""
Balance Reports
Outstanding, cash & bank, expense, stock and GST summaries

Tally signs: a negative closing balance is a credit. Debtors therefore
show positive balances, creditors and tax collected show negative ones.
"""

from typing import List, Optional

from ...models.master import Ledger, StockItem
from ...models.reports import CashBankReport, ExpenseEntry, ExpenseReport, GstReport, OutstandingReport, StockReport
from ...utils.constants import CASH_BANK_GROUPS, EXPENSE_PARENT_GROUPS, TAX_GROUP
from ...utils.formatters import SEP, inr
from ...utils.helpers import format_tally_date, split_quantity
from ..response_parser import iter_records
from ..xml_builder import NON_ZERO_BALANCE, CollectionSpec, contains_formula, xml_builder


BALANCE_FETCH = ["Name", "Parent", "ClosingBalance"]


def _union_of_groups(name: str, groups: List[str], member_names: List[str]) -> CollectionSpec:
    """OR over groups as a union of CHILDOF-scoped sub-collections"""
    members = [
        CollectionSpec(name=member, type="Ledger", child_of=group, fetch=BALANCE_FETCH)
        for member, group in zip(member_names, groups)
    ]
    return CollectionSpec(name=name, union_of=members)


def _parse_balances(xml: str) -> List[Ledger]:
    return [
        Ledger(name=r.name, parent=r.text("PARENT"), closing_balance=r.number("CLOSINGBALANCE"))
        for r in iter_records(xml, "LEDGER")
    ]


def _date_range(from_date: Optional[str], to_date: Optional[str], default: str) -> str:
    if from_date and to_date:
        return f"{format_tally_date(from_date)} to {format_tally_date(to_date)}"
    return default


# ---------------------------------------------------------------------------
# Outstanding
# ---------------------------------------------------------------------------

def outstanding_label(group: str) -> str:
    return "Payable" if "creditor" in group.lower() else "Receivable"


def build_outstanding_xml(group: str, company: Optional[str]) -> str:
    spec = CollectionSpec(
        name="OutstandingLedgers",
        type="Ledger",
        child_of=group,
        fetch=BALANCE_FETCH,
        filters={"NonZeroBalFilter": NON_ZERO_BALANCE},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_outstanding(xml: str, group: str) -> OutstandingReport:
    """Non-zero ledgers of the group, largest absolute balance first; signed total"""
    entries = [ledger for ledger in _parse_balances(xml) if ledger.closing_balance != 0]
    entries.sort(key=lambda l: abs(l.closing_balance), reverse=True)
    return OutstandingReport(
        group=group,
        label=outstanding_label(group),
        entries=entries,
        total=sum(l.closing_balance for l in entries),
    )


def format_outstanding_header(report: OutstandingReport) -> str:
    return (
        f"📊 *{report.group} — {report.label}* "
        f"({len(report.entries)} parties, Total: ₹{inr(report.total)})"
    )


def format_outstanding_line(ledger: Ledger, index: int) -> str:
    return f"{index + 1}. {ledger.name} — ₹{inr(ledger.closing_balance)}"


def format_outstanding(report: OutstandingReport) -> str:
    if not report.entries:
        return f"No outstanding balances in *{report.group}*."
    lines = [f"📊 *{report.group} — {report.label}*", ""]
    lines.extend(format_outstanding_line(l, i) for i, l in enumerate(report.entries))
    lines.extend(["", SEP, f"*Total: ₹{inr(report.total)}* ({len(report.entries)} parties)"])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Cash & bank
# ---------------------------------------------------------------------------

def build_cash_bank_xml(company: Optional[str]) -> str:
    spec = _union_of_groups("CashBankList", CASH_BANK_GROUPS, ["BankLedgers", "CashLedgers", "BankODLedgers"])
    return xml_builder.build_collection(spec, company=company)


def parse_cash_bank(xml: str) -> CashBankReport:
    entries = []
    for ledger in _parse_balances(xml):
        parent = ledger.parent.lower()
        if "bank" in parent or "cash" in parent:
            entries.append(ledger)
    entries.sort(key=lambda l: abs(l.closing_balance), reverse=True)
    return CashBankReport(entries=entries, total=sum(l.closing_balance for l in entries))


def format_cash_bank(report: CashBankReport) -> str:
    if not report.entries:
        return "No cash or bank accounts found."
    lines = ["🏦 *Cash & Bank Balances*", ""]
    for ledger in report.entries:
        emoji = "💵" if "cash" in ledger.parent.lower() else "🏦"
        # A debit (positive) bank balance means the account is overdrawn
        overdrawn = "" if ledger.closing_balance < 0 else " (OD)"
        lines.append(f"{emoji} {ledger.name}: ₹{inr(ledger.closing_balance)}{overdrawn}")
    lines.extend(["", SEP, f"*Total: ₹{inr(report.total)}*"])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

def build_expense_xml(company: Optional[str], from_date: Optional[str] = None, to_date: Optional[str] = None) -> str:
    spec = _union_of_groups("ExpenseLedgers", EXPENSE_PARENT_GROUPS, ["IndirectExpLedgers", "DirectExpLedgers"])
    return xml_builder.build_collection(spec, company=company, from_date=from_date, to_date=to_date)


def parse_expense(xml: str, from_date: Optional[str] = None, to_date: Optional[str] = None) -> ExpenseReport:
    entries = [
        ExpenseEntry(name=l.name, parent=l.parent, amount=l.closing_balance)
        for l in _parse_balances(xml)
        if l.closing_balance > 0
    ]
    entries.sort(key=lambda e: e.amount, reverse=True)
    return ExpenseReport(
        entries=entries,
        total=sum(e.amount for e in entries),
        from_date=from_date,
        to_date=to_date,
    )


def format_expense_header(report: ExpenseReport) -> str:
    date_range = _date_range(report.from_date, report.to_date, "Current FY")
    return f"💸 *Expense Report: {date_range}* ({len(report.entries)} heads, Total: ₹{inr(report.total)})"


def format_expense_line(entry: ExpenseEntry, index: int) -> str:
    parent = f"\n   _{entry.parent}_" if entry.parent else ""
    return f"{index + 1}. {entry.name} — ₹{inr(entry.amount)}{parent}"


def format_expense(report: ExpenseReport) -> str:
    if not report.entries:
        return "No expenses found for this period."
    lines = [
        f"💸 *Expense Report: {_date_range(report.from_date, report.to_date, 'Current month')}*",
        f"{len(report.entries)} heads | Total: ₹{inr(report.total)}",
        "",
    ]
    lines.extend(format_expense_line(e, i) for i, e in enumerate(report.entries))
    lines.extend(["", SEP, f"*Total Expenses: ₹{inr(report.total)}*"])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------

def build_stock_xml(company: Optional[str], item_name: Optional[str] = None) -> str:
    filters = {"StockNameFilter": contains_formula("Name", item_name)} if item_name else {}
    spec = CollectionSpec(
        name="StockList",
        type="StockItem",
        fetch=["Name", "Parent", "ClosingBalance", "ClosingRate", "ClosingValue"],
        filters=filters,
    )
    return xml_builder.build_collection(spec, company=company)


def parse_stock(xml: str) -> StockReport:
    items = []
    for record in iter_records(xml, "STOCKITEM"):
        qty, unit = split_quantity(record.text("CLOSINGBALANCE"))
        items.append(StockItem(
            name=record.name,
            parent=record.text("PARENT"),
            qty=qty,
            unit=unit,
            closing_rate=record.number("CLOSINGRATE"),
            closing_value=record.number("CLOSINGVALUE"),
        ))
    items.sort(key=lambda item: item.closing_value, reverse=True)
    return StockReport(items=items, total_value=sum(item.closing_value for item in items))


def _qty_text(item: StockItem) -> str:
    return f"{item.qty:g} {item.unit}".rstrip() if item.qty else ""


def format_stock_header(report: StockReport) -> str:
    return f"📦 *Stock Summary* ({len(report.items)} items, Total: ₹{inr(report.total_value)})"


def format_stock_line(item: StockItem, index: int) -> str:
    qty = _qty_text(item)
    qty_part = f"Qty: {qty} | " if qty else ""
    return f"{index + 1}. *{item.name}*\n   {qty_part}Value: ₹{inr(item.closing_value)}"


def format_stock(report: StockReport, limit: int = 30) -> str:
    if not report.items:
        return "No stock items found."
    lines = [f"📦 *Stock Summary* ({len(report.items)} items)", ""]
    lines.extend(format_stock_line(item, i) for i, item in enumerate(report.items[:limit]))
    if len(report.items) > limit:
        lines.append(f"\n... and {len(report.items) - limit} more items")
    lines.extend(["", SEP, f"*Total Stock Value: ₹{inr(report.total_value)}*"])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# GST
# ---------------------------------------------------------------------------

def build_gst_xml(company: Optional[str], from_date: Optional[str] = None, to_date: Optional[str] = None) -> str:
    spec = CollectionSpec(name="GSTLedgers", type="Ledger", child_of=TAX_GROUP, fetch=BALANCE_FETCH)
    return xml_builder.build_collection(spec, company=company, from_date=from_date, to_date=to_date)


def parse_gst(xml: str, from_date: Optional[str] = None, to_date: Optional[str] = None) -> GstReport:
    """Negative balances are tax collected (output), positive ones tax paid (input)"""
    entries = [l for l in _parse_balances(xml) if l.closing_balance != 0]
    return GstReport(
        entries=entries,
        total_output=sum(abs(l.closing_balance) for l in entries if l.closing_balance < 0),
        total_input=sum(l.closing_balance for l in entries if l.closing_balance > 0),
        from_date=from_date,
        to_date=to_date,
    )


def format_gst(report: GstReport) -> str:
    if not report.entries:
        return "No GST/tax entries found for this period."

    output = [l for l in report.entries if l.closing_balance < 0]
    paid = [l for l in report.entries if l.closing_balance > 0]
    lines = [f"🧾 *GST Summary: {_date_range(report.from_date, report.to_date, 'Current month')}*", ""]
    if output:
        lines.append("*Output Tax (Collected):*")
        lines.extend(f"  🔴 {l.name}: ₹{inr(l.closing_balance)}" for l in output)
        lines.extend([f"  *Total: ₹{inr(report.total_output)}*", ""])
    if paid:
        lines.append("*Input Tax (Paid):*")
        lines.extend(f"  🟢 {l.name}: ₹{inr(l.closing_balance)}" for l in paid)
        lines.extend([f"  *Total: ₹{inr(report.total_input)}*", ""])

    label = "Net GST Payable" if report.net_liability >= 0 else "Net GST Refundable"
    lines.extend([SEP, f"*{label}: ₹{inr(report.net_liability)}*"])
    return "\n".join(lines)
