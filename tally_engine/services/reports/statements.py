"""
Financial Statements
Trial balance, balance sheet and profit & loss from the group collection

All three read the same Group collection and classify in Python. Top-level
groups are recognised by their parent (see is_top_level); TallyPrime
prefixes the "Primary" parent with a control entity, so CHILDOF cannot be
used to scope these queries.
"""

from typing import List, Optional

from ...models.master import Group
from ...models.reports import BalanceSheetReport, ProfitLossReport, TrialBalanceReport
from ...utils.constants import ASSET_GROUPS, EXPENSE_GROUPS, INCOME_GROUPS, LIABILITY_GROUPS, PL_GROUPS
from ...utils.formatters import SEP, inr
from ...utils.helpers import format_tally_date
from ..response_parser import clean_group_name, is_top_level, iter_records
from ..xml_builder import CollectionSpec, xml_builder


def _build_groups_xml(name: str, fetch: List[str], company: Optional[str], from_date: Optional[str], to_date: Optional[str]) -> str:
    spec = CollectionSpec(name=name, type="Group", fetch=fetch)
    return xml_builder.build_collection(spec, company=company, from_date=from_date, to_date=to_date)


def parse_groups(xml: str, top_level_only: bool = False) -> List[Group]:
    groups = []
    for record in iter_records(xml, "GROUP"):
        parent = record.text("PARENT")
        if top_level_only and not is_top_level(parent):
            continue
        groups.append(Group(
            name=clean_group_name(record.name),
            parent=clean_group_name(parent),
            closing_balance=record.number("CLOSINGBALANCE"),
            opening_balance=record.number("OPENINGBALANCE") if record.has("OPENINGBALANCE") else None,
        ))
    return groups


def _by_magnitude(groups: List[Group]) -> List[Group]:
    return sorted(groups, key=lambda g: abs(g.closing_balance), reverse=True)


def _period(from_date: Optional[str], to_date: Optional[str]) -> str:
    if from_date and to_date:
        return f"{format_tally_date(from_date)} to {format_tally_date(to_date)}"
    return "Current FY"


def _balance_line(difference: float, balanced_text: str) -> str:
    if difference < 1:
        return f"✅ *Balanced* ({balanced_text})"
    return f"⚠️ *Difference: ₹{inr(difference)}*"


# ---------------------------------------------------------------------------
# Trial balance
# ---------------------------------------------------------------------------

def build_trial_balance_xml(company: Optional[str], from_date: Optional[str] = None, to_date: Optional[str] = None) -> str:
    return _build_groups_xml(
        "TrialBalGroups", ["Name", "Parent", "OpeningBalance", "ClosingBalance"], company, from_date, to_date,
    )


def parse_trial_balance(xml: str, from_date: Optional[str] = None, to_date: Optional[str] = None) -> TrialBalanceReport:
    """Top-level groups with any balance; positive closing is a debit"""
    groups = [
        g for g in parse_groups(xml, top_level_only=True)
        if (g.opening_balance or 0) != 0 or g.closing_balance != 0
    ]
    return TrialBalanceReport(
        groups=_by_magnitude(groups),
        total_debit=sum(g.closing_balance for g in groups if g.closing_balance >= 0),
        total_credit=sum(abs(g.closing_balance) for g in groups if g.closing_balance < 0),
        from_date=from_date,
        to_date=to_date,
    )


def format_trial_balance(report: TrialBalanceReport) -> str:
    if not report.groups:
        return "No Trial Balance data found."

    lines = [f"📋 *Trial Balance: {_period(report.from_date, report.to_date)}*", ""]
    debit = [g for g in report.groups if g.closing_balance > 0]
    credit = [g for g in report.groups if g.closing_balance < 0]
    if debit:
        lines.append("*Debit:*")
        lines.extend(f"  📕 {g.name}: ₹{inr(g.closing_balance)}" for g in debit)
        lines.extend([f"  *Total Debit: ₹{inr(report.total_debit)}*", ""])
    if credit:
        lines.append("*Credit:*")
        lines.extend(f"  📗 {g.name}: ₹{inr(g.closing_balance)}" for g in credit)
        lines.extend([f"  *Total Credit: ₹{inr(report.total_credit)}*", ""])

    lines.extend([SEP, _balance_line(report.difference, "Debit = Credit")])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Balance sheet
# ---------------------------------------------------------------------------

def build_balance_sheet_xml(company: Optional[str], from_date: Optional[str] = None, to_date: Optional[str] = None) -> str:
    return _build_groups_xml("BSGroups", ["Name", "Parent", "ClosingBalance"], company, from_date, to_date)


def parse_balance_sheet(xml: str, to_date: Optional[str] = None) -> BalanceSheetReport:
    """
    Non-P&L top-level groups split into assets and liabilities.

    Known group names decide the side; unknown groups fall back to the
    sign of the closing balance (debit = asset).
    """
    assets, liabilities = [], []
    for group in parse_groups(xml, top_level_only=True):
        lower = group.name.lower()
        if lower in PL_GROUPS or group.closing_balance == 0:
            continue
        if lower in ASSET_GROUPS:
            assets.append(group)
        elif lower in LIABILITY_GROUPS:
            liabilities.append(group)
        elif group.closing_balance > 0:
            assets.append(group)
        else:
            liabilities.append(group)

    return BalanceSheetReport(
        assets=_by_magnitude(assets),
        liabilities=_by_magnitude(liabilities),
        total_assets=sum(abs(g.closing_balance) for g in assets),
        total_liabilities=sum(abs(g.closing_balance) for g in liabilities),
        to_date=to_date,
    )


def format_balance_sheet(report: BalanceSheetReport) -> str:
    if not report.assets and not report.liabilities:
        return "No Balance Sheet data found."

    label = f"as on {format_tally_date(report.to_date)}" if report.to_date else "Current FY"
    lines = [f"🏦 *Balance Sheet: {label}*", ""]
    if report.liabilities:
        lines.append("*Liabilities & Capital:*")
        lines.extend(f"  📗 {g.name}: ₹{inr(g.closing_balance)}" for g in report.liabilities)
        lines.extend([f"  *Total: ₹{inr(report.total_liabilities)}*", ""])
    if report.assets:
        lines.append("*Assets:*")
        lines.extend(f"  📕 {g.name}: ₹{inr(g.closing_balance)}" for g in report.assets)
        lines.extend([f"  *Total: ₹{inr(report.total_assets)}*", ""])

    lines.extend([SEP, _balance_line(report.difference, "Assets = Liabilities")])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Profit & loss
# ---------------------------------------------------------------------------

def build_profit_loss_xml(company: Optional[str], from_date: Optional[str] = None, to_date: Optional[str] = None) -> str:
    return _build_groups_xml("PLGroups", ["Name", "Parent", "ClosingBalance"], company, from_date, to_date)


def parse_profit_loss(xml: str, from_date: Optional[str] = None, to_date: Optional[str] = None) -> ProfitLossReport:
    """Income and expense groups are picked by name; signs vary between companies"""
    groups = [g for g in parse_groups(xml) if g.name.lower() in PL_GROUPS and g.closing_balance != 0]
    income = _by_magnitude([g for g in groups if g.name.lower() in INCOME_GROUPS])
    expenses = _by_magnitude([g for g in groups if g.name.lower() in EXPENSE_GROUPS])
    return ProfitLossReport(
        income=income,
        expenses=expenses,
        total_income=sum(abs(g.closing_balance) for g in income),
        total_expense=sum(abs(g.closing_balance) for g in expenses),
        from_date=from_date,
        to_date=to_date,
    )


def format_profit_loss(report: ProfitLossReport) -> str:
    if not report.groups:
        return "No P&L data found for this period."

    lines = [f"📊 *Profit & Loss: {_period(report.from_date, report.to_date)}*", ""]
    if report.income:
        lines.append("*Income:*")
        lines.extend(f"  🟢 {g.name}: ₹{inr(g.closing_balance)}" for g in report.income)
        lines.extend([f"  *Total Income: ₹{inr(report.total_income)}*", ""])
    if report.expenses:
        lines.append("*Expenses:*")
        lines.extend(f"  🔴 {g.name}: ₹{inr(g.closing_balance)}" for g in report.expenses)
        lines.extend([f"  *Total Expense: ₹{inr(report.total_expense)}*", ""])

    net = report.net_profit
    lines.append(SEP)
    lines.append(f"✅ *Net Profit: ₹{inr(net)}*" if net >= 0 else f"❌ *Net Loss: ₹{inr(net)}*")
    return "\n".join(lines)
