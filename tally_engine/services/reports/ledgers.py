"""
Ledger Reports
Search, listing, GST master, balance, statement and party contact queries
"""

from typing import Dict, List, Optional

from ...config import config
from ...models.master import Ledger, PartyContact, PartyDetail
from ...models.reports import LedgerBalanceReport, LedgerListReport, LedgerMasterReport, LedgerStatementReport
from ...utils.constants import RECEIVABLE_GROUP
from ...utils.exceptions import ReportError
from ...utils.formatters import SEP, inr
from ...utils.helpers import fy_start, format_tally_date, today_str
from ..response_parser import Record, first_record, iter_records, iter_vouchers, line_error, parse_voucher
from ..xml_builder import CollectionSpec, contains_formula, equals_formula, xml_builder


LEDGER_NOT_FOUND = "Ledger not found in Tally."


def _ledger_or_error(xml: str) -> Record:
    """First ledger record, or ReportError carrying Tally's LINEERROR"""
    record = first_record(xml, "LEDGER")
    if record is None:
        raise ReportError(line_error(xml) or LEDGER_NOT_FOUND)
    return record


# ---------------------------------------------------------------------------
# Search / list
# ---------------------------------------------------------------------------

def build_search_ledgers_xml(search_term: str, company: Optional[str]) -> str:
    spec = CollectionSpec(
        name="LedgerSearch",
        type="Ledger",
        native_methods=["Name", "Parent"],
        filters={"LedgerSearchFilter": contains_formula("Name", search_term)},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_ledgers(xml: str) -> List[Ledger]:
    """Name/parent pairs of every ledger in the response"""
    return [Ledger(name=r.name, parent=r.text("PARENT")) for r in iter_records(xml, "LEDGER")]


def build_list_ledgers_xml(group_filter: Optional[str], company: Optional[str]) -> str:
    spec = CollectionSpec(
        name="LedgerList",
        type="Ledger",
        native_methods=["Name", "Parent"],
        child_of=group_filter or None,
    )
    return xml_builder.build_collection(spec, company=company)


def parse_list_ledgers(xml: str, group_filter: Optional[str] = None) -> LedgerListReport:
    return LedgerListReport(ledgers=parse_ledgers(xml), group_filter=group_filter or None)


def format_ledger_list_header(report: LedgerListReport) -> str:
    group = f" ({report.group_filter})" if report.group_filter else ""
    return f"📒 *Ledgers{group}* ({len(report.ledgers)})"


def format_ledger_list_line(ledger: Ledger, index: int) -> str:
    parent = f" _({ledger.parent})_" if ledger.parent else ""
    return f"{index + 1}. {ledger.name}{parent}"


def format_ledger_list(report: LedgerListReport, limit: int = 30) -> str:
    """Unpaged rendering, capped at limit entries"""
    if not report.ledgers:
        return "No ledgers found."
    lines = [f"📒 *Ledgers* ({len(report.ledgers)})", ""]
    for i, ledger in enumerate(report.ledgers[:limit]):
        lines.append(format_ledger_list_line(ledger, i))
    if len(report.ledgers) > limit:
        lines.append(f"\n... and {len(report.ledgers) - limit} more")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# GST master
# ---------------------------------------------------------------------------

def build_ledger_master_xml(ledger_name: str, company: Optional[str]) -> str:
    spec = CollectionSpec(
        name="LedgerGSTInfo",
        type="Ledger",
        fetch=["Name", "Parent", "LedStateName", "CountryOfResidence", "LEDGSTREGDETAILS.LIST"],
        filters={"LedgerGSTNameFilter": equals_formula("Name", ledger_name)},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_ledger_master(xml: str) -> LedgerMasterReport:
    record = _ledger_or_error(xml)
    return LedgerMasterReport(
        name=record.name or record.text("NAME", "Unknown"),
        parent=record.text("PARENT"),
        gstin=record.text("GSTIN") or record.text("PARTYGSTIN"),
        gst_type=record.text("GSTREGISTRATIONTYPE"),
        state=record.text("LEDSTATENAME"),
    )


def format_ledger_master(report: LedgerMasterReport) -> str:
    if report.gstin:
        message = f"GSTIN for {report.name}: {report.gstin}"
        if report.gst_type:
            message += f" ({report.gst_type})"
        if report.state:
            message += f", State: {report.state}"
        return message

    message = f"No GSTIN found for {report.name}."
    if report.state:
        message += f" State: {report.state}, Group: {report.parent or 'N/A'}."
    return message + " The party may not have GSTIN set in Tally."


# ---------------------------------------------------------------------------
# Balance
# ---------------------------------------------------------------------------

def build_ledger_balance_xml(ledger_name: str, company: Optional[str]) -> str:
    spec = CollectionSpec(
        name="LedgerBalanceInfo",
        type="Ledger",
        fetch=["Name", "Parent", "ClosingBalance", "OpeningBalance"],
        filters={"LedgerBalFilter": equals_formula("Name", ledger_name)},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_ledger_balance(xml: str) -> LedgerBalanceReport:
    record = _ledger_or_error(xml)
    return LedgerBalanceReport(
        name=record.name or record.text("NAME", "Unknown"),
        parent=record.text("PARENT"),
        closing_balance=record.number("CLOSINGBALANCE"),
        opening_balance=record.number("OPENINGBALANCE"),
    )


def format_ledger_balance(report: LedgerBalanceReport) -> str:
    message = (
        f"{report.name} ({report.parent or 'N/A'}): "
        f"₹{abs(report.closing_balance):.2f} {report.balance_type}"
    )
    if report.opening_balance != 0:
        message += f". Opening: ₹{abs(report.opening_balance):.2f}"
    return message


# ---------------------------------------------------------------------------
# Statement
# ---------------------------------------------------------------------------

def statement_window(from_date: Optional[str], to_date: Optional[str]) -> tuple:
    """Explicit bounds, or the current financial year to date"""
    if from_date or to_date:
        return from_date or to_date, to_date or from_date
    return fy_start(), today_str()


def build_ledger_statement_xml(
    ledger_name: str,
    company: Optional[str],
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> str:
    actual_from, actual_to = statement_window(from_date, to_date)
    spec = CollectionSpec(
        name="LedgerVchList",
        type="Voucher",
        fetch=["Date", "VoucherTypeName", "VoucherNumber", "Narration", "Amount", "PartyLedgerName"],
        filters={"LedgerVchFilter": equals_formula("PartyLedgerName", ledger_name)},
    )
    return xml_builder.build_collection(
        spec,
        company=company,
        from_date=actual_from,
        to_date=actual_to,
        static_variables={"SVLEDGERNAME": ledger_name},
    )


def parse_ledger_statement(xml: str, ledger_name: str, limit: Optional[int] = None) -> LedgerStatementReport:
    """First ``limit`` vouchers posted against the ledger, with Dr/Cr totals"""
    limit = config.report.statement_limit if limit is None else limit
    entries = []
    for record in iter_vouchers(xml):
        if limit > 0 and len(entries) >= limit:
            break
        entries.append(parse_voucher(record))

    dates = sorted(e.date for e in entries if e.date)
    return LedgerStatementReport(
        ledger_name=ledger_name,
        entries=entries,
        total_debit=sum(e.amount for e in entries if e.amount >= 0),
        total_credit=sum(abs(e.amount) for e in entries if e.amount < 0),
        from_date=dates[0] if dates else None,
        to_date=dates[-1] if dates else None,
    )


def format_ledger_statement(report: LedgerStatementReport) -> str:
    if not report.entries:
        return f"No transactions found for *{report.ledger_name}* in this financial year."

    lines = [
        f"📒 *Ledger: {report.ledger_name}*",
        f"📅 {format_tally_date(report.from_date)} to {format_tally_date(report.to_date)} | {len(report.entries)} entries",
        "",
    ]
    for i, entry in enumerate(report.entries):
        dr_cr = "Dr 🟢" if entry.amount >= 0 else "Cr 🔴"
        number = f" #{entry.number}" if entry.number else ""
        lines.append(f"{i + 1}. {format_tally_date(entry.date)} | {entry.voucher_type}{number}")
        lines.append(f"   ₹{inr(entry.amount)} {dr_cr}")
        if entry.narration:
            lines.append(f"   _{entry.narration[:50]}_")

    net = report.net
    lines.append(SEP)
    lines.append(f"💰 Total Dr: ₹{inr(report.total_debit)}")
    lines.append(f"💰 Total Cr: ₹{inr(report.total_credit)}")
    lines.append(f"📊 *Net: ₹{inr(net)} {'Receivable' if net >= 0 else 'Payable'}*")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Party detail / contacts
# ---------------------------------------------------------------------------

def build_party_detail_xml(party_name: str, company: Optional[str]) -> str:
    spec = CollectionSpec(
        name="PartyDetail",
        type="Ledger",
        fetch=[
            "Name", "Parent", "Address.List", "StateName", "PinCode", "LedgerPhone",
            "LedgerContact", "Email", "LedGSTRegDetails.GSTIN",
        ],
        filters={"PartyNameFilter": equals_formula("Name", party_name)},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_party_detail(xml: str) -> PartyDetail:
    """Address and registration details; empty when the ledger is missing"""
    record = first_record(xml, "LEDGER")
    if record is None:
        return PartyDetail()

    # Several registration periods may be listed; the last full GSTIN wins
    gstin = ""
    for value in record.all_text("GSTIN"):
        if len(value) >= 15:
            gstin = value

    return PartyDetail(
        name=record.text("NAME") or record.name,
        address=record.all_text("ADDRESS"),
        gstin=gstin,
        state=record.text("STATENAME") or record.text("STATE"),
        phone=record.text("LEDGERPHONE"),
        email=record.text("EMAIL"),
    )


def build_party_contacts_xml(company: Optional[str], group: str = RECEIVABLE_GROUP) -> str:
    spec = CollectionSpec(
        name="PartyContacts",
        type="Ledger",
        child_of=group,
        fetch=["Name", "LedgerPhone", "LedgerContact", "Email", "LedgerMobile", "ClosingBalance"],
    )
    return xml_builder.build_collection(spec, company=company)


def parse_party_contacts(xml: str) -> Dict[str, PartyContact]:
    """Party name -> contact; mobile numbers take precedence over landlines"""
    contacts = {}
    for record in iter_records(xml, "LEDGER"):
        contacts[record.name] = PartyContact(
            name=record.name,
            phone=record.text("LEDGERMOBILE") or record.text("LEDGERPHONE"),
            email=record.text("EMAIL"),
            contact=record.text("LEDGERCONTACT"),
        )
    return contacts
