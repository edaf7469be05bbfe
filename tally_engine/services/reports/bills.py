"""
Bill Reports
Pending bills of one party, bill-wise ageing and payment reminders
"""

from datetime import date
from typing import Dict, List, Optional

from ...models.master import Bill, PartyContact
from ...models.reports import AgeingReport, BillOutstandingReport, OverdueParty, RemindersReport
from ...utils.formatters import SEP, inr
from ...utils.helpers import format_tally_date, today_str
from ..analytics import group_overdue_by_party
from ..response_parser import iter_records
from ..xml_builder import NON_ZERO_BALANCE, CollectionSpec, xml_builder


BILL_FETCH = ["Name", "Parent", "ClosingBalance", "FinalDueDate"]


def parse_bills(xml: str) -> List[Bill]:
    """Every non-zero bill in the response"""
    bills = []
    for record in iter_records(xml, "BILL"):
        closing = record.number("CLOSINGBALANCE")
        if closing == 0:
            continue
        bills.append(Bill(
            name=record.name,
            parent=record.text("PARENT"),
            closing_balance=closing,
            due_date=record.text("FINALDUEDATE") or None,
        ))
    return bills


def _all_bills_xml(name: str, filter_name: str, company: Optional[str]) -> str:
    spec = CollectionSpec(
        name=name,
        type="Bill",
        belongs_to=True,
        fetch=BILL_FETCH,
        filters={filter_name: NON_ZERO_BALANCE},
    )
    return xml_builder.build_collection(spec, company=company)


# ---------------------------------------------------------------------------
# Bills of one ledger
# ---------------------------------------------------------------------------

def build_bill_outstanding_xml(ledger_name: str, company: Optional[str]) -> str:
    spec = CollectionSpec(
        name="BillList",
        type="Bill",
        child_of=ledger_name,
        fetch=BILL_FETCH,
        filters={"PendingBillFilter": NON_ZERO_BALANCE},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_bill_outstanding(xml: str, ledger_name: str) -> BillOutstandingReport:
    bills = sorted(parse_bills(xml), key=lambda b: abs(b.closing_balance), reverse=True)
    return BillOutstandingReport(
        ledger_name=ledger_name,
        bills=bills,
        total=sum(b.closing_balance for b in bills),
    )


def format_bill_outstanding(report: BillOutstandingReport, today: Optional[str] = None) -> str:
    if not report.bills:
        return f"No pending bills for *{report.ledger_name}*."

    today = today or today_str()
    label = "Payable" if report.total < 0 else "Receivable"
    lines = [f"📄 *Pending Bills: {report.ledger_name}*", f"{len(report.bills)} bills | {label}", ""]
    for i, bill in enumerate(report.bills):
        due = f" | Due: {format_tally_date(bill.due_date)}" if bill.due_date else ""
        overdue = " ⚠️ _overdue_" if bill.due_date and bill.due_date < today else ""
        lines.append(f"{i + 1}. {bill.name}")
        lines.append(f"   ₹{inr(bill.closing_balance)}{due}{overdue}")
    lines.extend(["", SEP, f"*Total: ₹{inr(report.total)} {label}*"])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Ageing
# ---------------------------------------------------------------------------

def build_ageing_bills_xml(company: Optional[str]) -> str:
    return _all_bills_xml("AgeingBills", "AgeingNonZeroFilter", company)


def format_ageing(report: AgeingReport) -> str:
    if report.total_bills == 0:
        return "No pending bills found for ageing analysis."

    total = report.total_outstanding
    lines = [f"📊 *Ageing Analysis — {report.label}*", "", "*By Age:*"]
    for bucket in report.buckets:
        if bucket.amount > 0:
            pct = bucket.amount / total * 100 if total > 0 else 0.0
            lines.append(f"  {bucket.emoji} {bucket.label}: ₹{inr(bucket.amount)} ({bucket.count} bills, {pct:.1f}%)")
    if report.undated_count:
        pct = report.undated_amount / total * 100 if total > 0 else 0.0
        lines.append(f"  ⚪ No due date: ₹{inr(report.undated_amount)} ({report.undated_count} bills, {pct:.1f}%)")
    lines.append("")

    if report.parties:
        lines.append("*Top Parties:*")
        for i, party in enumerate(report.parties):
            warning = " ⚠️" if party.oldest_days > 90 else ""
            lines.append(
                f"{i + 1}. {party.name}: ₹{inr(party.total)} "
                f"({party.bills} bills, oldest: {party.oldest_days}d{warning})"
            )
        lines.append("")

    lines.append(SEP)
    lines.append(
        f"*Total Outstanding: ₹{inr(total)}* "
        f"({report.total_bills} bills, {report.party_count} parties)"
    )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Payment reminders
# ---------------------------------------------------------------------------

def build_overdue_bills_xml(company: Optional[str]) -> str:
    return _all_bills_xml("OverdueBills", "OverdueNonZeroFilter", company)


def build_reminders(
    bills: List[Bill],
    contacts: Dict[str, PartyContact],
    company_name: str = "",
    today: Optional[date] = None,
) -> RemindersReport:
    """Overdue parties with whatever contact details Tally holds for them"""
    parties = group_overdue_by_party(bills, today)
    for party in parties:
        contact = contacts.get(party.name)
        if contact is not None:
            party.phone = contact.phone
            party.email = contact.email
            party.contact = contact.contact
    return RemindersReport(
        company_name=company_name,
        parties=parties,
        total_due=sum(p.total_due for p in parties),
    )


def format_reminder_summary(report: RemindersReport) -> str:
    if not report.parties:
        return "No overdue bills found. All payments are on time! ✅"

    count = len(report.parties)
    lines = ["📨 *Payment Reminders Ready*", f"{count} parties with overdue bills", ""]
    for i, party in enumerate(report.parties):
        phone = f"📱 {party.phone}" if party.phone else "❌ No phone"
        lines.append(f"{i + 1}. *{party.name}*")
        lines.append(
            f"   ₹{inr(party.total_due)} | {len(party.bills)} bills | "
            f"{party.max_days_overdue}d overdue | {phone}"
        )

    reachable = sum(1 for p in report.parties if p.can_send)
    lines.extend([
        "",
        SEP,
        f"*Total Overdue: ₹{inr(report.total_due)}*",
        f"{reachable} of {count} parties have phone numbers.",
        "",
        'Say *"send reminders"* to send WhatsApp messages to all parties with phone numbers.',
        'Or say *"send reminder to [party name]"* for a specific party.',
    ])
    return "\n".join(lines)


def reminder_message(company_name: str, party: OverdueParty) -> str:
    """Text of the reminder sent to one party"""
    lines = [
        f"Dear {party.name},",
        "",
        f"This is a friendly reminder from *{company_name}* regarding your outstanding payment.",
        "",
        f"*Outstanding Amount: ₹{inr(party.total_due)}*",
        "",
        "Pending bills:",
    ]
    for i, bill in enumerate(party.bills):
        lines.append(
            f"{i + 1}. {bill.name} — ₹{inr(bill.amount)} "
            f"(due: {format_tally_date(bill.due_date)}, {bill.days_overdue} days overdue)"
        )
    lines.extend([
        "",
        "Kindly arrange the payment at the earliest. If already paid, please ignore this message.",
        "",
        "Thank you,",
        f"*{company_name}*",
    ])
    return "\n".join(lines)
