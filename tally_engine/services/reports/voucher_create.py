"""
Voucher Creation
Validation, import envelope and confirmation for new Sales, Purchase,
Receipt and Payment vouchers

Ledger entry signs follow Tally's convention (negative = debit):

    Sales     party -amount, sales ledger +amount
    Purchase  party +amount, purchase ledger -amount
    Receipt   cash -amount, party +amount
    Payment   party -amount, cash +amount

Inventory lines are only sent for Sales and Purchase.
"""

import re
from datetime import datetime
from typing import Any, List, Optional, Tuple

from ...models.reports import VoucherCreatedReport
from ...models.transaction import ImportResult, VoucherItem, VoucherRequest
from ...utils.constants import DEFAULT_CASH_LEDGER, DEFAULT_PURCHASE_LEDGER, DEFAULT_SALES_LEDGER, VOUCHER_CREATE_TYPES
from ...utils.formatters import inr
from ...utils.helpers import escape_xml, format_tally_date, parse_tally_amount, to_tally_date, today_str
from ..response_parser import parse_import_result
from ..xml_builder import xml_builder


IMPORT_FAILED = "Voucher creation failed. Check ledger names and amounts."

_NUMERIC = re.compile(r"^-?(?:\d[\d,]*)?\.?\d+$")


def item_number(value: Any) -> Optional[float]:
    """Quantity/rate as a float; None when the value is not numeric. Missing values count as zero"""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _NUMERIC.match(value.strip()):
        return parse_tally_amount(value.strip())
    return None


def build_items(raw_items: List[Any]) -> List[VoucherItem]:
    """Line items from loose input; unusable values become zero and are reported by validate_voucher"""
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            items.append(VoucherItem())
            continue
        amount = item_number(raw.get("amount")) if raw.get("amount") not in (None, "") else None
        items.append(VoucherItem(
            name=str(raw.get("name") or "").strip(),
            qty=item_number(raw.get("qty")) or 0.0,
            rate=item_number(raw.get("rate")) or 0.0,
            amount=amount,
        ))
    return items


def item_errors(index: int, raw: Any) -> List[str]:
    n = index + 1
    if not isinstance(raw, dict):
        return [f"Item {n}: expected a name, qty and rate."]
    errors = []
    if not str(raw.get("name") or "").strip():
        errors.append(f"Item {n}: name is required.")
    for field in ("qty", "rate"):
        value = item_number(raw.get(field))
        if value is None:
            errors.append(f"Item {n}: {field} must be a number.")
        elif value <= 0:
            errors.append(f"Item {n}: {field} must be positive.")
    return errors


def validate_voucher(request: VoucherRequest, raw_items: Optional[List[Any]] = None) -> List[str]:
    """Every problem with the request; empty when it can be sent.

    ``raw_items`` are the items as received, so non-numeric quantities and
    rates are reported instead of being read as zero.
    """
    errors = []
    if request.voucher_type not in VOUCHER_CREATE_TYPES:
        errors.append("Invalid voucher type. Use: Sales, Purchase, Receipt, or Payment.")
    if not request.party_name or not request.party_name.strip():
        errors.append("Party name is required.")
    if not request.amount or request.amount <= 0:
        errors.append("Amount must be a positive number.")
    if raw_items is None:
        raw_items = [item.model_dump() for item in request.items]
    for i, raw in enumerate(raw_items):
        errors.extend(item_errors(i, raw))
    return errors


def import_date(tally_date: str) -> str:
    """YYYYMMDD -> D-Mon-YYYY, the form Tally imports reliably"""
    parsed = datetime.strptime(tally_date, "%Y%m%d")
    return f"{parsed.day}-{parsed.strftime('%b')}-{parsed.year}"


def _number(value: float) -> str:
    return f"{value:.2f}"


def _ledger_entry(name: str, amount: float, is_party: Optional[bool]) -> str:
    party_flag = ""
    if is_party is not None:
        party_flag = f"<ISPARTYLEDGER>{'Yes' if is_party else 'No'}</ISPARTYLEDGER>"
    return (
        f"<ALLLEDGERENTRIES.LIST><LEDGERNAME>{escape_xml(name)}</LEDGERNAME>"
        f"<AMOUNT>{_number(amount)}</AMOUNT>{party_flag}</ALLLEDGERENTRIES.LIST>"
    )


def ledger_entries(request: VoucherRequest) -> List[Tuple[str, float, Optional[bool]]]:
    """(ledger, signed amount, is_party) rows for the request's voucher type"""
    amount = abs(request.amount or 0)
    party = request.party_name
    vch_type = request.voucher_type
    if vch_type == "Sales":
        return [(party, -amount, True), (request.sales_ledger or DEFAULT_SALES_LEDGER, amount, False)]
    if vch_type == "Purchase":
        return [(party, amount, True), (request.sales_ledger or DEFAULT_PURCHASE_LEDGER, -amount, False)]
    cash = request.cash_ledger or DEFAULT_CASH_LEDGER
    if vch_type == "Receipt":
        return [(cash, -amount, None), (party, amount, True)]
    if vch_type == "Payment":
        return [(party, -amount, True), (cash, amount, None)]
    return []


def build_create_voucher_xml(request: VoucherRequest, company: Optional[str]) -> str:
    vch_type = request.voucher_type
    tally_date = to_tally_date(request.date) or today_str()

    inventory = []
    if vch_type in ("Sales", "Purchase"):
        for item in request.items:
            amount = item.line_amount if vch_type == "Sales" else -item.line_amount
            inventory.append(
                f"<ALLINVENTORYENTRIES.LIST><STOCKITEMNAME>{escape_xml(item.name)}</STOCKITEMNAME>"
                f"<RATE>{_number(item.rate)}</RATE><AMOUNT>{_number(amount)}</AMOUNT>"
                f"<BILLEDQTY>{item.qty:g}</BILLEDQTY><ACTUALQTY>{item.qty:g}</ACTUALQTY>"
                f"</ALLINVENTORYENTRIES.LIST>"
            )
    ledgers = [_ledger_entry(*row) for row in ledger_entries(request)]

    voucher = (
        f'<VOUCHER VCHTYPE="{escape_xml(vch_type)}" ACTION="Create">'
        f"<DATE>{import_date(tally_date)}</DATE>"
        f"<VOUCHERTYPENAME>{escape_xml(vch_type)}</VOUCHERTYPENAME>"
        f"<PARTYLEDGERNAME>{escape_xml(request.party_name)}</PARTYLEDGERNAME>"
        f"<NARRATION>{escape_xml(request.narration)}</NARRATION>"
        f"{''.join(inventory)}{''.join(ledgers)}"
        f"</VOUCHER>"
    )
    return xml_builder.build_import(company, voucher)


def parse_create_voucher_response(xml: str) -> ImportResult:
    result = parse_import_result(xml)
    if not result.success:
        result.voucher_number = None
    return result


def failure_message(result: ImportResult) -> str:
    return result.line_error or IMPORT_FAILED


def voucher_created_report(request: VoucherRequest, result: ImportResult) -> VoucherCreatedReport:
    return VoucherCreatedReport(
        voucher_type=request.voucher_type,
        party_name=request.party_name,
        amount=request.amount or 0.0,
        date=to_tally_date(request.date) or today_str(),
        voucher_number=result.voucher_number,
    )


def format_voucher_confirmation(request: VoucherRequest, voucher_number: Optional[str] = None) -> str:
    lines = [
        f"✅ *{request.voucher_type} Voucher Created*",
        "",
        f"📅 Date: {format_tally_date(to_tally_date(request.date) or today_str())}",
        f"👤 Party: {request.party_name}",
        f"💰 Amount: ₹{inr(request.amount)}",
    ]
    if voucher_number:
        lines.append(f"🔢 Voucher No: {voucher_number}")
    if request.narration:
        lines.append(f"📝 Narration: {request.narration}")
    if request.items:
        lines.extend(["", "*Items:*"])
        for i, item in enumerate(request.items):
            lines.append(
                f"  {i + 1}. {item.name} — {item.qty:g} x ₹{inr(item.rate)} = ₹{inr(item.qty * item.rate)}"
            )
    return "\n".join(lines)
