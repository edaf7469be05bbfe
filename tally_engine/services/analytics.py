"""
Analytics Module
Derived report semantics Tally does not expose directly

AGEING:
------
Bills are aged by days since their due date (floored at 0) into four
buckets: 0-30, 31-60, 61-90 and 91+. Bills with no readable due date are
tallied separately; they count towards the outstanding total and the
per-party figures but sit in no bucket.

ORDERS:
------
Orders and invoices are totalled per party. A party is pending while
ordered minus invoiced stays above a small threshold that absorbs
floating point noise.

ACTIVITY:
--------
Ranking and inactivity work on flat ActivityEntry rows (name, date,
amount, qty) extracted from vouchers.

Every function here is pure and returns empty results for empty input.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from ..models.master import Bill
from ..models.reports import (
    AgeingBucket, AgeingReport, InactiveEntry, OverdueBill, OverdueParty,
    PartyAgeing, PartyTotal, PendingOrder, RankedEntry,
)
from ..models.transaction import ActivityEntry, Voucher
from ..utils.constants import AGEING_BUCKETS
from ..utils.helpers import date_to_tally, tally_date_to_date


def filter_by_window(vouchers: List[Voucher], from_date: Optional[str], to_date: Optional[str]) -> List[Voucher]:
    """Keep vouchers dated inside [from_date, to_date]; undated ones drop out once a bound is set"""
    if not from_date and not to_date:
        return list(vouchers)
    kept = []
    for voucher in vouchers:
        if not voucher.date:
            continue
        if from_date and voucher.date < from_date:
            continue
        if to_date and voucher.date > to_date:
            continue
        kept.append(voucher)
    return kept


def summarize_by_party(vouchers: List[Voucher]) -> List[PartyTotal]:
    """Absolute totals per party, largest first"""
    totals: Dict[str, PartyTotal] = {}
    for voucher in vouchers:
        party = voucher.party or "Unknown"
        entry = totals.setdefault(party, PartyTotal(name=party))
        entry.total += abs(voucher.amount)
        entry.count += 1
    return sorted(totals.values(), key=lambda e: e.total, reverse=True)


def summarize_by_type(vouchers: List[Voucher]) -> List[PartyTotal]:
    """Absolute totals per voucher type, in order of first appearance"""
    totals: Dict[str, PartyTotal] = {}
    for voucher in vouchers:
        vch_type = voucher.voucher_type or "Other"
        entry = totals.setdefault(vch_type, PartyTotal(name=vch_type))
        entry.total += abs(voucher.amount)
        entry.count += 1
    return list(totals.values())


# ---------------------------------------------------------------------------
# Ageing
# ---------------------------------------------------------------------------

def _bucket_for(days: int, buckets: List[AgeingBucket]) -> AgeingBucket:
    for bucket, (_, _, upper, _) in zip(buckets, AGEING_BUCKETS):
        if upper is None or days <= upper:
            return bucket
    return buckets[-1]


def age_bills(bills: List[Bill], today: Optional[date] = None, label: str = "") -> AgeingReport:
    """Partition non-zero bills into ageing buckets and aggregate per party"""
    today = today or date.today()
    buckets = [AgeingBucket(key=key, label=text, emoji=emoji) for key, text, _, emoji in AGEING_BUCKETS]
    parties: Dict[str, PartyAgeing] = {}
    undated_amount = 0.0
    undated_count = 0
    total = 0.0
    count = 0

    for bill in bills:
        if bill.closing_balance == 0:
            continue
        amount = abs(bill.closing_balance)
        total += amount
        count += 1

        due = tally_date_to_date(bill.due_date)
        if due is None:
            days = 0
            undated_amount += amount
            undated_count += 1
        else:
            days = max(0, (today - due).days)
            bucket = _bucket_for(days, buckets)
            bucket.amount += amount
            bucket.count += 1

        party = parties.setdefault(bill.parent, PartyAgeing(name=bill.parent))
        party.total += amount
        party.bills += 1
        party.oldest_days = max(party.oldest_days, days)

    ranked = sorted(parties.values(), key=lambda p: p.total, reverse=True)
    return AgeingReport(
        label=label,
        buckets=buckets,
        undated_amount=undated_amount,
        undated_count=undated_count,
        parties=ranked[:10],
        total_outstanding=total,
        total_bills=count,
        party_count=len(parties),
    )


def group_overdue_by_party(bills: List[Bill], today: Optional[date] = None) -> List[OverdueParty]:
    """Bills past their due date, grouped per owning ledger, largest due first"""
    today = today or date.today()
    parties: Dict[str, OverdueParty] = {}
    for bill in bills:
        if bill.closing_balance == 0:
            continue
        due = tally_date_to_date(bill.due_date)
        if due is None or due >= today:
            continue
        days = (today - due).days
        party = parties.setdefault(bill.parent, OverdueParty(name=bill.parent))
        party.bills.append(OverdueBill(
            name=bill.name,
            amount=bill.closing_balance,
            due_date=bill.due_date,
            days_overdue=days,
        ))
        party.total_due += abs(bill.closing_balance)
        party.max_days_overdue = max(party.max_days_overdue, days)
    return sorted(parties.values(), key=lambda p: p.total_due, reverse=True)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def reconcile_orders(orders: List[Voucher], invoices: List[Voucher], threshold: float = 1.0) -> List[PendingOrder]:
    """Per-party ordered vs invoiced amounts, keeping parties still pending"""
    invoiced: Dict[str, float] = {}
    for invoice in invoices:
        if invoice.party is None:
            continue
        invoiced[invoice.party] = invoiced.get(invoice.party, 0.0) + abs(invoice.amount)

    pending = []
    for party in summarize_by_party(orders):
        done = invoiced.get(party.name, 0.0)
        remaining = party.total - done
        if remaining > threshold:
            pending.append(PendingOrder(
                party=party.name,
                ordered=party.total,
                invoiced=done,
                pending=remaining,
                pct_done=(done / party.total * 100) if party.total > 0 else 0.0,
            ))
    return sorted(pending, key=lambda p: p.pending, reverse=True)


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------

def rank_top(activity: List[ActivityEntry], limit: int = 10) -> Tuple[List[RankedEntry], float, int]:
    """
    Top entities by absolute amount.

    Returns (top entries, grand total over all entities, entity count);
    each entry's pct is its share of the grand total.
    """
    totals: Dict[str, RankedEntry] = {}
    for row in activity:
        amount = abs(row.amount)
        if not row.name or amount == 0:
            continue
        entry = totals.setdefault(row.name, RankedEntry(name=row.name))
        entry.total += amount
        entry.qty += abs(row.qty)
        entry.count += 1

    entries = sorted(totals.values(), key=lambda e: e.total, reverse=True)
    grand_total = sum(e.total for e in entries)
    for entry in entries:
        entry.pct = (entry.total / grand_total * 100) if grand_total > 0 else 0.0
    return entries[:limit or 10], grand_total, len(entries)


def find_inactive(activity: List[ActivityEntry], days: int = 30, today: Optional[date] = None) -> Tuple[List[InactiveEntry], int]:
    """
    Entities whose latest activity is strictly before today - days.

    Returns (inactive entries oldest first, number of entities seen).
    """
    today = today or date.today()
    cutoff = date_to_tally(today - timedelta(days=days))
    latest: Dict[str, InactiveEntry] = {}
    for row in activity:
        if not row.name or not row.date:
            continue
        entry = latest.setdefault(row.name, InactiveEntry(name=row.name, last_date=""))
        if row.date > entry.last_date:
            entry.last_date = row.date
        entry.total += abs(row.amount)
        entry.count += 1

    inactive = []
    for entry in latest.values():
        if entry.last_date and entry.last_date < cutoff:
            last = tally_date_to_date(entry.last_date)
            entry.days_ago = (today - last).days if last else 0
            inactive.append(entry)
    inactive.sort(key=lambda e: e.last_date)
    return inactive, len(latest)
