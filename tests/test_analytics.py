from datetime import date

from tally_engine.models.master import Bill
from tally_engine.models.transaction import ActivityEntry, Voucher
from tally_engine.services.analytics import (
    age_bills, filter_by_window, find_inactive, group_overdue_by_party, rank_top, reconcile_orders,
    summarize_by_party, summarize_by_type,
)

TODAY = date(2025, 6, 30)


def test_filter_by_window_drops_undated_once_bounded():
    vouchers = [Voucher(date="20250601"), Voucher(date="20250615"), Voucher(date="")]
    assert len(filter_by_window(vouchers, None, None)) == 3
    assert [v.date for v in filter_by_window(vouchers, "20250610", None)] == ["20250615"]
    assert [v.date for v in filter_by_window(vouchers, None, "20250610")] == ["20250601"]


def test_summaries():
    vouchers = [
        Voucher(party="Meril", voucher_type="Sales", amount=-100),
        Voucher(party="Atul", voucher_type="Receipt", amount=500),
        Voucher(party="Meril", voucher_type="Sales", amount=-250),
        Voucher(voucher_type="Journal", amount=10),
    ]
    by_party = summarize_by_party(vouchers)
    assert [(p.name, p.total, p.count) for p in by_party] == [("Atul", 500, 1), ("Meril", 350, 2), ("Unknown", 10, 1)]
    assert [p.name for p in summarize_by_type(vouchers)] == ["Sales", "Receipt", "Journal"]


def test_age_bills_buckets_and_parties():
    bills = [
        Bill(name="INV-1", parent="Meril", closing_balance=-10000, due_date="20250620"),   # 10 days
        Bill(name="INV-2", parent="Meril", closing_balance=-5000, due_date="20250327"),    # 95 days
        Bill(name="INV-3", parent="Atul", closing_balance=-2000, due_date="20250710"),     # not yet due
        Bill(name="INV-4", parent="Atul", closing_balance=-1000),                          # undated
        Bill(name="INV-5", parent="Atul", closing_balance=0, due_date="20250101"),
    ]
    report = age_bills(bills, today=TODAY, label="Receivable")

    amounts = {b.key: (b.amount, b.count) for b in report.buckets}
    assert amounts["0-30"] == (12000, 2)
    assert amounts["31-60"] == (0, 0)
    assert amounts["90+"] == (5000, 1)
    assert (report.undated_amount, report.undated_count) == (1000, 1)
    assert report.total_outstanding == 18000
    assert report.total_bills == 4
    assert report.party_count == 2
    assert report.parties[0].name == "Meril"
    assert report.parties[0].oldest_days == 95


def test_age_bills_empty():
    report = age_bills([], today=TODAY)
    assert report.total_bills == 0
    assert all(b.amount == 0 for b in report.buckets)


def test_group_overdue_by_party_skips_current_and_undated():
    bills = [
        Bill(name="INV-1", parent="Meril", closing_balance=-10000, due_date="20250620"),
        Bill(name="INV-2", parent="Meril", closing_balance=-5000, due_date="20250327"),
        Bill(name="INV-3", parent="Atul", closing_balance=-20000, due_date="20250629"),
        Bill(name="INV-4", parent="Atul", closing_balance=-1000),
        Bill(name="INV-5", parent="Zed", closing_balance=-700, due_date="20250630"),
    ]
    parties = group_overdue_by_party(bills, today=TODAY)

    assert [p.name for p in parties] == ["Atul", "Meril"]
    assert parties[0].total_due == 20000
    assert parties[1].max_days_overdue == 95
    assert [b.days_overdue for b in parties[1].bills] == [10, 95]


def test_reconcile_orders():
    orders = [
        Voucher(party="Meril", amount=-10000),
        Voucher(party="Meril", amount=-5000),
        Voucher(party="Atul", amount=-3000),
    ]
    invoices = [Voucher(party="Meril", amount=-6000), Voucher(party="Atul", amount=-2999.5)]
    pending = reconcile_orders(orders, invoices)

    assert len(pending) == 1
    assert pending[0].party == "Meril"
    assert pending[0].pending == 9000
    assert round(pending[0].pct_done, 1) == 40.0


def test_rank_top_shares_and_limit():
    activity = [
        ActivityEntry(name="Meril", amount=-6000),
        ActivityEntry(name="Atul", amount=-3000),
        ActivityEntry(name="Meril", amount=-1000),
        ActivityEntry(name="Zed", amount=-0.0),
        ActivityEntry(name="Kiran", amount=-1000, qty=4),
    ]
    entries, grand_total, count = rank_top(activity, limit=2)

    assert [e.name for e in entries] == ["Meril", "Atul"]
    assert grand_total == 11000
    assert count == 3
    assert round(entries[0].pct, 2) == 63.64


def test_find_inactive():
    activity = [
        ActivityEntry(name="Meril", date="20250625", amount=100),
        ActivityEntry(name="Meril", date="20250301", amount=100),
        ActivityEntry(name="Atul", date="20250501", amount=50),
        ActivityEntry(name="Kiran", date="20250101", amount=10),
    ]
    inactive, seen = find_inactive(activity, days=30, today=TODAY)

    assert seen == 3
    assert [(e.name, e.days_ago) for e in inactive] == [("Kiran", 180), ("Atul", 60)]
