import pytest
from datetime import date, datetime, timezone

from tally_engine.models.master import Bill
from tally_engine.models.query import VolumeProfile
from tally_engine.services import dispatcher as dispatcher_module
from tally_engine.services.dispatcher import (
    NO_REPORT_TO_EXPORT, ActionDispatcher, SessionRegistry, execute, overdue_party, paginate,
)
from tally_engine.services.tally_manager import TallyManager
from tally_engine.utils.constants import TransportErrorKind
from tally_engine.utils.exceptions import TallyTransportError

from conftest import FakeTally, bill_xml, company_list_xml, envelope, ledger_xml, voucher_xml


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def refused() -> TallyTransportError:
    return TallyTransportError(TransportErrorKind.REFUSED, "Connection refused")


# ---------------------------------------------------------------------------
# Active company cache
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_active_company_is_cached_for_the_ttl(make_session):
    tally = FakeTally({"CompanyList": [company_list_xml("Alpha"), company_list_xml("Beta")]})
    clock = FakeClock()
    dispatcher = ActionDispatcher(make_session(tally, clock=clock))

    await dispatcher.execute("get_cash_bank_balance")
    clock.now += 59
    await dispatcher.execute("get_cash_bank_balance")
    assert tally.ids().count("CompanyList") == 1
    assert "<SVCURRENTCOMPANY>Alpha</SVCURRENTCOMPANY>" in tally.requests[-1]

    clock.now += 2
    await dispatcher.execute("get_cash_bank_balance")
    assert tally.ids().count("CompanyList") == 2
    assert "<SVCURRENTCOMPANY>Beta</SVCURRENTCOMPANY>" in tally.requests[-1]


@pytest.mark.asyncio
async def test_failed_probe_falls_back_to_configured_company(make_session):
    tally = FakeTally({"CompanyList": refused()})
    dispatcher = ActionDispatcher(make_session(tally, company_fallback="Fallback Co"))

    result = await dispatcher.execute("get_cash_bank_balance")

    assert result.success
    assert "<SVCURRENTCOMPANY>Fallback Co</SVCURRENTCOMPANY>" in tally.requests[-1]


@pytest.mark.asyncio
async def test_failed_probe_keeps_previous_company(make_session):
    tally = FakeTally({"CompanyList": [company_list_xml("Alpha"), refused()]})
    clock = FakeClock()
    session = make_session(tally, clock=clock)

    assert await session.active_company() == "Alpha"
    clock.now += 120
    assert await session.active_company() == "Alpha"


@pytest.mark.asyncio
async def test_invalidate_company_forces_a_probe(make_session):
    tally = FakeTally({"CompanyList": company_list_xml("Alpha")})
    session = make_session(tally)

    await session.active_company()
    session.invalidate_company()
    await session.active_company()

    assert tally.ids() == ["CompanyList", "CompanyList"]


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_action_is_rejected_without_probing(dispatcher, fake_tally):
    result = await dispatcher.execute("launch_rocket")

    assert not result.success
    assert result.message == "Unknown Tally action: launch_rocket"
    assert fake_tally.requests == []


@pytest.mark.asyncio
async def test_offline_actions_do_not_probe(dispatcher, fake_tally):
    result = await dispatcher.execute("list_companies")

    assert result.success
    assert result.message == "No company data folders found."
    assert fake_tally.requests == []


def test_actions_are_listed_sorted(dispatcher):
    assert dispatcher.actions == sorted(dispatcher.actions)
    assert "get_daybook" in dispatcher.actions
    assert "get_invoice_pdf" in dispatcher.actions


@pytest.mark.asyncio
async def test_unexpected_errors_become_failed_results(make_session):
    tally = FakeTally({"CompanyList": company_list_xml("Demo Traders"), "CashBankList": RuntimeError("boom")})
    result = await ActionDispatcher(make_session(tally)).execute("get_cash_bank_balance")

    assert not result.success
    assert result.message == "boom"


@pytest.mark.parametrize("action", ["get_ledger", "get_party_invoices", "get_bill_outstanding", "send_reminder"])
@pytest.mark.asyncio
async def test_party_actions_require_a_party_name(dispatcher, action):
    result = await dispatcher.execute(action, {"party_name": "  "})

    assert not result.success
    assert result.message.startswith("Please specify a party name")


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_connection_error_when_tally_is_not_running(make_session):
    tally = FakeTally({"CompanyList": refused(), "CashBankList": refused()})
    result = await ActionDispatcher(make_session(tally)).execute("get_cash_bank_balance")

    assert not result.success
    assert result.message.startswith("❌ Tally is not running.")
    assert "port 9000" in result.message


@pytest.mark.asyncio
async def test_connection_error_while_process_is_running(make_session, tmp_path):
    async def runner(*args, timeout=10.0):
        return 0, '"tally.exe","4242","Console","1","250,000 K"'

    tally = FakeTally({"CompanyList": refused(), "CashBankList": refused()})
    manager = TallyManager(tally, install_path=str(tmp_path / "none"), runner=runner, platform="win32")
    result = await ActionDispatcher(make_session(tally, manager=manager)).execute("get_cash_bank_balance")

    assert result.message.startswith("⚠️ Tally is running but HTTP server not responding on port 9000.")


@pytest.mark.asyncio
async def test_timeout_and_other_errors(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "CashBankList": TallyTransportError(TransportErrorKind.TIMEOUT, "timed out"),
        "StockList": TallyTransportError(TransportErrorKind.HTTP, "Tally returned HTTP 500"),
    })
    dispatcher = ActionDispatcher(make_session(tally))

    timeout = await dispatcher.execute("get_cash_bank_balance")
    assert timeout.message.startswith("⏳ Tally is taking too long to respond.")

    http = await dispatcher.execute("get_stock_summary")
    assert http.message == "Tally returned HTTP 500"


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

def render(item, index):
    return f"{index + 1}. {item}"


def test_paginate_numbers_globally_and_offers_next_page():
    result = paginate(None, list("abcde"), 2, render, "Header", page_size=2)
    lines = result.message.splitlines()

    assert lines[0] == "Header"
    assert lines[2:4] == ["3. c", "4. d"]
    assert "📄 Page 2/3 (5 total)" in lines
    assert lines[-1] == 'Say "more" or "page 3" to see next.'


def test_paginate_clamps_page_and_omits_footer_for_one_page():
    last = paginate(None, list("abcde"), 9, render, "Header", page_size=2)
    assert "📄 Page 3/3 (5 total)" in last.message
    assert "see next" not in last.message

    single = paginate(None, list("ab"), 1, render, "Header", page_size=2)
    assert single.message == "Header\n\n1. a\n2. b"


@pytest.mark.asyncio
async def test_outstanding_second_page(make_session):
    parties = [ledger_xml(f"Party {i:02d}", closing=-(i * 1000)) for i in range(1, 26)]
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "OutstandingLedgers": envelope(*parties),
    })
    session = make_session(tally)

    result = await ActionDispatcher(session).execute("get_outstanding", {"type": "receivable", "page": 2})

    assert result.success
    assert "21. Party 05 — ₹5,000.00" in result.message
    assert "25. Party 01 — ₹1,000.00" in result.message
    assert "📄 Page 2/2 (25 total)" in result.message
    assert result.data.group == "Sundry Debtors"
    assert len(result.data.entries) == 25
    assert session.last_report is result.data


# ---------------------------------------------------------------------------
# Ledgers and vouchers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_ledger_lists_sample_ledgers_when_not_found(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "LedgerList": envelope(ledger_xml("Meril"), ledger_xml("Atul Singh")),
    })
    result = await ActionDispatcher(make_session(tally)).execute("get_ledger", {"party_name": "Xyz"})

    assert not result.success
    assert result.message.startswith('Party "Xyz" not found. Here are some ledgers:\n1. Meril\n2. Atul Singh')


@pytest.mark.asyncio
async def test_get_ledger_not_found_without_ledgers(dispatcher):
    result = await dispatcher.execute("get_ledger", {"party_name": "Xyz"})
    assert result.message == 'Party "Xyz" not found in Tally.'


@pytest.mark.asyncio
async def test_get_ledger_offers_suggestions(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "LedgerSearch": envelope(ledger_xml("Meril Diagnostics"), ledger_xml("Meril Life Sciences")),
    })
    result = await ActionDispatcher(make_session(tally)).execute("get_ledger", {"party_name": "Meril"})

    assert result.success
    assert result.message.startswith('No exact match for "Meril". Did you mean:')
    assert result.data.kind == "suggestions"
    assert [c.name for c in result.data.candidates] == ["Meril Diagnostics", "Meril Life Sciences"]
    assert "LedgerVchList" not in tally.ids()


@pytest.mark.asyncio
async def test_get_vouchers_filters_window_and_caps_at_limit(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "VoucherList": envelope(
            voucher_xml("20250601", "Sales", "S-1", "Meril", 1000),
            voucher_xml("20250602", "Receipt", "R-1", "Meril", 500),
            voucher_xml("20250603", "Sales", "S-2", "Atul Singh", 700),
            voucher_xml("20250610", "Sales", "S-3", "Atul Singh", 900),
        ),
    })
    result = await ActionDispatcher(make_session(tally)).execute(
        "get_daybook", {"date_from": "2025-06-01", "date_to": "2025-06-03", "limit": 2},
    )

    assert result.success
    assert result.data.kind == "voucher_list"
    assert [v.number for v in result.data.vouchers] == ["S-1", "R-1"]


@pytest.mark.asyncio
async def test_chunked_daybook_keeps_each_voucher_once(make_session):
    # Same vouchers for every window, as when Tally ignores the date variables
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "VoucherList": envelope(
            voucher_xml("20250601", "Sales", "S-1", "Meril", 1000),
            voucher_xml("20250608", "Sales", "S-2", "Atul Singh", 700),
        ),
    })
    session = make_session(tally)
    session.profiler.save_profile(
        VolumeProfile(avg_per_day=100, last_probed=datetime.now(timezone.utc), company_name="Demo Traders")
    )

    result = await ActionDispatcher(session).execute("get_daybook", {"date_from": "2025-06-01", "date_to": "2025-06-12"})

    assert tally.ids().count("VoucherList") == 3
    assert [v.number for v in result.data.vouchers] == ["S-1", "S-2"]
    assert result.data.total_count == 2


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_export_without_a_report(dispatcher):
    result = await dispatcher.execute("export_excel")

    assert not result.success
    assert result.message == NO_REPORT_TO_EXPORT


@pytest.mark.asyncio
async def test_export_uses_the_last_report(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "OutstandingLedgers": envelope(ledger_xml("Meril", closing=-1000)),
    })
    session = make_session(tally)
    dispatcher = ActionDispatcher(session)
    report = (await dispatcher.execute("get_outstanding", {"type": "receivable"})).data

    result = await dispatcher.execute("export_excel", {"report_name": "Receivables!"})

    assert result.success
    assert result.message == "📊 Excel report ready: *Receivables.xlsx*"
    assert result.attachment.filename == "Receivables.xlsx"
    assert result.attachment.content[:2] == b"PK"
    assert session.last_report is report


@pytest.mark.asyncio
async def test_export_accepts_report_data_and_rejects_unsupported_kinds(dispatcher):
    exported = await dispatcher.execute("export_excel", {
        "_report_data": {"kind": "ledger_list", "ledgers": [{"name": "Cash", "parent": "Cash-in-Hand"}]},
    })
    assert exported.success
    assert exported.attachment.filename == "Report.xlsx"

    rejected = await dispatcher.execute("export_excel", {
        "_report_data": {"kind": "ledger_balance", "name": "Cash"},
    })
    assert not rejected.success
    assert rejected.message == "Could not convert this report to Excel. Try a different report."


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_send_reminder_builds_message_with_phone(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "LedgerSearch": envelope(ledger_xml("Meril")),
        "BillList": envelope(bill_xml("INV-7", "Meril", 12000, "20200101")),
        "PartyDetail": envelope(ledger_xml("Meril", ledgerphone="98200 00000")),
    })
    result = await ActionDispatcher(make_session(tally)).execute("send_reminder", {"party_name": "meril"})

    assert result.success
    assert result.message.startswith("📨 *Reminder for Meril:*")
    assert "friendly reminder from *Demo Traders*" in result.message
    assert "📱 Phone: 98200 00000" in result.message
    assert result.data.kind == "reminder"
    assert result.data.phone == "98200 00000"


@pytest.mark.asyncio
async def test_send_reminder_without_pending_bills(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "LedgerSearch": envelope(ledger_xml("Meril")),
    })
    result = await ActionDispatcher(make_session(tally)).execute("send_reminder", {"party_name": "Meril"})

    assert result.success
    assert result.message == "No pending bills for *Meril*. No reminder needed. ✅"
    assert "PartyDetail" not in tally.ids()


def test_overdue_party_uses_pending_bills_when_none_overdue():
    bills = [
        Bill(name="INV-1", parent="Meril", closing_balance=5000, due_date="20250710"),
        Bill(name="INV-2", parent="Meril", closing_balance=3000, due_date=None),
    ]
    party = overdue_party("Meril", bills, 8000, today=date(2025, 6, 30))

    assert [b.name for b in party.bills] == ["INV-1", "INV-2"]
    assert party.max_days_overdue == 0

    bills[0].due_date = "20250620"
    party = overdue_party("Meril", bills, 8000, today=date(2025, 6, 30))
    assert [(b.name, b.days_overdue) for b in party.bills] == [("INV-1", 10)]


# ---------------------------------------------------------------------------
# Voucher creation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_voucher_validation_stops_before_import(dispatcher, fake_tally):
    result = await dispatcher.execute("create_voucher", {"voucher_type": "Sales", "party_name": "Meril"})

    assert not result.success
    assert result.message.startswith("❌ Cannot create voucher:\n• ")
    assert "Vouchers" not in fake_tally.ids()


@pytest.mark.asyncio
async def test_create_voucher_reports_every_problem_at_once(dispatcher, fake_tally):
    result = await dispatcher.execute("create_voucher", {
        "voucher_type": "Bogus", "amount": -5, "items": [{"name": "Widget", "qty": "many", "rate": 5}],
    })

    assert not result.success
    assert result.message == (
        "❌ Cannot create voucher:\n"
        "• Invalid voucher type. Use: Sales, Purchase, Receipt, or Payment.\n"
        "• Party name is required.\n"
        "• Amount must be a positive number.\n"
        "• Item 1: qty must be a number."
    )
    assert "Vouchers" not in fake_tally.ids()


@pytest.mark.asyncio
async def test_create_voucher_resolves_party_and_confirms(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "LedgerSearch": envelope(ledger_xml("Meril Life")),
        "Vouchers": '<RESPONSE CREATED="1" ERRORS="0" VCHNO="R-9"/>',
    })
    result = await ActionDispatcher(make_session(tally)).execute("create_voucher", {
        "voucher_type": "Receipt", "party_name": "meril", "amount": 500, "date": "2025-06-05",
    })

    assert result.success
    assert "<PARTYLEDGERNAME>Meril Life</PARTYLEDGERNAME>" in tally.requests[-1]
    assert "🔢 Voucher No: R-9" in result.message
    assert result.data.kind == "voucher_created"
    assert result.data.voucher_number == "R-9"
    assert result.data.date == "20250605"


@pytest.mark.asyncio
async def test_create_voucher_reports_rejected_import(make_session):
    tally = FakeTally({
        "CompanyList": company_list_xml("Demo Traders"),
        "LedgerSearch": envelope(ledger_xml("Meril")),
        "Vouchers": '<RESPONSE CREATED="0" ERRORS="1"/>',
    })
    result = await ActionDispatcher(make_session(tally)).execute("create_voucher", {
        "voucher_type": "Receipt", "party_name": "Meril", "amount": 500,
    })

    assert not result.success
    assert result.message.startswith("❌ Voucher creation failed: ")


# ---------------------------------------------------------------------------
# Module-level entry point
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_execute_creates_one_session_per_port_and_company(monkeypatch):
    registry = SessionRegistry()
    monkeypatch.setattr(dispatcher_module, "sessions", registry)

    first = await execute("cli", "launch_rocket", {}, {"port": 9123})
    await execute("cli", "launch_rocket", {}, {"port": 9123})
    await execute("cli", "launch_rocket", {}, {"port": 9123, "companyName": "Demo Traders"})

    assert first.message == "Unknown Tally action: launch_rocket"
    assert len(registry) == 2
    assert registry.get(9123, "Demo Traders").company_fallback == "Demo Traders"
    assert registry.get(9123).port == 9123
