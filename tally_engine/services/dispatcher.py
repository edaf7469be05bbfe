"""
Action Dispatcher Module
========================
Routes named actions to the report pipelines of one Tally session.

SESSIONS:
--------
A TallySession owns everything tied to one Tally gateway (port): the
paced TallyService, volume profiler, entity resolver, process manager,
the active company cache and the last report produced (for export).
The SessionRegistry hands out one session per (port, company fallback).

ACTIVE COMPANY:
--------------
Reports run against the company Tally reports as active, cached for
``company_cache_ttl`` seconds (60 by default):
- refreshed by a status probe once the cached value is older than the TTL
- a failed probe keeps the previous value, or the configured fallback
- process/company actions (list_companies, tally_status, start_tally,
  open_company) never probe
- a successful open_company or restart_tally clears the cache

RESULTS:
-------
Every action returns a ReportResult. Long lists are paged (page_size per
page, header re-rendered, global numbering). Transport failures become
one of three explanations (not running / HTTP server down / busy); any
other error is passed through as its message.
"""

import math
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import TypeAdapter

from ..config import config
from ..models.master import Bill
from ..models.reports import (
    AgeingReport, OverdueBill, OverdueParty, ReminderReport, Report, SuggestionsReport, VoucherTypesReport,
)
from ..models.resolution import MultipleMatch, NoMatch
from ..models.response import Attachment, ReportResult
from ..models.transaction import VoucherRequest
from ..utils.constants import OFFLINE_ACTIONS, PAYABLE_GROUP, RECEIVABLE_GROUP, TransportErrorKind
from ..utils.decorators import classifies_transport_errors
from ..utils.exceptions import ReportError, TallyTransportError
from ..utils.helpers import month_start, tally_date_to_date, to_tally_date, today_str
from ..utils.logger import get_logger
from .analytics import age_bills, filter_by_window
from .entity_resolver import EntityResolver, format_suggestions
from .export_service import ExportService, export_service
from .invoice_service import InvoiceService, invoice_attachment, invoice_message
from .reports import activity, balances, bills, ledgers, orders, statements, voucher_create, vouchers
from .response_parser import parse_vouchers
from .tally_manager import TallyManager
from .tally_service import TallyService
from .volume_profiler import VolumeProfiler

logger = get_logger("dispatcher")

NO_REPORT_TO_EXPORT = (
    'No report data to export. First run a report (e.g. "outstanding receivable", '
    '"expenses this month"), then say "export excel" or "download excel".'
)

_report_adapter = TypeAdapter(Report)


# ---------------------------------------------------------------------------
# Parameter helpers
# ---------------------------------------------------------------------------

def param_text(params: Dict[str, Any], key: str) -> Optional[str]:
    """Non-empty string parameter, None otherwise"""
    value = params.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def param_int(params: Dict[str, Any], key: str, default: int) -> int:
    value = params.get(key)
    if isinstance(value, bool):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed or default


def param_float(params: Dict[str, Any], key: str) -> float:
    try:
        return float(params.get(key) or 0)
    except (TypeError, ValueError):
        return 0.0


def date_window(params: Dict[str, Any], drop_inverted: bool = True) -> Tuple[Optional[str], Optional[str]]:
    """date_from/date_to as YYYYMMDD; an inverted window is dropped entirely"""
    from_date = to_tally_date(params.get("date_from"))
    to_date = to_tally_date(params.get("date_to"))
    if drop_inverted and from_date and to_date and from_date > to_date:
        logger.debug(f"Ignoring inverted window {from_date}..{to_date}")
        return None, None
    return from_date, to_date


def paginate(
    data: Any,
    items: List[Any],
    page: int,
    render_line: Callable[[Any, int], str],
    header: str,
    page_size: Optional[int] = None,
) -> ReportResult:
    """One page of a list report; ``data`` keeps the full report"""
    page_size = page_size or config.report.page_size
    total_pages = math.ceil(len(items) / page_size)
    p = max(1, min(page or 1, total_pages))
    start = (p - 1) * page_size

    lines = [header, ""]
    for i, item in enumerate(items[start:start + page_size]):
        lines.append(render_line(item, start + i))

    if total_pages > 1:
        lines.extend(["", f"📄 Page {p}/{total_pages} ({len(items)} total)"])
        if p < total_pages:
            lines.append(f'Say "more" or "page {p + 1}" to see next.')
    return ReportResult.ok("\n".join(lines), data=data)


def suggestions_result(resolution: MultipleMatch, query: str) -> ReportResult:
    return ReportResult.ok(
        format_suggestions(resolution.candidates, query),
        data=SuggestionsReport(query=query, candidates=resolution.candidates),
    )


def not_found(party_name: str) -> ReportResult:
    return ReportResult.fail(f'Party "{party_name}" not found in Tally.')


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

class TallySession:
    """Adapter state for one Tally gateway"""

    def __init__(
        self,
        port: Optional[int] = None,
        company_fallback: Optional[str] = None,
        tally: Optional[TallyService] = None,
        manager: Optional[TallyManager] = None,
        profiler: Optional[VolumeProfiler] = None,
        exporter: Optional[ExportService] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tally = tally or TallyService(port=port)
        self.port = port or self.tally.port
        self.company_fallback = company_fallback or None
        self.profiler = profiler or VolumeProfiler(self.tally)
        self.resolver = EntityResolver(self.tally)
        self.manager = manager or TallyManager(self.tally)
        self.invoices = InvoiceService(self.tally)
        self.exporter = exporter or export_service
        self._clock = clock
        self._company: Optional[str] = None
        self._company_at: Optional[float] = None
        self.last_report: Optional[Any] = None

    async def active_company(self) -> Optional[str]:
        """Cached active company, re-probed once older than the TTL"""
        now = self._clock()
        expired = self._company_at is None or now - self._company_at > config.report.company_cache_ttl
        if self._company is None or expired:
            status = await self.tally.check_status()
            if status["responding"] and status["active_company"]:
                if status["active_company"] != self._company:
                    logger.info(f"Active company on port {self.port}: {status['active_company']}")
                self._company = status["active_company"]
                self._company_at = now
        return self._company or self.company_fallback

    def invalidate_company(self) -> None:
        self._company = None
        self._company_at = None


class SessionRegistry:
    """One TallySession per (port, company fallback)"""

    def __init__(self):
        self._sessions: Dict[Tuple[int, Optional[str]], TallySession] = {}

    def get(self, port: Optional[int] = None, company: Optional[str] = None) -> TallySession:
        key = (port or config.tally.port, company or None)
        session = self._sessions.get(key)
        if session is None:
            session = TallySession(port=key[0], company_fallback=key[1])
            self._sessions[key] = session
            logger.debug(f"Created Tally session for port {key[0]}")
        return session

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class ActionDispatcher:
    """Executes named actions against one session"""

    def __init__(self, session: TallySession):
        self.session = session
        self.tally = session.tally
        self.handlers: Dict[str, Callable] = {
            "get_ledger": self.get_ledger,
            "get_vouchers": self.get_vouchers,
            "get_daybook": self.get_vouchers,
            "list_ledgers": self.list_ledgers,
            "get_party_gstin": self.get_party_gstin,
            "get_party_balance": self.get_party_balance,
            "get_sales_report": self.get_sales_report,
            "get_purchase_report": self.get_purchase_report,
            "get_outstanding": self.get_outstanding,
            "get_cash_bank_balance": self.get_cash_bank_balance,
            "get_profit_loss": self.get_profit_loss,
            "get_expense_report": self.get_expense_report,
            "get_stock_summary": self.get_stock_summary,
            "get_gst_summary": self.get_gst_summary,
            "get_party_invoices": self.get_party_invoices,
            "get_invoice_pdf": self.get_invoice_document,
            "get_invoice_document": self.get_invoice_document,
            "get_bill_outstanding": self.get_bill_outstanding,
            "tally_status": self.tally_status,
            "list_companies": self.list_companies,
            "restart_tally": self.restart_tally,
            "start_tally": self.start_tally,
            "open_company": self.open_company,
            "get_top_customers": self.get_top,
            "get_top_suppliers": self.get_top,
            "get_top_items": self.get_top,
            "get_trial_balance": self.get_trial_balance,
            "get_balance_sheet": self.get_balance_sheet,
            "get_ageing_analysis": self.get_ageing_analysis,
            "get_inactive_customers": self.get_inactive,
            "get_inactive_suppliers": self.get_inactive,
            "get_inactive_items": self.get_inactive,
            "export_excel": self.export_excel,
            "get_sales_orders": self.get_orders,
            "get_purchase_orders": self.get_orders,
            "get_pending_orders": self.get_pending_orders,
            "get_payment_reminders": self.get_payment_reminders,
            "send_reminder": self.send_reminder,
            "create_voucher": self.create_voucher,
        }

    @property
    def actions(self) -> List[str]:
        return sorted(self.handlers)

    async def execute(self, action: str, params: Optional[Dict[str, Any]] = None) -> ReportResult:
        """Run one action; never raises"""
        params = params or {}
        handler = self.handlers.get(action)
        if handler is None:
            logger.warning(f"Unknown action requested: {action}")
            return ReportResult.fail(f"Unknown Tally action: {action}")

        logger.info(f"Executing {action} on port {self.session.port}")
        try:
            if action in OFFLINE_ACTIONS:
                company = self.session.company_fallback
            else:
                company = await self.session.active_company()
            result = await handler(action, params, company)
        except ReportError as e:
            return ReportResult.fail(str(e))
        except Exception as e:
            logger.exception(f"Action {action} failed: {e}")
            return ReportResult.fail(str(e) or e.__class__.__name__)

        if result.success and result.data is not None and action != "export_excel":
            self.session.last_report = result.data
        return result

    async def classify_transport_error(self, error: TallyTransportError) -> ReportResult:
        port = self.session.port
        if error.is_connection_error:
            process = await self.session.manager.is_running()
            if not process.running:
                return ReportResult.fail(
                    f'❌ Tally is not running. Say "start tally" to launch it, or open TallyPrime '
                    f"manually and enable HTTP server on port {port}."
                )
            return ReportResult.fail(
                f'⚠️ Tally is running but HTTP server not responding on port {port}. Say "restart tally" to fix it.'
            )
        if error.kind == TransportErrorKind.TIMEOUT:
            return ReportResult.fail(
                '⏳ Tally is taking too long to respond. It might be busy. Try again or say "restart tally".'
            )
        return ReportResult.fail(error.message)

    async def _send(self, xml: str) -> str:
        return await self.tally.send_xml(xml)

    # ------------------------------------------------------------------
    # Ledgers
    # ------------------------------------------------------------------

    @classifies_transport_errors
    async def get_ledger(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        party_name = param_text(params, "party_name")
        if not party_name:
            return ReportResult.fail(
                'Please specify a party name. Example: "Ledger for Meril" or "Statement of Atul Singh"'
            )

        resolution = await self.session.resolver.resolve(party_name, company)
        if isinstance(resolution, NoMatch):
            sample = ledgers.parse_ledgers(await self._send(ledgers.build_list_ledgers_xml(None, company)))
            if sample:
                names = "\n".join(f"{i + 1}. {l.name}" for i, l in enumerate(sample[:10]))
                return ReportResult.fail(
                    f'Party "{party_name}" not found. Here are some ledgers:\n{names}\n\nReply with the exact name.'
                )
            return not_found(party_name)
        if isinstance(resolution, MultipleMatch):
            return suggestions_result(resolution, party_name)

        from_date, to_date = date_window(params, drop_inverted=False)
        response = await self._send(ledgers.build_ledger_statement_xml(resolution.name, company, from_date, to_date))
        report = ledgers.parse_ledger_statement(response, resolution.name, config.report.statement_limit)
        return ReportResult.ok(ledgers.format_ledger_statement(report), data=report)

    @classifies_transport_errors
    async def list_ledgers(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        group_filter = param_text(params, "group_filter")
        response = await self._send(ledgers.build_list_ledgers_xml(group_filter, company))
        report = ledgers.parse_list_ledgers(response, group_filter)
        if not report.ledgers:
            return ReportResult.ok(ledgers.format_ledger_list(report), data=report)
        return paginate(
            report, report.ledgers, param_int(params, "page", 1),
            ledgers.format_ledger_list_line, ledgers.format_ledger_list_header(report),
        )

    @classifies_transport_errors
    async def get_party_gstin(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        party_name = param_text(params, "party_name")
        if not party_name:
            return ReportResult.fail('Please specify a party name. Example: "What is the GSTIN for ABC Company?"')

        resolution = await self.session.resolver.resolve(party_name, company)
        if isinstance(resolution, NoMatch):
            return not_found(party_name)
        if isinstance(resolution, MultipleMatch):
            return suggestions_result(resolution, party_name)

        report = ledgers.parse_ledger_master(await self._send(ledgers.build_ledger_master_xml(resolution.name, company)))
        return ReportResult.ok(ledgers.format_ledger_master(report), data=report)

    @classifies_transport_errors
    async def get_party_balance(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        party_name = param_text(params, "party_name")
        if not party_name:
            return ReportResult.fail("Please specify a party name.")

        resolution = await self.session.resolver.resolve(party_name, company)
        if isinstance(resolution, NoMatch):
            return not_found(party_name)
        if isinstance(resolution, MultipleMatch):
            return suggestions_result(resolution, party_name)

        report = ledgers.parse_ledger_balance(await self._send(ledgers.build_ledger_balance_xml(resolution.name, company)))
        return ReportResult.ok(ledgers.format_ledger_balance(report), data=report)

    # ------------------------------------------------------------------
    # Vouchers
    # ------------------------------------------------------------------

    @classifies_transport_errors
    async def get_vouchers(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        from_date, to_date = date_window(params, drop_inverted=False)
        voucher_type = param_text(params, "voucher_type")
        limit = param_int(params, "limit", config.report.default_voucher_limit)
        if not from_date and not to_date:
            from_date = to_date = today_str()
        else:
            to_date = to_date or from_date

        windows = await self.session.profiler.plan_windows(company, from_date, to_date)
        collected = []
        for window in windows:
            response = await self._send(vouchers.build_vouchers_xml(company, window.from_date, window.to_date, voucher_type))
            # Tally may ignore SVFROMDATE/SVTODATE; keep only this window's vouchers
            collected.extend(filter_by_window(parse_vouchers(response), window.from_date, window.to_date))
            if limit and len(collected) >= limit:
                break

        report = vouchers.voucher_list_report(collected, limit, from_date, to_date)
        return ReportResult.ok(vouchers.format_voucher_list(report), data=report)

    async def _sales_purchase(self, report_type: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        from_date, to_date = date_window(params, drop_inverted=False)
        if not from_date and not to_date:
            actual_from, actual_to = month_start(), today_str()
        else:
            actual_from, actual_to = from_date, to_date or from_date
        response = await self._send(vouchers.build_sales_purchase_xml(company, report_type, from_date, to_date))
        report = vouchers.parse_sales_purchase(response, report_type, actual_from, actual_to)
        return ReportResult.ok(vouchers.format_sales_purchase(report), data=report)

    @classifies_transport_errors
    async def get_sales_report(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        report_type = "purchase" if "purchase" in (param_text(params, "type") or "").lower() else "sales"
        return await self._sales_purchase(report_type, params, company)

    @classifies_transport_errors
    async def get_purchase_report(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        return await self._sales_purchase("purchase", params, company)

    @classifies_transport_errors
    async def get_party_invoices(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        party_name = param_text(params, "party_name")
        if not party_name:
            return ReportResult.fail(
                'Please specify a party name. Example: "Invoices for Meril" or "Bills of ABC Company"'
            )
        from_date, to_date = date_window(params)
        voucher_type = param_text(params, "voucher_type") or "Sales"

        resolution = await self.session.resolver.resolve(party_name, company)
        if isinstance(resolution, NoMatch):
            return not_found(party_name)
        if isinstance(resolution, MultipleMatch):
            return suggestions_result(resolution, party_name)

        response = await self._send(
            vouchers.build_party_invoices_xml(resolution.name, company, from_date, to_date, voucher_type)
        )
        report = vouchers.parse_party_invoices(response, resolution.name, from_date, to_date, voucher_type)
        if not report.invoices:
            return ReportResult.ok(vouchers.format_party_invoices(report), data=report)
        return paginate(
            report, report.invoices, param_int(params, "page", 1),
            vouchers.format_party_invoice_line, vouchers.format_party_invoices_header(report),
        )

    @classifies_transport_errors
    async def get_invoice_document(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        invoice_number = param_text(params, "invoice_number")
        if not invoice_number:
            return ReportResult.fail(
                'Please specify an invoice number. Example: "Send invoice MB-25-26-001" or "PDF of invoice INV-100"'
            )
        voucher_type = param_text(params, "voucher_type") or "Sales"

        report = await self.session.invoices.fetch(invoice_number, company, voucher_type)
        if report is None:
            return ReportResult.fail(f'Invoice "{invoice_number}" not found in Tally.')
        return ReportResult.ok(invoice_message(report.voucher), data=report, attachment=invoice_attachment(report))

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    @classifies_transport_errors
    async def get_outstanding(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        kind = (param_text(params, "type") or "payable").lower()
        group = RECEIVABLE_GROUP if "receiv" in kind or "debtor" in kind else PAYABLE_GROUP
        report = balances.parse_outstanding(await self._send(balances.build_outstanding_xml(group, company)), group)
        if not report.entries:
            return ReportResult.ok(balances.format_outstanding(report), data=report)
        return paginate(
            report, report.entries, param_int(params, "page", 1),
            balances.format_outstanding_line, balances.format_outstanding_header(report),
        )

    @classifies_transport_errors
    async def get_cash_bank_balance(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        report = balances.parse_cash_bank(await self._send(balances.build_cash_bank_xml(company)))
        return ReportResult.ok(balances.format_cash_bank(report), data=report)

    @classifies_transport_errors
    async def get_expense_report(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        from_date, to_date = date_window(params)
        response = await self._send(balances.build_expense_xml(company, from_date, to_date))
        report = balances.parse_expense(response, from_date, to_date)
        if not report.entries:
            return ReportResult.ok(balances.format_expense(report), data=report)
        return paginate(
            report, report.entries, param_int(params, "page", 1),
            balances.format_expense_line, balances.format_expense_header(report),
        )

    @classifies_transport_errors
    async def get_stock_summary(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        item_name = param_text(params, "item_name")
        report = balances.parse_stock(await self._send(balances.build_stock_xml(company, item_name)))
        if not report.items:
            return ReportResult.ok(balances.format_stock(report), data=report)
        return paginate(
            report, report.items, param_int(params, "page", 1),
            balances.format_stock_line, balances.format_stock_header(report),
        )

    @classifies_transport_errors
    async def get_gst_summary(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        from_date, to_date = date_window(params)
        report = balances.parse_gst(await self._send(balances.build_gst_xml(company, from_date, to_date)), from_date, to_date)
        return ReportResult.ok(balances.format_gst(report), data=report)

    @classifies_transport_errors
    async def get_bill_outstanding(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        party_name = param_text(params, "party_name")
        if not party_name:
            return ReportResult.fail('Please specify a party name. Example: "Pending bills for Meril"')

        resolution = await self.session.resolver.resolve(party_name, company)
        if isinstance(resolution, NoMatch):
            return not_found(party_name)
        if isinstance(resolution, MultipleMatch):
            return suggestions_result(resolution, party_name)

        response = await self._send(bills.build_bill_outstanding_xml(resolution.name, company))
        report = bills.parse_bill_outstanding(response, resolution.name)
        return ReportResult.ok(bills.format_bill_outstanding(report), data=report)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    @classifies_transport_errors
    async def get_profit_loss(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        from_date, to_date = date_window(params)
        response = await self._send(statements.build_profit_loss_xml(company, from_date, to_date))
        report = statements.parse_profit_loss(response, from_date, to_date)
        return ReportResult.ok(statements.format_profit_loss(report), data=report)

    @classifies_transport_errors
    async def get_trial_balance(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        from_date, to_date = date_window(params)
        response = await self._send(statements.build_trial_balance_xml(company, from_date, to_date))
        report = statements.parse_trial_balance(response, from_date, to_date)
        return ReportResult.ok(statements.format_trial_balance(report), data=report)

    @classifies_transport_errors
    async def get_balance_sheet(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        from_date, to_date = date_window(params)
        response = await self._send(statements.build_balance_sheet_xml(company, from_date, to_date))
        report = statements.parse_balance_sheet(response, to_date)
        return ReportResult.ok(statements.format_balance_sheet(report), data=report)

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    @classifies_transport_errors
    async def get_top(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        purchase = action == "get_top_suppliers" or "purchase" in (param_text(params, "type") or "").lower()
        report_type = "purchase" if purchase else "sales"
        entity = activity.ITEMS if action == "get_top_items" else activity.PARTIES
        from_date, to_date = date_window(params)
        to_date = to_date or from_date
        limit = param_int(params, "limit", config.report.top_limit)

        response = await self._send(activity.build_top_xml(company, report_type))
        report = activity.parse_top(response, entity, report_type, limit, from_date, to_date)
        return ReportResult.ok(activity.format_top(report), data=report)

    @classifies_transport_errors
    async def get_inactive(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        if action == "get_inactive_items":
            purchase = "purchase" in (param_text(params, "type") or "").lower()
            entity = activity.ITEMS
        else:
            purchase = action == "get_inactive_suppliers"
            entity = activity.PARTIES
        report_type = "purchase" if purchase else "sales"
        days = param_int(params, "days", config.report.inactive_days)

        response = await self._send(activity.build_inactive_xml(company, report_type))
        report = activity.parse_inactive(response, entity, report_type, days)
        return ReportResult.ok(activity.format_inactive(report), data=report)

    @classifies_transport_errors
    async def get_ageing_analysis(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        kind = (param_text(params, "type") or "receivable").lower()
        group = PAYABLE_GROUP if "payab" in kind or "creditor" in kind else RECEIVABLE_GROUP

        members = balances.parse_outstanding(await self._send(balances.build_outstanding_xml(group, company)), group)
        names = {ledger.name for ledger in members.entries}
        all_bills = bills.parse_bills(await self._send(bills.build_ageing_bills_xml(company)))
        report: AgeingReport = age_bills(
            [bill for bill in all_bills if bill.parent in names],
            label=balances.outstanding_label(group),
        )
        return ReportResult.ok(bills.format_ageing(report), data=report)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def _voucher_types_hint(self, requested: str, company: Optional[str], pending: bool) -> Optional[ReportResult]:
        """Offer the voucher types in use when an order type has no vouchers"""
        counts = vouchers.parse_voucher_type_counts(await self._send(vouchers.build_voucher_type_counts_xml(company)))
        if not counts:
            return None
        report = VoucherTypesReport(requested=requested, types=counts)
        return ReportResult.ok(vouchers.format_voucher_types(report, pending=pending), data=report)

    @classifies_transport_errors
    async def get_orders(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        order_type = param_text(params, "voucher_type") or ("purchase" if action == "get_purchase_orders" else "sales")
        from_date, to_date = date_window(params)

        report = orders.parse_orders(await self._send(orders.build_orders_xml(company, order_type)), order_type, from_date, to_date)
        if not report.orders:
            hint = await self._voucher_types_hint(orders.order_voucher_type(order_type), company, pending=False)
            if hint is not None:
                return hint
        return ReportResult.ok(orders.format_orders(report), data=report)

    @classifies_transport_errors
    async def get_pending_orders(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        order_type = param_text(params, "voucher_type")
        if not order_type:
            order_type = "purchase" if "purchase" in (param_text(params, "type") or "").lower() else "sales"
        from_date, to_date = date_window(params)

        order_report = orders.parse_orders(
            await self._send(orders.build_orders_xml(company, order_type)), order_type, from_date, to_date
        )
        if not order_report.orders:
            hint = await self._voucher_types_hint(orders.order_voucher_type(order_type), company, pending=True)
            if hint is not None:
                return hint
            return ReportResult.ok(orders.format_orders(order_report), data=order_report)

        invoices_xml = await self._send(orders.build_fulfillment_xml(company, order_type))
        report = orders.parse_pending_orders(order_report, invoices_xml, order_type, from_date, to_date)
        return ReportResult.ok(orders.format_pending_orders(report), data=report)

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    @classifies_transport_errors
    async def get_payment_reminders(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        overdue = bills.parse_bills(await self._send(bills.build_overdue_bills_xml(company)))
        contacts = ledgers.parse_party_contacts(await self._send(ledgers.build_party_contacts_xml(company)))
        report = bills.build_reminders(overdue, contacts, company or "")
        return ReportResult.ok(bills.format_reminder_summary(report), data=report)

    @classifies_transport_errors
    async def send_reminder(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        party_name = param_text(params, "party_name")
        if not party_name:
            return ReportResult.fail('Please specify a party name. Example: "send reminder to Meril"')

        resolution = await self.session.resolver.resolve(party_name, company)
        if isinstance(resolution, NoMatch):
            return not_found(party_name)
        if isinstance(resolution, MultipleMatch):
            return suggestions_result(resolution, party_name)

        bill_report = bills.parse_bill_outstanding(
            await self._send(bills.build_bill_outstanding_xml(resolution.name, company)), resolution.name
        )
        if not bill_report.bills:
            return ReportResult.ok(f"No pending bills for *{resolution.name}*. No reminder needed. ✅")

        detail = ledgers.parse_party_detail(await self._send(ledgers.build_party_detail_xml(resolution.name, company)))
        party = overdue_party(resolution.name, bill_report.bills, bill_report.total)
        text = bills.reminder_message(company or "Accounts", party)
        phone_line = f"📱 Phone: {detail.phone}" if detail.phone else "❌ No phone number in Tally"
        return ReportResult.ok(
            f"📨 *Reminder for {resolution.name}:*\n\n{text}\n\n{phone_line}",
            data=ReminderReport(party_name=resolution.name, message=text, phone=detail.phone, email=detail.email),
        )

    # ------------------------------------------------------------------
    # Voucher creation
    # ------------------------------------------------------------------

    @classifies_transport_errors
    async def create_voucher(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        items = raw_items(params)
        request = voucher_request(params)
        errors = voucher_create.validate_voucher(request, items)
        if errors:
            logger.warning(f"Rejected voucher request: {errors}")
            return ReportResult.fail("❌ Cannot create voucher:\n" + "\n".join(f"• {e}" for e in errors))

        resolution = await self.session.resolver.resolve(request.party_name, company)
        if isinstance(resolution, NoMatch):
            return ReportResult.fail(
                f'Party "{request.party_name}" not found in Tally. The party ledger must exist in Tally first.'
            )
        if isinstance(resolution, MultipleMatch):
            return suggestions_result(resolution, request.party_name)
        request.party_name = resolution.name

        response = await self._send(voucher_create.build_create_voucher_xml(request, company))
        result = voucher_create.parse_create_voucher_response(response)
        if not result.success:
            logger.error(f"Voucher import rejected: created={result.created} errors={result.errors} {result.line_error or ''}")
            return ReportResult.fail(f"❌ Voucher creation failed: {voucher_create.failure_message(result)}")

        logger.info(f"Created {request.voucher_type} voucher {result.voucher_number or ''} for {request.party_name}")
        return ReportResult.ok(
            voucher_create.format_voucher_confirmation(request, result.voucher_number),
            data=voucher_create.voucher_created_report(request, result),
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_excel(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        report = params.get("_report_data") or self.session.last_report
        report_name = param_text(params, "report_name") or "Report"
        if report is None:
            return ReportResult.fail(NO_REPORT_TO_EXPORT)

        try:
            if isinstance(report, dict):
                report = _report_adapter.validate_python(report)
            export = self.session.exporter.report_to_excel(report_name, report)
        except Exception as e:
            logger.exception(f"Excel export failed: {e}")
            return ReportResult.fail(f"Excel export failed: {e}")

        if export is None:
            return ReportResult.fail("Could not convert this report to Excel. Try a different report.")
        return ReportResult.ok(
            f"📊 Excel report ready: *{export.filename}*",
            data=report,
            attachment=Attachment(
                filename=export.filename,
                content=export.content,
                caption=report_name,
                media_type=export.media_type,
            ),
        )

    # ------------------------------------------------------------------
    # Process / company management
    # ------------------------------------------------------------------

    @classifies_transport_errors
    async def tally_status(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        return await self.session.manager.full_status()

    async def list_companies(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        return self.session.manager.list_companies()

    async def restart_tally(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        try:
            result = await self.session.manager.restart()
        except Exception as e:
            logger.exception(f"Restart failed: {e}")
            return ReportResult.fail(f"Failed to restart Tally: {e}")
        if result.success:
            self.session.invalidate_company()
        return result

    async def start_tally(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        try:
            return await self.session.manager.start()
        except Exception as e:
            logger.exception(f"Start failed: {e}")
            return ReportResult.fail(f"Failed to start Tally: {e}")

    async def open_company(self, action: str, params: Dict[str, Any], company: Optional[str]) -> ReportResult:
        query = param_text(params, "company_name")
        if not query:
            return self.session.manager.company_picker()
        try:
            result = await self.session.manager.open_company(query)
        except Exception as e:
            logger.exception(f"Open company failed: {e}")
            return ReportResult.fail(f"Failed to open company: {e}")
        if result.success:
            self.session.invalidate_company()
        return result


# ---------------------------------------------------------------------------
# Request shaping
# ---------------------------------------------------------------------------

def raw_items(params: Dict[str, Any]) -> List[Any]:
    """Items parameter as a list, whatever shape it arrived in"""
    items = params.get("items") or []
    return items if isinstance(items, list) else [items]


def voucher_request(params: Dict[str, Any]) -> VoucherRequest:
    """VoucherRequest from loose action parameters"""
    return VoucherRequest(
        voucher_type=param_text(params, "voucher_type") or param_text(params, "type") or "Sales",
        party_name=param_text(params, "party_name") or "",
        amount=param_float(params, "amount"),
        date=param_text(params, "date"),
        narration=param_text(params, "narration") or "",
        items=voucher_create.build_items(raw_items(params)),
        sales_ledger=param_text(params, "ledger"),
        cash_ledger=param_text(params, "cash_ledger"),
    )


def overdue_party(name: str, party_bills: List[Bill], total: float, today: Optional[date] = None) -> OverdueParty:
    """Reminder payload for one party: overdue bills, or every pending bill when none is overdue yet"""
    today = today or date.today()
    overdue = []
    for bill in party_bills:
        due = tally_date_to_date(bill.due_date)
        if due is not None and due < today:
            overdue.append(OverdueBill(
                name=bill.name,
                amount=bill.closing_balance,
                due_date=bill.due_date,
                days_overdue=(today - due).days,
            ))
    if not overdue:
        overdue = [
            OverdueBill(name=b.name, amount=b.closing_balance, due_date=b.due_date or "", days_overdue=0)
            for b in party_bills
        ]
    return OverdueParty(
        name=name,
        total_due=abs(total),
        bills=overdue,
        max_days_overdue=max((b.days_overdue for b in overdue), default=0),
    )


# ---------------------------------------------------------------------------
# Inbound contract
# ---------------------------------------------------------------------------

# Global session registry instance
sessions = SessionRegistry()


def dispatcher_for(port: Optional[int] = None, company: Optional[str] = None) -> ActionDispatcher:
    return ActionDispatcher(sessions.get(port, company))


async def execute(
    skill_id: str,
    action: str,
    params: Optional[Dict[str, Any]] = None,
    skill_config: Optional[Dict[str, Any]] = None,
) -> ReportResult:
    """
    Run a Tally action.

    skill_config accepts ``port`` and ``company_name``; both fall back to
    config.yaml. The skill id is only logged.
    """
    skill_config = skill_config or {}
    port = skill_config.get("port") or config.tally.port
    company = skill_config.get("company_name") or skill_config.get("companyName") or config.tally.company or None
    logger.debug(f"{skill_id}: {action} (port {port})")
    return await dispatcher_for(port, company).execute(action, params)
