"""
Report Models
Tagged report variants produced by the report pipelines

Every variant carries a literal ``kind`` so exports and API clients can
dispatch on the shape without inspecting fields.
"""

from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field

from .master import Bill, CompanyInfo, Company, Group, Ledger, OpenCompany, PartyDetail, StockItem, TallyIni
from .resolution import Candidate
from .transaction import Voucher, VoucherTypeCount


# ---------------------------------------------------------------------------
# Row models shared by several reports
# ---------------------------------------------------------------------------

class PartyTotal(BaseModel):
    """Per-party (or per-type) aggregate"""
    name: str
    total: float = 0.0
    count: int = 0


class ExpenseEntry(BaseModel):
    name: str
    parent: str = ""
    amount: float = 0.0


class AgeingBucket(BaseModel):
    key: str
    label: str
    emoji: str = ""
    amount: float = 0.0
    count: int = 0


class PartyAgeing(BaseModel):
    name: str
    total: float = 0.0
    bills: int = 0
    oldest_days: int = 0


class RankedEntry(BaseModel):
    name: str
    total: float = 0.0
    count: int = 0
    qty: float = 0.0
    pct: float = 0.0


class InactiveEntry(BaseModel):
    name: str
    last_date: str
    days_ago: int = 0
    total: float = 0.0
    count: int = 0


class PendingOrder(BaseModel):
    party: str
    ordered: float = 0.0
    invoiced: float = 0.0
    pending: float = 0.0
    pct_done: float = 0.0


class OverdueBill(BaseModel):
    name: str
    amount: float = 0.0
    due_date: str = ""
    days_overdue: int = 0


class OverdueParty(BaseModel):
    name: str
    total_due: float = 0.0
    bills: List[OverdueBill] = []
    max_days_overdue: int = 0
    phone: str = ""
    email: str = ""
    contact: str = ""

    @property
    def can_send(self) -> bool:
        return bool(self.phone)


# ---------------------------------------------------------------------------
# Ledger reports
# ---------------------------------------------------------------------------

class LedgerListReport(BaseModel):
    kind: Literal["ledger_list"] = "ledger_list"
    ledgers: List[Ledger] = []
    group_filter: Optional[str] = None


class LedgerMasterReport(BaseModel):
    kind: Literal["ledger_master"] = "ledger_master"
    name: str
    parent: str = ""
    gstin: str = ""
    gst_type: str = ""
    state: str = ""


class LedgerBalanceReport(BaseModel):
    kind: Literal["ledger_balance"] = "ledger_balance"
    name: str
    parent: str = ""
    closing_balance: float = 0.0
    opening_balance: float = 0.0

    @property
    def balance_type(self) -> str:
        return "Payable" if self.closing_balance < 0 else "Receivable"


class LedgerStatementReport(BaseModel):
    kind: Literal["ledger_statement"] = "ledger_statement"
    ledger_name: str
    entries: List[Voucher] = []
    total_debit: float = 0.0
    total_credit: float = 0.0
    from_date: Optional[str] = None
    to_date: Optional[str] = None

    @property
    def net(self) -> float:
        return self.total_debit - self.total_credit


# ---------------------------------------------------------------------------
# Voucher reports
# ---------------------------------------------------------------------------

class VoucherListReport(BaseModel):
    kind: Literal["voucher_list"] = "voucher_list"
    vouchers: List[Voucher] = []
    by_type: List[PartyTotal] = []
    total_count: int = 0
    from_date: Optional[str] = None
    to_date: Optional[str] = None


class SalesPurchaseReport(BaseModel):
    kind: Literal["sales_purchase"] = "sales_purchase"
    report_type: str = "sales"
    entries: List[Voucher] = []
    by_party: List[PartyTotal] = []
    total: float = 0.0
    from_date: Optional[str] = None
    to_date: Optional[str] = None


class PartyInvoicesReport(BaseModel):
    kind: Literal["party_invoices"] = "party_invoices"
    party_name: str
    voucher_type: str = "Sales"
    invoices: List[Voucher] = []
    total: float = 0.0
    from_date: Optional[str] = None
    to_date: Optional[str] = None


class VoucherTypesReport(BaseModel):
    kind: Literal["voucher_types"] = "voucher_types"
    requested: str = ""
    types: List[VoucherTypeCount] = []


class OrdersReport(BaseModel):
    kind: Literal["orders"] = "orders"
    voucher_type: str
    label: str
    orders: List[Voucher] = []
    by_party: List[PartyTotal] = []
    total: float = 0.0


class PendingOrdersReport(BaseModel):
    kind: Literal["pending_orders"] = "pending_orders"
    label: str
    pending: List[PendingOrder] = []
    total_pending: float = 0.0


class VoucherCreatedReport(BaseModel):
    kind: Literal["voucher_created"] = "voucher_created"
    voucher_type: str
    party_name: str
    amount: float
    date: str
    voucher_number: Optional[str] = None


class InvoiceReport(BaseModel):
    kind: Literal["invoice"] = "invoice"
    voucher: Voucher
    company: CompanyInfo = CompanyInfo()
    party: PartyDetail = PartyDetail()


# ---------------------------------------------------------------------------
# Balance reports
# ---------------------------------------------------------------------------

class OutstandingReport(BaseModel):
    kind: Literal["outstanding"] = "outstanding"
    group: str
    label: str = ""
    entries: List[Ledger] = []
    total: float = 0.0


class CashBankReport(BaseModel):
    kind: Literal["cash_bank"] = "cash_bank"
    entries: List[Ledger] = []
    total: float = 0.0


class ExpenseReport(BaseModel):
    kind: Literal["expense"] = "expense"
    entries: List[ExpenseEntry] = []
    total: float = 0.0
    from_date: Optional[str] = None
    to_date: Optional[str] = None


class StockReport(BaseModel):
    kind: Literal["stock"] = "stock"
    items: List[StockItem] = []
    total_value: float = 0.0


class GstReport(BaseModel):
    kind: Literal["gst"] = "gst"
    entries: List[Ledger] = []
    total_output: float = 0.0
    total_input: float = 0.0
    from_date: Optional[str] = None
    to_date: Optional[str] = None

    @property
    def net_liability(self) -> float:
        return self.total_output - self.total_input


class BillOutstandingReport(BaseModel):
    kind: Literal["bill_outstanding"] = "bill_outstanding"
    ledger_name: str
    bills: List[Bill] = []
    total: float = 0.0


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

class TrialBalanceReport(BaseModel):
    kind: Literal["trial_balance"] = "trial_balance"
    groups: List[Group] = []
    total_debit: float = 0.0
    total_credit: float = 0.0
    from_date: Optional[str] = None
    to_date: Optional[str] = None

    @property
    def difference(self) -> float:
        return abs(self.total_debit - self.total_credit)


class BalanceSheetReport(BaseModel):
    kind: Literal["balance_sheet"] = "balance_sheet"
    assets: List[Group] = []
    liabilities: List[Group] = []
    total_assets: float = 0.0
    total_liabilities: float = 0.0
    to_date: Optional[str] = None

    @property
    def difference(self) -> float:
        return abs(self.total_assets - self.total_liabilities)


class ProfitLossReport(BaseModel):
    kind: Literal["profit_loss"] = "profit_loss"
    income: List[Group] = []
    expenses: List[Group] = []
    total_income: float = 0.0
    total_expense: float = 0.0
    from_date: Optional[str] = None
    to_date: Optional[str] = None

    @property
    def groups(self) -> List[Group]:
        return self.income + self.expenses

    @property
    def net_profit(self) -> float:
        return self.total_income - self.total_expense


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

class AgeingReport(BaseModel):
    kind: Literal["ageing"] = "ageing"
    label: str = ""
    buckets: List[AgeingBucket] = []
    undated_amount: float = 0.0
    undated_count: int = 0
    parties: List[PartyAgeing] = []
    total_outstanding: float = 0.0
    total_bills: int = 0
    party_count: int = 0


class TopReport(BaseModel):
    kind: Literal["top"] = "top"
    entity: str
    report_type: str = "sales"
    entries: List[RankedEntry] = []
    grand_total: float = 0.0
    entity_count: int = 0


class InactiveReport(BaseModel):
    kind: Literal["inactive"] = "inactive"
    entity: str
    report_type: str = "sales"
    days: int = 30
    entries: List[InactiveEntry] = []
    total_count: int = 0


class RemindersReport(BaseModel):
    kind: Literal["reminders"] = "reminders"
    company_name: str = ""
    parties: List[OverdueParty] = []
    total_due: float = 0.0


class ReminderReport(BaseModel):
    kind: Literal["reminder"] = "reminder"
    party_name: str
    message: str
    phone: str = ""
    email: str = ""


# ---------------------------------------------------------------------------
# Company / process
# ---------------------------------------------------------------------------

class TallyStatusReport(BaseModel):
    kind: Literal["tally_status"] = "tally_status"
    running: bool = False
    pid: Optional[int] = None
    responding: bool = False
    active_company: Optional[str] = None
    companies: List[Company] = []
    ini: TallyIni = TallyIni()


class CompanyListReport(BaseModel):
    kind: Literal["company_list"] = "company_list"
    open_companies: List[OpenCompany] = []
    companies: List[Company] = []
    active_ids: List[str] = []


class SuggestionsReport(BaseModel):
    """Ledgers offered when a party name matched several"""
    kind: Literal["suggestions"] = "suggestions"
    query: str
    candidates: List[Candidate] = []


Report = Annotated[
    Union[
        LedgerListReport, LedgerMasterReport, LedgerBalanceReport, LedgerStatementReport,
        VoucherListReport, SalesPurchaseReport, PartyInvoicesReport, VoucherTypesReport,
        OrdersReport, PendingOrdersReport, VoucherCreatedReport, InvoiceReport,
        OutstandingReport, CashBankReport, ExpenseReport, StockReport, GstReport,
        BillOutstandingReport, TrialBalanceReport, BalanceSheetReport, ProfitLossReport,
        AgeingReport, TopReport, InactiveReport, RemindersReport, ReminderReport,
        TallyStatusReport, CompanyListReport, SuggestionsReport,
    ],
    Field(discriminator="kind"),
]
