"""
Constants Module
Engine-wide constants and classification tables
"""

# Application Info
APP_NAME = "Tally Report Engine"
APP_VERSION = "1.0.0"

# Tally XML Constants
TALLY_XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'
EXPORT_FORMAT = "$SysName:XML"
SYSTEM_EXPORT_FORMAT = "$$SysName:XML"

# Group classification (lowercase Tally group names)
PL_GROUPS = frozenset([
    "sales accounts", "purchase accounts",
    "direct incomes", "direct income",
    "direct expenses",
    "indirect incomes", "indirect income",
    "indirect expenses",
])

INCOME_GROUPS = frozenset([
    "sales accounts", "direct incomes", "direct income",
    "indirect incomes", "indirect income",
])

EXPENSE_GROUPS = frozenset(["purchase accounts", "direct expenses", "indirect expenses"])

ASSET_GROUPS = frozenset([
    "current assets", "fixed assets", "investments",
    "misc. expenses (asset)", "miscellaneous expenses (asset)",
    "stock-in-hand", "deposits (asset)", "deposits",
    "loans & advances (asset)", "loans (asset)",
    "bank accounts", "cash-in-hand",
    "sundry debtors", "bank od a/c",
])

LIABILITY_GROUPS = frozenset([
    "capital account", "reserves & surplus",
    "current liabilities", "loans (liability)",
    "secured loans", "unsecured loans",
    "sundry creditors", "duties & taxes",
    "provisions", "suspense a/c",
    "branch / divisions",
])

CASH_BANK_GROUPS = ["Bank Accounts", "Cash-in-Hand", "Bank OD A/c"]
EXPENSE_PARENT_GROUPS = ["Indirect Expenses", "Direct Expenses"]
TAX_GROUP = "Duties & Taxes"
RECEIVABLE_GROUP = "Sundry Debtors"
PAYABLE_GROUP = "Sundry Creditors"

# Ledger names containing one of these are tax lines on an invoice
TAX_KEYWORDS = ("cgst", "sgst", "igst", "cess", "tds", "tcs", "tax", "duty", "gst")

# Ageing buckets: (key, label, upper bound in days, emoji)
AGEING_BUCKETS = [
    ("0-30", "0-30 days", 30, "🟢"),
    ("31-60", "31-60 days", 60, "🟡"),
    ("61-90", "61-90 days", 90, "🟠"),
    ("90+", "90+ days", None, "🔴"),
]

# Voucher creation
VOUCHER_CREATE_TYPES = ("Sales", "Purchase", "Receipt", "Payment")
DEFAULT_SALES_LEDGER = "Sales Account"
DEFAULT_PURCHASE_LEDGER = "Purchase Account"
DEFAULT_CASH_LEDGER = "Cash"

# Actions that never need the active company (process management, discovery)
OFFLINE_ACTIONS = frozenset(["list_companies", "tally_status", "start_tally", "open_company"])

# Tally installation
TALLY_SEARCH_PATHS = [
    "C:\\Program Files\\TallyPrime",
    "C:\\Program Files (x86)\\TallyPrime",
    "C:\\TallyPrime",
    "C:\\Tally.ERP9",
]
TALLY_EXE = "tally.exe"
TALLY_INI = "tally.ini"
COMPANY_CACHE_FILENAME = ".tally-engine-companies.json"
MAX_FILENAME_LENGTH = 100

# Error Codes
class ErrorCode:
    TALLY_CONNECTION_FAILED = "TALLY_CONNECTION_FAILED"
    TALLY_COMPANY_NOT_FOUND = "TALLY_COMPANY_NOT_FOUND"
    UNKNOWN_ACTION = "UNKNOWN_ACTION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    EXPORT_FAILED = "EXPORT_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

# Transport failure categories
class TransportErrorKind:
    REFUSED = "refused"
    RESET = "reset"
    TIMEOUT = "timeout"
    HTTP = "http"
    OTHER = "other"

# Health Status
class HealthStatus:
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
