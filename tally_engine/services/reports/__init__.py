# Reports Package
# Request builders, response parsers and chat formatters per report

from . import activity, balances, bills, company, ledgers, orders, statements, voucher_create, vouchers

__all__ = [
    "activity",
    "balances",
    "bills",
    "company",
    "ledgers",
    "orders",
    "statements",
    "voucher_create",
    "vouchers"
]
