"""
Order Reports
Sales/purchase order listing and pending order reconciliation

An order type is either 'sales', 'purchase' or the name of a custom
voucher type the company uses for orders.
"""

from typing import Optional

from ...models.reports import OrdersReport, PendingOrdersReport
from ...models.transaction import Voucher
from ...utils.formatters import SEP, inr
from ...utils.helpers import format_tally_date
from ..analytics import filter_by_window, reconcile_orders, summarize_by_party
from ..response_parser import parse_vouchers
from ..xml_builder import CollectionSpec, equals_formula, xml_builder
from .vouchers import INVENTORY_FETCH


MAX_ORDERS_SHOWN = 15


def _kind(order_type: Optional[str]) -> Optional[str]:
    """'sales' or 'purchase' for the built-in kinds, None for a custom type"""
    lowered = (order_type or "sales").lower()
    return lowered if lowered in ("sales", "purchase") else None


def order_voucher_type(order_type: Optional[str]) -> str:
    kind = _kind(order_type)
    if kind is None:
        return order_type
    return "Purchase Order" if kind == "purchase" else "Sales Order"


def order_label(order_type: Optional[str]) -> str:
    kind = _kind(order_type)
    if kind is None:
        return order_type
    return "Purchase Orders" if kind == "purchase" else "Sales Orders"


def pending_label(order_type: Optional[str]) -> str:
    kind = _kind(order_type)
    if kind is None:
        return order_type
    return kind.capitalize()


def fulfillment_type(order_type: Optional[str]) -> str:
    """Invoices that fulfil an order; custom order types are matched against Sales"""
    return "Purchase" if _kind(order_type) == "purchase" else "Sales"


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def build_orders_xml(company: Optional[str], order_type: Optional[str] = "sales") -> str:
    spec = CollectionSpec(
        name="OrderTrackingVouchers",
        type="Voucher",
        fetch=["Date, VoucherTypeName, VoucherNumber, PartyLedgerName, Amount, Narration", INVENTORY_FETCH],
        filters={"OrderTypeFilter": equals_formula("VoucherTypeName", order_voucher_type(order_type))},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_orders(
    xml: str,
    order_type: Optional[str] = "sales",
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> OrdersReport:
    orders = filter_by_window(parse_vouchers(xml), from_date, to_date)
    orders.sort(key=lambda v: v.date, reverse=True)
    return OrdersReport(
        voucher_type=order_voucher_type(order_type),
        label=order_label(order_type),
        orders=orders,
        by_party=summarize_by_party(orders),
        total=sum(abs(o.amount) for o in orders),
    )


def format_order_line(order: Voucher, index: int) -> str:
    line = f"{index + 1}. *#{order.number}* — {format_tally_date(order.date)} — {order.party or ''}"
    line += f"\n   ₹{inr(order.amount)}"
    if order.inventory_entries:
        items = ", ".join(f"{item.name} x{abs(item.qty):g}" for item in order.inventory_entries)
        line += f" | {items}"
    return line


def format_orders(report: OrdersReport) -> str:
    if not report.orders:
        return f"No {report.label.lower()} found for this period."

    count = len(report.orders)
    lines = [f"📋 *{report.label}* ({count} orders)", ""]
    lines.extend(format_order_line(o, i) for i, o in enumerate(report.orders[:MAX_ORDERS_SHOWN]))
    if count > MAX_ORDERS_SHOWN:
        lines.append(f"\n... and {count - MAX_ORDERS_SHOWN} more orders")
    lines.extend(["", SEP, f"*Total: ₹{inr(report.total)}* | {len(report.by_party)} parties"])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Pending orders
# ---------------------------------------------------------------------------

def build_fulfillment_xml(company: Optional[str], order_type: Optional[str] = "sales") -> str:
    spec = CollectionSpec(
        name="OrderFulfillmentVouchers",
        type="Voucher",
        fetch=["Date", "VoucherTypeName", "VoucherNumber", "PartyLedgerName", "Amount"],
        filters={"FulfillmentTypeFilter": equals_formula("VoucherTypeName", fulfillment_type(order_type))},
    )
    return xml_builder.build_collection(spec, company=company)


def parse_pending_orders(
    orders: OrdersReport,
    invoices_xml: str,
    order_type: Optional[str] = "sales",
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> PendingOrdersReport:
    """Reconcile parsed orders against the invoices in the same window"""
    invoices = filter_by_window(parse_vouchers(invoices_xml), from_date, to_date)
    pending = reconcile_orders(orders.orders, invoices)
    return PendingOrdersReport(
        label=pending_label(order_type),
        pending=pending,
        total_pending=sum(p.pending for p in pending),
    )


def format_pending_orders(report: PendingOrdersReport) -> str:
    if not report.pending:
        return f"All {report.label.lower()} orders are fully fulfilled. ✅"

    lines = [f"📦 *Pending {report.label} Orders*", ""]
    for i, order in enumerate(report.pending):
        lines.append(f"{i + 1}. {order.party}")
        lines.append(
            f"   Ordered: ₹{inr(order.ordered)} | Invoiced: ₹{inr(order.invoiced)} | "
            f"*Pending: ₹{inr(order.pending)}* ({order.pct_done:.0f}% done)"
        )
    lines.extend(["", SEP, f"*Total Pending: ₹{inr(report.total_pending)}* ({len(report.pending)} parties)"])
    return "\n".join(lines)
