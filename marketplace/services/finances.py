"""Financial reporting over orders: filters, summary figures and CSV export."""
from __future__ import annotations

import csv
import io
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import config
from marketplace.models import Order, OrderItem, PaymentMethod, PaymentStatus
from marketplace.models.base import utcnow

CSV_HEADER = (
    "Date",
    "Order number",
    "Restaurant",
    "Customer",
    "Email",
    "Phone",
    "Order status",
    "Payment status",
    "Payment method",
    "Subtotal",
    "Delivery fee",
    "Total",
    "Products",
)

PAYMENT_METHOD_LABELS = {
    PaymentMethod.CASH_ON_DELIVERY: "Cash on delivery",
    PaymentMethod.ONLINE: "Online payment",
}


def parse_bound(value: Optional[str], end: bool = False) -> Optional[datetime]:
    """Parse a ``from``/``to`` query value. A bare date as ``to`` covers the whole day."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date: {value}") from None
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - (parsed.utcoffset() or timedelta())
    if end and len(value) == 10:
        parsed += timedelta(days=1) - timedelta(microseconds=1)
    return parsed


async def fetch_orders(
    session: AsyncSession,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    restaurant_id: Optional[int] = None,
    payment_status: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> list[Order]:
    """Orders matching the finance filters, newest first, with restaurant and items loaded.

    Raises ValueError for malformed dates or unknown status/method values.
    """
    query = select(Order).options(
        selectinload(Order.restaurant),
        selectinload(Order.items).selectinload(OrderItem.product),
    )
    start = parse_bound(date_from)
    stop = parse_bound(date_to, end=True)
    if start:
        query = query.where(Order.created_at >= start)
    if stop:
        query = query.where(Order.created_at <= stop)
    if restaurant_id is not None:
        query = query.where(Order.restaurant_id == restaurant_id)
    if payment_status:
        try:
            query = query.where(Order.payment_status == PaymentStatus(payment_status))
        except ValueError:
            raise ValueError(f"Invalid payment status: {payment_status}") from None
    if payment_method:
        try:
            query = query.where(Order.payment_method == PaymentMethod(payment_method))
        except ValueError:
            raise ValueError(f"Invalid payment method: {payment_method}") from None
    result = await session.execute(query.order_by(Order.created_at.desc(), Order.id.desc()))
    return list(result.scalars().all())


def _paid(orders: Iterable[Order]) -> list[Order]:
    return [o for o in orders if o.payment_status == PaymentStatus.PAID]


def summarize(orders: list[Order], today: Optional[date] = None) -> dict:
    """Revenue figures. Revenue only counts PAID orders."""
    today = today or utcnow().date()
    paid = _paid(orders)
    total_revenue = sum(o.total for o in paid)
    total_orders = len(orders)

    revenue_by_day = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        day_orders = [o for o in paid if o.created_at.date() == day]
        revenue_by_day.append({
            "date": day.isoformat(),
            "revenue": round(sum(o.total for o in day_orders), 2),
            "orders": len(day_orders),
        })

    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)

    payment_methods = []
    for method, label in PAYMENT_METHOD_LABELS.items():
        count = sum(1 for o in orders if o.payment_method == method)
        if not count:
            continue
        payment_methods.append({
            "method": method.value,
            "label": label,
            "amount": round(sum(o.total for o in paid if o.payment_method == method), 2),
            "count": count,
        })
    paid_amount = sum(m["amount"] for m in payment_methods)
    for m in payment_methods:
        m["percentage"] = round(m["amount"] / paid_amount * 100) if paid_amount else 0

    return {
        "totalRevenue": round(total_revenue, 2),
        "totalOrders": total_orders,
        "averageOrderValue": round(total_revenue / total_orders, 2) if total_orders else 0,
        "deliveryFees": round(sum(o.delivery_fee for o in paid), 2),
        "todayRevenue": round(sum(o.total for o in paid if o.created_at.date() == today), 2),
        "weekRevenue": round(sum(o.total for o in paid if o.created_at.date() >= week_start), 2),
        "monthRevenue": round(sum(o.total for o in paid if o.created_at.date() >= month_start), 2),
        "pendingPayments": round(
            sum(o.total for o in orders if o.payment_status == PaymentStatus.PENDING), 2
        ),
        "completedPayments": round(total_revenue, 2),
        "revenueByDay": revenue_by_day,
        "paymentMethods": payment_methods,
    }


def _products_cell(order: Order) -> str:
    parts = []
    for item in order.items:
        name = item.product.name if item.product else "Deleted product"
        parts.append(f"{name} x{item.quantity} ({item.price:.2f} {config.CURRENCY})")
    return " | ".join(parts)


def orders_to_csv(orders: Iterable[Order]) -> str:
    """Render orders with the fixed 13-column finance header."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for order in orders:
        writer.writerow([
            order.created_at.strftime("%d/%m/%Y"),
            order.order_number,
            order.restaurant.name if order.restaurant else "",
            order.customer_name,
            order.customer_email or "",
            order.customer_phone,
            order.status.value,
            order.payment_status.value,
            order.payment_method.value,
            f"{order.total - order.delivery_fee:.2f}",
            f"{order.delivery_fee:.2f}",
            f"{order.total:.2f}",
            _products_cell(order),
        ])
    return buffer.getvalue()


def export_filename(prefix: str = "finances", today: Optional[date] = None) -> str:
    today = today or utcnow().date()
    return f"{prefix}-{today.isoformat()}.csv"


def period_start(period: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """ISO start date for a ``7``/``30``/``90`` day period; None for ``all``."""
    if not period or period == "all":
        return None
    try:
        days = int(period)
    except ValueError:
        raise ValueError(f"Invalid period: {period}") from None
    if days < 1:
        raise ValueError(f"Invalid period: {period}")
    today = today or utcnow().date()
    return (today - timedelta(days=days)).isoformat()
