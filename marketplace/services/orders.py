"""Order placement: number generation, pricing and validation."""
from __future__ import annotations

import logging
import secrets
import string
import time
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.models import (
    DeliveryType,
    Order,
    OrderItem,
    PaymentMethod,
    PaymentStatus,
    Product,
    Restaurant,
)

logger = logging.getLogger("mnufood.orders")

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))


def generate_order_number() -> str:
    """``MNU-`` + millisecond timestamp and six random characters, base 36, upper case."""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"MNU-{stamp}{suffix}"


async def place_order(
    session: AsyncSession,
    customer: dict,
    items: list[dict],
    user_id: Optional[int] = None,
) -> Order:
    """Create an order from ``[{product_id, quantity}]``.

    Prices come from the stored products, never from the client. Every item
    must belong to the same active restaurant. Raises ValueError on invalid
    input. Caller commits.
    """
    if not items:
        raise ValueError("No products in the order")
    quantities: dict[int, int] = {}
    for item in items:
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if not isinstance(product_id, int) or not isinstance(quantity, int) or quantity < 1:
            raise ValueError("Each item needs a productId and a positive quantity")
        quantities[product_id] = quantities.get(product_id, 0) + quantity

    result = await session.execute(select(Product).where(Product.id.in_(quantities)))
    products = {p.id: p for p in result.scalars().all()}
    missing = [pid for pid in quantities if pid not in products or not products[pid].active]
    if missing:
        raise ValueError(f"Product not found: {missing[0]}")
    restaurant_ids = {p.restaurant_id for p in products.values()}
    if len(restaurant_ids) != 1:
        raise ValueError("All products of an order must come from the same restaurant")
    restaurant = await session.get(Restaurant, restaurant_ids.pop())
    if not restaurant or not restaurant.is_active:
        raise ValueError("Restaurant is not accepting orders")

    delivery_type = customer.get("delivery_type") or DeliveryType.DELIVERY
    subtotal = sum(products[pid].price * qty for pid, qty in quantities.items())
    delivery_fee = restaurant.delivery_fee if delivery_type == DeliveryType.DELIVERY else 0.0

    order = Order(
        order_number=generate_order_number(),
        restaurant_id=restaurant.id,
        user_id=user_id,
        customer_name=customer["customer_name"],
        customer_phone=customer["customer_phone"],
        customer_email=customer.get("customer_email") or None,
        address=customer["address"],
        delivery_type=delivery_type,
        payment_method=customer.get("payment_method") or PaymentMethod.CASH_ON_DELIVERY,
        payment_status=PaymentStatus.PENDING,
        total=round(subtotal + delivery_fee, 2),
        delivery_fee=delivery_fee,
        notes=customer.get("notes"),
        items=[
            OrderItem(product_id=pid, quantity=qty, price=products[pid].price)
            for pid, qty in quantities.items()
        ],
    )
    session.add(order)
    await session.flush()
    logger.info("Order %s placed with restaurant %s (%d items)", order.order_number, restaurant.id, len(quantities))
    return order


def order_query():
    """``select(Order)`` with the restaurant and item products eager-loaded."""
    return select(Order).options(
        selectinload(Order.restaurant),
        selectinload(Order.items).selectinload(OrderItem.product),
    )


async def load_order(session: AsyncSession, order_id: int) -> Optional[Order]:
    result = await session.execute(
        order_query().where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_order(session: AsyncSession, order: Order, fields: dict) -> Order:
    """Apply status, estimated time, notes or payment status changes. Caller commits."""
    if fields.get("estimated_time") is not None and fields["estimated_time"] < 0:
        raise ValueError("Estimated time cannot be negative")
    previous = order.status
    for key in ("status", "payment_status"):
        if key in fields and fields[key] is None:
            raise ValueError(f"{key} cannot be empty")
    for key in ("status", "estimated_time", "notes", "payment_status"):
        if key in fields:
            setattr(order, key, fields[key])
    await session.flush()
    if order.status != previous:
        logger.info("Order %s moved from %s to %s", order.order_number, previous.value, order.status.value)
    return order
