"""Order endpoints: checkout, lookup and status updates."""
from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator

from marketplace.models import DeliveryType, Order, OrderStatus, PaymentMethod, PaymentStatus
from marketplace.models.base import async_session_factory
from marketplace.roles import Role
from marketplace.services import orders as order_service
from web.auth import SessionUser, check_permission, ensure_restaurant_access, get_session_user, require_staff
from web.api.utils import ApiModel, OrderOut, ok
from web.errors import NotFoundError, ValidationError

logger = logging.getLogger("mnufood.api")

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OrderItemIn(ApiModel):
    product_id: int
    quantity: int = Field(ge=1, le=100)


class OrderCreate(ApiModel):
    customer_name: str = Field(min_length=1, max_length=100)
    customer_phone: str = Field(min_length=9, max_length=15)
    customer_email: Optional[str] = None
    address: str = Field(min_length=1, max_length=255)
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    notes: Optional[str] = None
    items: list[OrderItemIn] = []

    @field_validator("customer_email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        value = value.strip()
        local, _, domain = value.partition("@")
        if not local or "." not in domain or " " in value:
            raise ValueError("Invalid email")
        return value

    @field_validator("customer_name", "address")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class OrderUpdate(ApiModel):
    status: Optional[OrderStatus] = None
    estimated_time: Optional[int] = None
    notes: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None


@router.post("", status_code=201)
async def create_order(body: OrderCreate, user: Optional[SessionUser] = Depends(get_session_user)):
    """Place an order. Prices and the delivery fee come from the database."""
    if not body.items:
        raise ValidationError("No products in the order")
    customer = body.model_dump(exclude={"items"})
    async with async_session_factory() as session:
        try:
            order = await order_service.place_order(
                session,
                customer,
                [item.model_dump() for item in body.items],
                user_id=user.id if user else None,
            )
        except ValueError as e:
            raise ValidationError(str(e))
        await session.commit()
        order = await order_service.load_order(session, order.id)
        return ok(OrderOut.model_validate(order), "Order placed")


@router.get("")
async def list_orders(
    order_number: Optional[str] = Query(None, alias="orderNumber"),
    phone: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    customer_type: Optional[Literal["guest", "registered"]] = Query(None, alias="customerType"),
    user: Optional[SessionUser] = Depends(get_session_user),
):
    """Anonymous callers must look orders up by number or phone; staff see their scope."""
    is_staff = user is not None and user.is_staff
    if not is_staff and not order_number and not phone:
        raise ValidationError("orderNumber or phone is required")
    query = order_service.order_query().order_by(Order.created_at.desc(), Order.id.desc())
    if is_staff and user.role is Role.RESTAURATOR:
        query = query.where(Order.restaurant_id == user.restaurant_id)
    if order_number:
        query = query.where(Order.order_number == order_number)
    if phone:
        query = query.where(Order.customer_phone == phone)
    if status:
        query = query.where(Order.status == status)
    if customer_type == "guest":
        query = query.where(Order.user_id.is_(None))
    elif customer_type == "registered":
        query = query.where(Order.user_id.is_not(None))
    async with async_session_factory() as session:
        orders = (await session.execute(query)).scalars().all()
        return ok([OrderOut.model_validate(o) for o in orders])


@router.get("/{order_id}")
async def get_order(order_id: int):
    async with async_session_factory() as session:
        order = await order_service.load_order(session, order_id)
        if not order:
            raise NotFoundError("Order not found")
        return ok(OrderOut.model_validate(order))


@router.put("/{order_id}")
async def update_order(order_id: int, body: OrderUpdate, user: SessionUser = Depends(require_staff)):
    async with async_session_factory() as session:
        order = await order_service.load_order(session, order_id)
        if not order:
            raise NotFoundError("Order not found")
        ensure_restaurant_access(user, order.restaurant_id)
        check_permission(user, "restaurant.orders.edit")
        try:
            await order_service.update_order(session, order, body.model_dump(exclude_unset=True))
        except ValueError as e:
            raise ValidationError(str(e))
        await session.commit()
        order = await order_service.load_order(session, order_id)
        return ok(OrderOut.model_validate(order), "Order updated")
