"""Shared API utilities: response envelope and serialization schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import DeliveryType, OrderStatus, PaymentMethod, PaymentStatus
from marketplace.roles import Role, split_permissions
from web.errors import NotFoundError


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python; accepts both on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, list):
        return [dump(v) for v in value]
    if isinstance(value, dict):
        return {k: dump(v) for k, v in value.items()}
    return value


def ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    """Success envelope ``{success, data, message?}``."""
    body: dict[str, Any] = {"success": True, "data": dump(data)}
    if message:
        body["message"] = message
    for key, value in extra.items():
        body[key] = dump(value)
    return body


async def get_or_404(session: AsyncSession, model, object_id: int, label: str):
    obj = await session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit if limit else 0}


class RestaurantBrief(ApiModel):
    id: int
    name: str
    image: Optional[str] = None


class CategoryBrief(ApiModel):
    id: int
    name: str


class ProductBrief(ApiModel):
    id: int
    name: str
    image: Optional[str] = None
    price: float


class RestaurantOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    address: str
    phone: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    rating: float
    likes_count: int
    is_active: bool
    cuisine: str
    delivery_fee: float
    min_order_amount: float
    opening_hours: str
    created_at: datetime
    updated_at: datetime


class CategoryOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    active: bool
    order: int
    restaurant_id: Optional[int] = None


class ProductOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    image: Optional[str] = None
    active: bool
    featured: bool
    is_new: bool
    is_popular: bool
    is_vegetarian: bool
    rating: float
    likes_count: int
    restaurant_id: int
    category_id: int
    created_at: datetime
    restaurant: Optional[RestaurantBrief] = None
    category: Optional[CategoryBrief] = None


class OrderItemOut(ApiModel):
    id: int
    product_id: Optional[int] = None
    quantity: int
    price: float
    product: Optional[ProductBrief] = None


class OrderOut(ApiModel):
    id: int
    order_number: str
    restaurant_id: int
    user_id: Optional[int] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    address: str
    delivery_type: DeliveryType
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: OrderStatus
    total: float
    delivery_fee: float
    notes: Optional[str] = None
    estimated_time: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    restaurant: Optional[RestaurantBrief] = None
    items: list[OrderItemOut] = []


class ReviewOut(ApiModel):
    id: int
    rating: int
    comment: Optional[str] = None
    customer_name: str
    customer_email: Optional[str] = None
    restaurant_id: Optional[int] = None
    product_id: Optional[int] = None
    created_at: datetime


class UserOut(ApiModel):
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    role: Role
    is_active: bool
    must_change_password: bool
    restaurant_id: Optional[int] = None
    custom_role_id: Optional[int] = None
    permissions: list[str] = []
    created_at: datetime

    @field_validator("permissions", mode="before")
    @classmethod
    def _split(cls, value):
        if value is None or isinstance(value, str):
            return split_permissions(value)
        return value


class CustomRoleOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    permissions: list[str] = []
    created_at: datetime

    @field_validator("permissions", mode="before")
    @classmethod
    def _split(cls, value):
        if value is None or isinstance(value, str):
            return split_permissions(value)
        return value
