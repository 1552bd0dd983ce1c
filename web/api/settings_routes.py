"""Marketplace settings API: public read with live counts, admin write."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, select

import config
from marketplace.models import Order, Product, Restaurant, SiteSetting
from marketplace.models.base import async_session_factory
from web.auth import require_permission
from web.api.utils import ApiModel, ok
from web.errors import ValidationError

router = APIRouter(prefix="/api/settings", tags=["settings"])

DEFAULTS = {
    "marketplace_name": config.MARKETPLACE_NAME,
    "description": "Restaurant delivery marketplace in Dakar",
    "address": "Dakar, Senegal",
    "phone": "+221 77 000 00 00",
    "email": "contact@mnufood.com",
    "support_email": "support@mnufood.com",
    "currency": config.CURRENCY,
    "default_delivery_fee": "1500",
    "min_order_amount": str(int(config.DEFAULT_MIN_ORDER_AMOUNT)),
    "operating_hours": "08h00 - 02h00",
}

NUMERIC_KEYS = ("default_delivery_fee", "min_order_amount")


class SettingsResponse(ApiModel):
    marketplace_name: str
    description: str
    address: str
    phone: str
    email: str
    support_email: str
    currency: str
    default_delivery_fee: float
    min_order_amount: float
    operating_hours: str


class SettingsUpdate(ApiModel):
    marketplace_name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    support_email: Optional[str] = None
    currency: Optional[str] = None
    default_delivery_fee: Optional[float] = None
    min_order_amount: Optional[float] = None
    operating_hours: Optional[str] = None


async def _get_settings(session) -> SettingsResponse:
    result = await session.execute(select(SiteSetting).where(SiteSetting.key.in_(DEFAULTS)))
    stored = {row.key: row.value for row in result.scalars().all()}
    return SettingsResponse(**{key: stored.get(key, default) for key, default in DEFAULTS.items()})


async def _set_setting(session, key: str, value: str) -> None:
    result = await session.execute(select(SiteSetting).where(SiteSetting.key == key))
    row = result.scalar_one_or_none()
    if row:
        row.value = value
    else:
        session.add(SiteSetting(key=key, value=value))


async def _count(session, query) -> int:
    return (await session.execute(query)).scalar_one()


@router.get("")
async def get_settings():
    """Marketplace settings plus catalogue counts (public)."""
    async with async_session_factory() as session:
        settings = await _get_settings(session)
        data = settings.model_dump(by_alias=True, mode="json")
        data["stats"] = {
            "totalRestaurants": await _count(
                session, select(func.count(Restaurant.id)).where(Restaurant.is_active.is_(True))
            ),
            "totalProducts": await _count(session, select(func.count(Product.id)).where(Product.active.is_(True))),
            "totalOrders": await _count(session, select(func.count(Order.id))),
        }
        return ok(data)


@router.put("")
async def update_settings(body: SettingsUpdate, admin=Depends(require_permission("system.settings"))):
    """Update marketplace settings (admin only). Omitted keys keep their value."""
    updates = body.model_dump(exclude_unset=True)
    async with async_session_factory() as session:
        for key, value in updates.items():
            if value is None:
                continue
            if key in NUMERIC_KEYS and value < 0:
                raise ValidationError(f"{key} cannot be negative")
            await _set_setting(session, key, str(value))
        await session.commit()
        settings = await _get_settings(session)
        return ok(settings, "Settings updated")
