"""Restaurant catalogue: public listing and detail, admin creation and removal."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import selectinload

import config
from marketplace.models import Category, Order, Product, Restaurant, Review, User
from marketplace.models.base import async_session_factory
from marketplace.roles import RESTAURATOR_PERMISSIONS, Role, join_permissions
from web.auth import (
    SessionUser,
    check_permission,
    ensure_restaurant_access,
    generate_temporary_password,
    get_session_user,
    get_user_by_email,
    hash_password,
    require_admin_user,
    require_staff,
)
from web.api.utils import ApiModel, ProductOut, RestaurantOut, UserOut, get_or_404, ok
from web.errors import NotFoundError, ValidationError

logger = logging.getLogger("mnufood.api")

router = APIRouter(prefix="/api/restaurants", tags=["restaurants"])


class RestaurantCreate(ApiModel):
    name: str
    cuisine: str
    description: Optional[str] = None
    address: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True
    delivery_fee: float = 0.0
    min_order_amount: float = config.DEFAULT_MIN_ORDER_AMOUNT
    opening_hours: str = config.DEFAULT_OPENING_HOURS
    manager_name: str
    manager_email: str
    manager_phone: Optional[str] = None


class RestaurantUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None
    cuisine: Optional[str] = None
    delivery_fee: Optional[float] = None
    min_order_amount: Optional[float] = None
    opening_hours: Optional[str] = None


def apply_restaurant_update(restaurant: Restaurant, body: RestaurantUpdate, allow_activation: bool) -> None:
    updates = body.model_dump(exclude_unset=True)
    if not allow_activation:
        updates.pop("is_active", None)
    for field in ("name", "address", "cuisine", "opening_hours"):
        if field in updates and (updates[field] is None or not str(updates[field]).strip()):
            raise ValidationError(f"{field} cannot be empty")
    for field in ("delivery_fee", "min_order_amount"):
        if field in updates and (updates[field] is None or updates[field] < 0):
            raise ValidationError(f"{field} must be a positive amount")
    for key, value in updates.items():
        setattr(restaurant, key, value)


async def _counts(session, restaurant_ids: list[int]) -> tuple[dict[int, int], dict[int, int]]:
    products = await session.execute(
        select(Product.restaurant_id, func.count(Product.id))
        .where(Product.restaurant_id.in_(restaurant_ids), Product.active.is_(True))
        .group_by(Product.restaurant_id)
    )
    orders = await session.execute(
        select(Order.restaurant_id, func.count(Order.id))
        .where(Order.restaurant_id.in_(restaurant_ids))
        .group_by(Order.restaurant_id)
    )
    return dict(products.all()), dict(orders.all())


@router.get("")
async def list_restaurants(
    cuisine: Optional[str] = None,
    min_rating: Optional[float] = Query(None, alias="minRating"),
    active: Optional[bool] = None,
    user: Optional[SessionUser] = Depends(get_session_user),
):
    """Active restaurants by rating. Admins can see inactive ones; managers only their own."""
    query = select(Restaurant)
    if user and user.is_admin:
        if active is not None:
            query = query.where(Restaurant.is_active.is_(active))
    else:
        query = query.where(Restaurant.is_active.is_(True))
    if user and user.role is Role.RESTAURATOR and user.restaurant_id:
        query = query.where(Restaurant.id == user.restaurant_id)
    if cuisine:
        query = query.where(Restaurant.cuisine.ilike(f"%{cuisine}%"))
    if min_rating is not None:
        query = query.where(Restaurant.rating >= min_rating)
    query = query.order_by(Restaurant.rating.desc(), Restaurant.name)

    async with async_session_factory() as session:
        restaurants = list((await session.execute(query)).scalars().all())
        product_counts, order_counts = await _counts(session, [r.id for r in restaurants])
        data = []
        for r in restaurants:
            row = RestaurantOut.model_validate(r).model_dump(by_alias=True, mode="json")
            row["productsCount"] = product_counts.get(r.id, 0)
            row["ordersCount"] = order_counts.get(r.id, 0)
            data.append(row)
        return ok(data)


@router.post("", status_code=201)
async def create_restaurant(body: RestaurantCreate, admin: SessionUser = Depends(require_admin_user)):
    """Create a restaurant and its manager account with a temporary password (admin only)."""
    if not body.name.strip() or not body.cuisine.strip():
        raise ValidationError("Name and cuisine are required")
    if not body.manager_name.strip() or not body.manager_email.strip():
        raise ValidationError("Manager name and email are required")
    manager_email = body.manager_email.strip().lower()
    async with async_session_factory() as session:
        if await get_user_by_email(session, manager_email):
            raise ValidationError("Manager email is already in use")
        restaurant = Restaurant(
            **body.model_dump(exclude={"manager_name", "manager_email", "manager_phone"}),
        )
        session.add(restaurant)
        await session.flush()
        temporary_password = generate_temporary_password()
        manager = User(
            name=body.manager_name.strip(),
            email=manager_email,
            phone=body.manager_phone,
            password_hash=hash_password(temporary_password),
            role=Role.RESTAURATOR,
            restaurant_id=restaurant.id,
            permissions=join_permissions(RESTAURATOR_PERMISSIONS),
            must_change_password=True,
            is_active=True,
        )
        session.add(manager)
        await session.commit()
        logger.info("Restaurant %s created with manager %s by admin %s", restaurant.id, manager.id, admin.id)
        return ok(
            RestaurantOut.model_validate(restaurant),
            "Restaurant and manager created. Temporary password generated.",
            manager=UserOut.model_validate(manager),
            temporaryPassword=temporary_password,
        )


@router.get("/{restaurant_id}")
async def get_restaurant(restaurant_id: int):
    """Restaurant with its active products, featured first."""
    async with async_session_factory() as session:
        restaurant = await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        result = await session.execute(
            select(Product)
            .where(Product.restaurant_id == restaurant_id, Product.active.is_(True))
            .options(selectinload(Product.restaurant), selectinload(Product.category))
            .order_by(Product.featured.desc(), Product.name)
        )
        products = result.scalars().all()
        data = RestaurantOut.model_validate(restaurant).model_dump(by_alias=True, mode="json")
        data["products"] = [ProductOut.model_validate(p).model_dump(by_alias=True, mode="json") for p in products]
        return ok(data)


async def _update_restaurant(restaurant_id: int, body: RestaurantUpdate, user: SessionUser):
    ensure_restaurant_access(user, restaurant_id)
    check_permission(user, "restaurant.profile.edit")
    async with async_session_factory() as session:
        restaurant = await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        apply_restaurant_update(restaurant, body, allow_activation=user.is_admin)
        await session.commit()
        await session.refresh(restaurant)
        return ok(RestaurantOut.model_validate(restaurant), "Restaurant updated")


@router.put("/{restaurant_id}")
async def put_restaurant(restaurant_id: int, body: RestaurantUpdate, user: SessionUser = Depends(require_staff)):
    return await _update_restaurant(restaurant_id, body, user)


@router.patch("/{restaurant_id}")
async def patch_restaurant(restaurant_id: int, body: RestaurantUpdate, user: SessionUser = Depends(require_staff)):
    return await _update_restaurant(restaurant_id, body, user)


@router.delete("/{restaurant_id}")
async def delete_restaurant(restaurant_id: int, admin: SessionUser = Depends(require_admin_user)):
    """Deactivate a restaurant that has orders; otherwise delete it with its products."""
    async with async_session_factory() as session:
        restaurant = await session.get(Restaurant, restaurant_id)
        if not restaurant:
            raise NotFoundError("Restaurant not found")
        order_count = (
            await session.execute(select(func.count(Order.id)).where(Order.restaurant_id == restaurant_id))
        ).scalar_one()
        if order_count:
            restaurant.is_active = False
            await session.commit()
            logger.info("Restaurant %s deactivated by admin %s (has orders)", restaurant_id, admin.id)
            return ok({"action": "deactivated"}, "Restaurant deactivated (has existing orders)", action="deactivated")

        product_ids = select(Product.id).where(Product.restaurant_id == restaurant_id)
        await session.execute(update(Review).where(Review.product_id.in_(product_ids)).values(product_id=None))
        await session.execute(update(Review).where(Review.restaurant_id == restaurant_id).values(restaurant_id=None))
        await session.execute(update(User).where(User.restaurant_id == restaurant_id).values(restaurant_id=None))
        await session.execute(delete(Product).where(Product.restaurant_id == restaurant_id))
        await session.execute(delete(Category).where(Category.restaurant_id == restaurant_id))
        await session.execute(delete(Restaurant).where(Restaurant.id == restaurant_id))
        await session.commit()
        logger.info("Restaurant %s deleted by admin %s", restaurant_id, admin.id)
        return ok({"action": "deleted"}, "Restaurant deleted", action="deleted")
