"""Restaurant manager area: /api/restaurant/{restaurant_id}/...

Every endpoint requires access to the restaurant and the matching
``restaurant.*`` permission. Admins pass both checks.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from marketplace.models import Order, Product, Restaurant, Review, User
from marketplace.models.base import async_session_factory
from marketplace.roles import Role
from marketplace.services import catalog, dashboards, finances
from marketplace.services.orders import order_query
from web.auth import SessionUser, check_permission, ensure_restaurant_access, get_user_by_email, require_staff
from web.api.category_routes import CategoryCreate
from web.api.restaurant_routes import RestaurantUpdate, apply_restaurant_update
from web.api.utils import (
    ApiModel,
    CategoryOut,
    OrderOut,
    ProductBrief,
    ProductOut,
    RestaurantOut,
    ReviewOut,
    UserOut,
    get_or_404,
    ok,
)
from web.errors import NotFoundError, ValidationError

logger = logging.getLogger("mnufood.api")

router = APIRouter(prefix="/api/restaurant/{restaurant_id}", tags=["restaurant-manager"])


def restaurant_scope(permission: str):
    """Dependency factory: staff session with access to ``restaurant_id`` and ``permission``."""

    async def dependency(restaurant_id: int, user: SessionUser = Depends(require_staff)) -> SessionUser:
        ensure_restaurant_access(user, restaurant_id)
        check_permission(user, permission)
        return user

    return dependency


class ManagerProductCreate(ApiModel):
    name: str
    price: float
    category_id: int
    description: Optional[str] = None
    image: Optional[str] = None
    featured: bool = False
    is_new: bool = True
    is_popular: bool = False
    is_vegetarian: bool = False


class ManagerUpdate(ApiModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


@router.get("/dashboard")
async def dashboard(restaurant_id: int, user: SessionUser = Depends(restaurant_scope("restaurant.dashboard"))):
    async with async_session_factory() as session:
        restaurant = await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        return ok(await dashboards.restaurant_dashboard(session, restaurant))


@router.get("/orders")
async def restaurant_orders(restaurant_id: int, user: SessionUser = Depends(restaurant_scope("restaurant.orders.view"))):
    async with async_session_factory() as session:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        result = await session.execute(
            order_query().where(Order.restaurant_id == restaurant_id).order_by(Order.created_at.desc(), Order.id.desc())
        )
        return ok([OrderOut.model_validate(o) for o in result.scalars().all()])


@router.get("/products")
async def restaurant_products(
    restaurant_id: int, user: SessionUser = Depends(restaurant_scope("restaurant.products.view"))
):
    """All products of the restaurant, inactive ones included."""
    async with async_session_factory() as session:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        result = await session.execute(
            select(Product)
            .where(Product.restaurant_id == restaurant_id)
            .options(selectinload(Product.restaurant), selectinload(Product.category))
            .order_by(Product.featured.desc(), Product.created_at.desc(), Product.id.desc())
        )
        return ok([ProductOut.model_validate(p) for p in result.scalars().all()])


@router.post("/products", status_code=201)
async def add_restaurant_product(
    restaurant_id: int,
    body: ManagerProductCreate,
    user: SessionUser = Depends(restaurant_scope("restaurant.products.create")),
):
    async with async_session_factory() as session:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        try:
            product = await catalog.create_product(session, restaurant_id, body.model_dump())
        except ValueError as e:
            raise ValidationError(str(e))
        await session.commit()
        product = await catalog.load_product(session, product.id)
        return ok(ProductOut.model_validate(product), "Product created")


@router.get("/categories")
async def restaurant_categories(
    restaurant_id: int,
    include_global: bool = Query(False, alias="includeGlobal"),
    user: SessionUser = Depends(restaurant_scope("restaurant.products.view")),
):
    """The restaurant's own categories; ``includeGlobal`` adds the shared ones for product forms."""
    async with async_session_factory() as session:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        categories = await catalog.list_categories(
            session, restaurant_id, include_global=include_global, active_only=False
        )
        return ok([CategoryOut.model_validate(c) for c in categories])


@router.post("/categories", status_code=201)
async def add_restaurant_category(
    restaurant_id: int,
    body: CategoryCreate,
    user: SessionUser = Depends(restaurant_scope("restaurant.categories.manage")),
):
    async with async_session_factory() as session:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        try:
            category = await catalog.create_category(session, body.model_dump(), restaurant_id)
        except ValueError as e:
            raise ValidationError(str(e))
        await session.commit()
        return ok(CategoryOut.model_validate(category), "Category created")


@router.get("/profile")
async def get_profile(restaurant_id: int, user: SessionUser = Depends(restaurant_scope("restaurant.dashboard"))):
    async with async_session_factory() as session:
        restaurant = await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        return ok(RestaurantOut.model_validate(restaurant))


@router.put("/profile")
async def update_profile(
    restaurant_id: int,
    body: RestaurantUpdate,
    user: SessionUser = Depends(restaurant_scope("restaurant.profile.edit")),
):
    """Managers edit the public profile; only admins toggle ``isActive``."""
    async with async_session_factory() as session:
        restaurant = await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        apply_restaurant_update(restaurant, body, allow_activation=user.is_admin)
        await session.commit()
        await session.refresh(restaurant)
        return ok(RestaurantOut.model_validate(restaurant), "Restaurant profile updated")


@router.get("/reviews")
async def restaurant_reviews(
    restaurant_id: int,
    period: str = "30",
    rating: Optional[int] = Query(None, ge=1, le=5),
    user: SessionUser = Depends(restaurant_scope("restaurant.reviews.view")),
):
    """Reviews of the restaurant and its products with rating statistics."""
    try:
        start = finances.parse_bound(finances.period_start(period))
    except ValueError as e:
        raise ValidationError(str(e))
    async with async_session_factory() as session:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        product_ids = select(Product.id).where(Product.restaurant_id == restaurant_id)
        query = (
            select(Review)
            .where((Review.restaurant_id == restaurant_id) | Review.product_id.in_(product_ids))
            .options(selectinload(Review.product))
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        if start:
            query = query.where(Review.created_at >= start)
        if rating:
            query = query.where(Review.rating == rating)
        reviews = list((await session.execute(query)).scalars().all())
        rows = []
        for r in reviews:
            row = ReviewOut.model_validate(r).model_dump(by_alias=True, mode="json")
            row["product"] = ProductBrief.model_validate(r.product).model_dump(by_alias=True) if r.product else None
            rows.append(row)
        total = len(reviews)
        stats = {
            "totalReviews": total,
            "averageRating": round(sum(r.rating for r in reviews) / total, 2) if total else 0,
            "ratingDistribution": {str(n): sum(1 for r in reviews if r.rating == n) for n in range(5, 0, -1)},
            "recentReviews": rows[:5],
        }
        return ok({"stats": stats, "reviews": rows})


async def _restaurant_orders(session, restaurant_id: int, period, date_from, date_to, status, method):
    if not date_from and not date_to:
        date_from = finances.period_start(period)
    return await finances.fetch_orders(
        session,
        date_from=date_from,
        date_to=date_to,
        restaurant_id=restaurant_id,
        payment_status=status,
        payment_method=method,
    )


@router.get("/finances")
async def restaurant_finances(
    restaurant_id: int,
    period: str = "30",
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    status: Optional[str] = None,
    method: Optional[str] = None,
    user: SessionUser = Depends(restaurant_scope("restaurant.finances.view")),
):
    async with async_session_factory() as session:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        try:
            orders = await _restaurant_orders(session, restaurant_id, period, date_from, date_to, status, method)
        except ValueError as e:
            raise ValidationError(str(e))
        return ok(finances.summarize(orders))


@router.get("/finances/export")
async def export_restaurant_finances(
    restaurant_id: int,
    period: str = "all",
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    status: Optional[str] = None,
    method: Optional[str] = None,
    user: SessionUser = Depends(restaurant_scope("restaurant.finances.view")),
):
    async with async_session_factory() as session:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
        try:
            orders = await _restaurant_orders(session, restaurant_id, period, date_from, date_to, status, method)
        except ValueError as e:
            raise ValidationError(str(e))
        content = finances.orders_to_csv(orders)
    filename = finances.export_filename(f"restaurant-{restaurant_id}")
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _find_manager(session, restaurant_id: int) -> User:
    result = await session.execute(
        select(User)
        .where(User.restaurant_id == restaurant_id, User.role == Role.RESTAURATOR)
        .order_by(User.id)
        .limit(1)
    )
    manager = result.scalar_one_or_none()
    if not manager:
        raise NotFoundError("Manager not found")
    return manager


@router.get("/manager")
async def get_manager(restaurant_id: int, user: SessionUser = Depends(restaurant_scope("restaurant.profile.edit"))):
    async with async_session_factory() as session:
        return ok(UserOut.model_validate(await _find_manager(session, restaurant_id)))


@router.put("/manager")
async def update_manager(
    restaurant_id: int,
    body: ManagerUpdate,
    user: SessionUser = Depends(restaurant_scope("restaurant.profile.edit")),
):
    async with async_session_factory() as session:
        manager = await _find_manager(session, restaurant_id)
        updates = body.model_dump(exclude_unset=True)
        if "name" in updates:
            if not (updates["name"] or "").strip():
                raise ValidationError("Name cannot be empty")
            manager.name = updates["name"].strip()
        if "email" in updates:
            email = (updates["email"] or "").strip().lower()
            if not email:
                raise ValidationError("Email cannot be empty")
            other = await get_user_by_email(session, email)
            if other and other.id != manager.id:
                raise ValidationError("Email is already in use")
            manager.email = email
        if "phone" in updates:
            manager.phone = updates["phone"] or None
        await session.commit()
        await session.refresh(manager)
        logger.info("Manager %s of restaurant %s updated by user %s", manager.id, restaurant_id, user.id)
        return ok(UserOut.model_validate(manager), "Manager profile updated")
