"""Administration API (ADMIN only): restaurants, users, orders, reviews, finances, roles."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import Field
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from marketplace.models import CustomRole, Order, OrderStatus, Product, Restaurant, Review, User
from marketplace.models.base import async_session_factory
from marketplace.roles import (
    PERMISSION_CATALOG,
    RESTAURATOR_PERMISSIONS,
    Role,
    category_of,
    join_permissions,
    normalize_permissions,
    parse_role,
)
from marketplace.services import dashboards, finances
from marketplace.services.orders import order_query
from marketplace.services.ratings import recompute_ratings
from web.auth import (
    SessionUser,
    generate_temporary_password,
    get_user_by_email,
    hash_password,
    require_admin_user,
)
from web.api.utils import (
    ApiModel,
    CustomRoleOut,
    OrderOut,
    ProductBrief,
    RestaurantBrief,
    RestaurantOut,
    ReviewOut,
    UserOut,
    get_or_404,
    ok,
    pagination,
)
from web.errors import NotFoundError, ValidationError

logger = logging.getLogger("mnufood.admin")

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin_user)])


class RestaurantToggle(ApiModel):
    restaurant_id: int
    is_active: bool


class UserCreate(ApiModel):
    name: str = Field(min_length=1, max_length=128)
    email: str
    role: str
    password: Optional[str] = None
    phone: Optional[str] = None
    restaurant_id: Optional[int] = None
    permissions: Optional[list[str]] = None
    custom_role_id: Optional[int] = None


class UserUpdate(ApiModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    restaurant_id: Optional[int] = None
    is_active: Optional[bool] = None
    must_change_password: Optional[bool] = None
    permissions: Optional[list[str]] = None
    custom_role_id: Optional[int] = None


class RoleCreate(ApiModel):
    name: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None
    permissions: list[str] = []


class RoleUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    permissions: Optional[list[str]] = None


def _role_or_400(value: str) -> Role:
    try:
        return parse_role(value)
    except ValueError as e:
        raise ValidationError(str(e))


def _permissions_or_400(values: list[str]) -> list[str]:
    try:
        return normalize_permissions(values)
    except ValueError as e:
        raise ValidationError(str(e))


def _user_row(user: User) -> dict:
    row = UserOut.model_validate(user).model_dump(by_alias=True, mode="json")
    row["restaurant"] = RestaurantBrief.model_validate(user.restaurant).model_dump(by_alias=True) if user.restaurant else None
    return row


async def _load_user(session, user_id: int) -> User:
    result = await session.execute(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.restaurant))
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


async def _check_links(session, restaurant_id: Optional[int], custom_role_id: Optional[int]) -> None:
    if restaurant_id is not None:
        await get_or_404(session, Restaurant, restaurant_id, "Restaurant")
    if custom_role_id is not None:
        await get_or_404(session, CustomRole, custom_role_id, "Role")


# Restaurants


@router.get("/restaurants")
async def admin_restaurants():
    """Every restaurant, newest first, with product, order and review counts."""
    async with async_session_factory() as session:
        restaurants = (
            await session.execute(select(Restaurant).order_by(Restaurant.created_at.desc(), Restaurant.id.desc()))
        ).scalars().all()
        counts = {}
        for label, model in (("products", Product), ("orders", Order), ("reviews", Review)):
            rows = await session.execute(
                select(model.restaurant_id, func.count(model.id)).group_by(model.restaurant_id)
            )
            counts[label] = dict(rows.all())
        data = []
        for r in restaurants:
            row = RestaurantOut.model_validate(r).model_dump(by_alias=True, mode="json")
            row["counts"] = {label: counts[label].get(r.id, 0) for label in counts}
            data.append(row)
        return ok(data)


@router.put("/restaurants")
async def toggle_restaurant(body: RestaurantToggle, admin: SessionUser = Depends(require_admin_user)):
    async with async_session_factory() as session:
        restaurant = await get_or_404(session, Restaurant, body.restaurant_id, "Restaurant")
        restaurant.is_active = body.is_active
        await session.commit()
        await session.refresh(restaurant)
        logger.info("Admin %s set restaurant %s active=%s", admin.id, restaurant.id, body.is_active)
        return ok(RestaurantOut.model_validate(restaurant), "Restaurant updated")


# Users


@router.get("/users")
async def list_users(
    role: Optional[str] = None,
    active: Optional[bool] = None,
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
):
    query = select(User).options(selectinload(User.restaurant)).order_by(User.created_at.desc(), User.id.desc())
    if role:
        query = query.where(User.role == _role_or_400(role))
    if active is not None:
        query = query.where(User.is_active.is_(active))
    if restaurant_id is not None:
        query = query.where(User.restaurant_id == restaurant_id)
    async with async_session_factory() as session:
        users = (await session.execute(query)).scalars().all()
        return ok([_user_row(u) for u in users])


@router.post("/users", status_code=201)
async def create_user(body: UserCreate, admin: SessionUser = Depends(require_admin_user)):
    role = _role_or_400(body.role)
    email = body.email.strip().lower()
    if "@" not in email:
        raise ValidationError("Invalid email format")
    if role is not Role.CUSTOMER and not body.password:
        raise ValidationError("Staff accounts need a password")
    if body.password is not None and len(body.password) < 8:
        raise ValidationError("Password must be at least 8 characters long")
    permissions = None
    if role is Role.RESTAURATOR:
        permissions = join_permissions(
            _permissions_or_400(body.permissions) if body.permissions is not None else RESTAURATOR_PERMISSIONS
        )
    async with async_session_factory() as session:
        if await get_user_by_email(session, email):
            raise ValidationError("A user with this email already exists")
        await _check_links(session, body.restaurant_id, body.custom_role_id)
        user = User(
            name=body.name.strip(),
            email=email,
            phone=body.phone or None,
            password_hash=hash_password(body.password) if body.password else None,
            role=role,
            restaurant_id=body.restaurant_id if role is Role.RESTAURATOR else None,
            permissions=permissions,
            custom_role_id=body.custom_role_id,
            is_active=True,
        )
        session.add(user)
        await session.commit()
        logger.info("Admin %s created %s user %s", admin.id, role.value, user.id)
        return ok(_user_row(await _load_user(session, user.id)), "User created")


@router.get("/users/{user_id}")
async def get_user(user_id: int):
    async with async_session_factory() as session:
        user = await _load_user(session, user_id)
        row = _user_row(user)
        row["ordersCount"] = (
            await session.execute(select(func.count(Order.id)).where(Order.user_id == user_id))
        ).scalar_one()
        return ok(row)


@router.put("/users/{user_id}")
async def update_user(user_id: int, body: UserUpdate, admin: SessionUser = Depends(require_admin_user)):
    """Partial update, including role changes and moving a manager to another restaurant."""
    updates = body.model_dump(exclude_unset=True)
    async with async_session_factory() as session:
        user = await _load_user(session, user_id)
        was_restaurator = user.role is Role.RESTAURATOR
        if user.id == admin.id and (
            updates.get("is_active") is False or ("role" in updates and updates["role"] != Role.ADMIN.value)
        ):
            raise ValidationError("You cannot deactivate or demote your own account")
        if "name" in updates:
            if not (updates["name"] or "").strip():
                raise ValidationError("Name cannot be empty")
            user.name = updates["name"].strip()
        if "email" in updates:
            email = (updates["email"] or "").strip().lower()
            if "@" not in email:
                raise ValidationError("Invalid email format")
            other = await get_user_by_email(session, email)
            if other and other.id != user.id:
                raise ValidationError("This email is already in use")
            user.email = email
        if "phone" in updates:
            user.phone = updates["phone"] or None
        if updates.get("role") is not None:
            user.role = _role_or_400(updates["role"])
        if "restaurant_id" in updates:
            await _check_links(session, updates["restaurant_id"], None)
            user.restaurant_id = updates["restaurant_id"]
        if "custom_role_id" in updates:
            await _check_links(session, None, updates["custom_role_id"])
            user.custom_role_id = updates["custom_role_id"]
        if updates.get("permissions") is not None:
            user.permissions = join_permissions(_permissions_or_400(updates["permissions"]))
        if updates.get("is_active") is not None:
            user.is_active = updates["is_active"]
        if updates.get("must_change_password") is not None and user.role is not Role.CUSTOMER:
            user.must_change_password = updates["must_change_password"]
        if user.role is not Role.RESTAURATOR:
            user.restaurant_id = None
            user.permissions = None
        elif not was_restaurator and updates.get("permissions") is None:
            user.permissions = join_permissions(RESTAURATOR_PERMISSIONS)
        await session.commit()
        logger.info("Admin %s updated user %s", admin.id, user.id)
        return ok(_user_row(await _load_user(session, user_id)), "User updated")


@router.delete("/users/{user_id}")
async def delete_user(user_id: int, admin: SessionUser = Depends(require_admin_user)):
    """Deactivate a user. Accounts are never removed from the database."""
    if user_id == admin.id:
        raise ValidationError("You cannot delete your own account")
    async with async_session_factory() as session:
        user = await get_or_404(session, User, user_id, "User")
        user.is_active = False
        await session.commit()
    logger.info("Admin %s deactivated user %s", admin.id, user_id)
    return ok(None, "User deactivated")


@router.post("/users/{user_id}/reset-password")
async def reset_password(user_id: int, admin: SessionUser = Depends(require_admin_user)):
    async with async_session_factory() as session:
        user = await get_or_404(session, User, user_id, "User")
        if user.role is Role.CUSTOMER:
            raise ValidationError("Customer accounts have no password")
        temporary_password = generate_temporary_password()
        user.password_hash = hash_password(temporary_password)
        user.must_change_password = True
        await session.commit()
    logger.info("Admin %s reset the password of user %s", admin.id, user_id)
    return ok({"temporaryPassword": temporary_password}, "Password reset", tempPassword=temporary_password)


# Dashboard, orders, reviews


@router.get("/dashboard/stats")
async def dashboard_stats():
    async with async_session_factory() as session:
        return ok(await dashboards.admin_stats(session))


@router.get("/orders")
async def admin_orders(
    status: Optional[OrderStatus] = None,
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
):
    query = order_query().order_by(Order.created_at.desc(), Order.id.desc())
    if status:
        query = query.where(Order.status == status)
    if restaurant_id is not None:
        query = query.where(Order.restaurant_id == restaurant_id)
    async with async_session_factory() as session:
        orders = (await session.execute(query)).scalars().all()
        return ok([OrderOut.model_validate(o) for o in orders])


@router.get("/reviews")
async def admin_reviews(
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
    rating: Optional[int] = Query(None, ge=1, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    filters = []
    if restaurant_id is not None:
        filters.append(Review.restaurant_id == restaurant_id)
    if rating is not None:
        filters.append(Review.rating == rating)
    async with async_session_factory() as session:
        total = (await session.execute(select(func.count(Review.id)).where(*filters))).scalar_one()
        result = await session.execute(
            select(Review)
            .where(*filters)
            .options(selectinload(Review.restaurant), selectinload(Review.product))
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = []
        for r in result.scalars().all():
            row = ReviewOut.model_validate(r).model_dump(by_alias=True, mode="json")
            row["restaurant"] = RestaurantBrief.model_validate(r.restaurant).model_dump(by_alias=True) if r.restaurant else None
            row["product"] = ProductBrief.model_validate(r.product).model_dump(by_alias=True) if r.product else None
            rows.append(row)
        return ok({"reviews": rows, "pagination": pagination(page, limit, total)})


@router.delete("/reviews/{review_id}")
async def delete_review(review_id: int, admin: SessionUser = Depends(require_admin_user)):
    """Remove a review and refresh the ratings it contributed to."""
    async with async_session_factory() as session:
        review = await get_or_404(session, Review, review_id, "Review")
        restaurant_id, product_id = review.restaurant_id, review.product_id
        await session.delete(review)
        ratings = await recompute_ratings(session, restaurant_id, product_id)
        await session.commit()
    logger.info("Admin %s deleted review %s", admin.id, review_id)
    return ok(ratings, "Review deleted")


# Finances


async def _finance_orders(session, date_from, date_to, restaurant, status, method):
    try:
        return await finances.fetch_orders(
            session,
            date_from=date_from,
            date_to=date_to,
            restaurant_id=restaurant,
            payment_status=status,
            payment_method=method,
        )
    except ValueError as e:
        raise ValidationError(str(e))


@router.get("/finances")
async def admin_finances(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    restaurant: Optional[int] = None,
    status: Optional[str] = None,
    method: Optional[str] = None,
):
    async with async_session_factory() as session:
        orders = await _finance_orders(session, date_from, date_to, restaurant, status, method)
        data = finances.summarize(orders)
        data["recentTransactions"] = [
            {
                "id": o.id,
                "orderNumber": o.order_number,
                "restaurant": o.restaurant.name if o.restaurant else "",
                "customer": o.customer_name,
                "amount": o.total,
                "deliveryFee": o.delivery_fee,
                "paymentMethod": o.payment_method.value,
                "paymentStatus": o.payment_status.value,
                "status": o.status.value,
                "createdAt": o.created_at.isoformat(),
            }
            for o in orders[:20]
        ]
        return ok(data)


@router.get("/finances/export")
async def export_finances(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    restaurant: Optional[int] = None,
    status: Optional[str] = None,
    method: Optional[str] = None,
):
    """CSV export of the filtered orders."""
    async with async_session_factory() as session:
        orders = await _finance_orders(session, date_from, date_to, restaurant, status, method)
        content = finances.orders_to_csv(orders)
    filename = finances.export_filename()
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Custom roles and permissions


async def _role_usage(session) -> dict[int, int]:
    rows = await session.execute(
        select(User.custom_role_id, func.count(User.id))
        .where(User.custom_role_id.is_not(None))
        .group_by(User.custom_role_id)
    )
    return dict(rows.all())


def _role_row(role: CustomRole, usage: dict[int, int]) -> dict:
    row = CustomRoleOut.model_validate(role).model_dump(by_alias=True, mode="json")
    row["usersCount"] = usage.get(role.id, 0)
    return row


@router.get("/roles")
async def list_roles():
    async with async_session_factory() as session:
        roles = (
            await session.execute(select(CustomRole).order_by(CustomRole.created_at.desc(), CustomRole.id.desc()))
        ).scalars().all()
        usage = await _role_usage(session)
        return ok([_role_row(r, usage) for r in roles])


@router.post("/roles", status_code=201)
async def create_role(body: RoleCreate, admin: SessionUser = Depends(require_admin_user)):
    name = body.name.strip()
    if not name:
        raise ValidationError("Name is required")
    permissions = _permissions_or_400(body.permissions)
    async with async_session_factory() as session:
        existing = await session.execute(select(CustomRole).where(CustomRole.name == name))
        if existing.scalar_one_or_none():
            raise ValidationError("A role with this name already exists")
        role = CustomRole(
            name=name,
            description=body.description,
            permissions=join_permissions(permissions),
            is_active=True,
        )
        session.add(role)
        await session.commit()
        logger.info("Admin %s created role %s", admin.id, role.name)
        return ok(_role_row(role, {}), "Role created")


@router.put("/roles/{role_id}")
@router.patch("/roles/{role_id}")
async def update_role(role_id: int, body: RoleUpdate):
    updates = body.model_dump(exclude_unset=True)
    async with async_session_factory() as session:
        role = await get_or_404(session, CustomRole, role_id, "Role")
        if updates.get("name") is not None:
            name = updates["name"].strip()
            if not name:
                raise ValidationError("Name cannot be empty")
            clash = await session.execute(
                select(CustomRole).where(CustomRole.name == name, CustomRole.id != role_id)
            )
            if clash.scalar_one_or_none():
                raise ValidationError("A role with this name already exists")
            role.name = name
        if "description" in updates:
            role.description = updates["description"]
        if updates.get("is_active") is not None:
            role.is_active = updates["is_active"]
        if updates.get("permissions") is not None:
            role.permissions = join_permissions(_permissions_or_400(updates["permissions"]))
        await session.commit()
        await session.refresh(role)
        return ok(_role_row(role, await _role_usage(session)), "Role updated")


@router.delete("/roles/{role_id}")
async def delete_role(role_id: int):
    async with async_session_factory() as session:
        role = await get_or_404(session, CustomRole, role_id, "Role")
        if (await _role_usage(session)).get(role_id):
            raise ValidationError("This role is still assigned to users")
        await session.delete(role)
        await session.commit()
    return ok(None, "Role deleted")


@router.get("/permissions")
async def list_permissions():
    """Permission catalog grouped by category."""
    grouped: dict[str, list[dict]] = {}
    for name, description in PERMISSION_CATALOG.items():
        grouped.setdefault(category_of(name), []).append({"name": name, "description": description})
    return ok({
        "permissions": [
            {"name": name, "description": description, "category": category_of(name)}
            for name, description in PERMISSION_CATALOG.items()
        ],
        "categories": grouped,
    })
