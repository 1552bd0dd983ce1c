"""Category endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select

from marketplace.models import Product
from marketplace.models.base import async_session_factory
from marketplace.services import catalog
from web.auth import SessionUser, check_permission, ensure_restaurant_access, require_staff
from web.api.utils import ApiModel, CategoryOut, ok
from web.errors import PermissionDenied, ValidationError

router = APIRouter(prefix="/api/categories", tags=["categories"])


class CategoryCreate(ApiModel):
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    order: int = 0
    active: Optional[bool] = None
    restaurant_id: Optional[int] = None


@router.get("")
async def list_categories(restaurant_id: Optional[int] = Query(None, alias="restaurantId")):
    """Active categories in display order, each with its active products."""
    async with async_session_factory() as session:
        categories = await catalog.list_categories(session, restaurant_id)
        ids = [c.id for c in categories]
        result = await session.execute(
            select(Product).where(Product.category_id.in_(ids), Product.active.is_(True)).order_by(Product.name)
        )
        by_category: dict[int, list[dict]] = {}
        for p in result.scalars().all():
            by_category.setdefault(p.category_id, []).append({
                "id": p.id,
                "name": p.name,
                "price": p.price,
                "image": p.image,
                "featured": p.featured,
                "isNew": p.is_new,
                "isPopular": p.is_popular,
                "isVegetarian": p.is_vegetarian,
            })
        data = []
        for c in categories:
            row = CategoryOut.model_validate(c).model_dump(by_alias=True, mode="json")
            row["products"] = by_category.get(c.id, [])
            data.append(row)
        return ok(data)


@router.post("", status_code=201)
async def create_category(body: CategoryCreate, user: SessionUser = Depends(require_staff)):
    """Global categories are admin-only; managers create categories for their own restaurant."""
    if body.restaurant_id is None:
        if not user.is_admin:
            raise PermissionDenied("Only administrators can create global categories")
    else:
        ensure_restaurant_access(user, body.restaurant_id)
        check_permission(user, "restaurant.categories.manage")
    async with async_session_factory() as session:
        try:
            category = await catalog.create_category(session, body.model_dump(), body.restaurant_id)
        except ValueError as e:
            raise ValidationError(str(e))
        await session.commit()
        return ok(CategoryOut.model_validate(category), "Category created")
