"""Product endpoints: public listing and detail, staff create/update/delete."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from marketplace.models import Product
from marketplace.models.base import async_session_factory
from marketplace.services import catalog
from web.auth import SessionUser, check_permission, ensure_restaurant_access, require_staff
from web.api.utils import ApiModel, ProductOut, ok
from web.errors import NotFoundError, ValidationError

router = APIRouter(prefix="/api/products", tags=["products"])


class ProductCreate(ApiModel):
    name: str
    price: float
    restaurant_id: int
    category_id: int
    description: Optional[str] = None
    image: Optional[str] = None
    featured: bool = False
    is_new: bool = False
    is_popular: bool = False
    is_vegetarian: bool = False


class ProductUpdate(ApiModel):
    name: Optional[str] = None
    price: Optional[float] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    image: Optional[str] = None
    active: Optional[bool] = None
    featured: Optional[bool] = None
    is_new: Optional[bool] = None
    is_popular: Optional[bool] = None
    is_vegetarian: Optional[bool] = None


@router.get("")
async def list_products(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
    featured: bool = False,
    limit: Optional[int] = Query(None, ge=1, le=200),
):
    """Active products, newest first."""
    query = (
        select(Product)
        .where(Product.active.is_(True))
        .options(selectinload(Product.restaurant), selectinload(Product.category))
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    if category_id is not None:
        query = query.where(Product.category_id == category_id)
    if restaurant_id is not None:
        query = query.where(Product.restaurant_id == restaurant_id)
    if featured:
        query = query.where(Product.featured.is_(True))
    if limit:
        query = query.limit(limit)
    async with async_session_factory() as session:
        products = (await session.execute(query)).scalars().all()
        return ok([ProductOut.model_validate(p) for p in products])


@router.post("", status_code=201)
async def create_product(body: ProductCreate, user: SessionUser = Depends(require_staff)):
    ensure_restaurant_access(user, body.restaurant_id)
    check_permission(user, "restaurant.products.create")
    async with async_session_factory() as session:
        try:
            product = await catalog.create_product(
                session, body.restaurant_id, body.model_dump(exclude={"restaurant_id"})
            )
        except ValueError as e:
            raise ValidationError(str(e))
        await session.commit()
        product = await catalog.load_product(session, product.id)
        return ok(ProductOut.model_validate(product), "Product created")


@router.get("/{product_id}")
async def get_product(product_id: int):
    async with async_session_factory() as session:
        product = await catalog.load_product(session, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return ok(ProductOut.model_validate(product))


@router.put("/{product_id}")
async def update_product(product_id: int, body: ProductUpdate, user: SessionUser = Depends(require_staff)):
    async with async_session_factory() as session:
        product = await catalog.load_product(session, product_id)
        if not product:
            raise NotFoundError("Product not found")
        ensure_restaurant_access(user, product.restaurant_id)
        check_permission(user, "restaurant.products.edit")
        try:
            await catalog.update_product(session, product, body.model_dump(exclude_unset=True))
        except ValueError as e:
            raise ValidationError(str(e))
        await session.commit()
        product = await catalog.load_product(session, product_id)
        return ok(ProductOut.model_validate(product), "Product updated")


@router.delete("/{product_id}")
async def delete_product(product_id: int, user: SessionUser = Depends(require_staff)):
    async with async_session_factory() as session:
        product = await session.get(Product, product_id)
        if not product:
            raise NotFoundError("Product not found")
        ensure_restaurant_access(user, product.restaurant_id)
        check_permission(user, "restaurant.products.delete")
        await catalog.delete_product(session, product_id)
        await session.commit()
        return ok(None, "Product deleted")
