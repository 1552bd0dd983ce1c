"""Product and category maintenance shared by the public and manager endpoints."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.models import Category, OrderItem, Product, Restaurant, Review

logger = logging.getLogger("mnufood.catalog")

PRODUCT_FIELDS = (
    "name",
    "description",
    "price",
    "image",
    "category_id",
    "active",
    "featured",
    "is_new",
    "is_popular",
    "is_vegetarian",
)


async def load_product(session: AsyncSession, product_id: int) -> Optional[Product]:
    result = await session.execute(
        select(Product)
        .where(Product.id == product_id)
        .options(selectinload(Product.restaurant), selectinload(Product.category))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _check_category(session: AsyncSession, category_id, restaurant_id: int) -> None:
    if not isinstance(category_id, int):
        raise ValueError("Category is required")
    category = await session.get(Category, category_id)
    if category is None or (category.restaurant_id is not None and category.restaurant_id != restaurant_id):
        raise ValueError("Category not found for this restaurant")


def _check_fields(fields: dict) -> None:
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValueError("Name is required")
    if "price" in fields and (fields["price"] is None or fields["price"] <= 0):
        raise ValueError("Price must be greater than 0")


async def create_product(session: AsyncSession, restaurant_id: int, fields: dict) -> Product:
    """Add a product to a restaurant. Raises ValueError on invalid data. Caller commits."""
    if not fields.get("name") or fields.get("price") is None:
        raise ValueError("Name, price and category are required")
    _check_fields(fields)
    if await session.get(Restaurant, restaurant_id) is None:
        raise ValueError("Restaurant not found")
    await _check_category(session, fields.get("category_id"), restaurant_id)
    product = Product(restaurant_id=restaurant_id, **{k: v for k, v in fields.items() if k in PRODUCT_FIELDS and v is not None})
    session.add(product)
    await session.flush()
    logger.info("Product %s added to restaurant %s", product.id, restaurant_id)
    return product


async def update_product(session: AsyncSession, product: Product, fields: dict) -> Product:
    """Apply a partial update. The owning restaurant never changes. Caller commits."""
    _check_fields(fields)
    if "category_id" in fields:
        await _check_category(session, fields["category_id"], product.restaurant_id)
    for key, value in fields.items():
        if key in PRODUCT_FIELDS and (value is not None or key in ("description", "image")):
            setattr(product, key, value)
    await session.flush()
    return product


async def delete_product(session: AsyncSession, product_id: int) -> None:
    """Remove a product. Order lines and reviews keep their data but lose the link. Caller commits."""
    await session.execute(update(OrderItem).where(OrderItem.product_id == product_id).values(product_id=None))
    await session.execute(update(Review).where(Review.product_id == product_id).values(product_id=None))
    await session.execute(delete(Product).where(Product.id == product_id))
    logger.info("Product %s deleted", product_id)


async def list_categories(
    session: AsyncSession,
    restaurant_id: Optional[int] = None,
    include_global: bool = True,
    active_only: bool = True,
) -> list[Category]:
    query = select(Category)
    if restaurant_id is not None:
        if include_global:
            query = query.where(or_(Category.restaurant_id == restaurant_id, Category.restaurant_id.is_(None)))
        else:
            query = query.where(Category.restaurant_id == restaurant_id)
    if active_only:
        query = query.where(Category.active.is_(True))
    result = await session.execute(query.order_by(Category.order, Category.name))
    return list(result.scalars().all())


async def create_category(session: AsyncSession, fields: dict, restaurant_id: Optional[int] = None) -> Category:
    """restaurant_id None creates a global category. Caller commits."""
    name = (fields.get("name") or "").strip()
    if not name:
        raise ValueError("Name is required")
    category = Category(
        name=name,
        description=fields.get("description"),
        image=fields.get("image"),
        order=fields.get("order") or 0,
        active=True if fields.get("active") is None else fields["active"],
        restaurant_id=restaurant_id,
    )
    session.add(category)
    await session.flush()
    return category
