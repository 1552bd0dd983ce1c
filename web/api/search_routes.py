"""Text search over products and restaurants."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from marketplace.models import Product, Restaurant
from marketplace.models.base import async_session_factory
from web.api.utils import ProductOut, RestaurantOut, ok

router = APIRouter(prefix="/api/search", tags=["search"])

MAX_PRODUCTS = 50


@router.get("")
async def search(
    q: str = "",
    cuisine: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    min_rating: Optional[float] = Query(None, alias="minRating"),
    vegetarian: bool = False,
):
    """Products whose name matches ``q`` and restaurants that sell them or whose name matches."""
    term = q.strip()
    if not term:
        return ok({"restaurants": [], "products": [], "totalRestaurants": 0, "totalProducts": 0})

    restaurant_filters = [Restaurant.is_active.is_(True)]
    if cuisine:
        restaurant_filters.append(Restaurant.cuisine.ilike(f"%{cuisine}%"))
    if min_rating is not None:
        restaurant_filters.append(Restaurant.rating >= min_rating)

    product_query = (
        select(Product)
        .join(Product.restaurant)
        .where(Product.active.is_(True), Product.name.ilike(f"%{term}%"), *restaurant_filters)
        .options(selectinload(Product.restaurant), selectinload(Product.category))
        .order_by(Product.rating.desc(), Product.name)
    )
    if min_price is not None:
        product_query = product_query.where(Product.price >= min_price)
    if max_price is not None:
        product_query = product_query.where(Product.price <= max_price)
    if vegetarian:
        product_query = product_query.where(Product.is_vegetarian.is_(True))

    async with async_session_factory() as session:
        products = list((await session.execute(product_query.limit(MAX_PRODUCTS))).scalars().all())
        seller_ids = {p.restaurant_id for p in products}
        restaurant_query = select(Restaurant).where(*restaurant_filters)
        if seller_ids:
            restaurant_query = restaurant_query.where(
                Restaurant.name.ilike(f"%{term}%") | Restaurant.id.in_(seller_ids)
            )
        else:
            restaurant_query = restaurant_query.where(Restaurant.name.ilike(f"%{term}%"))
        restaurants = (
            await session.execute(restaurant_query.order_by(Restaurant.rating.desc(), Restaurant.name))
        ).scalars().all()
        return ok({
            "restaurants": [RestaurantOut.model_validate(r) for r in restaurants],
            "products": [ProductOut.model_validate(p) for p in products],
            "totalRestaurants": len(restaurants),
            "totalProducts": len(products),
        })
