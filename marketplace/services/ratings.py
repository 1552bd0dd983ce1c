"""Average rating maintenance for restaurants and products."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import Product, Restaurant, Review


async def _mean_rating(session: AsyncSession, column, target_id: int) -> float:
    result = await session.execute(select(func.avg(Review.rating)).where(column == target_id))
    avg = result.scalar_one_or_none()
    return float(avg) if avg is not None else 0.0


async def recompute_ratings(
    session: AsyncSession,
    restaurant_id: Optional[int] = None,
    product_id: Optional[int] = None,
) -> dict[str, float]:
    """Re-aggregate every review of the given targets and store the mean.

    Not incremental: the full set is averaged each time. Targets without
    reviews fall back to 0. Caller commits.
    """
    await session.flush()
    updated = {}
    if restaurant_id is not None:
        restaurant = await session.get(Restaurant, restaurant_id)
        if restaurant:
            restaurant.rating = await _mean_rating(session, Review.restaurant_id, restaurant_id)
            updated["restaurant"] = restaurant.rating
    if product_id is not None:
        product = await session.get(Product, product_id)
        if product:
            product.rating = await _mean_rating(session, Review.product_id, product_id)
            updated["product"] = product.rating
    return updated
