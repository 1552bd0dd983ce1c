"""Customer reviews. Posting a review refreshes the target's average rating."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import Field, model_validator
from sqlalchemy import func, select

from marketplace.models import Product, Restaurant, Review
from marketplace.models.base import async_session_factory
from marketplace.services.ratings import recompute_ratings
from web.api.utils import ApiModel, ReviewOut, ok, pagination
from web.errors import NotFoundError

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


class ReviewCreate(ApiModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    customer_name: str = Field(min_length=1, max_length=100)
    customer_email: Optional[str] = None
    restaurant_id: Optional[int] = None
    product_id: Optional[int] = None

    @model_validator(mode="after")
    def _has_target(self):
        if self.restaurant_id is None and self.product_id is None:
            raise ValueError("Either restaurantId or productId must be provided")
        return self


@router.post("", status_code=201)
async def create_review(body: ReviewCreate):
    async with async_session_factory() as session:
        if body.restaurant_id is not None and await session.get(Restaurant, body.restaurant_id) is None:
            raise NotFoundError("Restaurant not found")
        if body.product_id is not None and await session.get(Product, body.product_id) is None:
            raise NotFoundError("Product not found")
        review = Review(**body.model_dump())
        session.add(review)
        ratings = await recompute_ratings(session, body.restaurant_id, body.product_id)
        await session.commit()
        return ok(ReviewOut.model_validate(review), "Review added", ratings=ratings)


@router.get("")
async def list_reviews(
    restaurant_id: Optional[int] = Query(None, alias="restaurantId"),
    product_id: Optional[int] = Query(None, alias="productId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    filters = []
    if restaurant_id is not None:
        filters.append(Review.restaurant_id == restaurant_id)
    if product_id is not None:
        filters.append(Review.product_id == product_id)
    async with async_session_factory() as session:
        total = (await session.execute(select(func.count(Review.id)).where(*filters))).scalar_one()
        result = await session.execute(
            select(Review)
            .where(*filters)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        reviews = result.scalars().all()
        return ok({
            "reviews": [ReviewOut.model_validate(r) for r in reviews],
            "pagination": pagination(page, limit, total),
        })
