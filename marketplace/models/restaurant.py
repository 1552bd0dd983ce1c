"""Restaurant model."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

import config
from marketplace.models.base import Base, utcnow


class Restaurant(Base):
    """Restaurant listed on the marketplace."""

    __tablename__ = "restaurants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    rating: Mapped[float] = mapped_column(Float, default=0.0)  # mean of review ratings
    likes_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    cuisine: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    delivery_fee: Mapped[float] = mapped_column(Float, default=0.0)
    min_order_amount: Mapped[float] = mapped_column(Float, default=config.DEFAULT_MIN_ORDER_AMOUNT)
    opening_hours: Mapped[str] = mapped_column(String(64), default=config.DEFAULT_OPENING_HOURS)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    products = relationship("Product", back_populates="restaurant", cascade="all, delete-orphan")
    categories = relationship("Category", back_populates="restaurant")
    orders = relationship("Order", back_populates="restaurant")
    reviews = relationship("Review", back_populates="restaurant")
    managers = relationship("User", back_populates="restaurant")
