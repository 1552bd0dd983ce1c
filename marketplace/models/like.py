"""Anonymous likes on products and restaurants."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.models.base import Base, utcnow


class LikeTarget(str, enum.Enum):
    PRODUCT = "PRODUCT"
    RESTAURANT = "RESTAURANT"


class Like(Base):
    """One like per visitor identity (phone, email or browser fingerprint) and target."""

    __tablename__ = "likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    target_type: Mapped[LikeTarget] = mapped_column(
        Enum(LikeTarget, native_enum=False, length=16, validate_strings=True), nullable=False
    )
    target_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    user_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_fingerprint: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
