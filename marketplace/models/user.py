"""Staff and customer accounts."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.models.base import Base, utcnow
from marketplace.roles import Role


class User(Base):
    """Account with exactly one base role. Never hard-deleted; see is_active."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)  # customers may have none
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=16, validate_strings=True),
        nullable=False,
        default=Role.CUSTOMER,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=False)
    permissions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # comma-separated, RESTAURATOR only
    restaurant_id: Mapped[Optional[int]] = mapped_column(ForeignKey("restaurants.id"), nullable=True)
    custom_role_id: Mapped[Optional[int]] = mapped_column(ForeignKey("custom_roles.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    restaurant: Mapped[Optional["Restaurant"]] = relationship("Restaurant", back_populates="managers")
    custom_role: Mapped[Optional["CustomRole"]] = relationship("CustomRole", back_populates="users")
    orders = relationship("Order", back_populates="user")
