"""Database models."""
from marketplace.models.base import Base, init_db
from marketplace.models.custom_role import CustomRole
from marketplace.models.restaurant import Restaurant
from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.models.order import (
    DeliveryType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from marketplace.models.review import Review
from marketplace.models.like import Like, LikeTarget
from marketplace.models.user import User
from marketplace.models.site_setting import SiteSetting  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "Category",
    "CustomRole",
    "DeliveryType",
    "Like",
    "LikeTarget",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "Restaurant",
    "Review",
    "SiteSetting",
    "User",
    "init_db",
]
