"""Roles and permission strings for staff access control.

A user has exactly one base ``Role``. ADMIN holds the ``admin.all`` wildcard,
RESTAURATOR holds an explicit list stored on the account, CUSTOMER holds
nothing. Checks accept any object exposing ``role``, ``restaurant_id`` and
``permissions`` (the session user carried by the token, or a ``User`` row).
"""
from __future__ import annotations

import enum
from typing import Iterable, Optional


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    RESTAURATOR = "RESTAURATOR"
    CUSTOMER = "CUSTOMER"


ADMIN_WILDCARD = "admin.all"

ADMIN_PERMISSIONS = (
    ADMIN_WILDCARD,
    "restaurants.view_all",
    "restaurants.create",
    "restaurants.edit_all",
    "restaurants.delete",
    "users.view_all",
    "users.create",
    "users.edit_all",
    "users.delete",
    "orders.view_all",
    "products.view_all",
    "finances.view_all",
    "roles.manage",
    "system.settings",
)

RESTAURATOR_PERMISSIONS = (
    "restaurant.dashboard",
    "restaurant.products.view",
    "restaurant.products.create",
    "restaurant.products.edit",
    "restaurant.products.delete",
    "restaurant.orders.view",
    "restaurant.orders.edit",
    "restaurant.categories.manage",
    "restaurant.promotions.manage",
    "restaurant.profile.edit",
    "restaurant.finances.view",
    "restaurant.reviews.view",
)

CUSTOMER_PERMISSIONS: tuple[str, ...] = ()

_ROLE_PERMISSIONS = {
    Role.ADMIN: frozenset(ADMIN_PERMISSIONS),
    Role.RESTAURATOR: frozenset(RESTAURATOR_PERMISSIONS),
    Role.CUSTOMER: frozenset(CUSTOMER_PERMISSIONS),
}

PERMISSION_CATALOG = {
    "admin.all": "Full platform administration",
    "restaurants.view_all": "List every restaurant",
    "restaurants.create": "Create restaurants",
    "restaurants.edit_all": "Edit any restaurant",
    "restaurants.delete": "Delete restaurants",
    "users.view_all": "List every user",
    "users.create": "Create users",
    "users.edit_all": "Edit any user",
    "users.delete": "Deactivate users",
    "orders.view_all": "See every order",
    "products.view_all": "See every product",
    "finances.view_all": "See platform finances",
    "roles.manage": "Manage custom roles",
    "system.settings": "Change marketplace settings",
    "restaurant.dashboard": "Open the restaurant dashboard",
    "restaurant.products.view": "List the restaurant's products",
    "restaurant.products.create": "Add products",
    "restaurant.products.edit": "Edit products",
    "restaurant.products.delete": "Delete products",
    "restaurant.orders.view": "List the restaurant's orders",
    "restaurant.orders.edit": "Update order status",
    "restaurant.categories.manage": "Manage the restaurant's categories",
    "restaurant.promotions.manage": "Manage promotions",
    "restaurant.profile.edit": "Edit the restaurant profile",
    "restaurant.finances.view": "See the restaurant's finances",
    "restaurant.reviews.view": "Read the restaurant's reviews",
}


def parse_role(value) -> Role:
    """Return the Role for ``value``. Raises ValueError for anything outside the enum."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid role: {value!r}")
    try:
        return Role(value)
    except ValueError:
        raise ValueError(f"Invalid role: {value!r}") from None


def permissions_for(role: Role) -> frozenset[str]:
    """Baseline permission set granted by ``role``."""
    return _ROLE_PERMISSIONS[parse_role(role)]


def category_of(permission: str) -> str:
    """Grouping used by the permission catalog (``restaurant.orders.edit`` -> ``restaurant``)."""
    return permission.split(".", 1)[0]


def normalize_permissions(values: Iterable[str]) -> list[str]:
    """Drop blanks and duplicates, keep order. Raises ValueError for unknown strings."""
    result: list[str] = []
    for raw in values:
        perm = (raw or "").strip()
        if not perm or perm in result:
            continue
        if perm not in PERMISSION_CATALOG:
            raise ValueError(f"Unknown permission: {perm}")
        result.append(perm)
    return result


def split_permissions(value: Optional[str]) -> list[str]:
    """Comma-separated column value -> list."""
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def join_permissions(values: Iterable[str]) -> str:
    return ",".join(values)


def has_permission(user, permission: str) -> bool:
    """ADMIN: always. RESTAURATOR: iff listed on the user. CUSTOMER: never."""
    try:
        role = parse_role(user.role)
    except ValueError:
        return False
    if role is Role.ADMIN:
        return True
    if role is Role.RESTAURATOR:
        granted = user.permissions
        if isinstance(granted, str):
            granted = split_permissions(granted)
        return permission in (granted or ())
    return False


def can_access_restaurant(user, restaurant_id) -> bool:
    """ADMIN: any restaurant. RESTAURATOR: only its own. CUSTOMER: none."""
    try:
        role = parse_role(user.role)
    except ValueError:
        return False
    if role is Role.ADMIN:
        return True
    if role is Role.RESTAURATOR:
        return user.restaurant_id is not None and user.restaurant_id == restaurant_id
    return False
