"""Tests for roles, permissions and session tokens (no HTTP)."""
from datetime import timedelta
from types import SimpleNamespace

import jwt
import pytest

import config
from marketplace.roles import (
    PERMISSION_CATALOG,
    RESTAURATOR_PERMISSIONS,
    Role,
    can_access_restaurant,
    category_of,
    has_permission,
    join_permissions,
    normalize_permissions,
    parse_role,
    permissions_for,
    split_permissions,
)
from web.auth import InvalidToken, SessionUser, issue_token, verify_token


def _user(role, restaurant_id=None, permissions=()):
    return SimpleNamespace(role=role, restaurant_id=restaurant_id, permissions=permissions)


def test_parse_role_rejects_unknown():
    assert parse_role("ADMIN") is Role.ADMIN
    assert parse_role(Role.CUSTOMER) is Role.CUSTOMER
    for bad in ("admin", "SUPERUSER", "", None, 3):
        with pytest.raises(ValueError):
            parse_role(bad)


def test_admin_holds_every_permission():
    admin = _user(Role.ADMIN)
    for perm in PERMISSION_CATALOG:
        assert has_permission(admin, perm)


def test_restaurator_only_listed_permissions():
    manager = _user(Role.RESTAURATOR, 1, ("restaurant.orders.view",))
    assert has_permission(manager, "restaurant.orders.view")
    assert not has_permission(manager, "restaurant.orders.edit")
    assert not has_permission(manager, "users.view_all")


def test_restaurator_permissions_from_column_string():
    """A comma-separated column is split, not substring-matched."""
    manager = _user(Role.RESTAURATOR, 1, "restaurant.products.view,restaurant.orders.view")
    assert has_permission(manager, "restaurant.orders.view")
    assert not has_permission(manager, "restaurant.orders")


def test_customer_has_nothing():
    customer = _user(Role.CUSTOMER, permissions=("restaurant.dashboard",))
    assert not has_permission(customer, "restaurant.dashboard")
    assert permissions_for(Role.CUSTOMER) == frozenset()


def test_role_grants_are_nested():
    """CUSTOMER grants are a subset of a full RESTAURATOR, which are a subset of ADMIN."""
    customer = _user(Role.CUSTOMER)
    manager = _user(Role.RESTAURATOR, 1, RESTAURATOR_PERMISSIONS)
    admin = _user(Role.ADMIN)
    for perm in PERMISSION_CATALOG:
        if has_permission(customer, perm):
            assert has_permission(manager, perm)
        if has_permission(manager, perm):
            assert has_permission(admin, perm)
    assert set(RESTAURATOR_PERMISSIONS) == set(permissions_for(Role.RESTAURATOR))


def test_restaurant_access():
    assert can_access_restaurant(_user(Role.ADMIN), 42)
    assert can_access_restaurant(_user(Role.RESTAURATOR, 7), 7)
    assert not can_access_restaurant(_user(Role.RESTAURATOR, 7), 8)
    assert not can_access_restaurant(_user(Role.RESTAURATOR, None), 7)
    assert not can_access_restaurant(_user(Role.CUSTOMER), 7)


def test_normalize_permissions():
    assert normalize_permissions(["restaurant.dashboard", " restaurant.dashboard ", "", "roles.manage"]) == [
        "restaurant.dashboard",
        "roles.manage",
    ]
    with pytest.raises(ValueError):
        normalize_permissions(["restaurant.teleport"])


def test_permission_string_helpers():
    assert split_permissions(None) == []
    assert split_permissions("a, b,,c") == ["a", "b", "c"]
    assert join_permissions(["a", "b"]) == "a,b"
    assert category_of("restaurant.orders.edit") == "restaurant"
    assert category_of("roles.manage") == "roles"


SESSION = SessionUser(
    id=5,
    email="fatou@example.com",
    name="Fatou Diop",
    role=Role.RESTAURATOR,
    restaurant_id=3,
    permissions=("restaurant.dashboard", "restaurant.orders.view"),
)


def test_token_round_trip():
    assert verify_token(issue_token(SESSION)) == SESSION


def test_token_tampering_is_rejected():
    token = issue_token(SESSION)
    header, payload, signature = token.split(".")
    middle = len(signature) // 2
    flipped = "A" if signature[middle] != "A" else "B"
    tampered = [
        f"x{header}.{payload}.{signature}",
        f"{header}.{payload[:-2]}xy.{signature}",
        f"{header}.{payload}.{signature[:middle]}{flipped}{signature[middle + 1:]}",
        "not-a-token",
        "",
    ]
    for bad in tampered:
        with pytest.raises(InvalidToken):
            verify_token(bad)


def test_expired_token_is_rejected():
    token = issue_token(SESSION, timedelta(seconds=-1))
    with pytest.raises(InvalidToken):
        verify_token(token)


def test_token_with_unknown_role_is_rejected():
    token = jwt.encode(
        {"id": 1, "email": "x@y.z", "name": "X", "role": "ROOT", "iat": 0, "exp": 4102444800},
        config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidToken):
        verify_token(token)
