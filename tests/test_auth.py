"""Tests for sign-in, signup, password changes and the /admin and /restaurant page gate."""
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, login
from marketplace.roles import Role
from web.auth import SessionUser, issue_token


def _redirect_query(response):
    location = urlparse(response.headers["location"])
    assert location.path == "/login"
    return {k: v[0] for k, v in parse_qs(location.query).items()}


@pytest.mark.asyncio
async def test_admin_login_sets_cookie(client):
    """First login with the configured credentials creates the admin and sets the session cookie."""
    r = await client.post("/api/auth/login", json={"email": ADMIN_EMAIL.upper(), "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "ADMIN"
    assert body["data"]["token"]
    cookie = r.headers["set-cookie"]
    assert cookie.startswith("auth-token=")
    assert "HttpOnly" in cookie
    assert "samesite=strict" in cookie.lower()


@pytest.mark.asyncio
async def test_login_errors(client, auth_headers):
    r = await client.post("/api/auth/login", json={"email": ADMIN_EMAIL})
    assert r.status_code == 400
    assert r.json()["success"] is False

    r = await client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-password"})
    assert r.status_code == 401

    r = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "whatever"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_customer_cannot_sign_in(client, auth_headers):
    """Customer accounts are refused before the password is checked."""
    r = await client.post(
        "/api/admin/users",
        json={"name": "Awa", "email": "awa@example.com", "role": "CUSTOMER", "password": "customer-pass"},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    for password in ("customer-pass", "wrong"):
        r = await client.post("/api/auth/login", json={"email": "awa@example.com", "password": password})
        assert r.status_code == 403


@pytest.mark.asyncio
async def test_me_and_logout(client, auth_headers):
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.headers.get("www-authenticate") == "Bearer"

    r = await client.get("/api/auth/me", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["data"]["email"] == ADMIN_EMAIL

    r = await client.post("/api/auth/logout")
    assert r.status_code == 200
    assert 'auth-token=""' in r.headers["set-cookie"] or "Max-Age=0" in r.headers["set-cookie"]


@pytest.mark.asyncio
async def test_restaurant_login_flags_temporary_password(client, restaurant):
    r = await client.post(
        "/api/auth/restaurant-login",
        json={"email": restaurant["manager"]["email"], "password": restaurant["password"]},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["requiresPasswordChange"] is True
    assert data["restaurant"]["id"] == restaurant["id"]
    assert data["user"]["restaurantId"] == restaurant["id"]


@pytest.mark.asyncio
async def test_restaurant_login_refuses_admin(client, auth_headers):
    r = await client.post("/api/auth/restaurant-login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_change_password(client, restaurant, manager_headers):
    email = restaurant["manager"]["email"]
    r = await client.post(
        "/api/auth/change-password",
        json={"currentPassword": restaurant["password"], "newPassword": "short"},
        headers=manager_headers,
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/auth/change-password",
        json={"currentPassword": "not-the-password", "newPassword": "a-much-longer-one"},
        headers=manager_headers,
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/auth/change-password",
        json={"currentPassword": restaurant["password"], "newPassword": "a-much-longer-one"},
        headers=manager_headers,
    )
    assert r.status_code == 200

    r = await client.post(
        "/api/auth/restaurant-login", json={"email": email, "password": "a-much-longer-one"}
    )
    assert r.status_code == 200
    assert r.json()["data"]["requiresPasswordChange"] is False


@pytest.mark.asyncio
async def test_signup_restaurant_owner(client):
    payload = {
        "type": "restaurant",
        "user": {
            "firstName": "Moussa",
            "lastName": "Ndiaye",
            "email": "Moussa@Example.com",
            "password": "secret1",
        },
        "restaurant": {"name": "Le Baobab", "address": "Almadies, Dakar"},
    }
    r = await client.post("/api/auth/signup", json=payload)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["user"]["email"] == "moussa@example.com"
    assert data["user"]["role"] == "RESTAURATOR"
    assert data["user"]["restaurantId"] == data["restaurant"]["id"]
    assert "restaurant.dashboard" in data["user"]["permissions"]

    headers = await login(client, "moussa@example.com", "secret1", "/api/auth/restaurant-login")
    r = await client.get(f"/api/restaurant/{data['restaurant']['id']}/dashboard", headers=headers)
    assert r.status_code == 200

    r = await client.post("/api/auth/signup", json=payload)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_signup_validation(client):
    user = {"firstName": "A", "lastName": "B", "email": "not-an-email", "password": "secret1"}
    r = await client.post("/api/auth/signup", json={"type": "restaurant", "user": user, "restaurant": {"name": "X", "address": "Y"}})
    assert r.status_code == 400

    user["email"] = "a@b.sn"
    user["password"] = "123"
    r = await client.post("/api/auth/signup", json={"type": "restaurant", "user": user, "restaurant": {"name": "X", "address": "Y"}})
    assert r.status_code == 400

    user["password"] = "secret1"
    r = await client.post("/api/auth/signup", json={"type": "restaurant", "user": user})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_admin_signup_requires_admin(client, auth_headers):
    payload = {
        "type": "admin",
        "user": {"firstName": "Second", "lastName": "Admin", "email": "second@mnufood.com", "password": "secret1"},
    }
    r = await client.post("/api/auth/signup", json=payload)
    assert r.status_code == 403

    r = await client.post("/api/auth/signup", json=payload, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["data"]["user"]["role"] == "ADMIN"
    assert r.json()["data"]["user"]["permissions"] == []


# Page gate


@pytest.mark.asyncio
async def test_protected_page_without_session_redirects(client):
    r = await client.get("/admin/restaurants")
    assert r.status_code == 307
    assert _redirect_query(r) == {"redirect": "/admin/restaurants"}


@pytest.mark.asyncio
async def test_protected_page_with_bad_session(client):
    r = await client.get("/restaurant/orders", headers={"Cookie": "auth-token=garbage"})
    assert r.status_code == 307
    assert _redirect_query(r) == {"redirect": "/restaurant/orders", "error": "session-expired"}


@pytest.mark.asyncio
async def test_protected_page_with_expired_session(client):
    admin = SessionUser(id=1, email=ADMIN_EMAIL, name="Administrator", role=Role.ADMIN, permissions=("admin.all",))
    token = issue_token(admin, timedelta(seconds=-1))
    r = await client.get("/admin/finances", headers={"Cookie": f"auth-token={token}"})
    assert r.status_code == 307
    assert _redirect_query(r) == {"redirect": "/admin/finances", "error": "session-expired"}


@pytest.mark.asyncio
async def test_protected_page_wrong_role(client, auth_headers):
    token = auth_headers["Authorization"].split(" ", 1)[1]
    r = await client.get("/restaurant", headers={"Cookie": f"auth-token={token}"})
    assert r.status_code == 307
    assert _redirect_query(r) == {"error": "unauthorized"}

    r = await client.get("/admin", headers={"Cookie": f"auth-token={token}"})
    assert r.status_code != 307


@pytest.mark.asyncio
async def test_gate_matches_whole_segments(client):
    """/administrators and /restaurants are public paths."""
    r = await client.get("/administrators")
    assert r.status_code != 307
    r = await client.get("/api/restaurants")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_api_reads_cookie_before_bearer(client, auth_headers, restaurant):
    """The session cookie wins over an Authorization header."""
    manager = await login(client, restaurant["manager"]["email"], restaurant["password"], "/api/auth/restaurant-login")
    admin_token = auth_headers["Authorization"].split(" ", 1)[1]
    r = await client.get("/api/auth/me", headers={**manager, "Cookie": f"auth-token={admin_token}"})
    assert r.status_code == 200
    assert r.json()["data"]["role"] == "ADMIN"
