"""Tests for the administration API."""
import pytest

from conftest import login
from marketplace.services.finances import CSV_HEADER


@pytest.mark.asyncio
async def test_admin_area_requires_admin(client, manager_headers):
    r = await client.get("/api/admin/users")
    assert r.status_code == 401
    r = await client.get("/api/admin/users", headers=manager_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_dashboard_stats(client, auth_headers, restaurant, product):
    await client.post(
        "/api/orders",
        json={
            "customerName": "Ousmane",
            "customerPhone": "781112233",
            "address": "Ouakam",
            "items": [{"productId": product["id"], "quantity": 1}],
        },
    )
    r = await client.get("/api/admin/dashboard/stats", headers=auth_headers)
    assert r.status_code == 200
    stats = r.json()["data"]
    assert stats["restaurants"]["total"] == 1
    assert stats["restaurants"]["active"] == 1
    assert stats["users"]["admins"] == 1
    assert stats["users"]["restaurateurs"] == 1
    assert stats["orders"]["total"] == 1
    assert stats["orders"]["pending"] == 1


@pytest.mark.asyncio
async def test_restaurant_list_and_toggle(client, auth_headers, restaurant, product):
    r = await client.get("/api/admin/restaurants", headers=auth_headers)
    assert r.status_code == 200
    row = r.json()["data"][0]
    assert row["counts"] == {"products": 1, "orders": 0, "reviews": 0}

    r = await client.put(
        "/api/admin/restaurants", json={"restaurantId": restaurant["id"], "isActive": False}, headers=auth_headers
    )
    assert r.json()["data"]["isActive"] is False

    r = await client.get("/api/restaurants")
    assert r.json()["data"] == []

    r = await client.put("/api/admin/restaurants", json={"restaurantId": 9999, "isActive": True}, headers=auth_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_create_and_update_user(client, auth_headers, restaurant):
    r = await client.post(
        "/api/admin/users",
        json={"name": "Binta", "email": "Binta@Example.com", "role": "RESTAURATOR", "password": "binta-pass"},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    user = r.json()["data"]
    assert user["email"] == "binta@example.com"
    assert user["restaurantId"] is None
    assert "restaurant.orders.edit" in user["permissions"]

    r = await client.post(
        "/api/admin/users",
        json={"name": "Dup", "email": "binta@example.com", "role": "ADMIN", "password": "another-pass"},
        headers=auth_headers,
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/admin/users",
        json={"name": "Bad", "email": "bad@example.com", "role": "OWNER", "password": "another-pass"},
        headers=auth_headers,
    )
    assert r.status_code == 400

    # Reassign to a restaurant with a reduced permission set
    r = await client.put(
        f"/api/admin/users/{user['id']}",
        json={"restaurantId": restaurant["id"], "permissions": ["restaurant.dashboard", "restaurant.orders.view"]},
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    updated = r.json()["data"]
    assert updated["restaurant"]["id"] == restaurant["id"]
    assert updated["permissions"] == ["restaurant.dashboard", "restaurant.orders.view"]

    binta = await login(client, "binta@example.com", "binta-pass", "/api/auth/restaurant-login")
    r = await client.get(f"/api/restaurant/{restaurant['id']}/orders", headers=binta)
    assert r.status_code == 200
    r = await client.get(f"/api/restaurant/{restaurant['id']}/finances", headers=binta)
    assert r.status_code == 403

    r = await client.put(
        f"/api/admin/users/{user['id']}", json={"permissions": ["restaurant.fly"]}, headers=auth_headers
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_revoking_all_permissions_locks_manager_out(client, auth_headers, restaurant):
    """An empty permission list is stored as-is and grants nothing."""
    manager = restaurant["manager"]
    r = await client.put(f"/api/admin/users/{manager['id']}", json={"permissions": []}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["permissions"] == []

    headers = await login(client, manager["email"], restaurant["password"], "/api/auth/restaurant-login")
    r = await client.get("/api/auth/me", headers=headers)
    assert r.json()["data"]["permissions"] == []
    for path in ("finances", "dashboard", "orders"):
        r = await client.get(f"/api/restaurant/{restaurant['id']}/{path}", headers=headers)
        assert r.status_code == 403


@pytest.mark.asyncio
async def test_promotion_to_restaurator_grants_default_permissions(client, auth_headers, restaurant):
    r = await client.post(
        "/api/admin/users",
        json={"name": "Awa", "email": "awa@example.com", "role": "CUSTOMER"},
        headers=auth_headers,
    )
    customer = r.json()["data"]
    assert customer["permissions"] == []

    r = await client.put(
        f"/api/admin/users/{customer['id']}",
        json={"role": "RESTAURATOR", "restaurantId": restaurant["id"]},
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    assert "restaurant.orders.edit" in r.json()["data"]["permissions"]


@pytest.mark.asyncio
async def test_delete_user_is_soft(client, auth_headers, restaurant):
    manager_id = restaurant["manager"]["id"]
    r = await client.delete(f"/api/admin/users/{manager_id}", headers=auth_headers)
    assert r.status_code == 200

    r = await client.get(f"/api/admin/users/{manager_id}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["data"]["isActive"] is False

    r = await client.post(
        "/api/auth/restaurant-login",
        json={"email": restaurant["manager"]["email"], "password": restaurant["password"]},
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_admin_cannot_delete_or_demote_self(client, auth_headers):
    me = (await client.get("/api/auth/me", headers=auth_headers)).json()["data"]
    r = await client.delete(f"/api/admin/users/{me['id']}", headers=auth_headers)
    assert r.status_code == 400
    r = await client.put(f"/api/admin/users/{me['id']}", json={"role": "CUSTOMER"}, headers=auth_headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_reset_password(client, auth_headers, restaurant):
    manager = restaurant["manager"]
    r = await client.post(f"/api/admin/users/{manager['id']}/reset-password", headers=auth_headers)
    assert r.status_code == 200
    new_password = r.json()["tempPassword"]
    assert new_password != restaurant["password"]

    r = await client.post(
        "/api/auth/restaurant-login", json={"email": manager["email"], "password": new_password}
    )
    assert r.status_code == 200
    assert r.json()["data"]["requiresPasswordChange"] is True
    client.cookies.clear()

    r = await client.post(
        "/api/admin/users",
        json={"name": "Coumba", "email": "coumba@example.com", "role": "CUSTOMER"},
        headers=auth_headers,
    )
    r = await client.post(f"/api/admin/users/{r.json()['data']['id']}/reset-password", headers=auth_headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_custom_roles(client, auth_headers):
    r = await client.post(
        "/api/admin/roles",
        json={"name": "Support", "description": "Support desk", "permissions": ["orders.view_all", "users.view_all"]},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    role = r.json()["data"]
    assert role["permissions"] == ["orders.view_all", "users.view_all"]

    r = await client.post("/api/admin/roles", json={"name": "Support"}, headers=auth_headers)
    assert r.status_code == 400
    r = await client.post("/api/admin/roles", json={"name": "Bogus", "permissions": ["x.y"]}, headers=auth_headers)
    assert r.status_code == 400

    r = await client.patch(f"/api/admin/roles/{role['id']}", json={"isActive": False}, headers=auth_headers)
    assert r.json()["data"]["isActive"] is False

    r = await client.post(
        "/api/admin/users",
        json={"name": "Agent", "email": "agent@example.com", "role": "ADMIN", "password": "agent-pass", "customRoleId": role["id"]},
        headers=auth_headers,
    )
    assert r.status_code == 201

    r = await client.delete(f"/api/admin/roles/{role['id']}", headers=auth_headers)
    assert r.status_code == 400

    r = await client.get("/api/admin/roles", headers=auth_headers)
    assert r.json()["data"][0]["usersCount"] == 1


@pytest.mark.asyncio
async def test_permission_catalog(client, auth_headers):
    r = await client.get("/api/admin/permissions", headers=auth_headers)
    data = r.json()["data"]
    assert "restaurant" in data["categories"]
    names = [p["name"] for p in data["permissions"]]
    assert "restaurant.orders.edit" in names
    assert "admin.all" in names


@pytest.mark.asyncio
async def test_delete_review_recomputes_rating(client, auth_headers, restaurant):
    ids = []
    for rating in (1, 5):
        r = await client.post(
            "/api/reviews", json={"rating": rating, "customerName": "Modou", "restaurantId": restaurant["id"]}
        )
        ids.append(r.json()["data"]["id"])
    r = await client.delete(f"/api/admin/reviews/{ids[0]}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["data"]["restaurant"] == 5.0

    r = await client.get("/api/admin/reviews", headers=auth_headers)
    reviews = r.json()["data"]["reviews"]
    assert [rv["id"] for rv in reviews] == [ids[1]]
    assert reviews[0]["restaurant"]["id"] == restaurant["id"]


@pytest.mark.asyncio
async def test_finances_and_export(client, auth_headers, product):
    r = await client.post(
        "/api/orders",
        json={
            "customerName": "Seynabou, Fall",
            "customerPhone": "761234567",
            "address": "Yoff",
            "items": [{"productId": product["id"], "quantity": 3}],
        },
    )
    order_id = r.json()["data"]["id"]
    await client.put(f"/api/orders/{order_id}", json={"paymentStatus": "PAID"}, headers=auth_headers)

    r = await client.get("/api/admin/finances", headers=auth_headers)
    data = r.json()["data"]
    assert data["totalRevenue"] == 3 * 2500 + 1000
    assert data["deliveryFees"] == 1000
    assert len(data["revenueByDay"]) == 7
    assert data["paymentMethods"][0]["percentage"] == 100

    r = await client.get("/api/admin/finances", params={"status": "NOPE"}, headers=auth_headers)
    assert r.status_code == 400
    r = await client.get("/api/admin/finances", params={"from": "yesterday"}, headers=auth_headers)
    assert r.status_code == 400

    r = await client.get("/api/admin/finances/export", headers=auth_headers)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "attachment" in r.headers["content-disposition"]
    lines = r.text.splitlines()
    assert lines[0] == ",".join(f'"{h}"' if "," in h else h for h in CSV_HEADER)
    assert len(lines) == 2
    assert '"Seynabou, Fall"' in lines[1]
    assert "Thieboudienne x3 (2500.00 XOF)" in lines[1]
    assert ",7500.00,1000.00,8500.00," in lines[1]
