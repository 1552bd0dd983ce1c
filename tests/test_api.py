"""Tests for basic API functionality: envelope, catalogue, search and settings."""
import pytest


@pytest.mark.asyncio
async def test_health(client):
    """Health endpoint returns ok."""
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": {"status": "ok"}}


@pytest.mark.asyncio
async def test_error_envelope(client):
    r = await client.get("/api/restaurants/9999")
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Restaurant not found", "message": "Restaurant not found"}

    r = await client.get("/api/products", params={"limit": "many"})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "limit" in r.json()["message"]


@pytest.mark.asyncio
async def test_list_restaurants_empty(client):
    r = await client.get("/api/restaurants")
    assert r.status_code == 200
    assert r.json()["data"] == []


@pytest.mark.asyncio
async def test_create_restaurant_requires_admin(client, restaurant, manager_headers):
    payload = {"name": "X", "cuisine": "Y", "managerName": "Z", "managerEmail": "z@example.com"}
    r = await client.post("/api/restaurants", json=payload)
    assert r.status_code == 401
    r = await client.post("/api/restaurants", json=payload, headers=manager_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_create_restaurant_with_manager(client, auth_headers):
    r = await client.post(
        "/api/restaurants",
        json={
            "name": "Dibiterie Ndiaye",
            "cuisine": "Grillades",
            "managerName": "Cheikh",
            "managerEmail": "Cheikh@Example.com",
        },
        headers=auth_headers,
    )
    assert r.status_code == 201
    body = r.json()
    assert body["data"]["minOrderAmount"] == 3000
    assert body["manager"]["role"] == "RESTAURATOR"
    assert body["manager"]["email"] == "cheikh@example.com"
    assert body["manager"]["mustChangePassword"] is True
    assert body["manager"]["restaurantId"] == body["data"]["id"]
    assert len(body["temporaryPassword"]) == 12

    r = await client.post(
        "/api/restaurants",
        json={"name": "Again", "cuisine": "Grillades", "managerName": "C", "managerEmail": "cheikh@example.com"},
        headers=auth_headers,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_restaurant_listing_and_detail(client, restaurant, product, manager_headers):
    r = await client.get("/api/restaurants")
    rows = r.json()["data"]
    assert len(rows) == 1
    assert rows[0]["productsCount"] == 1
    assert rows[0]["ordersCount"] == 0

    r = await client.get(f"/api/restaurants/{restaurant['id']}")
    data = r.json()["data"]
    assert data["name"] == "Chez Fatou"
    assert [p["name"] for p in data["products"]] == ["Thieboudienne"]

    r = await client.get("/api/restaurants", params={"cuisine": "pizza"})
    assert r.json()["data"] == []


@pytest.mark.asyncio
async def test_manager_sees_only_own_restaurant(client, auth_headers, restaurant, manager_headers):
    await client.post(
        "/api/restaurants",
        json={"name": "Other", "cuisine": "Pizza", "managerName": "Ibou", "managerEmail": "ibou@example.com"},
        headers=auth_headers,
    )
    r = await client.get("/api/restaurants", headers=auth_headers)
    assert len(r.json()["data"]) == 2
    r = await client.get("/api/restaurants", headers=manager_headers)
    assert [row["id"] for row in r.json()["data"]] == [restaurant["id"]]

    r = await client.patch(
        f"/api/restaurants/{restaurant['id'] + 1}", json={"name": "Hijack"}, headers=manager_headers
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_delete_restaurant_without_orders(client, auth_headers, restaurant, product):
    await client.post("/api/reviews", json={"rating": 4, "customerName": "A", "productId": product["id"]})
    r = await client.delete(f"/api/restaurants/{restaurant['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["action"] == "deleted"
    r = await client.get(f"/api/restaurants/{restaurant['id']}")
    assert r.status_code == 404
    r = await client.get(f"/api/products/{product['id']}")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_restaurant_with_orders_deactivates(client, auth_headers, restaurant, product):
    await client.post(
        "/api/orders",
        json={
            "customerName": "A",
            "customerPhone": "771234567",
            "address": "Dakar",
            "items": [{"productId": product["id"], "quantity": 1}],
        },
    )
    r = await client.delete(f"/api/restaurants/{restaurant['id']}", headers=auth_headers)
    assert r.json()["action"] == "deactivated"
    r = await client.get("/api/restaurants", params={"active": "false"}, headers=auth_headers)
    assert [row["id"] for row in r.json()["data"]] == [restaurant["id"]]


@pytest.mark.asyncio
async def test_products_and_categories(client, restaurant, product):
    r = await client.get("/api/products", params={"restaurantId": restaurant["id"]})
    data = r.json()["data"]
    assert len(data) == 1
    assert data[0]["restaurant"]["name"] == "Chez Fatou"
    assert data[0]["category"]["name"] == "Plats"

    r = await client.get("/api/products", params={"featured": "true"})
    assert r.json()["data"] == []

    r = await client.get("/api/categories", params={"restaurantId": restaurant["id"]})
    categories = r.json()["data"]
    assert [c["name"] for c in categories] == ["Plats"]
    assert categories[0]["products"][0]["name"] == "Thieboudienne"


@pytest.mark.asyncio
async def test_product_category_must_belong_to_restaurant(client, auth_headers, restaurant, product):
    r = await client.post(
        "/api/restaurants",
        json={"name": "Other", "cuisine": "Pizza", "managerName": "Ibou", "managerEmail": "ibou@example.com"},
        headers=auth_headers,
    )
    other_id = r.json()["data"]["id"]
    r = await client.post(
        "/api/products",
        json={"name": "Stolen", "price": 100, "restaurantId": other_id, "categoryId": product["categoryId"]},
        headers=auth_headers,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_search(client, product):
    r = await client.get("/api/search", params={"q": "  "})
    assert r.json()["data"] == {"restaurants": [], "products": [], "totalRestaurants": 0, "totalProducts": 0}

    r = await client.get("/api/search", params={"q": "thieb"})
    data = r.json()["data"]
    assert [p["name"] for p in data["products"]] == ["Thieboudienne"]
    assert [rest["name"] for rest in data["restaurants"]] == ["Chez Fatou"]

    r = await client.get("/api/search", params={"q": "thieb", "maxPrice": 1000})
    assert r.json()["data"]["products"] == []

    r = await client.get("/api/search", params={"q": "thieb", "vegetarian": "true"})
    assert r.json()["data"]["products"] == []


@pytest.mark.asyncio
async def test_settings(client, auth_headers, manager_headers, product):
    r = await client.get("/api/settings")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["currency"] == "XOF"
    assert data["stats"] == {"totalRestaurants": 1, "totalProducts": 1, "totalOrders": 0}

    r = await client.put("/api/settings", json={"marketplaceName": "MnuFood"}, headers=manager_headers)
    assert r.status_code == 403

    r = await client.put("/api/settings", json={"minOrderAmount": -5}, headers=auth_headers)
    assert r.status_code == 400

    r = await client.put(
        "/api/settings", json={"marketplaceName": "MnuFood Thiès", "defaultDeliveryFee": 800}, headers=auth_headers
    )
    assert r.status_code == 200
    r = await client.get("/api/settings")
    data = r.json()["data"]
    assert data["marketplaceName"] == "MnuFood Thiès"
    assert data["defaultDeliveryFee"] == 800
    assert data["supportEmail"] == "support@mnufood.com"
