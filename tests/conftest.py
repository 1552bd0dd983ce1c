"""Pytest configuration and fixtures for API tests."""
import os
import tempfile

# Set test env BEFORE any imports that use config
_tmp = tempfile.mkdtemp(prefix="mnufood-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp}/test.db"
os.environ["INITIAL_ADMIN_EMAIL"] = "admin@mnufood.com"
os.environ["INITIAL_ADMIN_PASSWORD"] = "testpass123"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = os.path.join(_tmp, "uploads")
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from httpx import ASGITransport, AsyncClient

from marketplace.models.base import drop_db, engine, init_db
from web.api.main import app

ADMIN_EMAIL = "admin@mnufood.com"
ADMIN_PASSWORD = "testpass123"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh tables for each test (ASGI lifespan doesn't run with httpx)."""
    await init_db()
    yield
    await drop_db()
    await engine.dispose()


@pytest.fixture
async def client():
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def login(client, email, password, path="/api/auth/login"):
    """Sign in and return Authorization headers. The cookie jar is cleared so headers decide identity."""
    r = await client.post(path, json={"email": email, "password": password})
    assert r.status_code == 200, f"Login failed: {r.text}"
    client.cookies.clear()
    return {"Authorization": f"Bearer {r.json()['data']['token']}"}


@pytest.fixture
async def auth_headers(client):
    """Login as the bootstrap admin and return Authorization headers."""
    return await login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
async def restaurant(client, auth_headers):
    """A restaurant created by the admin, with its manager's temporary credentials."""
    r = await client.post(
        "/api/restaurants",
        json={
            "name": "Chez Fatou",
            "cuisine": "Senegalese",
            "address": "Plateau, Dakar",
            "deliveryFee": 1000,
            "managerName": "Fatou Diop",
            "managerEmail": "fatou@example.com",
        },
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    return {
        "id": body["data"]["id"],
        "manager": body["manager"],
        "password": body["temporaryPassword"],
    }


@pytest.fixture
async def manager_headers(client, restaurant):
    return await login(client, restaurant["manager"]["email"], restaurant["password"], "/api/auth/restaurant-login")


@pytest.fixture
async def product(client, auth_headers, restaurant):
    """An active 2500 XOF product in a restaurant category."""
    r = await client.post(
        f"/api/restaurant/{restaurant['id']}/categories",
        json={"name": "Plats"},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    category_id = r.json()["data"]["id"]
    r = await client.post(
        "/api/products",
        json={
            "name": "Thieboudienne",
            "price": 2500,
            "restaurantId": restaurant["id"],
            "categoryId": category_id,
        },
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]
