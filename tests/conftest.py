"""
Pytest fixtures for TableHub tests.

Provides an in-memory SQLite database per test, recording notification
doubles, an ASGI test client and tenant fixtures (vendors, customer,
admins) created through the public API.
"""

import os

# Configure before any tablehub import reads settings
os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["NOTIFICATION_BACKEND"] = "inline"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import pytest

from tablehub.core.config import get_settings
from tablehub.database import Base, async_session_maker, engine
from tablehub.main import app
from tablehub.services.notifications import (
    MockNotificationService,
    NotificationDispatcher,
    get_dispatcher,
    get_notification_service,
)
from tablehub.services.rate_limit import MemoryRateLimiter, get_rate_limiter
from tablehub.services.revocation import MemoryRevocationStore, get_revocation_store


PASSWORD = "correct-horse-battery"
ADMIN_CODE = get_settings().admin_registration_code


# =============================================================================
# NOTIFICATION DOUBLES
# =============================================================================

class RecordingDispatcher(NotificationDispatcher):
    """Keeps submitted notifications instead of delivering them."""

    def __init__(self):
        self.submitted: list[tuple[str, dict[str, Any]]] = []

    @property
    def backend_name(self) -> str:
        return "recording"

    def submit(self, kind: str, payload: dict[str, Any]) -> None:
        self.submitted.append((kind, payload))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.submitted]

    def recipients(self, kind: str) -> list[str]:
        return [payload.get("to") for k, payload in self.submitted if k == kind]


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

@pytest.fixture
async def database():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(database):
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def notifications() -> MockNotificationService:
    return MockNotificationService(simulate_latency=False)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def revocation_store() -> MemoryRevocationStore:
    return MemoryRevocationStore()


@pytest.fixture
def rate_limiter() -> MemoryRateLimiter:
    return MemoryRateLimiter()


@pytest.fixture
async def client(database, notifications, dispatcher, revocation_store, rate_limiter):
    """ASGI client with process-wide services swapped for per-test doubles."""
    app.dependency_overrides[get_notification_service] = lambda: notifications
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_revocation_store] = lambda: revocation_store
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# =============================================================================
# HELPERS
# =============================================================================

def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@dataclass
class Actor:
    """An account created through the API, with its bearer token."""
    id: str
    email: str
    token: str
    vendor_ids: Optional[list[str]] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def headers(self) -> dict[str, str]:
        return auth(self.token)


async def register_vendor(
    client: httpx.AsyncClient,
    name: str,
    email: str,
    tax_rate: Optional[float] = None,
    service_charge_rate: Optional[float] = None,
    cuisine: str = "Italian",
) -> Actor:
    response = await client.post("/api/auth/vendor/register", json={
        "name": name,
        "email": email,
        "password": PASSWORD,
        "address": "1 Main St",
        "city": "Springfield",
        "cuisine": cuisine,
    })
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    vendor = Actor(id=data["account"]["id"], email=email, token=data["token"])

    billing = {}
    if tax_rate is not None:
        billing["taxRate"] = tax_rate
    if service_charge_rate is not None:
        billing["serviceChargeRate"] = service_charge_rate
    if billing:
        response = await client.put(
            "/api/vendors/me/billing-settings", json=billing, headers=vendor.headers
        )
        assert response.status_code == 200, response.text
    return vendor


async def add_menu_item(
    client: httpx.AsyncClient,
    vendor: Actor,
    name: str,
    price: float,
    available: bool = True,
    preparation_time: int = 15,
) -> dict[str, Any]:
    response = await client.post("/api/menu", json={
        "name": name,
        "price": price,
        "available": available,
        "preparationTime": preparation_time,
    }, headers=vendor.headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def place_order(
    client: httpx.AsyncClient,
    items: list[tuple[dict[str, Any], int]],
    table_number: str = "4",
    headers: Optional[dict[str, str]] = None,
    **extra: Any,
) -> httpx.Response:
    body = {
        "tableNumber": table_number,
        "items": [{"menuItemId": item["id"], "quantity": qty} for item, qty in items],
        **extra,
    }
    return await client.post("/api/orders", json=body, headers=headers or {})


# =============================================================================
# TENANTS
# =============================================================================

@pytest.fixture
async def vendor_a(client) -> Actor:
    return await register_vendor(client, "Vendor A Trattoria", "a@vendors.example.com")


@pytest.fixture
async def vendor_b(client) -> Actor:
    return await register_vendor(client, "Vendor B Sushi", "b@vendors.example.com", cuisine="Japanese")


@pytest.fixture
async def vendor_c(client) -> Actor:
    return await register_vendor(client, "Vendor C Tacos", "c@vendors.example.com", cuisine="Mexican")


@pytest.fixture
async def customer(client) -> Actor:
    response = await client.post("/api/auth/user/register", json={
        "firstName": "Casey",
        "lastName": "Diner",
        "email": "casey@customers.example.com",
        "password": PASSWORD,
        "phone": "555-0100",
    })
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return Actor(id=data["account"]["id"], email="casey@customers.example.com", token=data["token"])


@pytest.fixture
async def general_admin(client) -> Actor:
    response = await client.post("/api/auth/admin/register", json={
        "name": "Root Admin",
        "email": "root@admins.example.com",
        "password": PASSWORD,
        "adminCode": ADMIN_CODE,
    })
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return Actor(id=data["account"]["id"], email="root@admins.example.com", token=data["token"])


@pytest.fixture
async def menu_a(client, vendor_a) -> dict[str, dict[str, Any]]:
    """Vendor A's menu: two available dishes and one switched off."""
    return {
        "pasta": await add_menu_item(client, vendor_a, "Pasta", 7.50, preparation_time=20),
        "salad": await add_menu_item(client, vendor_a, "Salad", 5.00, preparation_time=5),
        "special": await add_menu_item(client, vendor_a, "Chef Special", 30.00, available=False),
    }


@pytest.fixture
async def menu_b(client, vendor_b) -> dict[str, dict[str, Any]]:
    return {
        "roll": await add_menu_item(client, vendor_b, "Salmon Roll", 9.00),
    }
