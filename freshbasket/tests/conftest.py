"""
Centralized Test Configuration.
"""

import itertools
from datetime import datetime

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from freshbasket.app.main import app
from freshbasket.app.db.session import get_db, Base
from freshbasket.app.core.jwt import create_access_token
from freshbasket.app.core.reliability import geocoder_circuit_breaker
from freshbasket.app.models.enums import OrderStatus, UserRole
from freshbasket.app.models.user import User
from freshbasket.app.schemas.order import CustomerDetails, OrderCreate, OrderResponse
from freshbasket.app.schemas.tracking import LocationPoint
from freshbasket.app.services.cache import CacheService
from freshbasket.app.services.order_service import create_order
from freshbasket.tracking.client import FreshBasketClient
from freshbasket.tracking.errors import RequestRejected
import freshbasket.app.core.redis_client as redis_client_module

# In-memory database, one per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture(autouse=True)
async def reset_geocoder():
    """Geocode cache and breaker are process-wide."""
    await CacheService.clear()
    geocoder_circuit_breaker.reset_state()
    yield
    await CacheService.clear()
    geocoder_circuit_breaker.reset_state()


@pytest.fixture
async def session_factory(mock_redis):
    """Fresh schema, app overrides pointing at it and at MockRedis."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    # Patch the global redis client used by token revocation and /health
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    yield factory

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(session_factory):
    """Factory: persist a user and return it (detached, attributes loaded)."""
    counter = itertools.count(1)

    async def _make(role: UserRole = UserRole.AGENT, name: str = None, phone: str = "9876543210", **kwargs):
        n = next(counter)
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=kwargs.pop("email", f"{role.value.lower()}{n}@freshbasket.in"),
            phone=phone,
            role=role,
            **kwargs,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    return _make


def token_for(user: User) -> str:
    return create_access_token(
        data={"sub": user.email, "user_id": user.id, "role": user.role.value}
    )


@pytest.fixture
def make_token():
    return token_for


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {token_for(user)}"}
    return _headers


@pytest.fixture
def make_order(session_factory):
    """Factory: place an order with a fixed delivery coordinate (no geocoding)."""

    async def _make(customer: User = None, latitude: float = 9.2050, longitude: float = 77.8920, **kwargs):
        data = OrderCreate(
            customer=CustomerDetails(
                name=customer.name if customer else "Priya Raman",
                email=customer.email if customer else "priya@freshbasket.in",
                phone="9876501234",
                address=kwargs.pop("address", "12 Main Road, Kovilpatti"),
            ),
            notes=kwargs.pop("notes", None),
            delivery_latitude=latitude,
            delivery_longitude=longitude,
        )
        async with session_factory() as session:
            return await create_order(session, data, customer_id=customer.id if customer else None)

    return _make


@pytest.fixture
async def tracking_client_factory(session_factory):
    """Factory for FreshBasketClient instances wired to the app in-process."""
    clients = []

    def _make(token: str = None) -> FreshBasketClient:
        api = FreshBasketClient(
            base_url="http://test",
            token=token,
            transport=ASGITransport(app=app),
        )
        clients.append(api)
        return api

    yield _make

    for api in clients:
        await api.aclose()


class FakeTrackingClient:
    """
    Stands in for FreshBasketClient in publisher, dashboard and viewer tests.

    Set ``fail_with`` to make every call raise that error.
    """

    def __init__(self, orders=None, snapshots=None):
        self.token = "agent-token"
        self.orders = list(orders or [])
        self.snapshots = list(snapshots or [])
        self.published = []
        self.status_updates = []
        self.fail_with = None
        self.logout_calls = 0
        self.on_logout = None

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def publish_location(self, order_id, latitude, longitude, accuracy=None):
        self._maybe_fail()
        self.published.append((order_id, latitude, longitude, accuracy))
        return LocationPoint(latitude=latitude, longitude=longitude)

    async def fetch_tracking(self, order_id):
        self._maybe_fail()
        # the last snapshot repeats
        return self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]

    async def list_agent_orders(self):
        self._maybe_fail()
        return list(self.orders)

    async def update_order_status(self, order_id, status):
        self._maybe_fail()
        self.status_updates.append((order_id, status))
        for i, order in enumerate(self.orders):
            if str(order.id) == str(order_id) or order.order_code == order_id:
                self.orders[i] = order.model_copy(update={"status": status})
                return self.orders[i]
        raise RequestRejected("Order not found or not assigned to you", 404, "ERR_ORDER_001")

    async def logout(self):
        self.logout_calls += 1
        if self.on_logout is not None:
            self.on_logout()
        self.token = None


@pytest.fixture
def fake_api():
    return FakeTrackingClient()


def order_response(order_id: int = 1, status: OrderStatus = OrderStatus.SHIPPED, **overrides) -> OrderResponse:
    data = dict(
        id=order_id,
        order_code=f"ORD-{order_id:03d}",
        status=status,
        customer=CustomerDetails(
            name="Priya Raman",
            email="priya@freshbasket.in",
            phone="9876501234",
            address="12 Main Road, Kovilpatti",
        ),
        assigned_agent_id=7,
        tracking_enabled=False,
        delivery_location=LocationPoint(latitude=9.2050, longitude=77.8920, address="12 Main Road, Kovilpatti"),
        created_at=datetime(2026, 1, 5, 10, 30),
    )
    data.update(overrides)
    return OrderResponse(**data)


@pytest.fixture
def make_order_response():
    return order_response
