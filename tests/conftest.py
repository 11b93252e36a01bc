# =============================================================================
# CORRIDOR ACCESS SYSTEM - TEST CONFIGURATION
# =============================================================================
# File: tests/conftest.py
# Description: Pytest fixtures with in-memory SQLite, fakeredis, a
#              controllable clock and request context factories
# =============================================================================

import os

# Cheap hashing and no outbound services for the whole test run
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_PARALLELISM", "1")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("GEOLOCATION_ENABLED", "false")
os.environ.setdefault("APP_ENV", "development")

from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from auth.dependencies import ServiceProvider
from auth.repository import UserRepository
from core.context import RequestContext
from db.adapters.redis_adapter import RedisAdapter
from db.adapters.sqlite_adapter import SQLiteAdapter
from permission import PermissionRegistry
from session import LocationInfo, MemorySessionStore
from session.geo import GeoLocator


DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
DEFAULT_IP = "10.1.2.3"
DEFAULT_PASSWORD = "Corridor#2024"


# =============================================================================
# TEST DOUBLES
# =============================================================================

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeGeoLocator(GeoLocator):
    """Returns a fixed location and records the addresses asked for."""

    def __init__(self, city: str = "Pune", country: str = "India"):
        self.city = city
        self.country = country
        self.calls: List[Optional[str]] = []

    async def locate(self, ip_address: Optional[str]) -> LocationInfo:
        self.calls.append(ip_address)
        return LocationInfo(city=self.city, country=self.country)


class RecordingNotifier:
    """Password reset notifier capturing (email, token) pairs."""

    def __init__(self):
        self.sent: List[tuple] = []

    async def __call__(self, email: str, token: str) -> None:
        self.sent.append((email, token))


def issued_cookies(context: RequestContext) -> Dict[str, str]:
    """Cookies a browser would hold after the response for ``context``."""
    return {c.name: c.value for c in context.pending_cookies if not c.delete}


# =============================================================================
# DATASTORE FIXTURES
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def db_adapter() -> AsyncGenerator[SQLiteAdapter, None]:
    """
    Create in-memory SQLite adapter for testing.

    Yields fresh database for each test.
    """
    adapter = SQLiteAdapter.create_for_testing()
    await adapter.connect()
    await adapter.create_tables()

    yield adapter

    await adapter.disconnect()


@pytest.fixture
def uow(db_adapter: SQLiteAdapter):
    """Unit-of-work factory handed to the services."""
    return db_adapter.get_session


@pytest_asyncio.fixture(scope="function")
async def redis_adapter() -> AsyncGenerator[RedisAdapter, None]:
    """RedisAdapter backed by fakeredis."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    adapter = RedisAdapter(client=client)
    yield adapter
    await client.flushall()
    await client.aclose()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemorySessionStore:
    return MemorySessionStore(clock)


@pytest.fixture
def geo() -> FakeGeoLocator:
    return FakeGeoLocator()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def registry() -> PermissionRegistry:
    return PermissionRegistry()


@pytest.fixture
def provider(uow, store, registry, geo, clock, notifier) -> ServiceProvider:
    return ServiceProvider(
        uow=uow,
        store=store,
        registry=registry,
        geo_locator=geo,
        clock=clock,
        reset_notifier=notifier,
    )


@pytest.fixture
def make_context(provider: ServiceProvider):
    """
    Factory building a RequestContext with bound services.

    Pass the cookies returned by ``issued_cookies`` of an earlier context
    to continue the same browser session.
    """
    def factory(
        cookies: Optional[Dict[str, str]] = None,
        client_ip: str = DEFAULT_IP,
        user_agent: str = DEFAULT_UA,
        path: str = "/api/v1/test",
        method: str = "GET",
    ) -> RequestContext:
        context = RequestContext(
            client_ip=client_ip,
            user_agent=user_agent,
            cookies=cookies,
            method=method,
            path=path,
            wants_json=path.startswith("/api/"),
        )
        return provider.bind(context)

    return factory


@pytest.fixture
def create_user(uow):
    """Factory inserting an account and returning its id."""
    async def factory(
        email: str = "officer@example.com",
        password: str = DEFAULT_PASSWORD,
        **fields: Any,
    ) -> str:
        data = {"email": email, "password": password, "name": fields.pop("name", "Field Officer")}
        data.update(fields)
        async with uow() as db:
            result = await UserRepository(db).create_user(data)
        assert result.success, result.message
        return result.data["user_id"]

    return factory


# =============================================================================
# APPLICATION FIXTURES
# =============================================================================

@pytest.fixture
def app(provider: ServiceProvider):
    """Application wired to the test provider; lifespan is not run."""
    from main import create_application

    application = create_application()
    application.state.services = provider
    application.state.redis = None
    return application


@pytest_asyncio.fixture(scope="function")
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async client keeping cookies between requests like a browser."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_user_data() -> Dict[str, Any]:
    """Sample registration data."""
    return {
        "email": "officer@example.com",
        "password": DEFAULT_PASSWORD,
        "name": "Field Officer",
        "username": "field_officer",
        "department": "Roads",
        "location": "Pune",
    }
