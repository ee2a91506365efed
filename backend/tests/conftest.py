"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
import redis.asyncio as redis

from backend.app.main import app
from backend.app.db.session import Base
from backend.app.core.config import Settings
from backend.app.core.dependencies import get_runtime
from backend.app.core.redis_client import get_redis
from backend.app.services.metrics_aggregator import DRIVERS, LOADS, SHIPPERS
from backend.app.services.runtime import FleetRuntime
from backend.app.services.stream import InMemoryCollection

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic seconds that only move when told to."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeWallClock:
    """UTC datetime that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.published = []
        self.fail = False
        self._closed = False

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("Connection refused")

    async def ping(self):
        self._check()
        return not self._closed

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.store[key] = value
        return True

    async def publish(self, channel, message):
        self._check()
        self.published.append((channel, message))
        return 1

    async def delete(self, key):
        self._check()
        return 1 if self.store.pop(key, None) is not None else 0

    async def flushdb(self):
        self.store = {}
        self.published = []

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeWallClock()


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def test_settings():
    return Settings(
        ors_api_key=None,
        publish_metrics_to_redis=True,
        simulation_write_through=False,
        tick_interval_seconds=0.5,
    )


@pytest.fixture
def collections():
    """In-memory stand-ins for the three live collections."""
    return {
        LOADS: InMemoryCollection(LOADS),
        DRIVERS: InMemoryCollection(DRIVERS),
        SHIPPERS: InMemoryCollection(SHIPPERS),
    }


@pytest.fixture
async def runtime(test_settings, collections, mock_redis, fake_clock, wall_clock):
    rt = FleetRuntime(
        settings=test_settings,
        session_factory=TestingSessionLocal,
        redis_client=mock_redis,
        sources=collections,
        time_fn=fake_clock,
        wall_clock=wall_clock,
    )
    await rt.start()
    yield rt
    await rt.stop()


@pytest.fixture
async def client(runtime, mock_redis):
    """Async client wired to the test runtime."""
    app.dependency_overrides[get_runtime] = lambda: runtime

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_redis] = override_get_redis
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestingSessionLocal
