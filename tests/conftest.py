import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory ledger; no Mongo or Redis needed
os.environ["LEDGER_BACKEND"] = "memory"
os.environ["CREDITS_TIMEZONE"] = "UTC"
os.environ.setdefault("REPLICATE_API_TOKEN", "test-token")

T0 = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the rate limiter."""

    def __init__(self):
        self.values: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True


class FakeGenerator:
    def __init__(self, url: str = "https://replicate.delivery/out/headshot.jpg", error: Exception | None = None):
        self.url = url
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def generate(self, image: str, prompt: str) -> str:
        self.calls.append((image, prompt))
        if self.error:
            raise self.error
        return self.url


@pytest.fixture
def settings():
    from headshot_api.core.config import get_settings
    return get_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store():
    from headshot_api.storage.memory import MemoryLedgerStore
    return MemoryLedgerStore()


@pytest.fixture
def ledger(store, clock):
    from headshot_api.services.ledger import CreditLedger
    return CreditLedger(store, clock=clock)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest_asyncio.fixture
async def client(store, fake_redis, generator) -> AsyncGenerator[AsyncClient, None]:
    from headshot_api.deps import get_image_generator, get_redis, get_store
    from headshot_api.main import app

    async def _redis():
        yield fake_redis

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_redis] = _redis
    app.dependency_overrides[get_image_generator] = lambda: generator
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
