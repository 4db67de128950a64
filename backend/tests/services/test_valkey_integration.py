"""Integration tests against a live Valkey at localhost:6379."""

from uuid import uuid4

import pytest
import pytest_asyncio
import valkey.asyncio as valkey

from mememe.services.cache import CacheService
from mememe.services.rate_limiter import RateLimiter
from tests.service_availability import requires_valkey

pytestmark = [pytest.mark.integration, requires_valkey]


@pytest_asyncio.fixture
async def client():
    connection = valkey.from_url("redis://localhost:6379/0", decode_responses=True)
    yield connection
    await connection.aclose()


@pytest.mark.asyncio
async def test_cache_round_trip(client, settings):
    cache = CacheService(client, settings=settings)
    key = f"cache:itest:{uuid4().hex}"

    await cache.set(key, {"captions": ["a", "b"]}, 30)

    assert await cache.get(key) == {"captions": ["a", "b"]}
    assert 0 < await client.ttl(key) <= 30
    assert await cache.delete(key) is True
    assert await cache.health_status() == "connected"


@pytest.mark.asyncio
async def test_rate_limit_window(client, settings):
    limiter = RateLimiter(client, settings=settings)
    identity = f"itest-{uuid4().hex}"

    results = [await limiter.check(identity) for _ in range(11)]

    assert [r.success for r in results] == [True] * 10 + [False]
    assert await client.ttl(f"rate_limit:{identity}") > 0
    await client.delete(f"rate_limit:{identity}")
