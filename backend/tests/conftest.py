from __future__ import annotations

import fnmatch
import sys
import time
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterator

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from mememe.core.config import Settings, get_settings  # noqa: E402
from mememe.main import create_app  # noqa: E402
from mememe.services.cache import CacheService, get_cache_service  # noqa: E402
from mememe.services.rate_limiter import RateLimiter  # noqa: E402
from mememe.services.template_cache import (  # noqa: E402
    DistributedCatalogTier,
    FileCatalogTier,
    TemplateCacheStore,
)
from mememe.services.trending_templates import (  # noqa: E402
    TrendingTemplateService,
    get_trending_template_service,
)
from tests.fixtures.templates import (  # noqa: E402
    FakeFeeds,
    FakeProvider,
    FrozenClock,
)

# Import service availability helpers for use in tests
from tests.service_availability import (  # noqa: E402, F401
    is_valkey_available,
    requires_valkey,
    skip_if_no_valkey,
)

TEST_NOW = 1_700_000_000.0


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "requires_valkey: skip test if Valkey is not available"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


class FakePipeline:
    """Queues commands and applies them in order on ``execute``."""

    def __init__(self, client: "FakeValkey") -> None:
        self._client = client
        self._commands: list[tuple[str, tuple[Any, ...]]] = []

    def _queue(self, name: str, *args: Any) -> "FakePipeline":
        self._commands.append((name, args))
        return self

    def zremrangebyscore(self, key: str, min_score: Any, max_score: Any) -> "FakePipeline":
        return self._queue("zremrangebyscore", key, min_score, max_score)

    def zcard(self, key: str) -> "FakePipeline":
        return self._queue("zcard", key)

    def zadd(self, key: str, mapping: dict[str, float]) -> "FakePipeline":
        return self._queue("zadd", key, mapping)

    def expire(self, key: str, seconds: int) -> "FakePipeline":
        return self._queue("expire", key, seconds)

    async def execute(self) -> list[Any]:
        if self._client.should_fail:
            raise RuntimeError("valkey unavailable")
        self._client.executed_pipelines += 1
        results = [
            getattr(self._client, f"_{name}")(*args) for name, args in self._commands
        ]
        self._commands = []
        return results


class FakeValkey:
    """In-memory Valkey replacement used for tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._strings: dict[str, str] = {}
        self._zsets: dict[str, dict[str, float]] = {}
        self._expiry: dict[str, float] = {}
        self._clock = clock
        self.should_fail = False
        self.executed_pipelines = 0

    def _check(self) -> None:
        if self.should_fail:
            raise RuntimeError("valkey unavailable")

    def _prune(self) -> None:
        now = self._clock()
        expired = [key for key, deadline in self._expiry.items() if deadline <= now]
        for key in expired:
            self._drop(key)

    def _drop(self, key: str) -> bool:
        self._expiry.pop(key, None)
        removed_string = self._strings.pop(key, None) is not None
        removed_zset = self._zsets.pop(key, None) is not None
        return removed_string or removed_zset

    def keys(self) -> list[str]:
        self._prune()
        return sorted([*self._strings, *self._zsets])

    def ttl_of(self, key: str) -> float | None:
        deadline = self._expiry.get(key)
        return None if deadline is None else deadline - self._clock()

    async def get(self, key: str) -> str | None:
        self._prune()
        self._check()
        return self._strings.get(key)

    async def set(
        self,
        key: str,
        value: str,
        ex: int | None = None,
        nx: bool | None = None,
    ) -> bool:
        self._prune()
        self._check()
        if nx and key in self._strings:
            return False
        self._strings[key] = value
        if ex:
            self._expiry[key] = self._clock() + ex
        else:
            self._expiry.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        self._prune()
        self._check()
        return sum(1 for key in keys if self._drop(key))

    async def ping(self) -> bool:
        self._check()
        return True

    async def scan_iter(self, match: str | None = None) -> AsyncIterator[str]:
        self._check()
        for key in self.keys():
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    # Sorted set commands, applied by FakePipeline.execute

    def _zremrangebyscore(self, key: str, min_score: Any, max_score: Any) -> int:
        self._prune()
        members = self._zsets.get(key, {})
        low, high = float(min_score), float(max_score)
        doomed = [m for m, score in members.items() if low <= score <= high]
        for member in doomed:
            del members[member]
        return len(doomed)

    def _zcard(self, key: str) -> int:
        self._prune()
        return len(self._zsets.get(key, {}))

    def _zadd(self, key: str, mapping: dict[str, float]) -> int:
        members = self._zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in members)
        members.update(mapping)
        return added

    def _expire(self, key: str, seconds: int) -> bool:
        if key not in self._strings and key not in self._zsets:
            return False
        self._expiry[key] = self._clock() + seconds
        return True


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(TEST_NOW)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        template_cache_file_path=str(tmp_path / "cache" / "templates.json"),
    )


@pytest.fixture()
def fake_valkey() -> FakeValkey:
    return FakeValkey()


@pytest.fixture()
def cache_service(fake_valkey: FakeValkey, settings: Settings) -> CacheService:
    return CacheService(fake_valkey, settings=settings)


@pytest.fixture()
def rate_limiter(fake_valkey: FakeValkey, settings: Settings, clock: FrozenClock) -> RateLimiter:
    return RateLimiter(fake_valkey, settings=settings, clock=clock)


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def feeds() -> FakeFeeds:
    return FakeFeeds()


@pytest.fixture()
def template_store(
    cache_service: CacheService, settings: Settings, clock: FrozenClock
) -> TemplateCacheStore:
    return TemplateCacheStore(
        cache_service,
        settings=settings,
        tiers=[
            DistributedCatalogTier(
                cache_service,
                settings.template_cache_key,
                settings.template_cache_ttl_seconds,
            ),
            FileCatalogTier(settings.template_cache_file_path),
        ],
        clock=clock,
    )


@pytest.fixture()
def template_service(
    template_store: TemplateCacheStore,
    provider: FakeProvider,
    feeds: FakeFeeds,
    settings: Settings,
    clock: FrozenClock,
) -> TrendingTemplateService:
    return TrendingTemplateService(
        template_store,
        provider=provider,
        feeds=feeds,
        settings=settings,
        clock=clock,
    )


@pytest.fixture()
def api_settings(settings: Settings) -> Settings:
    return settings.model_copy(update={"admin_secret": "admin-token"})


@pytest.fixture()
def api_client(
    cache_service: CacheService,
    template_service: TrendingTemplateService,
    api_settings: Settings,
    clock: FrozenClock,
) -> Iterator[TestClient]:
    """Create a test client backed by fakes and an in-process rate limiter."""
    app = create_app()
    app.state.rate_limiter = RateLimiter(None, settings=api_settings, clock=clock)
    app.dependency_overrides[get_cache_service] = lambda: cache_service
    app.dependency_overrides[get_trending_template_service] = lambda: template_service
    app.dependency_overrides[get_settings] = lambda: api_settings
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
