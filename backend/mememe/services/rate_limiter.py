"""
Per-client request rate limiter.

Valkey sorted sets give a sliding window shared by every worker. When Valkey
is absent or failing, requests are counted against an in-process fixed window
instead, so a check always produces a decision and never raises.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable
from uuid import uuid4

import valkey.asyncio as valkey

from mememe.core.config import Settings, get_settings
from mememe.core.metrics import record_rate_limit_decision
from mememe.services.cache import get_valkey_client
from mememe.services.cache_circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "rate_limit"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single rate limit check. ``reset`` is epoch milliseconds."""

    success: bool
    limit: int
    remaining: int
    reset: int


@dataclass
class _WindowCounter:
    count: int
    reset_time: int


class RateLimiter:
    """Sliding-window limiter with an in-process fixed-window fallback."""

    def __init__(
        self,
        client: valkey.Valkey | None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        settings = settings or get_settings()
        self._client = client
        self._clock = clock
        self._limit = settings.rate_limit_max_requests
        self._window_seconds = settings.rate_limit_window_seconds
        self._window_ms = settings.rate_limit_window_seconds * 1000
        self._max_tracked = settings.rate_limit_max_tracked_clients
        self._circuit_breaker = CircuitBreaker(
            settings.cache_circuit_breaker_timeout_seconds, name="rate limit valkey"
        )
        self._counters: OrderedDict[str, _WindowCounter] = OrderedDict()
        self._lock = asyncio.Lock()

    async def check(self, identity: str) -> RateLimitResult:
        """Count one request for ``identity`` and decide whether to allow it."""
        if self._client is not None and self._circuit_breaker.available:
            try:
                result = await self._check_distributed(identity)
            except Exception as exc:
                logger.warning(
                    "Valkey rate limit failed, falling back to in-process counter: %s",
                    exc,
                )
                self._circuit_breaker.open()
            else:
                self._circuit_breaker.close()
                record_rate_limit_decision("distributed", result.success)
                return result

        result = await self._check_in_process(identity)
        record_rate_limit_decision("in_process", result.success)
        return result

    async def _check_distributed(self, identity: str) -> RateLimitResult:
        key = f"{RATE_LIMIT_KEY_PREFIX}:{identity}"
        now_ms = int(self._clock() * 1000)
        window_start = now_ms - self._window_ms
        # Unique member so concurrent requests in the same millisecond both count
        member = f"{now_ms}-{uuid4().hex[:8]}"

        pipe = self._client.pipeline(transaction=True)
        pipe.zremrangebyscore(key, "-inf", window_start)
        pipe.zcard(key)
        pipe.zadd(key, {member: now_ms})
        pipe.expire(key, self._window_seconds)
        results = await pipe.execute()

        current_count = int(results[1] or 0)
        reset = now_ms + self._window_ms

        if current_count >= self._limit:
            return RateLimitResult(
                success=False, limit=self._limit, remaining=0, reset=reset
            )
        return RateLimitResult(
            success=True,
            limit=self._limit,
            remaining=self._limit - current_count - 1,
            reset=reset,
        )

    async def _check_in_process(self, identity: str) -> RateLimitResult:
        now_ms = int(self._clock() * 1000)
        # Windows are aligned to multiples of the window length since the epoch
        next_reset = (now_ms // self._window_ms + 1) * self._window_ms

        async with self._lock:
            counter = self._counters.get(identity)

            if counter is None or counter.reset_time <= now_ms:
                self._counters[identity] = _WindowCounter(count=1, reset_time=next_reset)
                self._counters.move_to_end(identity)
                while len(self._counters) > self._max_tracked:
                    self._counters.popitem(last=False)
                return RateLimitResult(
                    success=True,
                    limit=self._limit,
                    remaining=self._limit - 1,
                    reset=next_reset,
                )

            self._counters.move_to_end(identity)
            if counter.count >= self._limit:
                return RateLimitResult(
                    success=False,
                    limit=self._limit,
                    remaining=0,
                    reset=counter.reset_time,
                )

            counter.count += 1
            return RateLimitResult(
                success=True,
                limit=self._limit,
                remaining=self._limit - counter.count,
                reset=counter.reset_time,
            )


@lru_cache
def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter sharing the cache's Valkey client."""
    return RateLimiter(get_valkey_client())


__all__ = ["RateLimitResult", "RateLimiter", "get_rate_limiter"]
