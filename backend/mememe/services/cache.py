"""
Two-tier cache service.

Provides JSON caching with:
- Valkey as the authoritative tier when configured and reachable
- A bounded in-process LRU that is always written, so reads survive outages
- Circuit breaker tracking store availability so failures never reach callers
- Namespaced accessors for generated captions and rendered image URLs
"""

from __future__ import annotations

import json
import logging
import re
import time
from functools import lru_cache
from typing import Any, Callable, Union

import valkey.asyncio as valkey

from mememe.core.config import Settings, get_settings
from mememe.core.metrics import record_cache_event
from mememe.services.cache_circuit_breaker import CircuitBreaker
from mememe.services.cache_fallback_store import InMemoryFallbackStore
from mememe.services.cache_ttl_config import TTLConfig

logger = logging.getLogger(__name__)

CacheValue = Union[str, int, float, bool, dict, list, None]

CACHE_NAMESPACE = "cache"
CAPTIONS_PREFIX = "captions"
IMAGE_PREFIX = "image"
_CLEAR_BATCH_SIZE = 500

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_key(key: str) -> str:
    """Lower-case, trim and collapse whitespace runs to underscores."""
    return _WHITESPACE_RUN.sub("_", key.lower().strip())


def create_cache_key(prefix: str, key: str) -> str:
    """Compose a namespaced key, e.g. ``cache:captions:funny_cats:123``.

    Each ``:``-separated segment is normalized on its own so padding around
    a segment never changes the key.
    """
    segments = ":".join(normalize_key(part) for part in key.split(":"))
    return f"{CACHE_NAMESPACE}:{prefix}:{segments}"


class CacheService:
    """
    Cache service with graceful degradation.

    Every public operation succeeds regardless of Valkey health: store failures
    open the circuit breaker and the call continues against the in-process LRU.
    """

    def __init__(
        self,
        client: valkey.Valkey | None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._config = TTLConfig(settings)
        self._circuit_breaker = CircuitBreaker(
            self._config.circuit_breaker_timeout, name="cache valkey"
        )
        self._fallback = InMemoryFallbackStore(
            self._config.lru_max_entries, clock=clock
        )

    def is_distributed_available(self) -> bool:
        """Whether the distributed tier is configured and currently usable."""
        return self._client is not None and self._circuit_breaker.available

    async def get(self, key: str) -> Any | None:
        """Retrieve and decode a value, trying Valkey before the in-process tier."""
        payload = await self._get_from_valkey(key)
        if payload is not None:
            record_cache_event("kv", "hit")
            return self._decode(key, payload)

        payload = await self._fallback.get(key)
        if payload is None:
            record_cache_event("kv", "miss")
            return None
        record_cache_event("kv", "fallback_hit")
        return self._decode(key, payload)

    async def set(
        self,
        key: str,
        value: CacheValue,
        ttl_seconds: int | None = None,
    ) -> None:
        """Serialize and store a value in both tiers with the same TTL."""
        encoded = json.dumps(value)
        effective_ttl = self._config.get_effective_ttl(ttl_seconds)

        stored = await self._set_to_valkey(key, encoded, effective_ttl)
        if not stored and self._client is not None:
            record_cache_event("kv", "store_error")
            logger.debug("Valkey write skipped for key %s", key)

        # Always store in fallback for resilience
        await self._fallback.set(key, encoded, effective_ttl)

    async def delete(self, key: str) -> bool:
        """Remove a key from both tiers, returning True if either held it."""
        removed_remote = await self._delete_from_valkey(key)
        removed_local = await self._fallback.delete(key)
        return bool(removed_remote) or removed_local

    async def clear(self) -> None:
        """Drop every ``cache:*`` key; other namespaces are left intact."""
        await self._fallback.clear()

        if self._client is None or self._circuit_breaker.is_open():
            return

        try:
            batch: list[str] = []
            async for key in self._client.scan_iter(match=f"{CACHE_NAMESPACE}:*"):
                batch.append(key)
                if len(batch) >= _CLEAR_BATCH_SIZE:
                    await self._client.delete(*batch)
                    batch = []
            if batch:
                await self._client.delete(*batch)
        except Exception as exc:
            logger.warning("Valkey cache clear failed: %s", exc)
            self._circuit_breaker.open()

    async def health_status(self) -> str:
        """Report ``connected``, ``disconnected`` or ``not_configured``."""
        if self._client is None:
            return "not_configured"
        try:
            await self._client.ping()
        except Exception as exc:
            logger.warning("Valkey ping failed: %s", exc)
            self._circuit_breaker.open()
            return "disconnected"
        self._circuit_breaker.close()
        return "connected"

    # ------------------------------------------------------------------
    # Namespaced accessors
    # ------------------------------------------------------------------

    async def set_captions(
        self, topic: str, template_id: str | None, captions: list[str]
    ) -> None:
        key = create_cache_key(CAPTIONS_PREFIX, f"{topic}:{template_id or 'default'}")
        await self.set(key, captions, self._config.captions_ttl)

    async def get_captions(
        self, topic: str, template_id: str | None
    ) -> list[str] | None:
        key = create_cache_key(CAPTIONS_PREFIX, f"{topic}:{template_id or 'default'}")
        return await self.get(key)

    async def set_image_url(
        self, template_id: str, top_text: str, bottom_text: str, image_url: str
    ) -> None:
        key = create_cache_key(IMAGE_PREFIX, f"{template_id}:{top_text}:{bottom_text}")
        await self.set(key, image_url, self._config.image_url_ttl)

    async def get_image_url(
        self, template_id: str, top_text: str, bottom_text: str
    ) -> str | None:
        key = create_cache_key(IMAGE_PREFIX, f"{template_id}:{top_text}:{bottom_text}")
        return await self.get(key)

    # ------------------------------------------------------------------
    # Valkey access
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(key: str, payload: str) -> Any | None:
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Failed to decode cached JSON for key %s", key)
            return None

    async def _get_from_valkey(self, key: str) -> str | None:
        """Get value from Valkey with circuit breaker protection."""
        if self._client is None:
            return None

        @self._circuit_breaker.protect
        async def _get() -> str | None:
            return await self._client.get(key)

        return await _get()

    async def _set_to_valkey(
        self, key: str, value: str, ttl_seconds: int | None
    ) -> bool:
        """Set value in Valkey with circuit breaker protection."""
        if self._client is None:
            return False

        @self._circuit_breaker.protect
        async def _set() -> bool:
            if ttl_seconds and ttl_seconds > 0:
                await self._client.set(key, value, ex=ttl_seconds)
            else:
                await self._client.set(key, value)
            return True

        result = await _set()
        return result is not None

    async def _delete_from_valkey(self, key: str) -> bool:
        if self._client is None:
            return False

        @self._circuit_breaker.protect
        async def _delete() -> int:
            return await self._client.delete(key)

        result = await _delete()
        return bool(result)


# =============================================================================
# Factory Functions
# =============================================================================


@lru_cache
def get_valkey_client() -> valkey.Valkey | None:
    """Return the shared Valkey client, or None when no URL is configured.

    ``from_url`` does not open a connection; the pool connects on first use.
    """
    settings = get_settings()
    if not settings.valkey_url:
        logger.info("VALKEY_URL not set; caching in-process only")
        return None
    return valkey.from_url(
        settings.valkey_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=settings.valkey_socket_connect_timeout_seconds,
        socket_timeout=settings.valkey_socket_timeout_seconds,
    )


@lru_cache
def get_cache_service() -> CacheService:
    """FastAPI dependency hook returning the process-wide cache service."""
    return CacheService(get_valkey_client())


__all__ = [
    "CacheService",
    "CacheValue",
    "create_cache_key",
    "get_cache_service",
    "get_valkey_client",
    "normalize_key",
]
