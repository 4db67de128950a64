"""
Persistence for the trending template catalog.

The catalog is written to every tier and read from the first tier that holds
a fresh, parsable copy. Tiers are tried in order:

1. The cache service (Valkey, falling back to the in-process LRU)
2. A JSON file on disk, so a cold process without Valkey still starts warm
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Protocol, Sequence

from mememe.core.config import Settings, get_settings
from mememe.core.metrics import record_cache_event
from mememe.services.cache import CacheService
from mememe.services.template_dto import TemplateCatalog

logger = logging.getLogger(__name__)

CATALOG_CACHE_NAME = "template_catalog"


class CatalogTier(Protocol):
    """One storage location for the serialized catalog."""

    name: str

    async def load(self) -> dict[str, Any] | None: ...

    async def save(self, payload: dict[str, Any]) -> None: ...

    async def clear(self) -> None: ...


class DistributedCatalogTier:
    """Stores the catalog through the cache service under a fixed key."""

    name = "cache"

    def __init__(self, cache: CacheService, key: str, ttl_seconds: int) -> None:
        self._cache = cache
        self._key = key
        self._ttl_seconds = ttl_seconds

    async def load(self) -> dict[str, Any] | None:
        return await self._cache.get(self._key)

    async def save(self, payload: dict[str, Any]) -> None:
        await self._cache.set(self._key, payload, self._ttl_seconds)

    async def clear(self) -> None:
        await self._cache.delete(self._key)


class FileCatalogTier:
    """Stores the catalog as a JSON file, creating parent directories."""

    name = "file"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read)

    async def save(self, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, payload)

    async def clear(self) -> None:
        await asyncio.to_thread(self._path.unlink, missing_ok=True)

    def _read(self) -> dict[str, Any] | None:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return json.loads(text)

    def _write(self, payload: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file so readers never see a partial catalog
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class TemplateCacheStore:
    """Reads and writes the catalog across an ordered list of tiers."""

    def __init__(
        self,
        cache: CacheService,
        *,
        settings: Settings | None = None,
        tiers: Sequence[CatalogTier] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        settings = settings or get_settings()
        self._ttl_ms = settings.template_cache_ttl_seconds * 1000
        self._clock = clock
        if tiers is None:
            tiers = (
                DistributedCatalogTier(
                    cache,
                    settings.template_cache_key,
                    settings.template_cache_ttl_seconds,
                ),
                FileCatalogTier(settings.template_cache_file_path),
            )
        self._tiers = list(tiers)

    @property
    def tiers(self) -> list[CatalogTier]:
        return list(self._tiers)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get_cached_templates(self) -> TemplateCatalog | None:
        """Return the first fresh catalog found, or None on a cold cache."""
        now_ms = self._now_ms()

        for tier in self._tiers:
            try:
                payload = await tier.load()
            except Exception as exc:
                logger.warning("Template catalog %s tier read failed: %s", tier.name, exc)
                continue
            if payload is None:
                continue

            try:
                catalog = TemplateCatalog.from_dict(payload)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Ignoring unparsable template catalog in %s tier: %s", tier.name, exc
                )
                continue

            if catalog.age_ms(now_ms) > self._ttl_ms:
                logger.info("Template catalog in %s tier expired", tier.name)
                continue

            record_cache_event(CATALOG_CACHE_NAME, f"{tier.name}_hit")
            logger.debug(
                "Retrieved %d templates from %s tier", catalog.total_count, tier.name
            )
            return catalog

        record_cache_event(CATALOG_CACHE_NAME, "miss")
        logger.info("No valid template catalog cached")
        return None

    async def save_cached_templates(self, catalog: TemplateCatalog) -> None:
        """Write the catalog to every tier concurrently; failures are logged."""
        payload = catalog.to_dict()
        results = await asyncio.gather(
            *(tier.save(payload) for tier in self._tiers), return_exceptions=True
        )
        for tier, result in zip(self._tiers, results):
            if isinstance(result, BaseException):
                record_cache_event(CATALOG_CACHE_NAME, "store_error")
                logger.warning(
                    "Failed to save template catalog to %s tier: %s", tier.name, result
                )
            else:
                logger.info(
                    "Saved %d templates to %s tier", catalog.total_count, tier.name
                )

    async def is_cache_valid(self) -> bool:
        catalog = await self.get_cached_templates()
        return catalog is not None and bool(catalog.templates)

    async def get_cache_stats(self) -> dict[str, Any]:
        """Describe the cached catalog without modifying it."""
        catalog = await self.get_cached_templates()
        if catalog is None:
            return {
                "cached": False,
                "age": 0,
                "templates": 0,
                "sources": None,
                "lastUpdated": None,
            }

        last_updated = datetime.fromtimestamp(
            catalog.last_updated / 1000, tz=timezone.utc
        ).isoformat(timespec="milliseconds")
        return {
            "cached": True,
            "age": catalog.age_ms(self._now_ms()),
            "templates": len(catalog.templates),
            "sources": catalog.source_counts.to_dict(),
            "lastUpdated": last_updated.replace("+00:00", "Z"),
        }

    async def clear_cache(self) -> None:
        """Remove the catalog from every tier."""
        for tier in self._tiers:
            try:
                await tier.clear()
            except Exception as exc:
                logger.warning("Failed to clear template catalog %s tier: %s", tier.name, exc)
            else:
                logger.info("Template catalog %s tier cleared", tier.name)


__all__ = [
    "CatalogTier",
    "DistributedCatalogTier",
    "FileCatalogTier",
    "TemplateCacheStore",
]
