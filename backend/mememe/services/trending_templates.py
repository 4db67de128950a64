"""
Trending template catalog service.

A refresh fetches the provider list and every community feed concurrently,
matches posts to templates, scores and ranks the candidates, then persists the
catalog through the template cache store. Reads are cache-first.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Iterable

from mememe.core.config import Settings, get_settings
from mememe.core.metrics import observe_cache_refresh, set_template_catalog_size
from mememe.services.cache import get_cache_service
from mememe.services.imgflip_client import ImgflipClient
from mememe.services.reddit_client import RedditClient
from mememe.services.template_cache import TemplateCacheStore
from mememe.services.template_dto import (
    ProviderTemplate,
    SourceCounts,
    TemplateCandidate,
    TemplateCatalog,
)
from mememe.services.template_errors import (
    TemplateCatalogUnavailableError,
    TemplateSourceError,
)
from mememe.services.template_matching import (
    match_posts_to_templates,
    provider_candidate,
    provider_only_candidates,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RefreshResult:
    """Outcome of a catalog refresh, safe to return from admin routes."""

    success: bool
    templates: int = 0
    duration_ms: int = 0
    sources: SourceCounts = field(default_factory=SourceCounts)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "templates": self.templates,
            "duration": self.duration_ms,
            "sources": self.sources.to_dict(),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


def dedupe_by_id(candidates: Iterable[TemplateCandidate]) -> list[TemplateCandidate]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[TemplateCandidate] = []
    for candidate in candidates:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        unique.append(candidate)
    return unique


class TrendingTemplateService:
    """Builds, caches and serves the ranked template catalog."""

    def __init__(
        self,
        store: TemplateCacheStore,
        *,
        provider: ImgflipClient | None = None,
        feeds: RedditClient | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.provider = provider or ImgflipClient(self.settings)
        self.feeds = feeds or RedditClient(self.settings)
        self._clock = clock
        # Last provider list seen in this process; keeps the fallback alive
        # when the provider goes down after a successful call.
        self._last_provider_templates: list[ProviderTemplate] | None = None

    async def _fetch_provider_templates(self) -> list[ProviderTemplate]:
        templates = await self.provider.get_templates()
        self._last_provider_templates = templates
        return templates

    async def build_catalog(self) -> TemplateCatalog:
        """Run a full fetch, match and rank cycle.

        Falls back to a provider-only catalog when the cycle fails.
        """
        try:
            return await self._build_full_catalog()
        except Exception:
            logger.exception("Trending template refresh failed; using fallback catalog")
            return await self.build_fallback_catalog()

    async def _build_full_catalog(self) -> TemplateCatalog:
        communities = self.settings.meme_communities
        templates, posts = await asyncio.gather(
            self._fetch_provider_templates(),
            self.feeds.fetch_all(communities),
        )
        logger.info(
            "Found %d posts from %d communities", len(posts), len(communities)
        )

        now = self._clock()
        result = match_posts_to_templates(
            posts,
            templates,
            now=now,
            synthetic_upvote_threshold=self.settings.template_synthetic_upvote_threshold,
        )
        provider_only = provider_only_candidates(
            templates,
            result.claimed_ids,
            now=now,
            limit=self.settings.template_provider_only_limit,
        )

        # Stable sort: ties keep matched, social-only, provider-only order
        ranked = sorted(
            [*result.matched, *result.social_only, *provider_only],
            key=lambda candidate: candidate.composite_score,
            reverse=True,
        )
        ranked = dedupe_by_id(ranked)[: self.settings.template_catalog_max_size]

        catalog = TemplateCatalog.build(ranked, last_updated=int(now * 1000))
        counts = catalog.source_counts
        logger.info(
            "Built catalog of %d templates (%d matched, %d social-only, %d provider-only)",
            catalog.total_count,
            counts.matched_both,
            counts.social_only,
            counts.provider_only,
        )
        set_template_catalog_size(catalog.total_count)
        return catalog

    async def build_fallback_catalog(self) -> TemplateCatalog:
        """Provider-only catalog with default scores.

        Raises:
            TemplateCatalogUnavailableError: the provider is down and has not
                answered before in this process.
        """
        try:
            templates = await self._fetch_provider_templates()
        except TemplateSourceError as exc:
            if self._last_provider_templates is None:
                raise TemplateCatalogUnavailableError(
                    "Template provider unavailable and no templates seen yet."
                ) from exc
            logger.warning("Provider retry failed; using last known template list")
            templates = self._last_provider_templates

        now = self._clock()
        candidates = sorted(
            (
                provider_candidate(template, now=now)
                for template in templates[: self.settings.template_fallback_catalog_size]
            ),
            key=lambda candidate: candidate.composite_score,
            reverse=True,
        )
        candidates = dedupe_by_id(candidates)
        catalog = TemplateCatalog.build(candidates, last_updated=int(now * 1000))
        set_template_catalog_size(catalog.total_count)
        return catalog

    async def refresh(self) -> TemplateCatalog:
        """Build a new catalog and persist it to every cache tier."""
        start = time.perf_counter()
        catalog = await self.build_catalog()
        await self.store.save_cached_templates(catalog)
        observe_cache_refresh("template_catalog", time.perf_counter() - start)
        return catalog

    async def get_trending_templates(
        self, force_refresh: bool = False
    ) -> list[TemplateCandidate]:
        """Cached templates when available, otherwise a fresh catalog."""
        if not force_refresh:
            cached = await self.store.get_cached_templates()
            if cached is not None and cached.templates:
                logger.debug("Using %d cached templates", len(cached.templates))
                return cached.templates

        logger.info("Template cache miss or forced refresh; rebuilding catalog")
        catalog = await self.refresh()
        return catalog.templates

    async def refresh_template_cache(self) -> RefreshResult:
        """Refresh and report the outcome without raising."""
        start = time.perf_counter()
        try:
            catalog = await self.refresh()
        except Exception as exc:
            logger.error("Failed to refresh template cache: %s", exc)
            return RefreshResult(
                success=False,
                duration_ms=int((time.perf_counter() - start) * 1000),
                error=str(exc) or type(exc).__name__,
            )

        return RefreshResult(
            success=True,
            templates=catalog.total_count,
            duration_ms=int((time.perf_counter() - start) * 1000),
            sources=catalog.source_counts,
        )


@lru_cache
def get_trending_template_service() -> TrendingTemplateService:
    """FastAPI dependency hook returning the process-wide catalog service."""
    return TrendingTemplateService(TemplateCacheStore(get_cache_service()))


__all__ = [
    "RefreshResult",
    "TrendingTemplateService",
    "dedupe_by_id",
    "get_trending_template_service",
]
