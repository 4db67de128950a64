"""
Trending template endpoints.

Serves the ranked template catalog and a read-only view of its cache state.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from mememe.api.v1.shared.dependencies import get_template_cache_store
from mememe.api.v1.shared.errors import service_unavailable
from mememe.models.templates import (
    SourceLiteral,
    TemplateCacheStats,
    TrendingTemplate,
    TrendingTemplatesResponse,
)
from mememe.services.template_cache import TemplateCacheStore
from mememe.services.template_errors import TemplateCatalogUnavailableError
from mememe.services.trending_templates import (
    TrendingTemplateService,
    get_trending_template_service,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/trending", response_model=TrendingTemplatesResponse)
async def get_trending_templates(
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    source: Annotated[
        SourceLiteral | None, Query(description="Only return templates from this source.")
    ] = None,
    force_refresh: bool = False,
    service: TrendingTemplateService = Depends(get_trending_template_service),
) -> TrendingTemplatesResponse:
    """Return the highest ranked templates, rebuilding the catalog on a miss."""
    try:
        templates = await service.get_trending_templates(force_refresh=force_refresh)
    except TemplateCatalogUnavailableError as exc:
        logger.error("Trending templates unavailable: %s", exc)
        raise service_unavailable("Trending templates are temporarily unavailable") from exc

    if source is not None:
        templates = [t for t in templates if t.source.value == source]

    selected = templates[:limit]
    return TrendingTemplatesResponse(
        templates=[TrendingTemplate.from_candidate(t) for t in selected],
        count=len(selected),
    )


@router.get("/cache/stats", response_model=TemplateCacheStats)
async def get_template_cache_stats(
    store: TemplateCacheStore = Depends(get_template_cache_store),
) -> TemplateCacheStats:
    return TemplateCacheStats.model_validate(await store.get_cache_stats())
