"""
Template catalog refresh endpoints for operators and cron schedulers.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from mememe.api.v1.shared.dependencies import (
    require_admin_secret,
    require_cron_access,
)
from mememe.core.config import Settings, get_settings
from mememe.models.templates import (
    RefreshData,
    SourceBreakdown,
    TemplateCacheStats,
    TemplateRefreshResponse,
)
from mememe.services.trending_templates import (
    RefreshResult,
    TrendingTemplateService,
    get_trending_template_service,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _timestamp() -> str:
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


def _refresh_response(
    result: RefreshResult,
    previous: TemplateCacheStats,
    *,
    cache_cleared: bool | None = None,
) -> TemplateRefreshResponse | JSONResponse:
    if not result.success:
        body = TemplateRefreshResponse(
            success=False,
            message="Template cache refresh failed",
            error=result.error or "Unknown refresh error",
            timestamp=_timestamp(),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json"),
        )

    return TemplateRefreshResponse(
        success=True,
        message=f"Successfully refreshed template cache with {result.templates} templates",
        data=RefreshData(
            templates=result.templates,
            duration=result.duration_ms,
            sources=SourceBreakdown.model_validate(result.sources.to_dict()),
            previous_cache=previous,
            cache_cleared=cache_cleared,
        ),
        timestamp=_timestamp(),
    )


@router.post(
    "/admin/templates/refresh",
    response_model=TemplateRefreshResponse,
    dependencies=[Depends(require_admin_secret)],
)
async def admin_refresh_templates(
    clear: bool = False,
    force: bool = False,
    service: TrendingTemplateService = Depends(get_trending_template_service),
    settings: Settings = Depends(get_settings),
):
    """Rebuild the catalog on demand.

    A catalog younger than the admin fresh window is kept unless ``force``
    or ``clear`` is set.
    """
    previous = TemplateCacheStats.model_validate(await service.store.get_cache_stats())

    cache_cleared = False
    if clear:
        logger.info("Clearing template cache before admin refresh")
        await service.store.clear_cache()
        cache_cleared = True

    fresh_window_ms = settings.template_admin_fresh_window_seconds * 1000
    if not force and not cache_cleared and previous.cached and previous.age < fresh_window_ms:
        age_hours = previous.age / 3_600_000
        return TemplateRefreshResponse(
            success=True,
            message=(
                f"Template cache is still fresh ({age_hours:.1f} hours old). "
                "Use ?force=true to refresh anyway."
            ),
            data=RefreshData(
                templates=previous.templates,
                duration=0,
                sources=previous.sources or SourceBreakdown(),
                previous_cache=previous,
                cache_cleared=cache_cleared,
            ),
            timestamp=_timestamp(),
        )

    result = await service.refresh_template_cache()
    if result.success:
        logger.info("Admin refresh cached %d templates", result.templates)
    return _refresh_response(result, previous, cache_cleared=cache_cleared)


@router.get(
    "/cron/refresh-templates",
    response_model=TemplateRefreshResponse,
    dependencies=[Depends(require_cron_access)],
)
async def cron_refresh_templates(
    service: TrendingTemplateService = Depends(get_trending_template_service),
):
    """Scheduled catalog rebuild."""
    previous = TemplateCacheStats.model_validate(await service.store.get_cache_stats())
    result = await service.refresh_template_cache()
    return _refresh_response(result, previous)
