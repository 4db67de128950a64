"""
Shared dependency injection functions for API endpoints.
"""

import secrets

from fastapi import Depends, Request

from mememe.api.v1.shared.errors import forbidden, service_unavailable, unauthorized
from mememe.core.config import Settings, get_settings
from mememe.services.template_cache import TemplateCacheStore
from mememe.services.trending_templates import (
    TrendingTemplateService,
    get_trending_template_service,
)

CRON_USER_AGENT_MARKERS = ("vercel", "cron")


def _bearer_matches(request: Request, secret: str) -> bool:
    header = request.headers.get("authorization") or ""
    return secrets.compare_digest(header.encode(), f"Bearer {secret}".encode())


async def get_template_cache_store(
    service: TrendingTemplateService = Depends(get_trending_template_service),
) -> TemplateCacheStore:
    return service.store


async def require_admin_secret(
    request: Request, settings: Settings = Depends(get_settings)
) -> None:
    """Reject requests without ``Authorization: Bearer <ADMIN_SECRET>``."""
    if not settings.admin_secret:
        raise service_unavailable("Admin functionality not configured")
    if not _bearer_matches(request, settings.admin_secret):
        raise unauthorized("Invalid or missing admin authorization")


async def require_cron_access(
    request: Request, settings: Settings = Depends(get_settings)
) -> None:
    """Check the cron secret, or restrict to schedulers and localhost without one."""
    if settings.cron_secret:
        if not _bearer_matches(request, settings.cron_secret):
            raise unauthorized()
        return

    user_agent = (request.headers.get("user-agent") or "").lower()
    host = request.headers.get("host") or ""
    if any(marker in user_agent for marker in CRON_USER_AGENT_MARKERS):
        return
    if "localhost" in host:
        return
    raise forbidden("This endpoint is only accessible via a cron scheduler or localhost")
