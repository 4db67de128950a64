"""
Template catalog refresh jobs.

``TemplateRefreshJob`` warms the catalog once at startup so the first
request does not wait on the community feeds. ``TemplateRefreshScheduler``
rebuilds it on a fixed interval.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mememe.core.config import Settings, get_settings
from mememe.services.trending_templates import (
    TrendingTemplateService,
    get_trending_template_service,
)

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "template_catalog_refresh"


@dataclass(slots=True)
class RefreshSummary:
    """Aggregate template refresh statistics."""

    templates_cached: int = 0
    skipped: bool = False
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "templates_cached": self.templates_cached,
            "skipped": self.skipped,
            "errors": self.errors,
        }


class TemplateRefreshJob:
    """Hydrate the template catalog so the first user avoids a cold rebuild."""

    def __init__(
        self,
        service: TrendingTemplateService | None = None,
        *,
        force: bool = False,
    ) -> None:
        self.service = service or get_trending_template_service()
        self.force = force

    async def run(self) -> RefreshSummary:
        summary = RefreshSummary()

        if not self.force and await self.service.store.is_cache_valid():
            logger.info("Template catalog already cached; warmup skipped")
            summary.skipped = True
            return summary

        result = await self.service.refresh_template_cache()
        if result.success:
            summary.templates_cached = result.templates
            logger.info("Warmup cached %s templates", result.templates)
        else:
            summary.errors.append(result.error or "template_catalog")
        return summary


class TemplateRefreshScheduler:
    """Manages scheduled template catalog refreshes."""

    def __init__(
        self,
        settings: Settings | None = None,
        service: TrendingTemplateService | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.service = service or get_trending_template_service()
        self.scheduler = AsyncIOScheduler()
        self._setup_jobs()

    def _setup_jobs(self) -> None:
        self.scheduler.add_job(
            func=self._refresh_catalog,
            trigger=IntervalTrigger(hours=self.settings.template_refresh_interval_hours),
            id=REFRESH_JOB_ID,
            name="Refresh trending template catalog",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def start(self) -> None:
        logger.info("Starting template refresh scheduler")
        self.scheduler.start()

    def stop(self) -> None:
        logger.info("Stopping template refresh scheduler")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def _refresh_catalog(self) -> None:
        logger.info("Starting scheduled template catalog refresh")
        result = await self.service.refresh_template_cache()
        if result.success:
            logger.info(
                "Scheduled refresh cached %d templates in %dms",
                result.templates,
                result.duration_ms,
            )
        else:
            logger.error("Scheduled template refresh failed: %s", result.error)

    def get_job_info(self) -> dict[str, Any]:
        """Get information about scheduled jobs."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run": next_run.isoformat() if next_run else None,
                    "trigger": str(job.trigger),
                }
            )

        return {
            "scheduler_running": self.scheduler.running,
            "jobs": jobs,
        }
