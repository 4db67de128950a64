"""
Trending template models.

Provides Pydantic models for the template API endpoint responses.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from mememe.services.template_dto import TemplateCandidate

SourceLiteral = Literal["provider-only", "social-only", "matched-both"]


class TrendingTemplate(BaseModel):
    """A ranked template from the trending catalog."""

    id: str = Field(..., description="Provider template id or generated social id.")
    name: str = Field(..., description="Display name of the template.")
    url: str = Field(..., description="Image URL of the blank template.")
    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)
    box_count: int = Field(..., ge=0, description="Number of caption slots.")
    captions: int = Field(0, ge=0, description="Provider usage count.")
    popularity_signal: int = Field(0, description="Upvotes of the matching post.")
    created_at_unix: int | None = Field(
        None, description="Creation time of the matching post (epoch seconds)."
    )
    freshness_score: float = Field(..., ge=0, le=1)
    composite_score: float = Field(..., ge=0, le=1)
    source: SourceLiteral
    last_updated: int = Field(..., description="Scoring time (epoch milliseconds).")

    @classmethod
    def from_candidate(cls, candidate: TemplateCandidate) -> "TrendingTemplate":
        return cls.model_validate(candidate.to_dict())


class SourceBreakdown(BaseModel):
    provider_only: int = Field(0, ge=0)
    social_only: int = Field(0, ge=0)
    matched_both: int = Field(0, ge=0)


class TrendingTemplatesResponse(BaseModel):
    """Response for the trending templates endpoint."""

    templates: list[TrendingTemplate]
    count: int = Field(..., ge=0, description="Number of templates returned.")


class TemplateCacheStats(BaseModel):
    """Read-only description of the cached catalog."""

    cached: bool
    age: int = Field(..., description="Catalog age in milliseconds.")
    templates: int = Field(..., ge=0)
    sources: SourceBreakdown | None = None
    lastUpdated: str | None = Field(None, description="ISO-8601 build time.")


class RefreshData(BaseModel):
    templates: int = Field(0, ge=0)
    duration: int = Field(0, ge=0, description="Refresh duration in milliseconds.")
    sources: SourceBreakdown = Field(default_factory=SourceBreakdown)
    previous_cache: TemplateCacheStats | None = None
    cache_cleared: bool | None = None


class TemplateRefreshResponse(BaseModel):
    """Response for the admin and cron refresh endpoints."""

    success: bool
    message: str
    data: RefreshData | None = None
    error: str | None = None
    timestamp: str = Field(..., description="ISO-8601 response time.")
