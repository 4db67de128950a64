"""Data transfer objects for the trending template pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, List


class TemplateSource(str, Enum):
    """Where a catalog entry's evidence came from."""

    PROVIDER_ONLY = "provider-only"
    SOCIAL_ONLY = "social-only"
    MATCHED_BOTH = "matched-both"


@dataclass(frozen=True)
class ProviderTemplate:
    """Template metadata as listed by the image template provider."""

    id: str
    name: str
    url: str
    width: int
    height: int
    box_count: int
    # Provider's usage count, used as its own popularity proxy
    captions: int = 0


@dataclass(frozen=True)
class SocialPost:
    """A post from one community's trending feed."""

    post_id: str
    title: str
    url: str
    upvotes: int
    created_utc: int | None
    community: str
    permalink: str = ""


@dataclass(frozen=True)
class TemplateCandidate:
    """A scored template ready to be ranked into a catalog."""

    id: str
    name: str
    url: str
    width: int
    height: int
    box_count: int
    captions: int
    popularity_signal: int
    created_at_unix: int | None
    freshness_score: float
    composite_score: float
    source: TemplateSource
    last_updated: int

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["source"] = self.source.value
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TemplateCandidate":
        return cls(
            id=str(payload["id"]),
            name=payload["name"],
            url=payload.get("url", ""),
            width=int(payload.get("width") or 0),
            height=int(payload.get("height") or 0),
            box_count=int(payload.get("box_count") or 0),
            captions=int(payload.get("captions") or 0),
            popularity_signal=int(payload.get("popularity_signal") or 0),
            created_at_unix=payload.get("created_at_unix"),
            freshness_score=float(payload["freshness_score"]),
            composite_score=float(payload["composite_score"]),
            source=TemplateSource(payload["source"]),
            last_updated=int(payload["last_updated"]),
        )


@dataclass(frozen=True)
class SourceCounts:
    """Tally of catalog entries per source."""

    provider_only: int = 0
    social_only: int = 0
    matched_both: int = 0

    @classmethod
    def tally(cls, templates: List[TemplateCandidate]) -> "SourceCounts":
        return cls(
            provider_only=sum(
                1 for t in templates if t.source is TemplateSource.PROVIDER_ONLY
            ),
            social_only=sum(
                1 for t in templates if t.source is TemplateSource.SOCIAL_ONLY
            ),
            matched_both=sum(
                1 for t in templates if t.source is TemplateSource.MATCHED_BOTH
            ),
        )

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SourceCounts":
        return cls(
            provider_only=int(payload.get("provider_only", 0)),
            social_only=int(payload.get("social_only", 0)),
            matched_both=int(payload.get("matched_both", 0)),
        )


@dataclass(frozen=True)
class TemplateCatalog:
    """Ranked, deduplicated templates; regenerated wholesale, never patched."""

    templates: List[TemplateCandidate]
    last_updated: int
    total_count: int
    source_counts: SourceCounts = field(default_factory=SourceCounts)

    @classmethod
    def build(
        cls, templates: List[TemplateCandidate], last_updated: int
    ) -> "TemplateCatalog":
        return cls(
            templates=list(templates),
            last_updated=last_updated,
            total_count=len(templates),
            source_counts=SourceCounts.tally(templates),
        )

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.last_updated

    def to_dict(self) -> dict[str, Any]:
        return {
            "templates": [template.to_dict() for template in self.templates],
            "last_updated": self.last_updated,
            "total_templates": self.total_count,
            "sources": self.source_counts.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TemplateCatalog":
        templates = [TemplateCandidate.from_dict(item) for item in payload["templates"]]
        return cls(
            templates=templates,
            last_updated=int(payload["last_updated"]),
            total_count=int(payload.get("total_templates", len(templates))),
            source_counts=SourceCounts.from_dict(payload.get("sources") or {}),
        )


__all__ = [
    "ProviderTemplate",
    "SocialPost",
    "SourceCounts",
    "TemplateCandidate",
    "TemplateCatalog",
    "TemplateSource",
]
