"""Matching social posts to provider templates.

Posts are processed in feed order and each provider template can be claimed
by at most one post. The first match wins and is never reconsidered.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from mememe.services.template_dto import (
    ProviderTemplate,
    SocialPost,
    TemplateCandidate,
    TemplateSource,
)
from mememe.services.template_scoring import composite_score, freshness_score

# Titles that usually announce a known template or a template format
TEMPLATE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"drake.*(pointing|meme)",
        r"drake.*template",
        r"distracted.*boyfriend",
        r"guy.*looking.*back",
        r"(woman|lady).*yelling.*cat",
        r"cat.*table.*meme",
        r"this.*is.*fine",
        r"dog.*fire.*meme",
        r"expanding.*brain",
        r"brain.*meme",
        r"two.*buttons",
        r"button.*meme",
        r"change.*my.*mind",
        r"crowder.*meme",
        r"template",
        r"format",
        r"meme.*template",
        r"(new|fresh).*meme",
    )
)

_IMAGE_SUFFIX = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)
_IMAGE_HOSTS = re.compile(r"imgur\.com|i\.redd\.it", re.IGNORECASE)
_GENERIC_KEYWORD = re.compile(r"template|format", re.IGNORECASE)
_LEADING_NOISE = re.compile(r"^(new |fresh |hot )", re.IGNORECASE)
_TRAILING_NOISE = re.compile(r"(template|format|meme)$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

MAX_NAME_LENGTH = 50
MIN_KEYWORD_LENGTH = 4
MIN_SHARED_KEYWORDS = 2


@dataclass
class MatchResult:
    matched: list[TemplateCandidate] = field(default_factory=list)
    social_only: list[TemplateCandidate] = field(default_factory=list)

    @property
    def claimed_ids(self) -> set[str]:
        return {candidate.id for candidate in self.matched}


def is_image_link(url: str) -> bool:
    return bool(_IMAGE_SUFFIX.search(url) or _IMAGE_HOSTS.search(url))


def is_template_related(post: SocialPost) -> bool:
    """Whether a post looks like it is about a meme template."""
    title_match = any(pattern.search(post.title) for pattern in TEMPLATE_PATTERNS)

    if title_match and is_image_link(post.url):
        return True
    if title_match and post.upvotes > 100:
        return True
    return bool(_GENERIC_KEYWORD.search(post.title)) and post.upvotes > 50


def extract_template_name(title: str) -> str:
    """Strip feed noise from a post title to get a candidate template name."""
    cleaned = _LEADING_NOISE.sub("", title, count=1)
    cleaned = _TRAILING_NOISE.sub("", cleaned, count=1)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:MAX_NAME_LENGTH]


def _keywords(text: str) -> list[str]:
    return [word for word in text.split() if len(word) >= MIN_KEYWORD_LENGTH]


def names_match(extracted_name: str, template_name: str, post_title: str) -> bool:
    """Substring match either way, else at least two shared keywords."""
    template_lower = template_name.lower()
    extracted_lower = extracted_name.lower()

    if extracted_lower in template_lower or template_lower in extracted_lower:
        return True

    title_words = _keywords(post_title.lower())
    shared = [
        word
        for word in _keywords(template_lower)
        if any(word in title_word or title_word in word for title_word in title_words)
    ]
    return len(shared) >= MIN_SHARED_KEYWORDS


def match_posts_to_templates(
    posts: Iterable[SocialPost],
    templates: Sequence[ProviderTemplate],
    *,
    now: float,
    synthetic_upvote_threshold: int = 500,
) -> MatchResult:
    """Pair template-related posts with provider templates.

    Unmatched posts above ``synthetic_upvote_threshold`` upvotes become
    social-only candidates. ``now`` is epoch seconds.
    """
    result = MatchResult()
    claimed: set[str] = set()
    last_updated = int(now * 1000)

    for post in posts:
        if not is_template_related(post):
            continue

        extracted_name = extract_template_name(post.title)
        match = next(
            (
                template
                for template in templates
                if template.id not in claimed
                and names_match(extracted_name, template.name, post.title)
            ),
            None,
        )

        if match is not None:
            claimed.add(match.id)
            result.matched.append(
                TemplateCandidate(
                    id=match.id,
                    name=match.name,
                    url=match.url,
                    width=match.width,
                    height=match.height,
                    box_count=match.box_count,
                    captions=match.captions,
                    popularity_signal=post.upvotes,
                    created_at_unix=post.created_utc,
                    freshness_score=freshness_score(post.created_utc, now),
                    composite_score=composite_score(
                        now=now,
                        created_at_unix=post.created_utc,
                        upvotes=post.upvotes,
                        box_count=match.box_count,
                    ),
                    source=TemplateSource.MATCHED_BOTH,
                    last_updated=last_updated,
                )
            )
        elif post.upvotes > synthetic_upvote_threshold:
            result.social_only.append(
                TemplateCandidate(
                    id=f"social_{post.community}_{post.post_id}",
                    name=extracted_name,
                    url=post.url,
                    width=0,
                    height=0,
                    # Unknown layout; assume the common two-panel format
                    box_count=2,
                    captions=0,
                    popularity_signal=post.upvotes,
                    created_at_unix=post.created_utc,
                    freshness_score=freshness_score(post.created_utc, now),
                    composite_score=composite_score(
                        now=now,
                        created_at_unix=post.created_utc,
                        upvotes=post.upvotes,
                    ),
                    source=TemplateSource.SOCIAL_ONLY,
                    last_updated=last_updated,
                )
            )

    return result


PROVIDER_ONLY_FRESHNESS = 0.3


def provider_candidate(template: ProviderTemplate, *, now: float) -> TemplateCandidate:
    """Score a provider template that has no social signal."""
    return TemplateCandidate(
        id=template.id,
        name=template.name,
        url=template.url,
        width=template.width,
        height=template.height,
        box_count=template.box_count,
        captions=template.captions,
        popularity_signal=0,
        created_at_unix=None,
        freshness_score=PROVIDER_ONLY_FRESHNESS,
        composite_score=composite_score(now=now, box_count=template.box_count),
        source=TemplateSource.PROVIDER_ONLY,
        last_updated=int(now * 1000),
    )


def provider_only_candidates(
    templates: Sequence[ProviderTemplate],
    claimed_ids: set[str],
    *,
    now: float,
    limit: int = 50,
) -> list[TemplateCandidate]:
    """Top ``limit`` unclaimed provider templates by caption count."""
    unclaimed = [template for template in templates if template.id not in claimed_ids]
    unclaimed.sort(key=lambda template: template.captions, reverse=True)
    return [provider_candidate(template, now=now) for template in unclaimed[:limit]]


__all__ = [
    "MatchResult",
    "TEMPLATE_PATTERNS",
    "extract_template_name",
    "is_image_link",
    "is_template_related",
    "match_posts_to_templates",
    "names_match",
    "provider_candidate",
    "provider_only_candidates",
]
