"""Pure scoring functions for ranking templates.

Weights and breakpoints are fixed so rankings stay reproducible across runs.
"""

from __future__ import annotations

FRESHNESS_WEIGHT = 0.4
POPULARITY_WEIGHT = 0.35
USABILITY_WEIGHT = 0.25

# Used when a candidate carries no timestamp, upvote or box-count signal
DEFAULT_FRESHNESS = 0.5
DEFAULT_POPULARITY = 0.3
DEFAULT_USABILITY = 0.2

FRESHNESS_FLOOR = 0.1


def freshness_score(created_at_unix: float | None, now: float) -> float:
    """Score recency in [0.1, 1.0]; ``now`` is epoch seconds."""
    if not created_at_unix:
        return DEFAULT_FRESHNESS

    hours = (now - created_at_unix) / 3600

    if hours <= 6:
        return 1.0
    if hours <= 24:
        return 0.8 + 0.2 * (1 - (hours - 6) / 18)
    if hours <= 168:
        return 0.3 + 0.5 * (1 - (hours - 24) / 144)
    return max(FRESHNESS_FLOOR, 0.3 * (1 - (hours - 168) / 672))


def popularity_score(upvotes: int | None) -> float:
    if not upvotes:
        return DEFAULT_POPULARITY
    return max(0.0, min(upvotes / 1000, 1.0))


def usability_score(box_count: int | None) -> float:
    if not box_count:
        return DEFAULT_USABILITY
    return max(0.0, min(box_count / 5, 1.0))


def composite_score(
    *,
    now: float,
    created_at_unix: float | None = None,
    upvotes: int | None = None,
    box_count: int | None = None,
) -> float:
    """Blend freshness, popularity and usability into a score in [0, 1]."""
    return (
        FRESHNESS_WEIGHT * freshness_score(created_at_unix, now)
        + POPULARITY_WEIGHT * popularity_score(upvotes)
        + USABILITY_WEIGHT * usability_score(box_count)
    )


__all__ = [
    "composite_score",
    "freshness_score",
    "popularity_score",
    "usability_score",
]
