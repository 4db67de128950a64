"""Client for community hot feeds on Reddit."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

import httpx

from mememe.core.config import Settings, get_settings
from mememe.core.metrics import observe_template_source_request
from mememe.core.telemetry import add_traceparent_header
from mememe.services.template_dto import SocialPost
from mememe.services.template_errors import CommunityFeedError

logger = logging.getLogger(__name__)

SOURCE_NAME = "reddit"


def map_social_post(data: dict[str, Any], community: str) -> SocialPost:
    """Map a listing child's ``data`` object to a SocialPost."""
    created = data.get("created_utc")
    return SocialPost(
        post_id=str(data.get("id") or ""),
        title=str(data.get("title") or ""),
        url=str(data.get("url") or ""),
        upvotes=int(data.get("ups") or 0),
        created_utc=int(created) if created is not None else None,
        community=community,
        permalink=str(data.get("permalink") or ""),
    )


class RedditClient:
    """Fetches hot posts for the configured meme communities."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.reddit_base_url,
            timeout=self._settings.reddit_timeout_seconds,
            headers={"User-Agent": self._settings.reddit_user_agent},
            transport=self._transport,
        )

    async def fetch_posts(
        self, community: str, client: httpx.AsyncClient | None = None
    ) -> list[SocialPost]:
        """Fetch one community's hot feed.

        Raises:
            CommunityFeedError: the feed could not be fetched or parsed.
        """
        if client is None:
            async with self._build_client() as owned_client:
                return await self._fetch_posts(community, owned_client)
        return await self._fetch_posts(community, client)

    async def fetch_all(self, communities: Sequence[str]) -> list[SocialPost]:
        """Fetch every community concurrently, flattened in community order.

        A failing community is logged and contributes no posts.
        """
        async with self._build_client() as client:
            results = await asyncio.gather(
                *(self._fetch_posts(community, client) for community in communities),
                return_exceptions=True,
            )

        posts: list[SocialPost] = []
        for community, result in zip(communities, results):
            if isinstance(result, BaseException):
                logger.warning("Skipping r/%s: %s", community, result)
                continue
            posts.extend(result)
        return posts

    async def _fetch_posts(
        self, community: str, client: httpx.AsyncClient
    ) -> list[SocialPost]:
        params = {
            "limit": self._settings.reddit_post_limit,
            "t": self._settings.reddit_timeframe,
        }
        start = time.perf_counter()

        try:
            response = await client.get(
                f"/r/{community}/hot.json",
                params=params,
                headers=add_traceparent_header({}),
            )
            response.raise_for_status()
            children = response.json()["data"]["children"]
            posts = [
                map_social_post(child["data"], community)
                for child in children
                if isinstance(child, dict) and isinstance(child.get("data"), dict)
            ]
        except httpx.HTTPError as exc:
            observe_template_source_request(
                SOURCE_NAME, "error", time.perf_counter() - start
            )
            raise CommunityFeedError(
                community, f"Failed to fetch r/{community}: {exc}"
            ) from exc
        except (KeyError, TypeError, ValueError) as exc:
            observe_template_source_request(
                SOURCE_NAME, "error", time.perf_counter() - start
            )
            raise CommunityFeedError(
                community, f"Malformed listing for r/{community}"
            ) from exc

        observe_template_source_request(
            SOURCE_NAME, "success", time.perf_counter() - start
        )
        return posts


__all__ = ["RedditClient", "map_social_post"]
