"""Tests for the community feed client."""

import httpx
import pytest

from mememe.services.reddit_client import RedditClient, map_social_post
from mememe.services.template_errors import CommunityFeedError


def listing(*posts):
    return {"data": {"children": [{"kind": "t3", "data": post} for post in posts]}}


def post(post_id, title, ups=100, created_utc=1_700_000_000.0):
    return {
        "id": post_id,
        "title": title,
        "url": f"https://i.redd.it/{post_id}.png",
        "ups": ups,
        "created_utc": created_utc,
        "permalink": f"/r/memes/comments/{post_id}/",
    }


FEEDS = {
    "/r/memes/hot.json": listing(post("a1", "Drake template"), post("a2", "Second")),
    "/r/dankmemes/hot.json": listing(post("b1", "Two Buttons format", ups=900)),
}


def feed_handler(requests):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/r/broken/hot.json":
            return httpx.Response(503)
        if request.url.path == "/r/garbled/hot.json":
            return httpx.Response(200, json={"kind": "Listing"})
        return httpx.Response(200, json=FEEDS.get(request.url.path, listing()))

    return handler


@pytest.fixture
def requests():
    return []


@pytest.fixture
def client(settings, requests):
    return RedditClient(settings, transport=httpx.MockTransport(feed_handler(requests)))


def test_map_social_post_truncates_timestamp():
    mapped = map_social_post(post("x", "Title", ups=42, created_utc=1_700_000_123.9), "memes")

    assert mapped.post_id == "x"
    assert mapped.upvotes == 42
    assert mapped.created_utc == 1_700_000_123
    assert mapped.community == "memes"
    assert mapped.permalink == "/r/memes/comments/x/"


def test_map_social_post_allows_missing_fields():
    mapped = map_social_post({"id": "y"}, "funny")

    assert mapped.title == ""
    assert mapped.upvotes == 0
    assert mapped.created_utc is None


@pytest.mark.asyncio
async def test_fetch_posts_sends_feed_parameters(client, requests, settings):
    posts = await client.fetch_posts("memes")

    assert [p.post_id for p in posts] == ["a1", "a2"]
    request = requests[0]
    assert request.url.host == "www.reddit.com"
    assert request.url.params["limit"] == str(settings.reddit_post_limit)
    assert request.url.params["t"] == settings.reddit_timeframe
    assert request.headers["user-agent"] == settings.reddit_user_agent


@pytest.mark.asyncio
async def test_fetch_posts_http_error(client):
    with pytest.raises(CommunityFeedError) as excinfo:
        await client.fetch_posts("broken")

    assert excinfo.value.community == "broken"


@pytest.mark.asyncio
async def test_fetch_posts_malformed_listing(client):
    with pytest.raises(CommunityFeedError, match="Malformed"):
        await client.fetch_posts("garbled")


@pytest.mark.asyncio
async def test_fetch_all_keeps_community_order(client):
    posts = await client.fetch_all(["dankmemes", "memes"])

    assert [p.post_id for p in posts] == ["b1", "a1", "a2"]
    assert [p.community for p in posts] == ["dankmemes", "memes", "memes"]


@pytest.mark.asyncio
async def test_fetch_all_skips_failing_communities(client, caplog):
    posts = await client.fetch_all(["broken", "memes", "garbled", "empty"])

    assert [p.post_id for p in posts] == ["a1", "a2"]
    assert "Skipping r/broken" in caplog.text
    assert "Skipping r/garbled" in caplog.text


@pytest.mark.asyncio
async def test_fetch_all_with_no_communities(client, requests):
    assert await client.fetch_all([]) == []
    assert requests == []
