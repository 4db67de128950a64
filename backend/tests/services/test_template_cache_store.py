"""Tests for the tiered template catalog store."""

import json

import pytest

from mememe.services.template_cache import FileCatalogTier, TemplateCacheStore
from mememe.services.template_dto import (
    TemplateCandidate,
    TemplateCatalog,
    TemplateSource,
)


def make_candidate(template_id: str, score: float, source=TemplateSource.PROVIDER_ONLY):
    return TemplateCandidate(
        id=template_id,
        name=f"Template {template_id}",
        url=f"https://i.imgflip.com/{template_id}.jpg",
        width=500,
        height=400,
        box_count=2,
        captions=10,
        popularity_signal=0,
        created_at_unix=None,
        freshness_score=0.3,
        composite_score=score,
        source=source,
        last_updated=0,
    )


@pytest.fixture
def catalog(clock):
    return TemplateCatalog.build(
        [
            make_candidate("1", 0.9, TemplateSource.MATCHED_BOTH),
            make_candidate("2", 0.5),
        ],
        last_updated=int(clock() * 1000),
    )


class FailingTier:
    name = "broken"

    async def load(self):
        raise OSError("disk on fire")

    async def save(self, payload):
        raise OSError("disk on fire")

    async def clear(self):
        raise OSError("disk on fire")


class TestTemplateCacheStore:
    @pytest.mark.asyncio
    async def test_cold_cache_returns_none(self, template_store):
        assert await template_store.get_cached_templates() is None
        assert await template_store.is_cache_valid() is False

    @pytest.mark.asyncio
    async def test_save_then_read(self, template_store, catalog):
        await template_store.save_cached_templates(catalog)

        cached = await template_store.get_cached_templates()
        assert cached == catalog
        assert await template_store.is_cache_valid() is True

    @pytest.mark.asyncio
    async def test_file_mirror_serves_cold_process(
        self, template_store, catalog, settings, clock
    ):
        await template_store.save_cached_templates(catalog)

        # A new process without Valkey only has the file tier
        cold = TemplateCacheStore(
            None,
            settings=settings,
            tiers=[FileCatalogTier(settings.template_cache_file_path)],
            clock=clock,
        )
        cached = await cold.get_cached_templates()
        assert cached is not None
        assert [t.id for t in cached.templates] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_file_uses_snake_case_keys(self, template_store, catalog, settings):
        await template_store.save_cached_templates(catalog)

        with open(settings.template_cache_file_path, encoding="utf-8") as handle:
            payload = json.load(handle)

        assert set(payload) == {"templates", "last_updated", "total_templates", "sources"}
        assert payload["sources"] == {"provider_only": 1, "social_only": 0, "matched_both": 1}
        assert payload["templates"][0]["source"] == "matched-both"

    @pytest.mark.asyncio
    async def test_expired_catalog_is_ignored(self, template_store, catalog, clock):
        await template_store.save_cached_templates(catalog)

        clock.advance(6 * 3600 + 1)

        assert await template_store.get_cached_templates() is None

    @pytest.mark.asyncio
    async def test_unparsable_tier_is_skipped(self, template_store, catalog, fake_valkey, settings):
        await template_store.save_cached_templates(catalog)
        await fake_valkey.set(settings.template_cache_key, json.dumps({"nope": True}))

        cached = await template_store.get_cached_templates()

        assert cached is not None
        assert cached.total_count == 2

    @pytest.mark.asyncio
    async def test_corrupt_file_is_treated_as_miss(self, settings, clock, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        store = TemplateCacheStore(
            None, settings=settings, tiers=[FileCatalogTier(path)], clock=clock
        )

        assert await store.get_cached_templates() is None

    @pytest.mark.asyncio
    async def test_failing_tier_does_not_block_others(self, cache_service, settings, clock, catalog):
        store = TemplateCacheStore(
            cache_service,
            settings=settings,
            tiers=[FailingTier(), FileCatalogTier(settings.template_cache_file_path)],
            clock=clock,
        )

        await store.save_cached_templates(catalog)
        cached = await store.get_cached_templates()
        await store.clear_cache()

        assert cached is not None
        assert await store.get_cached_templates() is None

    @pytest.mark.asyncio
    async def test_clear_cache_removes_every_tier(self, template_store, catalog, settings, fake_valkey):
        await template_store.save_cached_templates(catalog)

        await template_store.clear_cache()

        assert await template_store.get_cached_templates() is None
        assert await fake_valkey.get(settings.template_cache_key) is None
        assert not FileCatalogTier(settings.template_cache_file_path).path.exists()

    @pytest.mark.asyncio
    async def test_clear_cache_without_file_is_quiet(self, template_store):
        await template_store.clear_cache()


class TestCacheStats:
    @pytest.mark.asyncio
    async def test_stats_when_empty(self, template_store):
        assert await template_store.get_cache_stats() == {
            "cached": False,
            "age": 0,
            "templates": 0,
            "sources": None,
            "lastUpdated": None,
        }

    @pytest.mark.asyncio
    async def test_stats_describe_cached_catalog(self, template_store, catalog, clock):
        await template_store.save_cached_templates(catalog)
        clock.advance(90)

        stats = await template_store.get_cache_stats()

        assert stats["cached"] is True
        assert stats["age"] == 90_000
        assert stats["templates"] == 2
        assert stats["sources"] == {"provider_only": 1, "social_only": 0, "matched_both": 1}
        assert stats["lastUpdated"] == "2023-11-14T22:13:20.000Z"

    @pytest.mark.asyncio
    async def test_stats_do_not_mutate(self, template_store, catalog):
        await template_store.save_cached_templates(catalog)

        await template_store.get_cache_stats()

        assert await template_store.get_cached_templates() == catalog
