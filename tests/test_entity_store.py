"""
@description 实体存储测试
@responsibility 验证分层写入互不覆盖、AI 写入前置条件、按层刷新判断和批量写入容错
"""

import asyncio
from datetime import timedelta

import pytest

from offline_cache.core.errors import NotFound
from offline_cache.services.entity_merge import EntityKind, Tier


class TestUpsert:
    """测试分层写入"""

    @pytest.mark.asyncio
    async def test_basic_and_details_coexist(self, entity_store):
        """基础字段与详情字段分两次写入后同时存在"""
        assert (await entity_store.upsert_basic(42, "Movie", {"title": "X", "vote_average": 7.1})).ok
        assert (await entity_store.upsert_details(42, "Movie", {"budget": 1000000})).ok

        record = await entity_store.get(42, EntityKind.MOVIE)
        assert record["title"] == "X"
        assert record["vote_average"] == 7.1
        assert record["budget"] == 1000000
        assert record["has_full_details"] is True

    @pytest.mark.asyncio
    async def test_new_record_defaults(self, entity_store):
        await entity_store.upsert_basic(1, EntityKind.MOVIE, {"title": "X"})
        record = await entity_store.get(1, EntityKind.MOVIE)

        assert record["original_title"] == "X"
        assert record["overview"] == ""
        assert record["vote_count"] == 0
        assert record["genre_ids"] == []
        assert record["has_full_details"] is False
        assert record["media_cached_at"] is None
        assert record["cast"] is None

    @pytest.mark.asyncio
    async def test_details_preserve_ai_fields(self, entity_store):
        await entity_store.upsert_basic(7, "tv", {"name": "Show"})
        await entity_store.upsert_ai(7, "tv", trivia=["fact 1"], tags={"mood": "dark"})
        await entity_store.upsert_details(
            7, "tv", {"number_of_seasons": 2}, cast=[{"name": "A"}]
        )

        record = await entity_store.get(7, EntityKind.TV_SHOW)
        assert record["ai_trivia"] == ["fact 1"]
        assert record["ai_tags"] == {"mood": "dark"}
        assert record["number_of_seasons"] == 2
        assert record["cast"] == [{"name": "A"}]
        assert record["name"] == "Show"

    @pytest.mark.asyncio
    async def test_basic_does_not_clear_media(self, entity_store):
        await entity_store.upsert_details(
            3, "Movie", {"title": "X", "runtime": 100, "genres": [{"id": 1, "name": "A"}]}
        )
        await entity_store.upsert_basic(3, "Movie", {"title": "X2", "vote_count": 5})

        record = await entity_store.get(3, "Movie")
        assert record["title"] == "X2"
        assert record["runtime"] == 100
        assert record["genres"] == ["A"]
        assert record["has_full_details"] is True

    @pytest.mark.asyncio
    async def test_partial_ai_update(self, entity_store):
        await entity_store.upsert_basic(5, "Movie", {"title": "X"})
        await entity_store.upsert_ai(5, "Movie", similar=[1, 2], trivia=["a"])
        await entity_store.upsert_ai(5, "Movie", trivia=["b"])

        record = await entity_store.get(5, "Movie")
        assert record["ai_similar"] == [1, 2]
        assert record["ai_trivia"] == ["b"]
        assert record["ai_generated_at"] is not None

    @pytest.mark.asyncio
    async def test_upsert_ai_requires_record(self, entity_store):
        with pytest.raises(NotFound):
            await entity_store.upsert_ai(404, "Movie", trivia=["x"])
        assert await entity_store.get(404, "Movie") is None

    @pytest.mark.asyncio
    async def test_kinds_are_separate(self, entity_store):
        await entity_store.upsert_basic(1, "Movie", {"title": "Movie 1"})
        assert await entity_store.get(1, "TVShow") is None

    @pytest.mark.asyncio
    async def test_concurrent_writes_merge(self, entity_store):
        """同一 ID 的并发写入串行执行，各自字段均被保留"""
        await asyncio.gather(
            entity_store.upsert_basic(9, "Movie", {"title": "X"}),
            entity_store.upsert_details(9, "Movie", {"budget": 10}),
            entity_store.upsert_details(9, "Movie", {}, videos=[]),
        )
        record = await entity_store.get(9, "Movie")
        assert record["title"] == "X"
        assert record["budget"] == 10
        assert record["videos"] == []


class TestNeedsRefresh:
    """测试按层刷新判断"""

    @pytest.mark.asyncio
    async def test_missing_record(self, entity_store):
        assert await entity_store.needs_refresh(1, "Movie")

    @pytest.mark.asyncio
    async def test_basic_tier(self, entity_store, clock):
        await entity_store.upsert_basic(1, "Movie", {"title": "X"})
        assert not await entity_store.needs_refresh(1, "Movie", Tier.BASIC)

        clock.advance(timedelta(days=31).total_seconds())
        assert await entity_store.needs_refresh(1, "Movie", Tier.BASIC)

    @pytest.mark.asyncio
    async def test_media_tier(self, entity_store, clock):
        await entity_store.upsert_basic(1, "Movie", {"title": "X"})
        assert await entity_store.needs_refresh(1, "Movie", Tier.MEDIA)

        await entity_store.upsert_details(1, "Movie", {"runtime": 90})
        assert not await entity_store.needs_refresh(1, "Movie", "media")

        clock.advance(timedelta(days=8).total_seconds())
        assert await entity_store.needs_refresh(1, "Movie", "media")
        assert not await entity_store.needs_refresh(1, "Movie", "basic")

    @pytest.mark.asyncio
    async def test_ai_tier(self, entity_store, clock):
        await entity_store.upsert_basic(1, "Movie", {"title": "X"})
        assert await entity_store.needs_refresh(1, "Movie", Tier.AI)

        await entity_store.upsert_ai(1, "Movie", tags=["a"])
        clock.advance(timedelta(days=179).total_seconds())
        assert not await entity_store.needs_refresh(1, "Movie", Tier.AI)

    @pytest.mark.asyncio
    async def test_empty_ai_write_keeps_ai_tier_stale(self, entity_store, clock):
        await entity_store.upsert_basic(1, "Movie", {"title": "X"})

        result = await entity_store.upsert_ai(1, "Movie")

        assert result.ok
        assert (await entity_store.get(1, "Movie"))["ai_generated_at"] is None
        assert await entity_store.needs_refresh(1, "Movie", Tier.AI)

    @pytest.mark.asyncio
    async def test_empty_ai_write_keeps_previous_timestamp(self, entity_store, clock):
        await entity_store.upsert_basic(1, "Movie", {"title": "X"})
        await entity_store.upsert_ai(1, "Movie", trivia=["fact"])
        first = (await entity_store.get(1, "Movie"))["ai_generated_at"]

        clock.advance(60)
        await entity_store.upsert_ai(1, "Movie")

        record = await entity_store.get(1, "Movie")
        assert record["ai_generated_at"] == first
        assert record["ai_trivia"] == ["fact"]

    @pytest.mark.asyncio
    async def test_empty_ai_write_still_requires_record(self, entity_store):
        with pytest.raises(NotFound):
            await entity_store.upsert_ai(99, "Movie")

    @pytest.mark.asyncio
    async def test_details_without_basic_fields_keep_cached_at(self, entity_store, clock):
        await entity_store.upsert_basic(1, "Movie", {"title": "X"})
        first = (await entity_store.get(1, "Movie"))["cached_at"]

        clock.advance(60)
        await entity_store.upsert_details(1, "Movie", {"budget": 1})
        assert (await entity_store.get(1, "Movie"))["cached_at"] == first


class TestBatchUpsert:
    """测试批量写入"""

    @pytest.mark.asyncio
    async def test_batch(self, entity_store):
        items = [{"id": i, "title": f"Movie {i}"} for i in range(1, 4)]
        assert await entity_store.batch_upsert_basic(items, "Movie") == 3
        assert (await entity_store.get(2, "Movie"))["title"] == "Movie 2"

    @pytest.mark.asyncio
    async def test_bad_items_do_not_abort_batch(self, entity_store):
        items = [
            {"id": 1, "title": "A"},
            {"title": "no id"},
            None,
            {"id": 2, "title": "B"},
        ]
        assert await entity_store.batch_upsert_basic(items, "Movie") == 2
        assert await entity_store.get(2, "Movie") is not None

    @pytest.mark.asyncio
    async def test_empty(self, entity_store):
        assert await entity_store.batch_upsert_basic([], "tv") == 0
