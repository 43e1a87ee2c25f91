"""Tests for the database-backed content cache."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.cache_entry import CacheEntry
from app.services.content_cache import (
    CACHE_TTL,
    DAY,
    KEY_LENGTH,
    ContentCache,
    generate_cache_key,
    summarize_params,
    ttl_for,
)

pytestmark = pytest.mark.asyncio

T0 = datetime(2026, 3, 1, 12, 0, 0)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class TestCacheKey:
    def test_key_is_order_independent(self):
        a = generate_cache_key("competitors", {"industry": "fitness", "location": "Denver"})
        b = generate_cache_key("competitors", {"location": "Denver", "industry": "fitness"})
        assert a == b
        assert len(a) == KEY_LENGTH

    def test_nested_dicts_sorted(self):
        a = generate_cache_key("metrics", {"filters": {"a": 1, "b": 2}})
        b = generate_cache_key("metrics", {"filters": {"b": 2, "a": 1}})
        assert a == b

    def test_data_type_is_part_of_key(self):
        params = {"industry": "fitness"}
        assert generate_cache_key("trends", params) != generate_cache_key("metrics", params)

    def test_params_cannot_impersonate_another_data_type(self):
        assert generate_cache_key("trends", {"data_type": "metrics"}) != generate_cache_key("metrics", {})
        assert generate_cache_key("metrics", {"data_type": "trends"}) != generate_cache_key("metrics", {})

    def test_ttl_table(self):
        assert ttl_for("demographics") == 7 * DAY
        assert ttl_for("narratives") == CACHE_TTL["narratives"] == DAY
        assert ttl_for("something_new") == DAY

    def test_summarize_params(self):
        summary = summarize_params({"name": "x" * 150, "tags": ["a", "b"], "n": 3})
        assert summary["name"].endswith("...")
        assert len(summary["name"]) == 103
        assert summary["tags"] == "[2 items]"
        assert summary["n"] == 3


class TestContentCache:
    async def test_miss_then_hit(self, db_session: AsyncSession):
        cache = ContentCache(db_session, clock=lambda: T0)
        params = {"industry": "fitness", "location": "Denver"}
        assert await cache.get("competitors", params) is None

        assert await cache.set("competitors", params, {"count": 4}) is True
        hit = await cache.get("competitors", params)
        assert hit is not None
        assert hit.data == {"count": 4}
        assert hit.from_cache is True

    async def test_hit_count_incremented(self, db_session: AsyncSession):
        cache = ContentCache(db_session, clock=lambda: T0)
        await cache.set("trends", {"q": 1}, [1, 2])
        await cache.get("trends", {"q": 1})
        await cache.get("trends", {"q": 1})

        entry = await db_session.get(CacheEntry, generate_cache_key("trends", {"q": 1}), populate_existing=True)
        assert entry.hit_count == 2
        assert entry.last_hit_at == T0

    async def test_entry_expires_after_ttl(self, db_session: AsyncSession):
        clock = _Clock(T0)
        cache = ContentCache(db_session, clock=clock)
        await cache.set("trends", {"q": "x"}, {"v": 1})

        clock.advance(hours=23)
        assert await cache.get("trends", {"q": "x"}) is not None
        clock.advance(hours=2)
        assert await cache.get("trends", {"q": "x"}) is None

    async def test_set_overwrites_and_resets_clock(self, db_session: AsyncSession):
        clock = _Clock(T0)
        cache = ContentCache(db_session, clock=clock)
        await cache.set("metrics", {"k": 1}, "old")
        clock.advance(hours=20)
        await cache.set("metrics", {"k": 1}, "new")
        clock.advance(hours=20)

        hit = await cache.get("metrics", {"k": 1})
        assert hit.data == "new"
        assert hit.hit_count == 0

    async def test_get_or_fetch(self, db_session: AsyncSession):
        cache = ContentCache(db_session, clock=lambda: T0)
        calls = []

        async def fetch():
            calls.append(1)
            return {"fresh": True}

        first = await cache.get_or_fetch("demographics", {"zip": "78701"}, fetch)
        second = await cache.get_or_fetch("demographics", {"zip": "78701"}, fetch)
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.data == {"fresh": True}
        assert len(calls) == 1

    async def test_get_or_fetch_does_not_cache_none(self, db_session: AsyncSession):
        cache = ContentCache(db_session, clock=lambda: T0)

        async def fetch():
            return None

        await cache.get_or_fetch("logos", {"domain": "x.com"}, fetch)
        assert await cache.get("logos", {"domain": "x.com"}) is None

    async def test_unserializable_data_is_swallowed(self, db_session: AsyncSession):
        cache = ContentCache(db_session, clock=lambda: T0)
        assert await cache.set("metrics", {"k": "bad"}, {"when": object()}) is False
        assert await cache.get("metrics", {"k": "bad"}) is None

    async def test_invalidate(self, db_session: AsyncSession):
        cache = ContentCache(db_session, clock=lambda: T0)
        await cache.set("metrics", {"k": 2}, 1)
        assert await cache.invalidate("metrics", {"k": 2}) is True
        assert await cache.invalidate("metrics", {"k": 2}) is False

    async def test_cleanup_and_stats(self, db_session: AsyncSession):
        clock = _Clock(T0)
        cache = ContentCache(db_session, clock=clock)
        await cache.set("trends", {"q": 1}, 1)
        await cache.set("trends", {"q": 2}, 2)
        await cache.set("demographics", {"zip": "1"}, 3)
        await cache.get("demographics", {"zip": "1"})

        stats = await cache.stats()
        assert stats["total_entries"] == 3
        assert stats["by_type"] == {"trends": 2, "demographics": 1}
        assert stats["total_hits"] == 1

        clock.advance(days=2)
        assert await cache.cleanup_expired(batch_size=1) == {"trends": 1}
        assert await cache.cleanup_expired() == {"trends": 1}
        assert (await cache.stats())["total_entries"] == 1
