"""Tests for the key-value store and the quote cache."""

import pytest

from conftest import FakeClock
from payroute.routing.cache import QuoteCache, make_cache_key
from payroute.utils.kvstore import InMemoryKeyValueStore


class TestInMemoryKeyValueStore:
    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        store = InMemoryKeyValueStore()
        await store.set("a", {"x": 1})
        assert await store.get("a") == {"x": 1}

        await store.delete("a")
        assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_ttl_expiry(self):
        clock = FakeClock(0)
        store = InMemoryKeyValueStore(clock=clock)
        await store.set("k", "v", ttl=30)

        clock.advance(29)
        assert await store.get("k") == "v"

        clock.advance(1)
        assert await store.get("k") is None
        assert store.size() == 0

    @pytest.mark.asyncio
    async def test_no_ttl_never_expires(self):
        clock = FakeClock(0)
        store = InMemoryKeyValueStore(clock=clock)
        await store.set("k", "v")
        clock.advance(10**9)
        assert await store.get("k") == "v"

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self):
        store = InMemoryKeyValueStore()
        await store.delete("missing")


class TestQuoteCache:
    def test_cache_key_normalized(self):
        assert make_cache_key("std", 1, "0xABC", None, 100) == "std:1:0xabc::100"
        assert make_cache_key("std", None, "0xa") != make_cache_key("std", "0xa", None)
        assert make_cache_key("std", "0xabc") == make_cache_key("std", "0xABC")

    @pytest.mark.asyncio
    async def test_hits_and_misses(self):
        cache = QuoteCache()
        assert await cache.get("k") is None
        await cache.set("k", {"quote": 1})
        assert await cache.get("k") == {"quote": 1}
        assert cache.hits == 1
        assert cache.misses == 1

    @pytest.mark.asyncio
    async def test_default_ttl(self):
        clock = FakeClock(0)
        cache = QuoteCache(store=InMemoryKeyValueStore(clock=clock), ttl_seconds=30)
        await cache.set("k", 1)
        clock.advance(31)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_invalidate(self):
        cache = QuoteCache()
        await cache.set("k", 1)
        await cache.invalidate("k")
        assert await cache.get("k") is None
