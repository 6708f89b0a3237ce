"""Tests for BlockTraceCache."""

from unittest.mock import AsyncMock

import pytest

from blocktrace.core.exceptions import CacheError
from blocktrace.models.block import BlockMetadata
from blocktrace.services.cache import (
    BlockTraceCache,
    JsonFileCacheStore,
    analysis_key,
    block_trace_key,
    estimate_size,
    gas_analysis_key,
    generate_cache_key,
    token_flow_key,
)


class TestGetSet:
    """Tests for basic reads and writes."""

    @pytest.mark.asyncio
    async def test_set_then_get(self, clock) -> None:
        cache = BlockTraceCache(clock=clock)

        await cache.set("k", {"traces": [1, 2]})

        assert await cache.get("k") == {"traces": [1, 2]}
        assert cache.stats().hit_count == 1

    @pytest.mark.asyncio
    async def test_miss_is_counted(self, clock) -> None:
        cache = BlockTraceCache(clock=clock)

        assert await cache.get("missing") is None
        assert cache.stats().miss_count == 1

    @pytest.mark.asyncio
    async def test_entry_expires_at_ttl(self, clock) -> None:
        """
        Given: An entry stored with a 60 second TTL
        When: The clock reaches the expiry time
        Then: The entry is gone and counted as a miss and an eviction
        """
        cache = BlockTraceCache(clock=clock)
        await cache.set("k", "v", ttl_seconds=60)

        clock.advance(59)
        assert await cache.get("k") == "v"

        clock.advance(1)
        assert await cache.get("k") is None

        stats = cache.stats()
        assert stats.total_entries == 0
        assert stats.eviction_count == 1
        assert stats.miss_count == 1

    @pytest.mark.asyncio
    async def test_default_ttl(self, clock) -> None:
        cache = BlockTraceCache(default_ttl_seconds=10, clock=clock)
        await cache.set("k", "v")

        clock.advance(10)

        assert await cache.has("k") is False

    @pytest.mark.asyncio
    async def test_overwrite_keeps_size_accounting(self, clock) -> None:
        cache = BlockTraceCache(clock=clock)

        await cache.set("k", "aaaa")
        await cache.set("k", "bb")

        assert cache.size == 1
        assert cache.stats().total_size == estimate_size("bb")

    @pytest.mark.asyncio
    async def test_delete_and_has(self, clock) -> None:
        cache = BlockTraceCache(clock=clock)
        await cache.set("k", "v")

        assert await cache.has("k") is True
        assert await cache.delete("k") is True
        assert await cache.delete("k") is False
        assert await cache.has("k") is False
        assert cache.stats().hit_count == 0


class TestEviction:
    """Tests for capacity-based eviction."""

    @pytest.mark.asyncio
    async def test_evicts_least_accessed_fifth(self, clock) -> None:
        """
        Given: A full cache of 10 entries where all but the first two were read
        When: An eleventh key is stored
        Then: The two unread entries are evicted
        """
        cache = BlockTraceCache(max_size=10, clock=clock)
        for i in range(10):
            await cache.set(f"k{i}", i)
            clock.advance(1)
        for i in range(2, 10):
            await cache.get(f"k{i}")

        await cache.set("new", "value")

        assert sorted(cache.keys()) == sorted([f"k{i}" for i in range(2, 10)] + ["new"])
        assert cache.stats().eviction_count == 2

    @pytest.mark.asyncio
    async def test_ties_evict_oldest_first(self, clock) -> None:
        cache = BlockTraceCache(max_size=3, clock=clock)
        for i in range(3):
            await cache.set(f"k{i}", i)
            clock.advance(1)

        await cache.set("new", "value")

        assert "k0" not in cache.keys()
        assert cache.size == 3

    @pytest.mark.asyncio
    async def test_overwrite_does_not_evict(self, clock) -> None:
        cache = BlockTraceCache(max_size=2, clock=clock)
        await cache.set("a", 1)
        await cache.set("b", 2)

        await cache.set("a", 3)

        assert sorted(cache.keys()) == ["a", "b"]
        assert cache.stats().eviction_count == 0


class TestMaintenance:
    """Tests for cleanup, warm, clear and stats."""

    @pytest.mark.asyncio
    async def test_cleanup_removes_expired(self, clock) -> None:
        cache = BlockTraceCache(clock=clock)
        await cache.set("short", 1, ttl_seconds=5)
        await cache.set("long", 2, ttl_seconds=500)

        clock.advance(10)

        assert await cache.cleanup() == 1
        assert cache.keys() == ["long"]

    @pytest.mark.asyncio
    async def test_warm(self, clock) -> None:
        cache = BlockTraceCache(clock=clock)

        await cache.warm([("a", 1), ("b", 2)], ttl_seconds=30)

        assert cache.size == 2
        [detail, _] = cache.entry_details()
        assert detail.ttl_seconds == 30

    @pytest.mark.asyncio
    async def test_stats_rates(self, clock) -> None:
        cache = BlockTraceCache(clock=clock)
        await cache.set("k", "v")
        await cache.get("k")
        await cache.get("k")
        await cache.get("missing")

        stats = cache.stats()

        assert stats.hit_rate == 66.67
        assert stats.miss_rate == 33.33

    @pytest.mark.asyncio
    async def test_clear_resets_counters(self, clock) -> None:
        cache = BlockTraceCache(clock=clock)
        await cache.set("k", "v")
        await cache.get("k")

        await cache.clear()

        stats = cache.stats()
        assert stats.total_entries == 0
        assert stats.hit_count == 0
        assert stats.total_size == 0


class TestPersistence:
    """Tests for durable snapshot handling."""

    @pytest.mark.asyncio
    async def test_round_trip_through_file_store(self, tmp_path, clock) -> None:
        """
        Given: A file-backed cache holding a model payload and some counters
        When: A fresh cache loads the same file
        Then: Only live entries are restored, models as plain dicts
        """
        path = tmp_path / "cache.json"
        metadata = BlockMetadata(number=1, hash="0xabc", timestamp=10)
        first = BlockTraceCache(store=JsonFileCacheStore(path), clock=clock)
        await first.set("meta", metadata, ttl_seconds=100)
        await first.set("soon", "gone", ttl_seconds=5)
        await first.get("meta")

        clock.advance(10)
        second = BlockTraceCache(store=JsonFileCacheStore(path), clock=clock)
        restored = await second.load()

        assert restored == 1
        assert BlockMetadata.model_validate(await second.get("meta")) == metadata
        assert second.stats().hit_count == 1

    @pytest.mark.asyncio
    async def test_load_without_store(self) -> None:
        assert await BlockTraceCache().load() == 0

    @pytest.mark.asyncio
    async def test_store_failures_are_not_fatal(self, clock) -> None:
        store = AsyncMock()
        store.save.side_effect = CacheError("disk full")
        store.load.side_effect = CacheError("unreadable")
        cache = BlockTraceCache(store=store, clock=clock)

        await cache.set("k", "v")

        assert await cache.get("k") == "v"
        assert await cache.load() == 0

    def test_factories(self, tmp_path) -> None:
        assert BlockTraceCache.memory_only().max_size == 50
        assert BlockTraceCache.memory_only().persistent is False
        assert BlockTraceCache.with_file_store(tmp_path / "c.json").persistent is True


class TestKeysAndSizes:
    """Tests for key composition and size estimates."""

    def test_keys(self) -> None:
        assert generate_cache_key("a", 1, "b") == "a:1:b"
        assert block_trace_key("mainnet", "18500000") == "block_trace:mainnet:18500000"
        assert analysis_key("mainnet", "latest") == "full_analysis:mainnet:latest"
        assert gas_analysis_key("sepolia", "123") == "gas_analysis:sepolia:123"
        assert token_flow_key("mainnet", "123") == "token_flow:mainnet:123"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, 0),
            (True, 4),
            (42, 8),
            (1.5, 8),
            ("abc", 6),
            (b"abcd", 4),
            ([1, 2], 32),
            ({"a": 1}, 18),
        ],
    )
    def test_estimate_size(self, value, expected: int) -> None:
        assert estimate_size(value) == expected
