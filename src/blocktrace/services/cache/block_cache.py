"""In-memory TTL + LRU cache for block traces and analyses."""

import asyncio
import math
import time
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel

from blocktrace.constants.cache import (
    BLOCK_TRACE_PREFIX,
    BOOL_SIZE,
    CHAR_SIZE,
    DEFAULT_TTL_SECONDS,
    EVICTION_FRACTION,
    FULL_ANALYSIS_PREFIX,
    GAS_ANALYSIS_PREFIX,
    MAX_CACHE_SIZE,
    MEMORY_ONLY_CACHE_SIZE,
    NUMBER_SIZE,
    REFERENCE_SIZE,
    TOKEN_FLOW_PREFIX,
)
from blocktrace.core.exceptions import CacheError
from blocktrace.models.cache import CacheEntry, CacheEntryDetails, CacheMetrics
from blocktrace.services.cache.store import CacheStore, JsonFileCacheStore

log = structlog.get_logger(__name__)


def estimate_size(value: Any, _seen: set[int] | None = None) -> int:
    """Estimate the in-memory footprint of a payload.

    Primitives have a fixed cost, strings cost 2 bytes per character and
    containers cost one reference per item plus their items. Pydantic
    models are measured as a mapping of their fields.

    Args:
        value: Payload to measure.

    Returns:
        Estimated size in bytes.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return BOOL_SIZE
    if isinstance(value, int | float):
        return NUMBER_SIZE
    if isinstance(value, str):
        return len(value) * CHAR_SIZE
    if isinstance(value, bytes | bytearray):
        return len(value)

    seen = _seen if _seen is not None else set()
    if id(value) in seen:
        return 0
    seen.add(id(value))

    if isinstance(value, BaseModel):
        value = {name: getattr(value, name) for name in type(value).model_fields}
    if isinstance(value, Mapping):
        return sum(
            REFERENCE_SIZE + estimate_size(k, seen) + estimate_size(v, seen)
            for k, v in value.items()
        )
    if isinstance(value, list | tuple | set | frozenset):
        return sum(REFERENCE_SIZE + estimate_size(item, seen) for item in value)
    return REFERENCE_SIZE


class BlockTraceCache:
    """TTL + LRU cache with size accounting and optional persistence.

    Entries expire at an absolute time. When a new key is stored while the
    cache is full, the least accessed entries (oldest first on ties) are
    evicted in one pass of roughly 20% of capacity.

    Attributes:
        max_size: Maximum number of entries.
        default_ttl_seconds: TTL used when set() gets none.

    Example:
        cache = BlockTraceCache(max_size=100)
        await cache.set("block_trace:mainnet:latest", traces, ttl_seconds=600)
        traces = await cache.get("block_trace:mainnet:latest")
    """

    def __init__(
        self,
        max_size: int = MAX_CACHE_SIZE,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        store: CacheStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize block trace cache.

        Args:
            max_size: Maximum cache entries
            default_ttl_seconds: Default entry TTL
            store: Optional durable store; memory-only when None
            clock: Time source returning Unix seconds
        """
        self.max_size = max_size
        self.default_ttl_seconds = default_ttl_seconds
        self._store = store
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @classmethod
    def memory_only(cls, max_size: int = MEMORY_ONLY_CACHE_SIZE) -> "BlockTraceCache":
        """Create a small cache without persistence."""
        return cls(max_size=max_size)

    @classmethod
    def with_file_store(cls, path: Path | str, max_size: int = MAX_CACHE_SIZE) -> "BlockTraceCache":
        """Create a cache persisted to a JSON file.

        Call ``await cache.load()`` afterwards to restore the snapshot.
        """
        return cls(max_size=max_size, store=JsonFileCacheStore(path))

    @property
    def persistent(self) -> bool:
        return self._store is not None

    @property
    def size(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        """Get a payload if present and not expired.

        Expired entries are removed and count as a miss.

        Args:
            key: Cache key

        Returns:
            Cached payload, or None on miss
        """
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                self._remove(key)
                self._evictions += 1
                self._misses += 1
                log.debug("cache_entry_expired", key=key)
                expired = True
            else:
                entry.access_count += 1
                self._hits += 1
                expired = False

        if expired:
            await self._persist()
            return None
        return entry.payload

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store a payload.

        Args:
            key: Cache key
            value: Payload to cache
            ttl_seconds: Entry TTL, defaults to default_ttl_seconds
        """
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self._clock()
        size = estimate_size(value)

        async with self._lock:
            if key in self._entries:
                self._remove(key)
            elif len(self._entries) >= self.max_size:
                self._evict()

            self._entries[key] = CacheEntry(
                key=key,
                payload=value,
                created_at=now,
                expires_at=now + ttl,
                size=size,
            )
            self._total_size += size

        await self._persist()

    async def delete(self, key: str) -> bool:
        """Remove an entry.

        Returns:
            True if an entry was removed
        """
        async with self._lock:
            removed = self._remove(key)
        if removed:
            await self._persist()
        return removed

    async def clear(self) -> None:
        """Clear all entries, counters and the durable snapshot."""
        async with self._lock:
            self._entries.clear()
            self._total_size = 0
            self._hits = 0
            self._misses = 0
            self._evictions = 0

        if self._store is not None:
            try:
                await self._store.clear()
            except CacheError as e:
                log.warning("cache_persistence_failed", operation="clear", error=str(e))

    async def has(self, key: str) -> bool:
        """Check for a live entry without touching hit/miss counters."""
        async with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def keys(self) -> list[str]:
        return list(self._entries)

    async def cleanup(self) -> int:
        """Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        async with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                self._remove(key)
            self._evictions += len(expired)

        if expired:
            log.debug("cache_cleanup", removed=len(expired))
            await self._persist()
        return len(expired)

    async def warm(
        self, items: Iterable[tuple[str, Any]], ttl_seconds: float | None = None
    ) -> None:
        """Preload entries.

        Args:
            items: (key, payload) pairs
            ttl_seconds: TTL applied to every preloaded entry
        """
        count = 0
        for key, value in items:
            await self.set(key, value, ttl_seconds)
            count += 1
        log.info("cache_warmed", entries=count)

    def stats(self) -> CacheMetrics:
        """Get cache statistics.

        Returns:
            CacheMetrics with cumulative hit/miss rates as percentages
        """
        total = self._hits + self._misses
        hit_rate = self._hits / total * 100 if total > 0 else 0.0
        miss_rate = self._misses / total * 100 if total > 0 else 0.0

        return CacheMetrics(
            total_entries=len(self._entries),
            total_size=self._total_size,
            hit_count=self._hits,
            miss_count=self._misses,
            hit_rate=round(hit_rate, 2),
            miss_rate=round(miss_rate, 2),
            eviction_count=self._evictions,
        )

    def entry_details(self) -> list[CacheEntryDetails]:
        """Per-entry age, TTL and access count for introspection."""
        now = self._clock()
        return [
            CacheEntryDetails(
                key=entry.key,
                size=entry.size,
                access_count=entry.access_count,
                age_seconds=now - entry.created_at,
                ttl_seconds=entry.expires_at - entry.created_at,
            )
            for entry in self._entries.values()
        ]

    async def load(self) -> int:
        """Restore entries from the durable store.

        Entries already past expiry are discarded. Failures are logged and
        leave the cache empty.

        Returns:
            Number of entries restored
        """
        if self._store is None:
            return 0

        try:
            snapshot = await self._store.load()
        except CacheError as e:
            log.warning("cache_persistence_failed", operation="load", error=str(e))
            return 0
        if not snapshot:
            return 0

        now = self._clock()
        restored = 0
        async with self._lock:
            for raw in snapshot.get("entries", []):
                try:
                    entry = CacheEntry.model_validate(raw)
                except ValueError as e:
                    log.warning("cache_entry_restore_failed", error=str(e))
                    continue
                if entry.is_expired(now):
                    continue
                if entry.key in self._entries:
                    self._remove(entry.key)
                self._entries[entry.key] = entry
                self._total_size += entry.size
                restored += 1

            metrics = snapshot.get("metrics") or {}
            self._hits = int(metrics.get("hit_count", self._hits))
            self._misses = int(metrics.get("miss_count", self._misses))
            self._evictions = int(metrics.get("eviction_count", self._evictions))

        log.info("cache_restored", entries=restored)
        return restored

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_size -= entry.size
        return True

    def _evict(self) -> None:
        # Caller holds the lock
        evict_count = max(1, math.floor(self.max_size * EVICTION_FRACTION))
        ranked = sorted(
            self._entries.values(),
            key=lambda entry: (entry.access_count, entry.created_at),
        )
        for entry in ranked[:evict_count]:
            self._remove(entry.key)
        self._evictions += min(evict_count, len(ranked))
        log.debug(
            "cache_evicted",
            evicted=min(evict_count, len(ranked)),
            remaining=len(self._entries),
        )

    async def _persist(self) -> None:
        if self._store is None:
            return

        async with self._lock:
            snapshot = {
                "entries": [entry.model_dump() for entry in self._entries.values()],
                "metrics": {
                    "hit_count": self._hits,
                    "miss_count": self._misses,
                    "eviction_count": self._evictions,
                },
            }
        try:
            await self._store.save(snapshot)
        except CacheError as e:
            log.warning("cache_persistence_failed", operation="save", error=str(e))


def generate_cache_key(prefix: str, *parts: object) -> str:
    """Compose a cache key as ``prefix:part1:part2...``."""
    return ":".join([prefix, *(str(part) for part in parts)])


def block_trace_key(network: str, block_identifier: str) -> str:
    return generate_cache_key(BLOCK_TRACE_PREFIX, network, block_identifier)


def analysis_key(network: str, block_identifier: str) -> str:
    return generate_cache_key(FULL_ANALYSIS_PREFIX, network, block_identifier)


def gas_analysis_key(network: str, block_identifier: str) -> str:
    return generate_cache_key(GAS_ANALYSIS_PREFIX, network, block_identifier)


def token_flow_key(network: str, block_identifier: str) -> str:
    return generate_cache_key(TOKEN_FLOW_PREFIX, network, block_identifier)
