"""Caching for block traces and compiled analyses."""

from blocktrace.services.cache.block_cache import (
    BlockTraceCache,
    analysis_key,
    block_trace_key,
    estimate_size,
    gas_analysis_key,
    generate_cache_key,
    token_flow_key,
)
from blocktrace.services.cache.store import CacheStore, JsonFileCacheStore

__all__ = [
    "BlockTraceCache",
    "CacheStore",
    "JsonFileCacheStore",
    "analysis_key",
    "block_trace_key",
    "estimate_size",
    "gas_analysis_key",
    "generate_cache_key",
    "token_flow_key",
]
