"""Cache entry and metrics models."""

from typing import Any

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """A cached payload with its expiry and access bookkeeping."""

    key: str
    payload: Any
    created_at: float = Field(description="Unix timestamp (seconds)")
    expires_at: float = Field(description="Absolute expiry, Unix timestamp (seconds)")
    size: int = 0
    access_count: int = 0

    def is_expired(self, now: float) -> bool:
        """Check whether the entry has passed its expiry time."""
        return now >= self.expires_at


class CacheMetrics(BaseModel):
    """Cumulative cache statistics. Rates are percentages."""

    total_entries: int = 0
    total_size: int = 0
    hit_count: int = 0
    miss_count: int = 0
    hit_rate: float = 0.0
    miss_rate: float = 0.0
    eviction_count: int = 0


class CacheEntryDetails(BaseModel):
    key: str
    size: int
    access_count: int
    age_seconds: float
    ttl_seconds: float
