"""Pydantic schemas for cache and rate limit administration responses."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class CacheEntryInfo(BaseModel):
    """Metadata of one cached upstream response (never its payload)."""

    url: str = Field(..., description="Normalized request identity used as cache key.")
    age_seconds: int = Field(..., ge=0, description="Seconds since the entry was stored.")
    size_bytes: int = Field(..., ge=0, description="Size of the cached payload in bytes.")


class RateLimitInfo(BaseModel):
    """Global upstream rate limit status."""

    requests_per_second: float = Field(..., description="Configured upstream request ceiling.")
    last_request_ms_ago: int | None = Field(
        default=None,
        description="Milliseconds since the latest upstream slot was granted (null if never).",
    )
    estimated_wait_ms: int = Field(
        ..., ge=0, description="Estimated wait before the next upstream slot opens."
    )


class CacheStatsResponse(BaseModel):
    """Cache contents summary plus rate limiter status."""

    total_entries: int = Field(..., ge=0, description="Number of stored responses.")
    ttl_seconds: int = Field(..., description="Time-to-live applied to cached responses.")
    max_entries: int | None = Field(default=None, description="Capacity limit, null if unbounded.")
    hits: int = Field(..., ge=0, description="Cache hits since the last clear.")
    misses: int = Field(..., ge=0, description="Cache misses since the last clear.")
    evictions: int = Field(..., ge=0, description="Entries dropped to stay within max_entries.")
    expirations: int = Field(..., ge=0, description="Entries removed after their TTL elapsed.")
    rate_limit: RateLimitInfo
    entries: List[CacheEntryInfo] = Field(default_factory=list)


class CacheClearResponse(BaseModel):
    message: str = Field(default="Cache cleared")
    removed: int = Field(..., ge=0, description="Number of entries removed.")
    timestamp: datetime


class CacheSweepResponse(BaseModel):
    removed: int = Field(..., ge=0, description="Number of expired entries purged.")
    timestamp: datetime


class HealthResponse(BaseModel):
    status: str = Field(default="ok")
    cache_size: int = Field(..., ge=0, description="Entries left after purging expired ones.")
    timestamp: datetime
