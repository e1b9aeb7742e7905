from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends

from relay.core.auth import verify_api_key
from relay.core.dependencies import get_relay
from relay.schemas.cache import (
    CacheClearResponse,
    CacheEntryInfo,
    CacheStatsResponse,
    CacheSweepResponse,
    RateLimitInfo,
)
from relay.services.proxy_relay import ProxyRelay

router = APIRouter(prefix="/cache", tags=["Cache"], dependencies=[Depends(verify_api_key)])

RelayDep = Annotated[ProxyRelay, Depends(get_relay)]


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(relay: RelayDep) -> CacheStatsResponse:
    """Cached entries (key, age, size) and global rate limit status."""
    stats = relay.cache_stats()
    limiter_stats = await relay.rate_limit_stats()

    return CacheStatsResponse(
        total_entries=stats.count,
        ttl_seconds=stats.ttl_seconds,
        max_entries=stats.max_entries,
        hits=stats.hits,
        misses=stats.misses,
        evictions=stats.evictions,
        expirations=stats.expirations,
        rate_limit=RateLimitInfo(
            requests_per_second=relay.limiter.requests_per_second,
            last_request_ms_ago=limiter_stats.ms_ago(relay.limiter.now_ms()),
            estimated_wait_ms=limiter_stats.estimated_wait_ms,
        ),
        entries=[
            CacheEntryInfo(url=e.key, age_seconds=e.age_seconds, size_bytes=e.size_bytes)
            for e in stats.entries
        ],
    )


@router.delete("/clear", response_model=CacheClearResponse)
def cache_clear(relay: RelayDep) -> CacheClearResponse:
    removed = relay.cache_clear()
    return CacheClearResponse(removed=removed, timestamp=datetime.now(timezone.utc))


@router.post("/sweep", response_model=CacheSweepResponse)
def cache_sweep(relay: RelayDep) -> CacheSweepResponse:
    """Purge expired entries without waiting for them to be read."""
    removed = relay.cache_sweep()
    return CacheSweepResponse(removed=removed, timestamp=datetime.now(timezone.utc))
