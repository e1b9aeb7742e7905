"""Proxy relay orchestrating cache lookups, rate limiting and upstream calls.

This service is the single entry point for relayed requests. It handles:
- Request normalization into a cache key and upstream URL
- Cache lookups (hits never touch the rate limiter)
- Global rate limit acquisition on misses
- Upstream fetches and response caching
- Typed failure results (nothing is raised across the relay boundary)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from relay.adapters.upstream.base import AbstractUpstreamTransport, UpstreamResponse
from relay.core.errors import TransportAppError
from relay.core.result import Err, ErrorKind, Ok, Result
from relay.services.rate_limiter import GlobalRateLimiter, RateLimitStats
from relay.utils.cache_store import CacheStats, CacheStore
from relay.utils.request_normalizer import InboundRequest, NormalizedRequest

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"


@dataclass(frozen=True)
class RelayResponse:
    """Payload returned to the caller with its cache provenance."""

    payload: bytes
    content_type: str
    cache_status: CacheStatus
    age_seconds: int | None = None


class ProxyRelay:
    """Caching relay in front of a rate-limited upstream API.

    Attributes:
        cache: Response store keyed by normalized request identity.
        limiter: Global rate limiter shared with other relay instances.
        transport: HTTP transport used for upstream calls.
        normalizer: Pure mapping from inbound request to key and upstream URL.
        scope: Rate limit scope of this upstream. Never exposed to callers.
    """

    def __init__(
        self,
        *,
        cache: CacheStore,
        limiter: GlobalRateLimiter,
        transport: AbstractUpstreamTransport,
        normalizer: Callable[[InboundRequest], NormalizedRequest],
        scope: str,
        upstream_headers: Mapping[str, str] | None = None,
        default_content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        self.cache = cache
        self.limiter = limiter
        self.transport = transport
        self.normalizer = normalizer
        self.scope = scope
        self.upstream_headers = dict(upstream_headers or {})
        self.default_content_type = default_content_type

    async def handle(self, request: InboundRequest) -> Result[RelayResponse]:
        """Serve ``request`` from cache or from the upstream.

        Args:
            request: Inbound path and query, after auth and CORS.

        Returns:
            Ok(RelayResponse) or Err with one of the relay error kinds.
        """
        # Step 1: Normalize
        normalized = self.normalizer(request)

        # Step 2: Check cache
        cached = self._get_from_cache(normalized.cache_key)
        if cached:
            return Ok(cached)

        logger.info("relay.cache_miss", extra={"cache_key": normalized.cache_key})

        # Step 3: Fetch under the global rate limit
        result = await self.limiter.execute(
            self.scope,
            lambda: self._fetch_upstream(normalized),
        )
        if isinstance(result, Err):
            return result

        # Step 4: Cache the result
        upstream = result.value
        content_type = upstream.content_type or self.default_content_type
        self.cache.put(normalized.cache_key, upstream.body, content_type)
        logger.info(
            "relay.cached",
            extra={
                "cache_key": normalized.cache_key,
                "size_bytes": len(upstream.body),
            },
        )

        return Ok(
            RelayResponse(
                payload=upstream.body,
                content_type=content_type,
                cache_status=CacheStatus.MISS,
            )
        )

    def _get_from_cache(self, cache_key: str) -> RelayResponse | None:
        entry = self.cache.get(cache_key)
        if entry is None:
            return None

        age = int(entry.age_seconds(self.cache.now()))
        logger.info("relay.cache_hit", extra={"cache_key": cache_key, "age_s": age})
        return RelayResponse(
            payload=entry.payload,
            content_type=entry.content_type,
            cache_status=CacheStatus.HIT,
            age_seconds=age,
        )

    async def _fetch_upstream(self, normalized: NormalizedRequest) -> Result[UpstreamResponse]:
        """Perform the upstream call; runs only after a slot was granted."""
        try:
            response = await self.transport.fetch(
                normalized.upstream_url,
                method="GET",
                headers=self.upstream_headers,
            )
        except TransportAppError as exc:
            logger.error(
                "relay.transport_error",
                extra={
                    "cache_key": normalized.cache_key,
                    "error_code": exc.code,
                    "error_msg": exc.message,
                },
            )
            return Err(kind=ErrorKind.TRANSPORT_ERROR, message=exc.message)

        if not response.is_success:
            logger.warning(
                "relay.upstream_error",
                extra={
                    "cache_key": normalized.cache_key,
                    "upstream_status": response.status_code,
                },
            )
            return Err(
                kind=ErrorKind.UPSTREAM_ERROR,
                message=f"Upstream API error: {response.status_code} {response.reason}".rstrip(),
                details={
                    "upstream_status": response.status_code,
                    "upstream_reason": response.reason,
                },
            )

        return Ok(response)

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def cache_clear(self) -> int:
        return self.cache.clear()

    def cache_sweep(self) -> int:
        return self.cache.sweep()

    async def rate_limit_stats(self) -> RateLimitStats:
        return await self.limiter.stats(self.scope)

    async def close(self) -> None:
        """Release the transport and store connections."""
        await self.transport.close()
        await self.limiter.close()
