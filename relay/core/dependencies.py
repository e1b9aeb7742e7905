"""Relay construction and FastAPI dependency wiring.

The relay and everything it owns (cache, limiter, store, transport) is built
once per application and kept on ``app.state``. Routes receive it through
``get_relay`` so tests can hand a fully stubbed relay to ``create_app``.
"""

from __future__ import annotations

import logging

from fastapi import Request

from relay.adapters.store.factory import create_atomic_store
from relay.adapters.upstream.httpx_client import HttpxUpstreamTransport
from relay.core.config import Settings, parse_csv
from relay.services.proxy_relay import ProxyRelay
from relay.services.rate_limiter import GlobalRateLimiter
from relay.utils.cache_store import CacheStore
from relay.utils.request_normalizer import RequestNormalizer

logger = logging.getLogger(__name__)


def build_relay(cfg: Settings) -> ProxyRelay:
    """Assemble a relay from configuration.

    Args:
        cfg: Resolved application settings.

    Returns:
        ProxyRelay owning its cache, limiter, atomic store and transport.

    Raises:
        ValidationAppError: If the configured store backend is unknown.
    """
    store = create_atomic_store(cfg.store)
    limiter = GlobalRateLimiter(
        store,
        requests_per_second=cfg.rate_limit.requests_per_second,
        max_retries=cfg.rate_limit.max_retries,
        retry_delay_ms=cfg.rate_limit.retry_delay_ms,
        backoff_step_ms=cfg.rate_limit.backoff_step_ms,
        acquire_timeout_seconds=cfg.rate_limit.acquire_timeout_seconds,
    )
    cache = CacheStore(
        ttl_seconds=cfg.cache.ttl_seconds,
        max_entries=cfg.cache.max_entries,
    )
    normalizer = RequestNormalizer(
        cfg.upstream.base_url,
        excluded_params=parse_csv(cfg.upstream.excluded_query_params),
    )
    transport = HttpxUpstreamTransport(timeout_seconds=cfg.upstream.timeout_seconds)

    logger.info(
        "relay.configured",
        extra={
            "store_backend": cfg.store.backend,
            "requests_per_second": cfg.rate_limit.requests_per_second,
            "max_retries": cfg.rate_limit.max_retries,
            "cache_ttl_s": cfg.cache.ttl_seconds,
            "cache_max_entries": cfg.cache.max_entries,
        },
    )

    return ProxyRelay(
        cache=cache,
        limiter=limiter,
        transport=transport,
        normalizer=normalizer,
        scope=cfg.upstream.scope,
        upstream_headers={
            "User-Agent": cfg.upstream.user_agent,
            "Accept": cfg.upstream.accept,
        },
        default_content_type=cfg.upstream.default_content_type,
    )


def get_relay(request: Request) -> ProxyRelay:
    """FastAPI dependency returning the application's relay."""
    return request.app.state.relay
