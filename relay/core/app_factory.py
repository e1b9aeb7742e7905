from __future__ import annotations

"""Application factory for the relay.

Centralizes app construction (metadata, middleware, handlers, routers, relay
ownership) so tests can build isolated apps around a stubbed relay.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relay.api.routes import cache_router, health_router, proxy_router
from relay.core.config import Settings, parse_csv, settings
from relay.core.dependencies import build_relay
from relay.core.exception_handlers import setup_exception_handlers
from relay.core.logging import configure_logging
from relay.core.middleware import request_id_middleware
from relay.core.openapi import apply_openapi_customizations
from relay.services.proxy_relay import ProxyRelay

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # The relay lives as long as the app; release its pools on shutdown
    await app.state.relay.close()
    logger.info("relay.closed")


def create_app(relay: ProxyRelay | None = None, cfg: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        relay: Prebuilt relay (tests inject stubs); built from settings if omitted.
        cfg: Settings to use instead of the global instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = cfg or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Proxy Cache Relay",
        description=(
            "Caching relay in front of a rate-limited upstream API. Cache misses "
            "are spaced by a global rate limit shared by every relay instance; "
            "repeated requests are served from cache. Requires X-API-Key."
        ),
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.state.relay = relay or build_relay(cfg)

    # Middleware
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_csv(cfg.app.cors_allowed_origins),
        allow_methods=["GET"],
        allow_headers=["X-API-Key", "Content-Type"],
        expose_headers=["X-Cache", "X-Cache-Age", cfg.log.request_id_header],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(cache_router)
    app.include_router(proxy_router, prefix=cfg.upstream.route_prefix.rstrip("/"))

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
