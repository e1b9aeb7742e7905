from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends

from relay.core.config import settings
from relay.core.dependencies import get_relay
from relay.schemas.cache import HealthResponse
from relay.services.proxy_relay import ProxyRelay

router = APIRouter(tags=["Health"])


@router.get("/")
def index() -> dict:
    """Service description and endpoint map."""

    return {
        "message": "Proxy Cache Relay",
        "endpoints": {
            "proxy": f"{settings.upstream.route_prefix}/*",
            "health": "/health",
            "stats": "/cache/stats",
            "clear": "/cache/clear",
            "sweep": "/cache/sweep",
        },
    }


@router.get("/health", response_model=HealthResponse)
def health_check(relay: Annotated[ProxyRelay, Depends(get_relay)]) -> HealthResponse:
    """Health check endpoint.

    Purges expired cache entries as a side task, then reports the remaining
    cache size. Used by load balancers and monitoring systems.
    """

    relay.cache_sweep()
    return HealthResponse(
        cache_size=len(relay.cache),
        timestamp=datetime.now(timezone.utc),
    )
