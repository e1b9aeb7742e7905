from __future__ import annotations

from relay.api.routes.cache import router as cache_router
from relay.api.routes.health import router as health_router
from relay.api.routes.proxy import router as proxy_router

__all__ = ["cache_router", "health_router", "proxy_router"]
