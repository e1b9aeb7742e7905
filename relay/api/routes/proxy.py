from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from relay.core.auth import verify_api_key
from relay.core.dependencies import get_relay
from relay.core.errors import app_error_from_result
from relay.core.result import Err
from relay.services.proxy_relay import ProxyRelay
from relay.utils.request_normalizer import InboundRequest

router = APIRouter(tags=["Proxy"])


@router.get(
    "/{upstream_path:path}",
    response_class=Response,
    dependencies=[Depends(verify_api_key)],
    responses={
        200: {"description": "Upstream payload, served from cache (X-Cache: HIT) or fresh (MISS)."},
        502: {"description": "Upstream returned an error or could not be reached."},
        503: {"description": "Upstream rate limit slot could not be acquired."},
        504: {"description": "Timed out waiting for an upstream rate limit slot."},
    },
)
async def relay_request(
    upstream_path: str,
    request: Request,
    relay: Annotated[ProxyRelay, Depends(get_relay)],
) -> Response:
    """Relay a GET request to the upstream API through the cache.

    The path after the route prefix and the query string are forwarded;
    the caller's API key is not.

    Raises:
        UpstreamAppError: Upstream error or transport failure (502).
        RateLimitAppError: No upstream slot available (503 / 504).
    """
    inbound = InboundRequest(
        path=upstream_path,
        query=tuple(request.query_params.multi_items()),
    )

    result = await relay.handle(inbound)
    if isinstance(result, Err):
        raise app_error_from_result(result)

    relayed = result.value
    headers = {"X-Cache": relayed.cache_status.value}
    if relayed.age_seconds is not None:
        headers["X-Cache-Age"] = str(relayed.age_seconds)

    return Response(
        content=relayed.payload,
        media_type=relayed.content_type,
        headers=headers,
    )
