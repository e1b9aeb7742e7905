"""httpx-based upstream transport."""

from __future__ import annotations

import logging
from typing import Mapping

import httpx

from relay.adapters.upstream.base import AbstractUpstreamTransport, UpstreamResponse
from relay.core.errors import TransportAppError

logger = logging.getLogger(__name__)


class HttpxUpstreamTransport(AbstractUpstreamTransport):
    """Transport sharing one ``httpx.AsyncClient`` connection pool.

    The client is owned by the transport and closed with it.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout_seconds: Total timeout applied to each upstream request.
            client: Optional preconfigured client (tests inject a MockTransport).
        """
        self.client = client or httpx.AsyncClient(
            timeout=timeout_seconds,
            follow_redirects=True,
        )

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
    ) -> UpstreamResponse:
        try:
            response = await self.client.request(method, url, headers=dict(headers or {}))
        except httpx.TimeoutException as exc:
            raise TransportAppError(
                code="upstream_timeout",
                message="Upstream API did not respond in time",
                details={"context": {"error_type": type(exc).__name__}},
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportAppError(
                code="upstream_unreachable",
                message="Upstream API could not be reached",
                details={"context": {"error_type": type(exc).__name__}},
            ) from exc
        except httpx.InvalidURL as exc:
            # Not an HTTPError subclass
            raise TransportAppError(
                code="upstream_invalid_url",
                message="Upstream URL could not be built for this request",
                details={"context": {"error_type": type(exc).__name__}},
            ) from exc

        return UpstreamResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            headers=dict(response.headers),
            body=response.content,
        )

    async def close(self) -> None:
        await self.client.aclose()
