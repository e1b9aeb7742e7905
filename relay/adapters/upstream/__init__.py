"""Upstream transport adapter layer - abstracts over the HTTP client."""

from relay.adapters.upstream.base import AbstractUpstreamTransport, UpstreamResponse
from relay.adapters.upstream.httpx_client import HttpxUpstreamTransport

__all__ = [
    "AbstractUpstreamTransport",
    "HttpxUpstreamTransport",
    "UpstreamResponse",
]
