"""Tests for the httpx upstream transport using httpx.MockTransport."""

import httpx
import pytest

from relay.adapters.upstream.httpx_client import HttpxUpstreamTransport
from relay.core.errors import TransportAppError


def _transport(handler) -> HttpxUpstreamTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxUpstreamTransport(client=client)


@pytest.mark.asyncio
async def test_fetch_returns_status_headers_and_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            content=b'{"total_results": 1}',
            headers={"Content-Type": "application/json"},
        )

    transport = _transport(handler)

    response = await transport.fetch(
        "https://api.inaturalist.org/taxa?id=5",
        headers={"User-Agent": "Proxy-Cache/1.0", "Accept": "application/json"},
    )
    await transport.close()

    assert response.status_code == 200
    assert response.reason == "OK"
    assert response.is_success
    assert response.content_type == "application/json"
    assert response.body == b'{"total_results": 1}'
    assert seen[0].method == "GET"
    assert str(seen[0].url) == "https://api.inaturalist.org/taxa?id=5"
    assert seen[0].headers["User-Agent"] == "Proxy-Cache/1.0"


@pytest.mark.asyncio
async def test_error_status_is_returned_not_raised() -> None:
    transport = _transport(lambda request: httpx.Response(429, text="slow down"))

    response = await transport.fetch("https://api.inaturalist.org/taxa")

    assert response.status_code == 429
    assert response.reason == "Too Many Requests"
    assert not response.is_success


@pytest.mark.asyncio
async def test_timeout_becomes_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransportAppError) as exc_info:
        await _transport(handler).fetch("https://api.inaturalist.org/taxa")

    assert exc_info.value.code == "upstream_timeout"


@pytest.mark.asyncio
async def test_connection_failure_becomes_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportAppError) as exc_info:
        await _transport(handler).fetch("https://api.inaturalist.org/taxa")

    assert exc_info.value.code == "upstream_unreachable"
    assert exc_info.value.details["context"]["error_type"] == "ConnectError"


@pytest.mark.asyncio
async def test_unbuildable_url_becomes_transport_error() -> None:
    called = False

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal called
        called = True
        return httpx.Response(200)

    with pytest.raises(TransportAppError) as exc_info:
        await _transport(handler).fetch("https://api.inaturalist.org/taxa\x00x")

    assert exc_info.value.code == "upstream_invalid_url"
    assert exc_info.value.details["context"]["error_type"] == "InvalidURL"
    assert called is False
