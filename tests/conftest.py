"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any import that might load settings.
"""

import asyncio
import os
from typing import Any, Callable, Hashable, Mapping

import pytest

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("STORE_BACKEND", "memory")

from relay.adapters.store.base import AbstractAtomicStore, VersionedValue  # noqa: E402
from relay.adapters.store.in_memory import InMemoryAtomicStore  # noqa: E402
from relay.adapters.upstream.base import AbstractUpstreamTransport, UpstreamResponse  # noqa: E402
from relay.services.proxy_relay import ProxyRelay  # noqa: E402
from relay.services.rate_limiter import GlobalRateLimiter  # noqa: E402
from relay.utils.cache_store import CacheStore  # noqa: E402
from relay.utils.request_normalizer import RequestNormalizer  # noqa: E402

UPSTREAM_BASE_URL = "https://api.example.org"


class FakeClock:
    """Deterministic clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds
        # Yield so concurrent tasks interleave like they would on a real sleep
        await asyncio.sleep(0)


class PinnedStore(AbstractAtomicStore):
    """Store whose slot was always just granted to someone else."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock
        self.writes = 0

    async def get(self, key: str) -> VersionedValue:
        now_ms = int(self.clock.time() * 1000) if self.clock else 10**15
        return VersionedValue(value=now_ms, version=now_ms)

    async def conditional_set(self, key: str, value: int, expected_version: Hashable | None) -> bool:
        self.writes += 1
        return False


class BrokenStore(AbstractAtomicStore):
    """Store whose backend is down; every call raises ``error``."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ConnectionError("store down")

    async def get(self, key: str) -> VersionedValue:
        raise self.error

    async def conditional_set(self, key: str, value: int, expected_version: Hashable | None) -> bool:
        raise self.error


class FakeTransport(AbstractUpstreamTransport):
    """Upstream stand-in recording every call.

    ``responder`` receives the URL and returns an UpstreamResponse or raises.
    """

    def __init__(
        self,
        responder: Callable[[str], UpstreamResponse] | None = None,
        *,
        clock: FakeClock | None = None,
    ) -> None:
        self.responder = responder or (lambda url: ok_response(b'{"results": []}'))
        self.clock = clock
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
    ) -> UpstreamResponse:
        self.calls.append(
            {
                "url": url,
                "method": method,
                "headers": dict(headers or {}),
                "at": self.clock.time() if self.clock else None,
            }
        )
        return self.responder(url)

    async def close(self) -> None:
        self.closed = True


def ok_response(body: bytes, content_type: str | None = "application/json") -> UpstreamResponse:
    headers = {"content-type": content_type} if content_type else {}
    return UpstreamResponse(status_code=200, reason="OK", headers=headers, body=body)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_relay(fake_clock: FakeClock) -> Callable[..., ProxyRelay]:
    """Build a relay on fakes; keyword overrides tune the limiter and cache."""

    def _make(
        transport: AbstractUpstreamTransport | None = None,
        *,
        store: Any = None,
        requests_per_second: float = 1.0,
        max_retries: int = 30,
        acquire_timeout_seconds: float | None = None,
        ttl_seconds: int = 3600,
        max_entries: int | None = None,
    ) -> ProxyRelay:
        limiter = GlobalRateLimiter(
            store or InMemoryAtomicStore(),
            requests_per_second=requests_per_second,
            max_retries=max_retries,
            acquire_timeout_seconds=acquire_timeout_seconds,
            clock=fake_clock.time,
            sleep=fake_clock.sleep,
        )
        return ProxyRelay(
            cache=CacheStore(ttl_seconds=ttl_seconds, max_entries=max_entries, clock=fake_clock.time),
            limiter=limiter,
            transport=transport or FakeTransport(clock=fake_clock),
            normalizer=RequestNormalizer(UPSTREAM_BASE_URL, excluded_params=["_"]),
            scope="inat_api",
            upstream_headers={"User-Agent": "Proxy-Cache/1.0", "Accept": "application/json"},
        )

    return _make
