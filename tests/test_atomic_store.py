"""Tests for the atomic store adapters and their factory."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from relay.adapters.store.factory import create_atomic_store
from relay.adapters.store.in_memory import InMemoryAtomicStore
from relay.adapters.store.redis_store import RedisAtomicStore
from relay.core.config import StoreSettings
from relay.core.errors import StoreAppError, ValidationAppError


class TestInMemoryAtomicStore:
    @pytest.mark.asyncio
    async def test_absent_key_reads_as_none(self) -> None:
        current = await InMemoryAtomicStore().get("scope")

        assert current.value is None
        assert current.version is None

    @pytest.mark.asyncio
    async def test_first_write_requires_absent_version(self) -> None:
        store = InMemoryAtomicStore()

        assert await store.conditional_set("scope", 1_000, None) is True
        assert await store.conditional_set("scope", 2_000, None) is False
        assert (await store.get("scope")).value == 1_000

    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(self) -> None:
        store = InMemoryAtomicStore()
        await store.conditional_set("scope", 1_000, None)
        seen = await store.get("scope")

        assert await store.conditional_set("scope", 2_000, seen.version) is True
        assert await store.conditional_set("scope", 3_000, seen.version) is False

        current = await store.get("scope")
        assert current.value == 2_000
        assert current.version != seen.version

    @pytest.mark.asyncio
    async def test_concurrent_writers_with_same_version_one_wins(self) -> None:
        store = InMemoryAtomicStore()
        seen = await store.get("scope")

        results = await asyncio.gather(
            *(store.conditional_set("scope", 1_000 + i, seen.version) for i in range(10))
        )

        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_keys_are_isolated(self) -> None:
        store = InMemoryAtomicStore()
        await store.conditional_set("a", 1, None)

        assert (await store.get("b")).value is None


class TestRedisAtomicStore:
    @pytest.mark.asyncio
    async def test_get_decodes_raw_value_and_uses_it_as_version(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(return_value=b"1712345678901")
        store = RedisAtomicStore(client, prefix="rate_limit")

        current = await store.get("inat_api")

        client.get.assert_awaited_once_with("rate_limit:inat_api")
        assert current.value == 1_712_345_678_901
        assert current.version == "1712345678901"

    @pytest.mark.asyncio
    async def test_get_absent_key(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(return_value=None)

        current = await RedisAtomicStore(client).get("inat_api")

        assert current.value is None
        assert current.version is None

    @pytest.mark.asyncio
    async def test_conditional_set_runs_script_with_expected_value(self) -> None:
        client = MagicMock()
        client.eval = AsyncMock(return_value=1)
        store = RedisAtomicStore(client, prefix="rl")

        assert await store.conditional_set("inat_api", 2_000, "1000") is True

        args = client.eval.await_args.args
        assert "redis.call('SET'" in args[0]
        assert args[1:] == (1, "rl:inat_api", "1000", "2000")

    @pytest.mark.asyncio
    async def test_conditional_set_absent_expectation_and_lost_race(self) -> None:
        client = MagicMock()
        client.eval = AsyncMock(return_value=0)
        store = RedisAtomicStore(client, prefix="")

        assert await store.conditional_set("inat_api", 2_000, None) is False
        assert client.eval.await_args.args[2:] == ("inat_api", "", "2000")

    @pytest.mark.asyncio
    async def test_close_uses_aclose(self) -> None:
        client = MagicMock()
        client.aclose = AsyncMock()

        await RedisAtomicStore(client).close()

        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_server_on_get_raises_store_error(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("Error 111 connecting to cache:6379"))

        with pytest.raises(StoreAppError) as exc_info:
            await RedisAtomicStore(client).get("inat_api")

        assert exc_info.value.code == "store_unavailable"
        assert "6379" not in exc_info.value.message
        assert exc_info.value.details == {"context": {"operation": "get"}}

    @pytest.mark.asyncio
    async def test_timeout_on_compare_and_set_raises_store_error(self) -> None:
        client = MagicMock()
        client.eval = AsyncMock(side_effect=RedisTimeoutError("Timeout reading from socket"))

        with pytest.raises(StoreAppError) as exc_info:
            await RedisAtomicStore(client).conditional_set("inat_api", 2_000, "1000")

        assert exc_info.value.code == "store_unavailable"
        assert exc_info.value.details == {"context": {"operation": "conditional_set"}}


class TestCreateAtomicStore:
    def test_memory_backend(self) -> None:
        store = create_atomic_store(StoreSettings(backend="memory"))

        assert isinstance(store, InMemoryAtomicStore)

    def test_redis_backend_uses_configured_url_and_prefix(self) -> None:
        with patch("redis.asyncio.from_url") as from_url:
            store = create_atomic_store(
                StoreSettings(backend="Redis", redis_url="redis://cache:6379/1", key_prefix="rl")
            )

        from_url.assert_called_once_with("redis://cache:6379/1")
        assert isinstance(store, RedisAtomicStore)

    def test_unknown_backend_raises(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            create_atomic_store(StoreSettings(backend="memcached"))

        assert exc_info.value.code == "store_unknown_backend"
        assert "memcached" in exc_info.value.message
