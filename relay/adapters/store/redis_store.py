"""Redis-backed atomic store shared by every relay instance.

Uses:
- One Redis string per key holding the integer value
- A Lua script for compare-and-set, so the check and the write happen in a
  single server-side step

The version token is the raw stored string. Rate limit values only move
forward in time, so an unchanged string means an unchanged slot.

Requires ``redis.asyncio`` (``pip install redis``).
"""

from __future__ import annotations

import logging
from typing import Any, Hashable

from redis.exceptions import RedisError

from relay.adapters.store.base import AbstractAtomicStore, VersionedValue
from relay.core.errors import StoreAppError

logger = logging.getLogger(__name__)

# ARGV[1]: expected raw value ('' when the key must be absent), ARGV[2]: new value
_COMPARE_AND_SET_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if (current == false and ARGV[1] == '') or current == ARGV[1] then
    redis.call('SET', KEYS[1], ARGV[2])
    return 1
end
return 0
"""


def _decode(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return str(raw)


def _store_error(operation: str, exc: Exception) -> StoreAppError:
    logger.error(
        "store.failed",
        extra={"backend": "redis", "operation": operation, "error_type": type(exc).__name__},
    )
    return StoreAppError(
        code="store_unavailable",
        message="Shared rate limit store is unavailable",
        details={"context": {"operation": operation}},
    )


class RedisAtomicStore(AbstractAtomicStore):
    """Compare-and-swap store on top of a ``redis.asyncio.Redis`` client.

    Client failures surface as ``StoreAppError``.

    Args:
        redis: An ``redis.asyncio.Redis`` client instance.
        prefix: Key prefix for namespacing.
    """

    def __init__(self, redis: Any, *, prefix: str = "rate_limit") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    async def get(self, key: str) -> VersionedValue:
        try:
            raw = _decode(await self._redis.get(self._key(key)))
        except RedisError as exc:
            raise _store_error("get", exc) from exc
        if raw is None:
            return VersionedValue(value=None, version=None)
        return VersionedValue(value=int(raw), version=raw)

    async def conditional_set(self, key: str, value: int, expected_version: Hashable | None) -> bool:
        expected = "" if expected_version is None else str(expected_version)
        try:
            applied = await self._redis.eval(
                _COMPARE_AND_SET_SCRIPT,
                1,
                self._key(key),
                expected,
                str(value),
            )
        except RedisError as exc:
            raise _store_error("conditional_set", exc) from exc
        return int(applied) == 1

    async def close(self) -> None:
        close = getattr(self._redis, "aclose", None) or self._redis.close
        await close()
        logger.debug("store.closed", extra={"backend": "redis"})
