"""Factory for the atomic store selected in configuration."""

from __future__ import annotations

from relay.adapters.store.base import AbstractAtomicStore
from relay.adapters.store.in_memory import InMemoryAtomicStore
from relay.core.config import StoreSettings
from relay.core.errors import ValidationAppError


def create_atomic_store(store_settings: StoreSettings) -> AbstractAtomicStore:
    """Instantiate the atomic store backend named in settings.

    Args:
        store_settings: Resolved store configuration.

    Returns:
        AbstractAtomicStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = store_settings.backend.lower()

    if backend == "memory":
        return InMemoryAtomicStore()

    if backend == "redis":
        import redis.asyncio as redis

        from relay.adapters.store.redis_store import RedisAtomicStore

        client = redis.from_url(store_settings.redis_url)
        return RedisAtomicStore(client, prefix=store_settings.key_prefix)

    raise ValidationAppError(
        code="store_unknown_backend",
        message=(
            f"Unknown store backend: '{backend}'. Supported backends: memory, redis"
        ),
    )
