"""Atomic key-value store adapters.

The rate limiter depends on the abstract compare-and-swap interface only, so a
single relay can run on the in-memory store while a replicated deployment
points every instance at the same Redis.
"""

from relay.adapters.store.base import AbstractAtomicStore, VersionedValue
from relay.adapters.store.factory import create_atomic_store
from relay.adapters.store.in_memory import InMemoryAtomicStore
from relay.adapters.store.redis_store import RedisAtomicStore

__all__ = [
    "AbstractAtomicStore",
    "InMemoryAtomicStore",
    "RedisAtomicStore",
    "VersionedValue",
    "create_atomic_store",
]
