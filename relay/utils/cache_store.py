"""In-memory TTL store for upstream responses.

Entries are immutable; a refresh replaces the entry under its key. Expiry is
lazy on reads, and ``sweep`` purges stale entries as a maintenance step.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Upstream response stored verbatim with its creation time."""

    key: str
    payload: bytes
    content_type: str
    created_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_seconds

    @property
    def size_bytes(self) -> int:
        return len(self.payload)

    def age_seconds(self, now: float) -> float:
        return max(0.0, now - self.created_at)

    def is_fresh(self, now: float) -> bool:
        return now - self.created_at < self.ttl_seconds


@dataclass(frozen=True)
class CacheEntryStats:
    key: str
    age_seconds: int
    size_bytes: int


@dataclass(frozen=True)
class CacheStats:
    """Read-only snapshot of the store (payloads excluded).

    ``evictions`` counts capacity removals only; TTL removals (lazy or swept)
    are counted in ``expirations``.
    """

    count: int
    ttl_seconds: int
    max_entries: int | None
    hits: int
    misses: int
    evictions: int
    expirations: int
    entries: list[CacheEntryStats] = field(default_factory=list)


class CacheStore:
    """Thread-safe TTL store with least-recently-inserted eviction.

    Attributes:
        ttl_seconds: Time-to-live applied to all entries.
        max_entries: Maximum stored entries (None for unlimited). When full,
            the oldest insertion is evicted; reads do not change the order.
    """

    def __init__(
        self,
        ttl_seconds: int = 86400,
        max_entries: int | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1 or None")

        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"CacheStore(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._entries)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions}, expirations={self._expirations})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> CacheEntry | None:
        """Return the fresh entry for ``key``, or None when missing/expired."""

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
                return None

            if not entry.is_fresh(self._clock()):
                self._expire_locked(key)
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "expired"})
                return None

            self._hits += 1
            logger.debug("cache.hit", extra={"cache_key": key})
            return entry

    def put(
        self,
        key: str,
        payload: bytes,
        content_type: str,
        now: float | None = None,
    ) -> CacheEntry:
        """Insert or replace the entry for ``key``.

        Args:
            key: Normalized request identity.
            payload: Raw response body.
            content_type: MIME type recorded from the upstream.
            now: Creation timestamp (defaults to the store clock).

        Returns:
            The stored entry.
        """

        entry = CacheEntry(
            key=key,
            payload=payload,
            content_type=content_type,
            created_at=self._clock() if now is None else now,
            ttl_seconds=self._ttl,
        )

        with self._lock:
            # Replacement counts as a fresh insertion for eviction order
            self._entries.pop(key, None)
            self._entries[key] = entry
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.set",
                extra={
                    "cache_key": key,
                    "size": len(self._entries),
                    "size_bytes": entry.size_bytes,
                    "ttl_s": self._ttl,
                },
            )
        return entry

    def clear(self) -> int:
        """Remove all entries and reset counters.

        Returns:
            Number of entries removed.
        """

        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

        logger.info("cache.cleared", extra={"removed": removed})
        return removed

    def sweep(self) -> int:
        """Purge every entry older than the TTL.

        Returns:
            Number of entries removed.
        """

        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if not entry.is_fresh(now)]
            for key in expired:
                self._expire_locked(key)

        if expired:
            logger.info("cache.swept", extra={"removed": len(expired)})
        return len(expired)

    def stats(self) -> CacheStats:
        """Return per-entry age and size plus counters, without payloads."""

        with self._lock:
            now = self._clock()
            return CacheStats(
                count=len(self._entries),
                ttl_seconds=self._ttl,
                max_entries=self._max_entries,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                entries=[
                    CacheEntryStats(
                        key=entry.key,
                        age_seconds=int(entry.age_seconds(now)),
                        size_bytes=entry.size_bytes,
                    )
                    for entry in self._entries.values()
                ],
            )

    def _expire_locked(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            self._expirations += 1

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._entries) > self._max_entries:
            # popitem(last=False) removes the least recently inserted entry
            key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("cache.evicted", extra={"cache_key": key, "reason": "capacity"})
