"""In-memory atomic store.

Notes:
- Per-process only: replicas each get their own timestamps, so the
  aggregate upstream rate is multiplied by the number of replicas. Use the
  Redis store when running more than one instance.
- Thread-safe: a lock serializes the version check and the write.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Hashable

from relay.adapters.store.base import AbstractAtomicStore, VersionedValue


@dataclass
class _Slot:
    value: int
    version: int


class InMemoryAtomicStore(AbstractAtomicStore):
    """Compare-and-swap store backed by a dict and a per-key version counter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slots: dict[str, _Slot] = {}

    async def get(self, key: str) -> VersionedValue:
        with self._lock:
            slot = self._slots.get(key)
            if slot is None:
                return VersionedValue(value=None, version=None)
            return VersionedValue(value=slot.value, version=slot.version)

    async def conditional_set(self, key: str, value: int, expected_version: Hashable | None) -> bool:
        with self._lock:
            slot = self._slots.get(key)
            current_version = slot.version if slot else None
            if current_version != expected_version:
                return False
            next_version = current_version + 1 if current_version is not None else 1
            self._slots[key] = _Slot(value=value, version=next_version)
            return True
