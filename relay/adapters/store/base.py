"""Atomic key-value store interface.

The rate limiter should depend on this abstraction (not the concrete
implementation) so the backing store can be swapped without touching the
acquisition protocol.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Hashable


@dataclass(frozen=True)
class VersionedValue:
    """Value read from the store together with its version token.

    Attributes:
        value: Stored integer, or None when the key has never been written.
        version: Opaque token to pass back to ``conditional_set``. Callers must
            not interpret it.
    """

    value: int | None
    version: Hashable | None


class AbstractAtomicStore(ABC):
    """Interface for stores offering linearizable compare-and-swap."""

    @abstractmethod
    async def get(self, key: str) -> VersionedValue:
        """Read the current value and version token for ``key``.

        Args:
            key: Store key.

        Returns:
            VersionedValue (value None when the key is absent).

        Raises:
            StoreAppError: If the backing store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    async def conditional_set(self, key: str, value: int, expected_version: Hashable | None) -> bool:
        """Write ``value`` only if ``key`` still carries ``expected_version``.

        Args:
            key: Store key.
            value: New integer value.
            expected_version: Version token observed by the caller's last read.

        Returns:
            True when the write was applied, False when another writer won.

        Raises:
            StoreAppError: If the backing store cannot be reached.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
