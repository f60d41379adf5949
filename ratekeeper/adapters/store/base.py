"""State store interfaces.

The limiter depends on this abstraction so state can live in process memory
or in a shared backend (e.g., Redis) without changing the limiter itself.

Stores are generic over the payload: they persist whatever JSON-compatible
mapping the algorithm hands them and never interpret it.

Contract:
- ``load`` returns None for missing keys and for entries whose expiry has
  passed, even if they have not been physically deleted yet.
- ``save`` with ``ttl_ms <= 0`` behaves as "already expired".
- ``reset`` is an optional capability; see ``supports_reset``.
- Backend failures surface as StoreFailureError tagged with the operation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

StatePayload = dict[str, Any]


class AbstractStateStore(ABC):
    """Interface for limiter state stores."""

    @abstractmethod
    async def load(self, key: str) -> StatePayload | None:
        """Load the state stored for ``key``.

        Args:
            key: Fully-qualified limiter key (``namespace:key``).

        Returns:
            The stored payload, or None when absent or expired.

        Raises:
            StoreFailureError: If the backend fails or the entry is unreadable.
        """
        raise NotImplementedError

    @abstractmethod
    async def save(self, key: str, state: StatePayload, ttl_ms: int) -> None:
        """Persist ``state`` for ``key``, replacing any previous entry.

        Args:
            key: Fully-qualified limiter key.
            state: JSON-compatible payload.
            ttl_ms: Entry lifetime in milliseconds; <= 0 means already expired.

        Raises:
            StoreFailureError: If the backend fails.
        """
        raise NotImplementedError


def supports_reset(store: AbstractStateStore) -> bool:
    """Return True when the store offers the optional ``reset(key)`` capability."""

    return callable(getattr(store, "reset", None))
