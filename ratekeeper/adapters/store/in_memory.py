"""In-memory state store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired entries are purged opportunistically on every operation and are
  never served, even before the purge runs.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from ratekeeper.adapters.store.base import AbstractStateStore, StatePayload

logger = logging.getLogger(__name__)


@dataclass
class _StoreEntry:
    state: StatePayload
    expires_at_ms: float


class InMemoryStateStore(AbstractStateStore):
    """Dictionary-backed store with per-entry expiry.

    Saved payloads are deep-copied on the way in and out, so callers can never
    mutate stored state by holding on to a payload.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """

        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _StoreEntry] = {}
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryStateStore(size={len(self._entries)}, evictions={self._evictions})"

    def _now_ms(self) -> float:
        return self._clock() * 1000

    async def load(self, key: str) -> StatePayload | None:
        with self._lock:
            now_ms = self._now_ms()
            self._purge_expired_locked(now_ms)

            entry = self._entries.get(key)
            if entry is None:
                return None
            return copy.deepcopy(entry.state)

    async def save(self, key: str, state: StatePayload, ttl_ms: int) -> None:
        with self._lock:
            now_ms = self._now_ms()
            self._purge_expired_locked(now_ms)

            if ttl_ms <= 0:
                # Already expired: drop any previous entry instead of storing.
                self._entries.pop(key, None)
                return

            self._entries[key] = _StoreEntry(
                state=copy.deepcopy(state),
                expires_at_ms=now_ms + ttl_ms,
            )

    async def reset(self, key: str) -> None:
        with self._lock:
            removed = self._entries.pop(key, None) is not None

        logger.info("store.reset", extra={"backend": "memory", "removed": removed})

    def clear(self) -> None:
        """Remove all entries and reset counters."""

        with self._lock:
            self._entries.clear()
            self._evictions = 0

    def stats(self) -> dict[str, int]:
        """Return lightweight store metrics without exposing payloads."""

        with self._lock:
            return {
                "entries": len(self._entries),
                "evictions": self._evictions,
            }

    def _purge_expired_locked(self, now_ms: float) -> None:
        expired_keys = [k for k, entry in self._entries.items() if entry.expires_at_ms <= now_ms]
        for key in expired_keys:
            self._entries.pop(key, None)
            self._evictions += 1

        if expired_keys:
            logger.debug(
                "store.expired",
                extra={"backend": "memory", "purged": len(expired_keys)},
            )
