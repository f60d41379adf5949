"""State store adapters.

The in-memory store serves single-process deployments and tests; the Redis
store shares limiter state across processes.
"""

from ratekeeper.adapters.store.base import AbstractStateStore, StatePayload, supports_reset
from ratekeeper.adapters.store.in_memory import InMemoryStateStore
from ratekeeper.adapters.store.redis_store import RedisStateStore

__all__ = [
    "AbstractStateStore",
    "InMemoryStateStore",
    "RedisStateStore",
    "StatePayload",
    "supports_reset",
]
