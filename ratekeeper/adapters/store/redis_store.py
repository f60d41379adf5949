"""Redis-backed state store.

Each operation runs as a single Lua script evaluated by Redis itself, so the
expiry check and the delete on load, and the write plus expiry on save, are
never observed half-done by another process.

Key layout: ``{prefix}:{namespace}:{key}``. The short prefix keeps limiter
entries apart from unrelated data living in the same Redis database.

Expiry is kept in whole seconds (``ceil(ttl_ms / 1000)``).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ratekeeper.adapters.store.base import AbstractStateStore, StatePayload
from ratekeeper.core.errors import store_failure

logger = logging.getLogger(__name__)

BACKEND_NAME = "redis"

# Returns the value only while the key still has lifetime left; a value
# without a positive remaining TTL is deleted and reported as absent.
LOAD_SCRIPT = """
    local key = KEYS[1]
    local data = redis.call('GET', key)
    if data then
        local ttl = redis.call('PTTL', key)
        if ttl > 0 then
            return data
        end
        redis.call('DEL', key)
    end
    return nil
"""

# A non-positive lifetime means the entry is already expired.
SAVE_SCRIPT = """
    local key = KEYS[1]
    local value = ARGV[1]
    local ttl_sec = math.ceil(tonumber(ARGV[2]) / 1000)
    if ttl_sec <= 0 then
        redis.call('DEL', key)
        return 0
    end
    redis.call('SET', key, value, 'EX', ttl_sec)
    return 1
"""

RESET_SCRIPT = """
    return redis.call('DEL', KEYS[1])
"""


class RedisStateStore(AbstractStateStore):
    """State store shared by every process pointing at the same Redis.

    Args:
        client: Optional ``redis.asyncio`` client (or compatible object with
            an async ``eval``). Created lazily from ``url`` when omitted.
        url: Redis connection URL used when no client is given.
        prefix: Key prefix applied to every limiter key.
    """

    def __init__(
        self,
        client: Any | None = None,
        *,
        url: str = "redis://localhost:6379/0",
        prefix: str = "rl",
    ) -> None:
        self._client = client
        self._url = url
        self._prefix = prefix

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"RedisStateStore(prefix={self._prefix!r})"

    def _get_redis(self) -> Any:
        """Get or create the Redis client."""
        if self._client is None:
            self._client = aioredis.from_url(self._url)
        return self._client

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def _eval(self, operation: str, script: str, key: str, *args: Any) -> Any:
        try:
            return await self._get_redis().eval(script, 1, self._full_key(key), *args)
        except RedisError as exc:
            raise store_failure(
                operation,
                f"Redis {operation} failed: {exc}",
                backend=BACKEND_NAME,
            ) from exc

    async def load(self, key: str) -> StatePayload | None:
        raw = await self._eval("load", LOAD_SCRIPT, key)
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise store_failure(
                "load",
                f"Stored state is not valid JSON: {exc}",
                backend=BACKEND_NAME,
                malformed=True,
            ) from exc

        if not isinstance(payload, dict):
            raise store_failure(
                "load",
                f"Stored state must be a JSON object, got {type(payload).__name__}",
                backend=BACKEND_NAME,
                malformed=True,
            )
        return payload

    async def save(self, key: str, state: StatePayload, ttl_ms: int) -> None:
        serialized = json.dumps(state, separators=(",", ":"))
        await self._eval("save", SAVE_SCRIPT, key, serialized, str(int(ttl_ms)))

    async def reset(self, key: str) -> None:
        removed = await self._eval("reset", RESET_SCRIPT, key)
        logger.info("store.reset", extra={"backend": BACKEND_NAME, "removed": bool(removed)})

    async def aclose(self) -> None:
        """Close the underlying client if this store created or was given one."""

        if self._client is not None:
            await self._client.aclose()
