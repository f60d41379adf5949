"""Unit tests for the Redis state store (client mocked at the eval boundary)."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ratekeeper.adapters.store import redis_store
from ratekeeper.adapters.store.redis_store import (
    LOAD_SCRIPT,
    RESET_SCRIPT,
    SAVE_SCRIPT,
    RedisStateStore,
)
from ratekeeper.core.errors import MalformedStateError, StoreFailureError


@pytest.fixture
def client() -> MagicMock:
    mock = MagicMock()
    mock.eval = AsyncMock(return_value=None)
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def store(client: MagicMock) -> RedisStateStore:
    return RedisStateStore(client)


@pytest.mark.asyncio
async def test_load_missing_returns_none(store: RedisStateStore, client: MagicMock) -> None:
    assert await store.load("default:k") is None

    client.eval.assert_awaited_once_with(LOAD_SCRIPT, 1, "rl:default:k")


@pytest.mark.asyncio
async def test_load_decodes_json_bytes(store: RedisStateStore, client: MagicMock) -> None:
    client.eval.return_value = b'{"tokens":3,"last_refill_at":1000}'

    assert await store.load("default:k") == {"tokens": 3, "last_refill_at": 1000}


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [b"{not json", b"[1, 2]", b'"text"'])
async def test_load_corrupt_payload_raises_malformed_state(
    store: RedisStateStore, client: MagicMock, raw: bytes
) -> None:
    client.eval.return_value = raw

    with pytest.raises(MalformedStateError) as exc_info:
        await store.load("default:k")

    assert exc_info.value.operation == "load"


@pytest.mark.asyncio
async def test_save_serializes_state_and_passes_ttl(store: RedisStateStore, client: MagicMock) -> None:
    await store.save("default:k", {"count": 2}, 1500)

    client.eval.assert_awaited_once_with(SAVE_SCRIPT, 1, "rl:default:k", '{"count":2}', "1500")


@pytest.mark.asyncio
async def test_reset_deletes_key(store: RedisStateStore, client: MagicMock) -> None:
    client.eval.return_value = 1

    await store.reset("default:k")

    client.eval.assert_awaited_once_with(RESET_SCRIPT, 1, "rl:default:k")


@pytest.mark.asyncio
async def test_custom_prefix(client: MagicMock) -> None:
    store = RedisStateStore(client, prefix="limits")

    await store.load("api:k")

    assert client.eval.await_args.args[2] == "limits:api:k"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("operation", "call"),
    [
        ("load", lambda s: s.load("k")),
        ("save", lambda s: s.save("k", {"count": 1}, 1000)),
        ("reset", lambda s: s.reset("k")),
    ],
)
async def test_transport_errors_become_store_failures(
    store: RedisStateStore, client: MagicMock, operation: str, call
) -> None:
    cause = RedisConnectionError("connection refused")
    client.eval.side_effect = cause

    with pytest.raises(StoreFailureError) as exc_info:
        await call(store)

    assert not isinstance(exc_info.value, MalformedStateError)
    assert exc_info.value.operation == operation
    assert exc_info.value.__cause__ is cause


@pytest.mark.asyncio
async def test_timeout_is_a_store_failure(store: RedisStateStore, client: MagicMock) -> None:
    client.eval.side_effect = RedisTimeoutError("timed out")

    with pytest.raises(StoreFailureError):
        await store.load("k")


@pytest.mark.asyncio
async def test_client_created_lazily_from_url(client: MagicMock) -> None:
    with patch.object(redis_store.aioredis, "from_url", return_value=client) as from_url:
        store = RedisStateStore(url="redis://cache:6379/1")
        from_url.assert_not_called()

        await store.load("k")

    from_url.assert_called_once_with("redis://cache:6379/1")


@pytest.mark.asyncio
async def test_aclose_closes_client(store: RedisStateStore, client: MagicMock) -> None:
    await store.aclose()

    client.aclose.assert_awaited_once()

