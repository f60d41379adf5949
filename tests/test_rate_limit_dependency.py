"""Tests for the route-level rate limit dependency and the demo app routes."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from ratekeeper.adapters.rate_limit.sliding_window import SlidingWindowAlgorithm
from ratekeeper.adapters.store.base import AbstractStateStore
from ratekeeper.core import rate_limit as rate_limit_module
from ratekeeper.core.config import settings
from ratekeeper.core.errors import store_failure
from ratekeeper.core.rate_limit import default_key
from ratekeeper.main import app
from ratekeeper.services.limiter import LimitContext, RateLimiter


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Fresh limiter per test: sliding window, 2 requests per minute, memory store."""
    monkeypatch.setattr(settings.rate_limit, "enabled", True)
    monkeypatch.setattr(settings.rate_limit, "algorithm", "sliding_window")
    monkeypatch.setattr(settings.rate_limit, "limit", 2)
    monkeypatch.setattr(settings.rate_limit, "window_ms", 60_000)
    monkeypatch.setattr(settings.rate_limit, "store", "memory")
    monkeypatch.setattr(settings.rate_limit, "fail_open", False)
    monkeypatch.setattr(rate_limit_module, "_limiter", None)
    monkeypatch.setattr(rate_limit_module, "_limiter_config", None)
    return TestClient(app)


def test_default_key_prefers_api_key() -> None:
    assert default_key(LimitContext(ip="1.2.3.4", api_key="k1")) == "api_key:k1"
    assert default_key(LimitContext(ip="1.2.3.4")) == "ip:1.2.3.4"
    assert default_key(LimitContext()) == "ip:unknown"


def test_allows_up_to_limit_then_429(client: TestClient) -> None:
    first = client.get("/v1/ping")
    second = client.get("/v1/ping")
    third = client.get("/v1/ping")

    assert first.status_code == 200
    assert first.headers["RateLimit-Remaining"] == "1"
    assert second.status_code == 200
    assert second.headers["RateLimit-Remaining"] == "0"

    assert third.status_code == 429
    assert third.json() == {"detail": "Too Many Requests"}
    assert int(third.headers["Retry-After"]) > 0
    assert third.headers["RateLimit-Limit"] == "2"


def test_api_keys_have_separate_budgets(client: TestClient) -> None:
    for _ in range(2):
        assert client.get("/v1/ping", headers={"X-API-Key": "a"}).status_code == 200

    assert client.get("/v1/ping", headers={"X-API-Key": "a"}).status_code == 429
    assert client.get("/v1/ping", headers={"X-API-Key": "b"}).status_code == 200


def test_disabled_limiter_adds_nothing(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.rate_limit, "enabled", False)

    for _ in range(5):
        resp = client.get("/v1/ping")
        assert resp.status_code == 200
        assert "RateLimit-Limit" not in resp.headers


def test_token_bucket_configuration(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.rate_limit, "algorithm", "token_bucket")
    monkeypatch.setattr(settings.rate_limit, "capacity", 3)
    monkeypatch.setattr(settings.rate_limit, "headers_policy", True)

    resp = client.get("/v1/ping")

    assert resp.headers["RateLimit-Limit"] == "3"
    assert resp.headers["RateLimit-Remaining"] == "2"
    assert resp.headers["RateLimit-Policy"] == "3;w=1;burst=3"


def test_reset_route_restores_budget(client: TestClient) -> None:
    client.get("/v1/ping")
    client.get("/v1/ping")
    assert client.get("/v1/ping").status_code == 429

    resp = client.delete("/v1/limits/ip:testclient")

    assert resp.status_code == 204
    assert client.get("/v1/ping").status_code == 200


def test_reset_route_without_capability(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    class LoadSaveOnlyStore(AbstractStateStore):
        async def load(self, key):
            return None

        async def save(self, key, state, ttl_ms):
            return None

    limiter = RateLimiter(
        store=LoadSaveOnlyStore(),
        algorithm=SlidingWindowAlgorithm(limit=1, window_ms=1000),
        key=default_key,
    )
    monkeypatch.setattr("ratekeeper.api.routes.limits.get_rate_limiter", lambda: limiter)

    assert client.delete("/v1/limits/ip:testclient").status_code == 501


@pytest.fixture
def failing_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    store = AsyncMock(spec=AbstractStateStore)
    store.load.side_effect = store_failure("load", "Redis load failed", backend="redis")
    limiter = RateLimiter(
        store=store,
        algorithm=SlidingWindowAlgorithm(limit=1, window_ms=1000),
        key=default_key,
    )
    monkeypatch.setattr(rate_limit_module, "get_rate_limiter", lambda: limiter)


@pytest.mark.usefixtures("failing_limiter")
def test_store_failure_maps_to_503(client: TestClient) -> None:
    resp = client.get("/v1/ping")

    assert resp.status_code == 503
    error = resp.json()["error"]
    assert error["code"] == "store_unavailable"
    assert error["details"] == {"operation": "load"}
    assert error["request_id"]


@pytest.mark.usefixtures("failing_limiter")
def test_store_failure_fail_open(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.rate_limit, "fail_open", True)

    assert client.get("/v1/ping").status_code == 200


def test_health_is_not_rate_limited(client: TestClient) -> None:
    for _ in range(5):
        resp = client.get("/health")
        assert resp.status_code == 200

    assert resp.json() == {"status": "ok", "algorithm": "sliding_window", "store": "memory"}
    assert "RateLimit-Limit" not in resp.headers
