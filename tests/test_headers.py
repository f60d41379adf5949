"""Unit tests for rate limit header formatting."""

from dataclasses import replace

import pytest
from fastapi import Response

from ratekeeper.adapters.rate_limit.base import LimitResult
from ratekeeper.core.config import RateLimitSettings
from ratekeeper.core.headers import HeaderOptions, apply_headers, build_headers


@pytest.fixture
def allowed() -> LimitResult:
    return LimitResult(allowed=True, limit=100, remaining=95, reset=1234567890, now=1_000)


@pytest.fixture
def denied() -> LimitResult:
    return LimitResult(
        allowed=False,
        limit=100,
        remaining=0,
        reset=1234567890,
        now=1_000,
        retry_after_ms=5000,
        policy="100;w=60",
    )


def test_standard_headers_by_default(allowed: LimitResult) -> None:
    assert build_headers(allowed) == {
        "RateLimit-Limit": "100",
        "RateLimit-Remaining": "95",
        "RateLimit-Reset": "1234567890",
    }


def test_retry_after_included_when_present(denied: LimitResult) -> None:
    headers = build_headers(denied)

    assert headers["Retry-After"] == "5"
    assert headers["RateLimit-Remaining"] == "0"


@pytest.mark.parametrize(("retry_after_ms", "expected"), [(1500, "2"), (1, "1"), (0, "0")])
def test_retry_after_rounds_up_to_seconds(
    denied: LimitResult, retry_after_ms: int, expected: str
) -> None:
    result = replace(denied, retry_after_ms=retry_after_ms)

    assert build_headers(result)["Retry-After"] == expected


def test_legacy_only(denied: LimitResult) -> None:
    headers = build_headers(denied, HeaderOptions(standard=False, legacy=True))

    assert headers == {
        "X-RateLimit-Limit": "100",
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": "1234567890",
        "Retry-After": "5",
    }


def test_standard_and_legacy_together(allowed: LimitResult) -> None:
    headers = build_headers(allowed, HeaderOptions(standard=True, legacy=True))

    assert set(headers) == {
        "RateLimit-Limit",
        "RateLimit-Remaining",
        "RateLimit-Reset",
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
    }


def test_policy_header_when_enabled_and_present(denied: LimitResult) -> None:
    headers = build_headers(denied, HeaderOptions(policy=True))

    assert headers["RateLimit-Policy"] == "100;w=60"


def test_policy_header_omitted_without_policy(allowed: LimitResult) -> None:
    assert "RateLimit-Policy" not in build_headers(allowed, HeaderOptions(policy=True))


def test_all_families_disabled_emits_nothing(denied: LimitResult) -> None:
    options = HeaderOptions(standard=False, legacy=False, policy=False)

    assert build_headers(denied, options) == {}


def test_apply_headers_sets_response_headers(allowed: LimitResult) -> None:
    response = Response()

    returned = apply_headers(response, allowed)

    assert returned is response
    assert response.headers["RateLimit-Limit"] == "100"
    assert response.headers["RateLimit-Remaining"] == "95"


def test_options_from_settings() -> None:
    cfg = RateLimitSettings(headers_standard=False, headers_legacy=True, headers_policy=True)

    assert HeaderOptions.from_settings(cfg) == HeaderOptions(standard=False, legacy=True, policy=True)
