"""Tests for limiter policies, the registry and client key derivation."""

import logging
import math
import time
from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.config import AppSettings
from app.core.errors import RateLimitAppError
from app.core.rate_limit import (
    AUTH_POLICY,
    GENERAL_POLICY,
    RateLimiterRegistry,
    RateLimitPolicy,
    client_key_from_headers,
    consume_or_raise,
    policies_from_settings,
)


class TestPolicies:
    def test_defaults_match_reference_policies(self) -> None:
        policies = policies_from_settings(AppSettings())

        assert policies[GENERAL_POLICY] == RateLimitPolicy(GENERAL_POLICY, 60, 60_000)
        assert policies[AUTH_POLICY] == RateLimitPolicy(AUTH_POLICY, 5, 300_000)

    def test_policies_follow_settings(self) -> None:
        cfg = AppSettings(
            rate_limit_requests=10,
            rate_limit_window_ms=1_000,
            auth_rate_limit_requests=2,
            auth_rate_limit_window_ms=5_000,
        )

        policies = policies_from_settings(cfg)

        assert policies[GENERAL_POLICY].max_requests == 10
        assert policies[GENERAL_POLICY].window_ms == 1_000
        assert policies[AUTH_POLICY].max_requests == 2
        assert policies[AUTH_POLICY].window_ms == 5_000


class TestRegistry:
    def test_builds_independent_limiters(self, clock: Mock) -> None:
        registry = RateLimiterRegistry.from_policies(
            {
                "a": RateLimitPolicy("a", 1, 1000),
                "b": RateLimitPolicy("b", 1, 1000),
            },
            clock=clock,
        )

        assert registry.get("a").is_allowed("k") is True
        assert registry.get("a").is_allowed("k") is False
        assert registry.get("b").is_allowed("k") is True
        assert registry.names() == ["a", "b"]

    def test_unknown_policy_raises_key_error(self, clock: Mock) -> None:
        registry = RateLimiterRegistry.from_policies(policies_from_settings(AppSettings()), clock=clock)

        with pytest.raises(KeyError, match="missing"):
            registry.get("missing")

    def test_sweep_and_stats_cover_all_policies(self, clock: Mock) -> None:
        registry = RateLimiterRegistry.from_policies(policies_from_settings(AppSettings()), clock=clock)
        registry.get(GENERAL_POLICY).is_allowed("ip:1")
        registry.get(AUTH_POLICY).is_allowed("auth:ip:1")

        stats = registry.stats()
        assert stats[GENERAL_POLICY]["tracked_keys"] == 1
        assert stats[AUTH_POLICY]["max_requests"] == 5

        clock.return_value = 60_000.0
        assert registry.sweep() == {GENERAL_POLICY: 1, AUTH_POLICY: 0}

        clock.return_value = 300_000.0
        assert registry.sweep() == {GENERAL_POLICY: 0, AUTH_POLICY: 1}


class TestClientKey:
    def test_cloudflare_header_wins(self) -> None:
        headers = {
            "cf-connecting-ip": "203.0.113.1",
            "x-real-ip": "203.0.113.2",
            "x-forwarded-for": "203.0.113.3",
        }
        key = client_key_from_headers(headers, "10.0.0.1", trust_proxy_headers=True)
        assert key == "ip:203.0.113.1"

    def test_forwarding_headers_ignored_unless_trusted(self) -> None:
        headers = {
            "cf-connecting-ip": "203.0.113.1",
            "x-real-ip": "203.0.113.2",
            "x-forwarded-for": "203.0.113.3",
        }
        assert client_key_from_headers(headers, "10.0.0.1") == "ip:10.0.0.1"

    def test_real_ip_before_forwarded_for(self) -> None:
        headers = {"x-real-ip": "203.0.113.2", "x-forwarded-for": "203.0.113.3"}
        assert client_key_from_headers(headers, None, trust_proxy_headers=True) == "ip:203.0.113.2"

    def test_first_forwarded_hop_is_used(self) -> None:
        headers = {"x-forwarded-for": " 198.51.100.7 , 10.0.0.2, 10.0.0.3"}
        assert client_key_from_headers(
            headers, "10.0.0.1", trust_proxy_headers=True
        ) == "ip:198.51.100.7"

    def test_falls_back_to_peer_then_unknown(self) -> None:
        assert client_key_from_headers({}, "10.0.0.1") == "ip:10.0.0.1"
        assert client_key_from_headers(
            {"x-forwarded-for": ""}, None, trust_proxy_headers=True
        ) == "ip:unknown"


class TestConsumeOrRaise:
    def test_raises_with_retry_details(self, clock: Mock, caplog: pytest.LogCaptureFixture) -> None:
        limiter = InMemorySlidingWindowRateLimiter(max_requests=1, window_ms=1000, clock=clock)
        consume_or_raise(limiter, "ip:1", policy="test")

        clock.return_value = 250.0
        with caplog.at_level(logging.WARNING, logger="app.core.rate_limit"):
            with pytest.raises(RateLimitAppError) as exc_info:
                consume_or_raise(limiter, "ip:1", policy="test")

        assert exc_info.value.code == "rate_limit_exceeded"
        details = exc_info.value.details
        assert details["limit"] == 1
        assert details["remaining"] == 0
        assert details["retry_after_ms"] == 750
        assert details["reset_at"] >= math.ceil(time.time())
        assert "Too many attempts" in exc_info.value.message

        record = next(r for r in caplog.records if r.getMessage() == "rate_limit.exceeded")
        assert record.policy == "test"
        assert record.key_hash != "ip:1"
        assert len(record.key_hash) == 16
