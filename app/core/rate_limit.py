"""Rate limiting policies and their FastAPI wiring.

Limiters are owned by a ``RateLimiterRegistry`` that the app factory stores
on ``app.state.rate_limiters``; dependencies read it from the request, so
tests can build an app with a fresh registry and a controllable clock.

Policies:
- ``general``: every guarded endpoint, keyed by client address.
- ``auth``: credential submissions (sign-in, sign-up, resend), stricter.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import (
    InMemorySlidingWindowRateLimiter,
    monotonic_ms,
)
from app.core.config import AppSettings, settings
from app.core.errors import RateLimitAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

GENERAL_POLICY = "general"
AUTH_POLICY = "auth"

TOO_MANY_ATTEMPTS_MESSAGE = "Too many attempts. Please try again later."

# Checked in order; the first non-empty value wins
_CLIENT_IP_HEADERS = ("cf-connecting-ip", "x-real-ip", "x-forwarded-for")


@dataclass(frozen=True)
class RateLimitPolicy:
    """Named admission policy: ``max_requests`` per ``window_ms``."""

    name: str
    max_requests: int
    window_ms: int


def policies_from_settings(app_settings: AppSettings | None = None) -> dict[str, RateLimitPolicy]:
    """Build the general and auth policies from configuration."""

    cfg = app_settings or settings.app
    return {
        GENERAL_POLICY: RateLimitPolicy(
            name=GENERAL_POLICY,
            max_requests=cfg.rate_limit_requests,
            window_ms=cfg.rate_limit_window_ms,
        ),
        AUTH_POLICY: RateLimitPolicy(
            name=AUTH_POLICY,
            max_requests=cfg.auth_rate_limit_requests,
            window_ms=cfg.auth_rate_limit_window_ms,
        ),
    }


class RateLimiterRegistry:
    """One independent limiter per policy name."""

    def __init__(self, limiters: Mapping[str, AbstractRateLimiter]) -> None:
        self._limiters = dict(limiters)

    @classmethod
    def from_policies(
        cls,
        policies: Mapping[str, RateLimitPolicy],
        *,
        clock: Callable[[], float] = monotonic_ms,
    ) -> "RateLimiterRegistry":
        return cls(
            {
                name: InMemorySlidingWindowRateLimiter(
                    max_requests=policy.max_requests,
                    window_ms=policy.window_ms,
                    clock=clock,
                )
                for name, policy in policies.items()
            }
        )

    def get(self, name: str) -> AbstractRateLimiter:
        """Return the limiter for ``name``.

        Raises:
            KeyError: If no such policy is registered.
        """
        try:
            return self._limiters[name]
        except KeyError:
            raise KeyError(f"Rate limit policy '{name}' not found") from None

    def names(self) -> list[str]:
        return sorted(self._limiters)

    def sweep(self) -> dict[str, int]:
        """Sweep idle keys from every limiter; return removals per policy."""
        return {name: limiter.sweep() for name, limiter in self._limiters.items()}

    def stats(self) -> dict[str, dict[str, Any]]:
        return {name: limiter.stats() for name, limiter in self._limiters.items()}


def client_key_from_headers(
    headers: Mapping[str, str],
    fallback_host: str | None,
    *,
    trust_proxy_headers: bool = False,
) -> str:
    """Derive the limiter key for a client.

    Proxy/CDN headers are client-supplied, so they are only honoured when the
    service sits behind a proxy that overwrites them
    (``APP_TRUST_PROXY_HEADERS=true``). Otherwise a direct caller could rotate
    them to get a fresh budget, and the socket peer address is used instead.
    When trusted, they take precedence over the peer address and only the
    first hop of ``X-Forwarded-For`` is used.

    Args:
        headers: Request headers (case-insensitive mapping expected).
        fallback_host: Peer address from the connection, if known.
        trust_proxy_headers: Whether forwarding headers may be believed.

    Returns:
        Namespaced key such as ``ip:203.0.113.7``.
    """

    if trust_proxy_headers:
        for header in _CLIENT_IP_HEADERS:
            value = headers.get(header)
            if value:
                address = value.split(",")[0].strip()
                if address:
                    return f"ip:{address}"
    return f"ip:{fallback_host or 'unknown'}"


def client_key(request: Request) -> str:
    host = request.client.host if request.client else None
    return client_key_from_headers(
        request.headers, host, trust_proxy_headers=settings.app.trust_proxy_headers
    )


def get_registry(request: Request) -> RateLimiterRegistry:
    return request.app.state.rate_limiters


def consume_or_raise(limiter: AbstractRateLimiter, key: str, *, policy: str) -> None:
    """Record an attempt for ``key`` or raise when the budget is exhausted.

    Raises:
        RateLimitAppError: When the limiter rejects the attempt.
    """

    result = limiter.check(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "policy": policy,
                "key_hash": hash_identifier(key),
                "remaining": result.remaining,
            },
        )
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "policy": policy,
            "key_hash": hash_identifier(key),
            "limit": result.limit,
            "retry_after_ms": result.retry_after_ms,
        },
    )
    retry_after_ms = result.retry_after_ms or 0
    raise RateLimitAppError(
        code="rate_limit_exceeded",
        message=TOO_MANY_ATTEMPTS_MESSAGE,
        details={
            "limit": result.limit,
            "remaining": result.remaining,
            "retry_after_ms": retry_after_ms,
            "reset_at": math.ceil(time.time() + retry_after_ms / 1000),
        },
    )


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency applying the general policy to the caller.

    Raises:
        RateLimitAppError: 429 when the caller exceeded the general policy.
    """

    if not settings.app.rate_limit_enabled:
        return
    limiter = get_registry(request).get(GENERAL_POLICY)
    consume_or_raise(limiter, client_key(request), policy=GENERAL_POLICY)


async def run_sweeper(registry: RateLimiterRegistry, interval_seconds: float) -> None:
    """Periodically drop idle keys until cancelled."""

    while True:
        await asyncio.sleep(interval_seconds)
        removed = registry.sweep()
        logger.info(
            "rate_limit.sweep",
            extra={"removed_keys": removed, "interval_s": interval_seconds},
        )
