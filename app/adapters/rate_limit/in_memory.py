"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: the read-prune-compare-append sequence runs under a lock.
- Expired timestamps are pruned lazily on access; ``sweep`` removes idle keys.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any, Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter bounding admitted attempts per key in a trailing window.

    Each key keeps the timestamps of its admitted attempts. On every check the
    timestamps at least ``window_ms`` old are dropped; the attempt is admitted
    only while fewer than ``max_requests`` remain. Rejected attempts are never
    recorded, so hammering a blocked key does not extend the block.

    Important:
        State is process-local. Distinct instances never share budget, which is
        how callers express different policies (general traffic vs. sign-in).
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_ms: int,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_requests: Maximum admitted attempts per key per window.
            window_ms: Window length in milliseconds.
            clock: Time source returning the current instant in milliseconds.

        Raises:
            ValueError: If max_requests or window_ms are not positive.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        self._max_requests = max_requests
        self._window_ms = window_ms
        self._clock = clock
        self._lock = threading.RLock()
        self._history: dict[str, deque[float]] = {}

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemorySlidingWindowRateLimiter(max_requests={self._max_requests}, "
            f"window_ms={self._window_ms}, tracked_keys={len(self._history)})"
        )

    def _prune_locked(self, timestamps: deque[float], now: float) -> None:
        # Timestamps are appended in arrival order, so expired ones sit at the front.
        while timestamps and now - timestamps[0] >= self._window_ms:
            timestamps.popleft()

    def _count_valid(self, timestamps: deque[float], now: float) -> int:
        return sum(1 for t in timestamps if now - t < self._window_ms)

    def check(self, key: str) -> RateLimitResult:
        """Check and record an attempt for ``key``.

        The stored history for the key is always replaced by its pruned form;
        ``now`` is appended only when the attempt is admitted.

        Args:
            key: Any string; the empty string is a valid key.

        Returns:
            RateLimitResult with the admission decision and remaining budget.
        """
        with self._lock:
            now = self._clock()
            timestamps = self._history.get(key)
            if timestamps is None:
                timestamps = deque()
                self._history[key] = timestamps

            self._prune_locked(timestamps, now)

            if len(timestamps) >= self._max_requests:
                retry_after = int(timestamps[0] + self._window_ms - now)
                return RateLimitResult(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    retry_after_ms=max(1, retry_after),
                )

            timestamps.append(now)
            return RateLimitResult(
                allowed=True,
                limit=self._max_requests,
                remaining=self._max_requests - len(timestamps),
                retry_after_ms=None,
            )

    def sweep(self) -> int:
        """Prune every key and delete the ones left without history.

        Returns:
            Number of keys removed.
        """
        with self._lock:
            now = self._clock()
            idle_keys = []
            for key, timestamps in self._history.items():
                self._prune_locked(timestamps, now)
                if not timestamps:
                    idle_keys.append(key)
            for key in idle_keys:
                del self._history[key]
            return len(idle_keys)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._history.clear()
            else:
                self._history.pop(key, None)

    def stats(self) -> dict[str, Any]:
        """Return counters computed against the current clock.

        Does not prune; reading stats never changes admission outcomes.
        """
        with self._lock:
            now = self._clock()
            counts = [self._count_valid(ts, now) for ts in self._history.values()]
            return {
                "max_requests": self._max_requests,
                "window_ms": self._window_ms,
                "tracked_keys": len(counts),
                "admitted_in_window": sum(counts),
                "saturated_keys": sum(1 for c in counts if c >= self._max_requests),
            }
