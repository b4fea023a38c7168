"""Rate limiter interfaces.

The API depends on this abstraction rather than the concrete in-memory
limiter so a shared store could be plugged in later without touching routes
or services.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the attempt was admitted (and recorded).
        limit: Max admitted attempts per window.
        remaining: Attempts still available in the window after this call.
        retry_after_ms: Milliseconds until a slot frees up when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after_ms: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, key: str) -> RateLimitResult:
        """Decide admission for ``key`` and record it when admitted.

        Args:
            key: Opaque identifier of the actor (e.g., ``ip:1.2.3.4``).

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    def is_allowed(self, key: str) -> bool:
        """Return True when the attempt for ``key`` is admitted."""
        return self.check(key).allowed

    @abstractmethod
    def sweep(self) -> int:
        """Drop keys with no history left in the window; return how many."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str | None = None) -> None:
        """Forget history for one key, or for every key when omitted."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Return lightweight counters without exposing keys."""
        raise NotImplementedError
