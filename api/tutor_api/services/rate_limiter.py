"""Fixed-window request limiter shared by every throttled endpoint."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from tutor_api.services.counter_store import CounterStore


DEFAULT_MESSAGE = "Too many requests. Please try again later."


class RateLimitExceeded(Exception):
    """Raised when a caller exceeds the configured rate limit."""

    def __init__(self, message: str, retry_after_seconds: int, result: Optional[RateLimitResult] = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds
        self.result = result

    def headers(self) -> Dict[str, str]:
        if self.result is not None:
            return self.result.headers()
        return {"Retry-After": str(self.retry_after_seconds)}


@dataclass(frozen=True)
class RateLimitPolicy:
    """A named quota: at most ``max`` requests per ``window_ms`` milliseconds."""

    name: str
    max: int
    window_ms: int
    message: str = DEFAULT_MESSAGE

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Rate limit policy requires a name.")
        # Shared-store keys are "rl:<name>:<identifier>:<bucket>"; identifiers (IPv6) may hold colons.
        if ":" in self.name:
            raise ValueError(f"Policy name {self.name!r} must not contain ':'.")
        if self.max < 1:
            raise ValueError(f"Policy {self.name!r}: max must be >= 1, got {self.max}.")
        if self.window_ms < 1:
            raise ValueError(f"Policy {self.name!r}: window_ms must be >= 1, got {self.window_ms}.")

    @property
    def window_seconds(self) -> int:
        return math.ceil(self.window_ms / 1000)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in_ms: int

    @property
    def retry_after_seconds(self) -> int:
        return math.ceil(self.reset_in_ms / 1000)

    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after_seconds)}


class RateLimiter:
    """Evaluate policies against whichever counter store is active."""

    def __init__(self, store: CounterStore) -> None:
        self._store = store

    @property
    def backend(self) -> str:
        return self._store.backend

    @property
    def store(self) -> CounterStore:
        return self._store

    def evaluate(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Count one request for ``identifier`` under ``policy``.

        The request that pushes the count past ``policy.max`` is itself
        rejected, and rejected requests still count. Store failures are not
        handled here; callers decide whether to fail open or closed.
        """

        if not identifier:
            raise ValueError("Rate limit identifier must be a non-empty string.")

        snapshot = self._store.increment(policy, identifier)
        allowed = snapshot.count <= policy.max
        remaining = max(0, policy.max - snapshot.count)
        reset_in_ms = min(max(0, snapshot.reset_in_ms), policy.window_ms)

        if not allowed:
            logger.debug(
                "Rate limit {} exceeded for {} ({} > {})",
                policy.name,
                identifier,
                snapshot.count,
                policy.max,
            )
        return RateLimitResult(allowed=allowed, remaining=remaining, reset_in_ms=reset_in_ms)

    def check(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Evaluate the policy and raise when the caller is over the limit."""

        result = self.evaluate(identifier, policy)
        if not result.allowed:
            raise RateLimitExceeded(policy.message, retry_after_seconds=result.retry_after_seconds, result=result)
        return result


__all__ = [
    "DEFAULT_MESSAGE",
    "RateLimitExceeded",
    "RateLimitPolicy",
    "RateLimitResult",
    "RateLimiter",
]
