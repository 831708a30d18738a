"""Counter backends used by the rate limiter.

Two stores implement the same ``increment`` contract:

* ``RedisCounterStore`` keeps one key per aligned window bucket in a shared
  Redis (native protocol or REST). Counts are consistent across processes
  because ``INCR`` is atomic.
* ``MemoryCounterStore`` keeps ``{count, reset}`` entries in process memory.
  Its window starts at an identifier's first request rather than on a bucket
  boundary, and entries are only replaced once expired, never evicted.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Protocol

import httpx
from loguru import logger
from redis import Redis, RedisError

from tutor_api.services.upstash import UpstashError, UpstashRedis

if TYPE_CHECKING:
    from tutor_api.services.rate_limiter import RateLimitPolicy
    from tutor_api.settings import Settings


Clock = Callable[[], int]


def now_ms() -> int:
    return time.time_ns() // 1_000_000


class CounterStoreError(Exception):
    """Raised when the shared counter store cannot complete an operation."""


@dataclass(frozen=True)
class CounterSnapshot:
    count: int
    reset_in_ms: int


class CounterStore(Protocol):
    backend: str

    def increment(self, policy: "RateLimitPolicy", identifier: str) -> CounterSnapshot: ...

    def ping(self) -> bool: ...


class SupportsRedis(Protocol):
    """Subset of Redis methods used by the limiter."""

    def incr(self, name: str) -> int: ...

    def expire(self, name: str, time: int) -> Any: ...

    def ping(self) -> Any: ...


class RedisCounterStore:
    """Fixed, bucket-aligned windows stored in a shared Redis."""

    def __init__(self, client: SupportsRedis, *, clock: Clock = now_ms, backend: str = "redis") -> None:
        self._client = client
        self._clock = clock
        self.backend = backend

    @staticmethod
    def key_for(policy: "RateLimitPolicy", identifier: str, bucket: int) -> str:
        return f"rl:{policy.name}:{identifier}:{bucket}"

    def increment(self, policy: "RateLimitPolicy", identifier: str) -> CounterSnapshot:
        now = self._clock()
        bucket = now // policy.window_ms
        key = self.key_for(policy, identifier, bucket)
        try:
            count = int(self._client.incr(key))
            if count == 1:
                # Rounded up so the key never outlives its bucket by less than a second.
                self._client.expire(key, math.ceil(policy.window_ms / 1000))
        except (RedisError, httpx.HTTPError, UpstashError) as exc:
            raise CounterStoreError(f"{self.backend} counter store failed: {exc}") from exc

        reset_in_ms = (bucket + 1) * policy.window_ms - now
        return CounterSnapshot(count=count, reset_in_ms=reset_in_ms)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Rate limit store health check failed: {}", exc)
            return False


@dataclass
class _Entry:
    count: int
    reset: int


class MemoryCounterStore:
    """Per-process counters; windows start at each identifier's first request."""

    backend = "memory"

    def __init__(self, *, clock: Clock = now_ms) -> None:
        self._clock = clock
        self._stores: Dict[str, Dict[str, _Entry]] = {}
        self._lock = threading.Lock()

    def increment(self, policy: "RateLimitPolicy", identifier: str) -> CounterSnapshot:
        now = self._clock()
        with self._lock:
            store = self._stores.setdefault(policy.name, {})
            entry = store.get(identifier)
            if entry is None or now > entry.reset:
                store[identifier] = _Entry(count=1, reset=now + policy.window_ms)
                return CounterSnapshot(count=1, reset_in_ms=policy.window_ms)
            entry.count += 1
            return CounterSnapshot(count=entry.count, reset_in_ms=entry.reset - now)

    def ping(self) -> bool:
        return True

    def clear(self) -> None:
        with self._lock:
            self._stores.clear()


def resolve_counter_store(settings_obj: "Settings", *, clock: Clock = now_ms) -> CounterStore:
    """Pick the shared store when configured, otherwise the in-process one.

    Never raises: a client that cannot be constructed is logged and treated
    exactly like missing configuration.
    """

    upstash = settings_obj.upstash
    if upstash.configured:
        try:
            client = UpstashRedis(upstash.rest_url, upstash.rest_token, timeout=upstash.timeout_seconds)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Rate limiting falling back to in-process storage: {}", exc)
        else:
            logger.info("Rate limiting backed by Upstash REST store")
            return RedisCounterStore(client, clock=clock, backend="upstash")
    elif settings_obj.redis_url:
        try:
            client = Redis.from_url(settings_obj.redis_url, decode_responses=True)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Rate limiting falling back to in-process storage: {}", exc)
        else:
            logger.info("Rate limiting backed by Redis")
            return RedisCounterStore(client, clock=clock)
    else:
        logger.info("Rate limiting using in-process storage; counters are not shared between instances")

    return MemoryCounterStore(clock=clock)


__all__ = [
    "CounterSnapshot",
    "CounterStore",
    "CounterStoreError",
    "MemoryCounterStore",
    "RedisCounterStore",
    "SupportsRedis",
    "now_ms",
    "resolve_counter_store",
]
