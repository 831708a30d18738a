from __future__ import annotations

from typing import Dict, List, Tuple

import pytest

from tutor_api.services.counter_store import MemoryCounterStore, RedisCounterStore
from tutor_api.services.rate_limiter import RateLimiter


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


class FakeRedis:
    """In-memory stand-in for the INCR/EXPIRE subset of Redis."""

    def __init__(self) -> None:
        self.values: Dict[str, int] = {}
        self.expirations: List[Tuple[str, int]] = []

    def incr(self, name: str) -> int:
        self.values[name] = self.values.get(name, 0) + 1
        return self.values[name]

    def expire(self, name: str, time: int) -> bool:
        self.expirations.append((name, time))
        return True

    def ping(self) -> bool:
        return True


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_store(clock: FakeClock) -> MemoryCounterStore:
    return MemoryCounterStore(clock=clock)


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def redis_store(fake_redis: FakeRedis, clock: FakeClock) -> RedisCounterStore:
    return RedisCounterStore(fake_redis, clock=clock)


@pytest.fixture(params=["memory", "redis"])
def limiter(request, memory_store: MemoryCounterStore, redis_store: RedisCounterStore) -> RateLimiter:
    store = memory_store if request.param == "memory" else redis_store
    return RateLimiter(store)
