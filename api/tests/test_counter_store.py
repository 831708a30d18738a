from __future__ import annotations

import httpx
import pytest
from redis import ConnectionError as RedisConnectionError

from tutor_api.services import counter_store as counter_store_module
from tutor_api.services.counter_store import (
    CounterStoreError,
    MemoryCounterStore,
    RedisCounterStore,
    resolve_counter_store,
)
from tutor_api.services.rate_limiter import RateLimitPolicy
from tutor_api.services.upstash import UpstashError
from tutor_api.settings import Settings


POLICY = RateLimitPolicy(name="chat", max=50, window_ms=1_500)


class FailingRedis:
    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    def incr(self, name: str) -> int:
        raise self._exc

    def expire(self, name: str, time: int) -> bool:
        raise self._exc

    def ping(self) -> bool:
        raise self._exc


def test_redis_key_is_namespaced_by_policy_identifier_and_bucket(redis_store, fake_redis, clock):
    redis_store.increment(POLICY, "user-1")

    bucket = clock.now // POLICY.window_ms
    assert list(fake_redis.values) == [f"rl:chat:user-1:{bucket}"]


def test_redis_expiry_set_once_and_rounded_up(redis_store, fake_redis):
    for _ in range(3):
        redis_store.increment(POLICY, "user-1")

    assert len(fake_redis.expirations) == 1
    _, ttl = fake_redis.expirations[0]
    assert ttl == 2


def test_redis_uses_new_key_after_bucket_boundary(redis_store, fake_redis, clock):
    redis_store.increment(POLICY, "user-1")
    clock.advance(POLICY.window_ms)
    snapshot = redis_store.increment(POLICY, "user-1")

    assert snapshot.count == 1
    assert len(fake_redis.values) == 2


@pytest.mark.parametrize(
    "exc",
    [
        RedisConnectionError("refused"),
        httpx.ConnectError("unreachable"),
        UpstashError("WRONGTYPE"),
    ],
)
def test_redis_failures_raise_counter_store_error(exc, clock):
    store = RedisCounterStore(FailingRedis(exc), clock=clock)

    with pytest.raises(CounterStoreError):
        store.increment(POLICY, "user-1")


def test_redis_ping_reports_failure(clock):
    store = RedisCounterStore(FailingRedis(RedisConnectionError("down")), clock=clock)

    assert store.ping() is False


def test_memory_store_clear_resets_counters(memory_store):
    memory_store.increment(POLICY, "user-1")
    memory_store.increment(POLICY, "user-1")
    memory_store.clear()

    assert memory_store.increment(POLICY, "user-1").count == 1


def test_memory_store_separates_policies_with_same_identifier(memory_store):
    other = RateLimitPolicy(name="upload", max=10, window_ms=1_500)

    memory_store.increment(POLICY, "user-1")
    memory_store.increment(POLICY, "user-1")

    assert memory_store.increment(other, "user-1").count == 1


def _settings(**env: str) -> Settings:
    return Settings(**env)


def test_resolve_without_configuration_uses_memory():
    store = resolve_counter_store(_settings())

    assert isinstance(store, MemoryCounterStore)
    assert store.backend == "memory"


@pytest.mark.parametrize(
    "env",
    [
        {"UPSTASH_REDIS_REST_URL": "https://example.upstash.io"},
        {"UPSTASH_REDIS_REST_TOKEN": "token"},
        {"UPSTASH_REDIS_REST_URL": "  ", "UPSTASH_REDIS_REST_TOKEN": "token"},
    ],
)
def test_resolve_with_partial_rest_configuration_uses_memory(env):
    store = resolve_counter_store(_settings(**env))

    assert isinstance(store, MemoryCounterStore)


def test_resolve_with_rest_configuration_uses_upstash():
    store = resolve_counter_store(
        _settings(UPSTASH_REDIS_REST_URL="https://example.upstash.io", UPSTASH_REDIS_REST_TOKEN="token")
    )

    assert isinstance(store, RedisCounterStore)
    assert store.backend == "upstash"


def test_resolve_with_malformed_rest_url_falls_back():
    store = resolve_counter_store(
        _settings(UPSTASH_REDIS_REST_URL="not a url", UPSTASH_REDIS_REST_TOKEN="token")
    )

    assert isinstance(store, MemoryCounterStore)


def test_resolve_with_redis_url_uses_redis():
    store = resolve_counter_store(_settings(RATE_LIMIT_REDIS_URL="redis://localhost:6379/0"))

    assert isinstance(store, RedisCounterStore)
    assert store.backend == "redis"


def test_resolve_swallows_client_construction_errors(monkeypatch):
    def _boom(*_args, **_kwargs):
        raise RuntimeError("bad credentials")

    monkeypatch.setattr(counter_store_module.Redis, "from_url", _boom)

    store = resolve_counter_store(_settings(RATE_LIMIT_REDIS_URL="redis://localhost:6379/0"))

    assert isinstance(store, MemoryCounterStore)
