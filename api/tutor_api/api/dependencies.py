"""Service factories and singletons used across API routes."""

from __future__ import annotations

from functools import lru_cache

from tutor_api.services.counter_store import CounterStore, resolve_counter_store
from tutor_api.services.rate_limiter import RateLimiter
from tutor_api.settings import settings


@lru_cache(maxsize=1)
def _counter_store() -> CounterStore:
    return resolve_counter_store(settings)


@lru_cache(maxsize=1)
def _rate_limiter() -> RateLimiter:
    return RateLimiter(_counter_store())


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter()
