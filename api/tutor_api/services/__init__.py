"""Service layer package."""

from tutor_api.services.counter_store import CounterStoreError, MemoryCounterStore, RedisCounterStore
from tutor_api.services.rate_limiter import RateLimitExceeded, RateLimitPolicy, RateLimiter, RateLimitResult

__all__ = [
    "CounterStoreError",
    "MemoryCounterStore",
    "RateLimitExceeded",
    "RateLimitPolicy",
    "RateLimitResult",
    "RateLimiter",
    "RedisCounterStore",
]
