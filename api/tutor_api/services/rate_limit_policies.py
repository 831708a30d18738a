"""Named quotas used by the API endpoints."""

from __future__ import annotations

from typing import Dict

from tutor_api.services.rate_limiter import RateLimitPolicy

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

# General API: 100 req / 15 min
API_LIMIT = RateLimitPolicy(name="api", max=100, window_ms=15 * MINUTE_MS, message="Too many requests.")
# Auth-adjacent endpoints: 10 req / 15 min
AUTH_LIMIT = RateLimitPolicy(name="auth", max=10, window_ms=15 * MINUTE_MS)
# File uploads and parsing: 10 req / hour
UPLOAD_LIMIT = RateLimitPolicy(
    name="upload",
    max=10,
    window_ms=HOUR_MS,
    message="Too many uploads. Please try again later.",
)
# AI chat: 50 req / 15 min
CHAT_LIMIT = RateLimitPolicy(name="chat", max=50, window_ms=15 * MINUTE_MS)
# Text-to-speech: 60 req / 15 min
TTS_LIMIT = RateLimitPolicy(
    name="tts",
    max=60,
    window_ms=15 * MINUTE_MS,
    message="Too many TTS requests, please slow down.",
)

POLICIES: Dict[str, RateLimitPolicy] = {
    policy.name: policy for policy in (API_LIMIT, AUTH_LIMIT, UPLOAD_LIMIT, CHAT_LIMIT, TTS_LIMIT)
}


def get_policy(name: str) -> RateLimitPolicy:
    """Return the policy registered under ``name``."""

    try:
        return POLICIES[name]
    except KeyError:
        raise KeyError(f"Unknown rate limit policy: {name}") from None


__all__ = [
    "API_LIMIT",
    "AUTH_LIMIT",
    "CHAT_LIMIT",
    "POLICIES",
    "TTS_LIMIT",
    "UPLOAD_LIMIT",
    "get_policy",
]
