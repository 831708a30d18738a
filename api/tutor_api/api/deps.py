"""FastAPI dependencies for shared concerns."""

from __future__ import annotations

from typing import Callable, Literal, Optional, Protocol

from fastapi import Depends, HTTPException, Request, status

from tutor_api.api.dependencies import get_rate_limiter
from tutor_api.logging import log_rate_limit_event
from tutor_api.services.counter_store import CounterStoreError
from tutor_api.services.rate_limiter import RateLimitExceeded, RateLimitPolicy, RateLimiter, RateLimitResult
from tutor_api.settings import settings

IdentifierSource = Literal["auto", "ip", "user"]


class SupportsHeaderGet(Protocol):
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]: ...


def get_client_ip(headers: SupportsHeaderGet) -> str:
    """Return a best-effort client IP for bucketing requests.

    Forwarding headers are taken at face value, so a client that is not
    behind a trusted proxy can pick its own identifier.
    """

    forwarded = headers.get("x-forwarded-for")
    if forwarded is not None:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return "unknown"


def get_user_id(request: Request) -> Optional[str]:
    """Return the user id an upstream auth layer stored on the request, if any."""

    user_id = getattr(request.state, "user_id", None)
    return str(user_id) if user_id else None


def get_rate_limit_identifier(request: Request, source: IdentifierSource = "auto") -> str:
    """Prefer the authenticated user id, falling back to the client IP."""

    if source == "ip":
        return get_client_ip(request.headers)

    user_id = get_user_id(request)
    if user_id:
        return user_id
    if source == "user":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return get_client_ip(request.headers)


def rate_limit(
    policy: RateLimitPolicy,
    *,
    key: IdentifierSource = "auto",
) -> Callable[..., Optional[RateLimitResult]]:
    """Build a dependency that enforces ``policy`` for the current request."""

    def _enforce(
        request: Request,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> Optional[RateLimitResult]:
        identifier = get_rate_limit_identifier(request, key)
        try:
            result = limiter.check(identifier, policy)
        except RateLimitExceeded as exc:
            log_rate_limit_event(
                "rate_limit_exceeded",
                policy=policy.name,
                identifier=identifier,
                backend=limiter.backend,
                retry_after_seconds=exc.retry_after_seconds,
            )
            raise
        except CounterStoreError as exc:
            if not settings.rate_limit_fail_open:
                raise
            log_rate_limit_event(
                "rate_limit_store_unavailable",
                policy=policy.name,
                identifier=identifier,
                backend=limiter.backend,
                level="WARNING",
                error=str(exc),
            )
            result = None
        return result

    return _enforce
