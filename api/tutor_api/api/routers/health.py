"""Health and readiness checks for the API."""

from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends

from tutor_api.api.dependencies import get_rate_limiter
from tutor_api.services.rate_limiter import RateLimiter

router = APIRouter(tags=["health"])


def _check_rate_limit_store(limiter: RateLimiter) -> str:
    return "ok" if limiter.store.ping() else "fail"


@router.get("/health")
def health() -> Dict[str, str]:
    """Simple health endpoint for legacy probes."""

    return {"status": "ok"}


@router.get("/healthz")
def healthz(limiter: RateLimiter = Depends(get_rate_limiter)) -> Dict[str, str]:
    """Report which counter store is active and whether it answers."""

    return {
        "rate_limit_backend": limiter.backend,
        "rate_limit_store": _check_rate_limit_store(limiter),
    }
