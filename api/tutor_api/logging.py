"""Logging utilities providing JSON output and correlation IDs."""

from __future__ import annotations

import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Generator, Optional

from loguru import logger

_CORRELATION_ID: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru to emit JSON logs to stdout."""

    logger.remove()
    logger.add(sys.stdout, level=level.upper(), enqueue=True, serialize=True, backtrace=False, diagnose=False)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Generator[None, None, None]:
    """Context manager that sets a correlation ID for the duration of the scope."""

    cid = correlation_id or _CORRELATION_ID.get() or str(uuid.uuid4())
    token = _CORRELATION_ID.set(cid)
    with logger.contextualize(correlation_id=cid):
        try:
            yield
        finally:
            _CORRELATION_ID.reset(token)


def log_rate_limit_event(
    event: str,
    *,
    policy: str,
    identifier: str,
    backend: str,
    level: str = "INFO",
    **extra: Any,
) -> None:
    """Emit a structured log line for a rate limit decision."""

    payload: Dict[str, Any] = {
        "event": event,
        "policy": policy,
        "identifier": identifier,
        "backend": backend,
    }
    payload.update({key: value for key, value in extra.items() if value is not None})

    logger.bind(**payload).log(level, event)


__all__ = [
    "configure_logging",
    "correlation_scope",
    "log_rate_limit_event",
]
