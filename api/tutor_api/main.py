"""FastAPI application entrypoint with structured logging."""

from __future__ import annotations

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from tutor_api.api.routers.health import router as health_router
from tutor_api.logging import configure_logging, correlation_scope
from tutor_api.services.counter_store import CounterStoreError
from tutor_api.services.rate_limiter import RateLimitExceeded
from tutor_api.settings import settings

configure_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    application = FastAPI(title="Tutor API", version="0.1.0")
    application.include_router(health_router)

    @application.exception_handler(RateLimitExceeded)
    async def handle_rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"error": str(exc)},
            headers=exc.headers(),
        )

    @application.exception_handler(CounterStoreError)
    async def handle_counter_store_error(request: Request, exc: CounterStoreError) -> JSONResponse:
        logger.error("Rate limit store unavailable: {}", exc)
        return JSONResponse(status_code=503, content={"error": "Rate limiter unavailable."})

    @application.middleware("http")
    async def inject_correlation_id(request: Request, call_next):
        correlation_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        with correlation_scope(correlation_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        return response

    logger.info("Running environment: {}", settings.environment)
    return application


app = create_app()
