"""
FastAPI application for the bakery order and quote lifecycle.

This module provides the main FastAPI application instance with CORS
configuration, health check endpoints, error handling for the order
lifecycle errors, request logging, and the periodic quote expiry sweep.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from bakery_orders.api.v1 import orders_router, quotes_router
from bakery_orders.core.config import get_settings
from bakery_orders.core.exceptions import BakeryOrdersError
from bakery_orders.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from bakery_orders.database.connection import dispose_engine, get_session
from bakery_orders.services.orders.service import OrderService

# Logging must be configured before the first logger is bound
configure_logging()
logger = get_logger(__name__)


async def expire_overdue_quotes(interval_seconds: int) -> None:
    """
    Background task expiring sent quotes past their expiry date.

    Runs every ``interval_seconds`` as the configured system actor.
    """
    settings = get_settings()

    while True:
        try:
            async with get_session() as session:
                service = OrderService(session)
                expired = await service.expire_due_quotes(settings.system_actor_id)
                logger.info("Quote expiry sweep completed", expired=len(expired))
        except Exception as e:
            logger.error(
                "Failed to expire overdue quotes",
                error=str(e),
                error_type=type(e).__name__,
            )
        await asyncio.sleep(interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the quote expiry sweep for the lifetime of the app."""
    settings = get_settings()

    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        version=settings.app_version,
    )

    expiry_task = None
    if settings.quote_expiry_interval_seconds > 0 and not settings.is_test:
        expiry_task = asyncio.create_task(
            expire_overdue_quotes(settings.quote_expiry_interval_seconds)
        )
        logger.info(
            "Quote expiry sweep started",
            interval_seconds=settings.quote_expiry_interval_seconds,
        )

    yield

    logger.info("Application shutting down")
    with log_performance(logger, "application_shutdown"):
        if expiry_task is not None:
            expiry_task.cancel()
            try:
                await expiry_task
            except asyncio.CancelledError:
                pass
            logger.info("Quote expiry sweep stopped")
        await dispose_engine()


settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Bakery order and quote lifecycle API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Bind a request id to the log context and log each request with its timing."""
    request_id = request.headers.get("X-Request-ID")
    request_id = set_request_id(request_id)

    logger.info(
        "Request received",
        method=request.method,
        path=request.url.path,
        client_host=request.client.host if request.client else None,
    )

    try:
        with log_performance(
            logger,
            "request_processing",
            method=request.method,
            path=request.url.path,
        ):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )

        return response
    except Exception as e:
        logger.error(
            "Request failed",
            method=request.method,
            path=request.url.path,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        clear_context()


@app.exception_handler(BakeryOrdersError)
async def bakery_orders_exception_handler(
    request: Request, exc: BakeryOrdersError
) -> JSONResponse:
    """
    Map order lifecycle errors to their HTTP status.

    The body carries the error kind, message and context.
    """
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        "Request rejected",
        method=request.method,
        path=request.url.path,
        error=exc.error_code,
        message=exc.message,
        status_code=exc.http_status,
    )

    content = exc.to_dict()
    content["request_id"] = get_request_id()
    return JSONResponse(status_code=exc.http_status, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors with structured error response."""
    logger.warning(
        "Request validation failed",
        method=request.method,
        path=request.url.path,
        errors=exc.errors(),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": jsonable_encoder(exc.errors()),
            "request_id": get_request_id(),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Log unexpected errors and answer 500 without internal details."""
    logger.error(
        "Unhandled exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "request_id": get_request_id(),
        },
    )


@app.get(
    "/health",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Liveness probe."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get(
    "/ready",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Readiness probe",
)
async def readiness_check():
    """
    Readiness check endpoint.

    Verifies database connectivity; returns 503 when the database is down.
    """
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(
            "Database connectivity check failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "service": settings.app_name,
                "database": "unhealthy",
            },
        )

    return {
        "status": "ready",
        "service": settings.app_name,
        "version": settings.app_version,
        "database": "healthy",
    }


app.include_router(orders_router, prefix=settings.api_v1_prefix)
app.include_router(quotes_router, prefix=settings.api_v1_prefix)
