"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures middleware, exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.adapters.repository.password_reset import PostgresPasswordResetRepository
from src.adapters.repository.postgres import create_pool, run_migrations
from src.api.middleware import GatekeeperMiddleware
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.exceptions import UpstreamUnavailable, ValidationError
from src.domain.recovery import utc_now

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Identity & Credential Recovery API v1 - Register, sign in and "
        "reset passwords with one-time codes",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Configures logging
    - Creates database connection pool on startup
    - Runs migrations and purges expired reset requests on startup
    - Closes connection pool on shutdown
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting application...")
    logger.info("Connecting to database...")

    pool = create_pool(settings)

    logger.info("Running database migrations...")
    run_migrations(pool)

    resets = PostgresPasswordResetRepository(
        pool, retry_backoff=settings.upstream_retry_backoff_seconds
    )
    purged = resets.purge_expired(utc_now())
    logger.info("Purged %d expired password reset request(s)", purged)

    # Store pool in app state for dependency injection
    app.state.pool = pool

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    pool.close()
    logger.info("Database connection pool closed")


async def upstream_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """Generic 'try again' response; the detail was logged at the boundary."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable. Please try again."},
    )


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Domain validation failures (malformed email, weak password) are user-facing."""
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc)},
    )


def create_app() -> FastAPI:
    """Build the application with routes, middleware and error handlers."""
    application = FastAPI(
        title="identity-recovery",
        description="Identity & Credential Recovery API - Registration saga, "
        "login sessions and OTP-based password reset",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    application.include_router(v1_router, prefix="/v1")
    application.add_middleware(GatekeeperMiddleware)
    application.add_exception_handler(UpstreamUnavailable, upstream_unavailable_handler)
    application.add_exception_handler(ValidationError, validation_error_handler)

    @application.get("/health")
    def health_check(request: Request) -> dict[str, str]:
        """
        Health check endpoint with database validation.

        Returns 200 OK if application and database are healthy.
        Raises exception if database connection fails.
        """
        pool = request.app.state.pool
        with pool.connection() as conn:
            conn.execute("SELECT 1")

        return {"status": "healthy"}

    return application


app = create_app()
