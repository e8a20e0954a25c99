"""
FastAPI application factory for the idpsync API server.

The lifespan handler reconciles the identity provider registry before the
server accepts requests.
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from idpsync import __version__
from idpsync.config import settings
from idpsync.db.session import close_db, init_db, session_factory
from idpsync.logging_config import configure_logging, get_logger
from idpsync.services.bootstrap import run_bootstrap
from idpsync.snapshot import ConfigSnapshot

from .health import router as health_router
from .routers.identity_providers import router as identity_providers_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting idpsync API server", version=__version__)

    await run_in_threadpool(init_db)

    snapshot = ConfigSnapshot.from_settings(settings, os.environ)
    providers = await run_in_threadpool(run_bootstrap, session_factory, snapshot)
    logger.info("Identity provider registry ready", count=len(providers))

    yield

    # Shutdown
    logger.info("Shutting down idpsync API server")
    await run_in_threadpool(close_db)


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="idpsync API",
        description="Identity provider registry bootstrap",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next: Any) -> Any:
        """Add request ID to context for logging correlation."""
        request_id = request.headers.get("X-Request-ID")
        if request_id:
            structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)

        if request_id:
            response.headers["X-Request-ID"] = request_id
            structlog.contextvars.unbind_contextvars("request_id")

        return response

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Health endpoints (no prefix)
    app.include_router(health_router)

    # API v1 routers
    app.include_router(identity_providers_router, prefix=settings.api_prefix)

    return app


# Application instance
app = create_application()
