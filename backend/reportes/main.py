"""
Reportes de Entrega - FastAPI Application Entry Point

This module initializes the FastAPI application with all middleware,
routes, the media mount and lifecycle event handlers.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from reportes.core.config import settings
from reportes.core.database import init_db, close_db, async_session_maker
from reportes.core.logging_config import setup_logging
from reportes.middleware.request_id import RequestIDMiddleware
from reportes.middleware.logging import LoggingMiddleware
from reportes.middleware.security_headers import SecurityHeadersMiddleware
from reportes.middleware.rate_limit import RateLimitMiddleware
from reportes.services.reporte_state import expire_overdue

logger = logging.getLogger(__name__)


async def sweep_overdue_reportes(interval_seconds: int) -> None:
    """
    Time out overdue submitted reportes every interval_seconds.

    Runs until cancelled. A failing sweep is logged and retried on the
    next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with async_session_maker() as session:
                expired = await expire_overdue(session)
                await session.commit()
            if expired:
                logger.info("Overdue reportes timed out", extra={"count": expired})
        except Exception:
            logger.exception("Timeout sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Startup:
        - Set up logging
        - Initialize database
        - Create the media directory
        - Start the timeout sweeper

    Shutdown:
        - Stop the sweeper
        - Close database connections
    """
    setup_logging(level=settings.log_level, json_format=settings.log_json)

    await init_db()
    os.makedirs(settings.media_directory, exist_ok=True)

    sweeper = None
    if settings.timeout_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            sweep_overdue_reportes(settings.timeout_sweep_interval_seconds)
        )

    yield

    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper

    await close_db()


# Create FastAPI application instance
app = FastAPI(
    title=settings.project_name,
    version="0.1.0",
    description="Reportes de entrega: evidencias, tickets y chat entre conductores y comerciales",
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Configure middleware
# Note: Middleware is executed in reverse order of registration
# (last registered = first executed)

# Security headers middleware (runs last, adds headers to response)
app.add_middleware(SecurityHeadersMiddleware)

# Rate limiting middleware (protects all endpoints)
app.add_middleware(
    RateLimitMiddleware,
    auth_limit=settings.rate_limit_auth,
    default_limit=settings.rate_limit_default,
    extraction_limit=settings.rate_limit_extraction,
)

# Logging middleware (runs after RequestID to access request_id)
app.add_middleware(LoggingMiddleware)

# Request ID middleware (first to run - sets correlation ID)
app.add_middleware(RequestIDMiddleware)

# CORS middleware - configured from environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Uploaded evidence and chat images
app.mount(
    "/media",
    StaticFiles(directory=settings.media_directory, check_dir=False),
    name="media",
)


# Import and include routers
from reportes.api.v1 import (  # noqa: E402
    health,
    auth,
    home,
    stores,
    reportes as reportes_router,
    conductor,
    chat,
    comercial,
    admin,
    tickets,
    push,
)

app.include_router(health.router, prefix=settings.api_v1_prefix, tags=["health"])
app.include_router(auth.router, prefix=f"{settings.api_v1_prefix}/auth", tags=["auth"])
app.include_router(home.router, prefix=settings.api_v1_prefix, tags=["home"])
app.include_router(stores.router, prefix=settings.api_v1_prefix, tags=["stores"])
app.include_router(reportes_router.router, prefix=settings.api_v1_prefix, tags=["reportes"])
app.include_router(conductor.router, prefix=settings.api_v1_prefix, tags=["conductor"])
app.include_router(chat.router, prefix=settings.api_v1_prefix, tags=["chat"])
app.include_router(comercial.router, prefix=settings.api_v1_prefix, tags=["comercial"])
app.include_router(admin.router, prefix=settings.api_v1_prefix, tags=["admin"])
app.include_router(tickets.router, prefix=settings.api_v1_prefix, tags=["tickets"])
app.include_router(push.router, prefix=settings.api_v1_prefix, tags=["push"])


@app.get("/")
async def root():
    """
    Root endpoint.

    Returns basic API information.
    """
    return {
        "message": "Reportes de Entrega API",
        "version": "0.1.0",
        "docs": "/docs",
    }
