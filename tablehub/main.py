"""
FastAPI Application Entry Point

TableHub - multi-tenant restaurant ordering backend.
Supports both Mock services (development) and Real integrations
(SendGrid, Redis) in staging and production.

Endpoints (under API_PREFIX, default /api):
    - /auth/*: registration, login, password reset, session
    - /vendor-access/*: multi-vendor admin invitations
    - /orders/*: order placement, listing and vendor workflow
    - /menu/*, /vendors/me/*: menu and restaurant settings
    - /admin/*: analytics
    - GET /health: System health check

Version: 1.0.0
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from tablehub.core.config import get_settings, setup_logging
from tablehub.core.errors import AppError
from tablehub.core.time_utils import utcnow
from tablehub.database import engine, get_db, init_db
from tablehub.routes import all_routers
from tablehub.schemas import HealthResponse, error_body
from tablehub.services.notifications import (
    BaseNotificationService,
    InlineDispatcher,
    get_dispatcher,
    get_notification_service,
)
from tablehub.services.revocation import BaseRevocationStore, get_revocation_store

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# BACKGROUND JOBS
# =============================================================================

async def sweep_revocations(store: BaseRevocationStore, interval: int) -> None:
    """Drop expired revocation entries every `interval` seconds."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await store.sweep()
            if removed:
                logger.info(f"Revocation sweep removed {removed} expired token(s)")
        except Exception as e:
            logger.error(f"Revocation sweep failed: {e}")


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # Initialize database
    await init_db()
    logger.info("✅ Database initialized")

    # Log service configuration
    notification_service = get_notification_service()
    revocation_store = get_revocation_store()
    logger.info(f"✅ Notification Service: {notification_service.provider_name}")
    logger.info(f"✅ Revocation Store: {revocation_store.provider_name}")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    sweeper = asyncio.create_task(
        sweep_revocations(revocation_store, settings.revocation_sweep_seconds)
    )

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    dispatcher = get_dispatcher()
    if isinstance(dispatcher, InlineDispatcher):
        await dispatcher.drain()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Multi-tenant restaurant ordering: table orders, vendor menus and "
        "billing, multi-vendor admin access and analytics."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in all_routers:
    app.include_router(router, prefix=settings.api_prefix)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
        "api": settings.api_prefix,
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    response_model_by_alias=True,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    revocation_store: BaseRevocationStore = Depends(get_revocation_store),
    notification_service: BaseNotificationService = Depends(get_notification_service),
) -> HealthResponse:
    """Verify all system components are operational."""

    # Check database
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    # Check revocation store (memory or Redis)
    cache_status = "healthy" if await revocation_store.health_check() else "unhealthy"

    # Check notification service
    notification_status = (
        "healthy" if await notification_service.health_check() else "unhealthy"
    )

    overall = "operational" if all(
        s == "healthy" for s in [db_status, cache_status, notification_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        cache=cache_status,
        notifications=notification_status,
        timestamp=utcnow(),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Domain errors carry their own status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.errors),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query parameters are a 400 with one line per problem."""
    errors: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", errors),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    content: dict[str, Any] = error_body("Internal server error")
    if settings.debug or not settings.is_production:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)
