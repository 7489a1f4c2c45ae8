"""
RatePool API - Main FastAPI Application.

Distributes a batch of items across participants so that each item
collects a target number of independent judgements.

Provides endpoints for:
- Campaign management (create, inspect, deactivate)
- Participant registration (bucket claims)
- Judgement submission and progress
- Catalog withdrawal
"""

import os
import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ratepool import __version__
from ratepool.config.settings import get_settings
from ratepool.core.errors import (
    SchedulerError,
    InvalidParameter,
    PermissionDenied,
    NotFound,
    NoSuchAssignment,
    DuplicateJudgement,
    CapacityExceeded,
    CampaignExpired,
    StorageUnavailable,
)
from ratepool.api.schemas import HealthResponse
from ratepool.api.middleware import RequestLoggingMiddleware
from ratepool.api.dependencies import get_store, cleanup
from ratepool.api.routes import (
    campaigns_router,
    participants_router,
    items_router,
)


# Configure logging
_settings = get_settings()
logging.basicConfig(
    level=_settings.log_level.upper(),
    format=_settings.log_format
)
logger = logging.getLogger(__name__)


# API version
API_VERSION = __version__


# Most specific class first; lookup walks the exception MRO.
ERROR_STATUS_CODES = {
    InvalidParameter: 400,
    PermissionDenied: 403,
    NotFound: 404,
    NoSuchAssignment: 404,
    DuplicateJudgement: 409,
    CapacityExceeded: 409,
    CampaignExpired: 410,
    StorageUnavailable: 503,
}


def status_code_for(exc: SchedulerError) -> int:
    """HTTP status for a scheduler error."""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting RatePool API...")

    try:
        store = get_store()
        logger.info(f"Storage ready: {store.name}")
    except RuntimeError as e:
        logger.warning(f"Storage not available: {e}")

    yield

    logger.info("Shutting down RatePool API...")
    cleanup()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    app = FastAPI(
        title="RatePool API",
        description="""
# RatePool - Redundant judgement scheduling

An operator creates a campaign from a batch of items, a redundancy target
and an expected participant count. The allocation plan is computed once
and frozen; each registering participant claims exactly one bucket.

## Authentication

Operator endpoints require the operator key in the `X-API-Key` header.
Requests without it act as participants.
        """,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    cors_origins = os.getenv("CORS_ORIGINS", "")
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins.split(","),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(campaigns_router)
    app.include_router(participants_router)
    app.include_router(items_router)

    # Root endpoint
    @app.get("/", tags=["root"])
    async def root():
        """API root - returns basic info."""
        return {
            "name": "RatePool API",
            "version": API_VERSION,
            "description": "Redundant judgement scheduling",
            "docs": "/docs",
            "health": "/health"
        }

    # Health check endpoint
    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"]
    )
    def health_check():
        """
        Health check endpoint.

        Returns the API status and storage connection state.
        """
        settings = get_settings()
        try:
            store = get_store()
            connected = getattr(store, "connected", True)
        except RuntimeError:
            connected = False

        return HealthResponse(
            status="healthy" if connected else "degraded",
            version=API_VERSION,
            storage_backend=settings.storage_backend,
            storage_connected=connected,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        )

    @app.exception_handler(SchedulerError)
    async def scheduler_exception_handler(request: Request, exc: SchedulerError):
        """Map scheduler errors to their HTTP status."""
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report malformed request bodies as invalid parameters."""
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": details, "code": InvalidParameter.code}
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if os.getenv("DEBUG") else None,
                "code": "INTERNAL_ERROR"
            }
        )

    return app


# Create the app instance
app = create_app()


# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    reload = os.getenv("DEBUG", "false").lower() == "true"

    uvicorn.run(
        "ratepool.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=_settings.log_level.lower()
    )
