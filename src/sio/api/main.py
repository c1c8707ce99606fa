"""
SIO API Main Application

FastAPI application with REST endpoints and middleware.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator
import logging
import time

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sio.config import get_settings
from sio.errors import TriageError


# Log fields holding a fiscal code; only the first characters are kept
MASKED_FIELDS = ("fiscal_code",)


def fiscal_code_masking_processor(logger, method_name, event_dict):
    """Mask fiscal codes in log events."""
    for key in MASKED_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str) and value:
            event_dict[key] = value[:3] + "*" * (len(value) - 3)
    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            fiscal_code_masking_processor,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings().app.log_level)

logger = structlog.get_logger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    from sio.db.clients import init_db_clients, close_db_clients
    from sio.triage import AdmissionLifecycle

    settings = get_settings()

    # Startup
    logger.info(
        "Starting SIO API",
        env=settings.app.env,
        debug=settings.app.debug,
        storage_backend=settings.app.storage_backend,
    )

    db_clients = await init_db_clients(settings)
    app.state.db = db_clients
    app.state.lifecycle = AdmissionLifecycle(db_clients.store, settings.triage)

    yield

    # Shutdown
    logger.info("Shutting down SIO API")
    await close_db_clients()


# Create FastAPI application
app = FastAPI(
    title="SIO API",
    description="Emergency room triage desk",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check for load balancers and monitoring.

    Returns 503 when the store cannot answer a trivial query.
    """
    db = getattr(request.app.state, "db", None)
    try:
        if db is None:
            raise RuntimeError("storage not initialized")
        async with db.store.acquire() as conn:
            await conn.ping()
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "DOWN",
                "database": "DISCONNECTED",
                "error": str(e),
            },
        )

    return {
        "status": "UP",
        "database": "CONNECTED",
        "backend": db.backend,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


# =============================================================================
# Error Handlers
# =============================================================================

ERROR_STATUS = {
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_state": status.HTTP_400_BAD_REQUEST,
    "unknown_color": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "constraint_violation": status.HTTP_409_CONFLICT,
    "allocation_exhausted": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(TriageError)
async def triage_error_handler(request: Request, exc: TriageError):
    """Map lifecycle failures to stable status codes and error codes."""
    status_code = ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        path=request.url.path,
        method=request.method,
        error=exc.code,
        message=exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "detail": str(exc) if get_settings().app.debug else None,
        },
    )


# =============================================================================
# Include Routers
# =============================================================================

from sio.api.routes.auth import router as auth_router
from sio.api.routes.admissions import router as admissions_router
from sio.api.routes.resources import router as resources_router

app.include_router(auth_router)
app.include_router(admissions_router)
app.include_router(resources_router)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sio.api.main:app",
        host=settings.app.api_host,
        port=settings.app.api_port,
        reload=settings.app.api_reload,
        workers=settings.app.api_workers,
    )
