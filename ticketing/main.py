"""Main FastAPI application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing import __version__
from ticketing.api import challans, inspections, payments, stations, tickets
from ticketing.core.config import settings
from ticketing.core.database import get_db, get_engine
from ticketing.core.exceptions import TicketingError
from ticketing.core.logging import configure_logging
from ticketing.core.stations import get_station_catalog
from ticketing.core.telemetry import get_tracer_provider, shutdown_tracer_provider
from ticketing.middleware import AccessLoggingMiddleware

# Configure logging at module level so Uvicorn startup logs go through structlog pipeline
configure_logging(log_level=settings.LOG_LEVEL)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan - initialize OTEL TracerProvider and check the database on startup."""
    # TracerProvider is created here (after fork) so each worker gets its own span processor
    if settings.OTEL_ENABLED and (provider := get_tracer_provider()):
        trace.set_tracer_provider(provider)
        logger.info("otel_tracer_provider_initialized")

    catalog = get_station_catalog()

    # Tests supply their own database through dependency overrides
    if settings.DEBUG:
        logger.info("debug_mode_startup", message="skipping database check", catalog_version=catalog.version)
        yield
        if settings.OTEL_ENABLED:
            shutdown_tracer_provider()
        logger.info("shutdown_complete")
        return

    logger.info("startup_initializing", message="checking database")
    try:
        async with get_engine().begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("database_connection_successful")
    except (SQLAlchemyError, OSError) as e:
        logger.error("startup_failed", error=str(e))
        raise

    logger.info("startup_complete", catalog_version=catalog.version)

    yield

    logger.info("shutdown_starting")
    if settings.OTEL_ENABLED:
        shutdown_tracer_provider()
    await get_engine().dispose()
    logger.info("shutdown_complete")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Ticket booking, payment and inspection backend",
    version=__version__,
    lifespan=lifespan,
)

# Instrumentor wraps the ASGI app; the TracerProvider is set later in lifespan
if settings.OTEL_ENABLED:
    FastAPIInstrumentor().instrument_app(
        app,
        excluded_urls=",".join(settings.OTEL_EXCLUDED_URLS),
    )
    logger.info("otel_fastapi_instrumented", excluded_urls=settings.OTEL_EXCLUDED_URLS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Access logging middleware (replaces uvicorn.access logs with structlog)
app.add_middleware(AccessLoggingMiddleware)


@app.exception_handler(TicketingError)
async def ticketing_error_handler(request: Request, exc: TicketingError) -> JSONResponse:
    """Render domain errors as ``{"detail", "kind"}``."""
    log = logger.warning if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.info
    log("request_failed", path=request.url.path, kind=exc.kind, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "kind": exc.kind, "retryable": exc.retryable},
        headers=exc.headers,
    )


app.include_router(stations.router, prefix=settings.API_V1_PREFIX)
app.include_router(tickets.router, prefix=settings.API_V1_PREFIX)
app.include_router(payments.router, prefix=settings.API_V1_PREFIX)
app.include_router(challans.router, prefix=settings.API_V1_PREFIX)
app.include_router(inspections.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Mumbai Local Ticketing API", "version": __version__}


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/status", response_model=None)
async def readiness_check(db: AsyncSession = Depends(get_db)) -> dict[str, str] | JSONResponse:
    """Readiness check: the database answers and the station catalog is loaded."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("readiness_check_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "detail": "Database unavailable"},
        )
    return {"status": "ready", "catalog_version": get_station_catalog().version}
