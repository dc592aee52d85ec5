"""Per-process database resources for Celery workers.

A prefork worker builds one event loop after fork and runs every task in
it, so the pooled engine created on first use stays bound to a live loop.
"""

import asyncio
import contextlib

import structlog
from celery.signals import worker_process_init, worker_process_shutdown
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ticketing.core.config import settings
from ticketing.core.database import build_engine, session_factory_for

_worker_loop: asyncio.AbstractEventLoop | None = None
_worker_engine: AsyncEngine | None = None
_worker_session_factory: async_sessionmaker[AsyncSession] | None = None

logger = structlog.get_logger(__name__)


@worker_process_init.connect
def init_worker_resources(**kwargs: object) -> None:
    """Give the forked worker its own event loop and tracer provider."""
    global _worker_loop  # noqa: PLW0603

    if _worker_loop is not None and not _worker_loop.is_closed():
        return

    _worker_loop = asyncio.new_event_loop()
    asyncio.set_event_loop(_worker_loop)

    if settings.OTEL_ENABLED:
        from ticketing.core.telemetry import get_tracer_provider  # noqa: PLC0415

        if provider := get_tracer_provider():
            trace.set_tracer_provider(provider)

    logger.info("worker_resources_initialized", otel_enabled=settings.OTEL_ENABLED)


@worker_process_shutdown.connect
def cleanup_worker_resources(**kwargs: object) -> None:
    """Dispose the engine, flush spans and close the loop."""
    global _worker_loop, _worker_engine, _worker_session_factory  # noqa: PLW0603

    loop, engine = _worker_loop, _worker_engine
    _worker_loop = _worker_engine = _worker_session_factory = None
    if loop is None:
        return

    try:
        if engine is not None:
            loop.run_until_complete(engine.dispose())
        if settings.OTEL_ENABLED:
            from ticketing.core.telemetry import shutdown_tracer_provider  # noqa: PLC0415

            shutdown_tracer_provider()
    except Exception as exc:  # noqa: BLE001
        logger.warning("worker_cleanup_failed", error=str(exc), error_type=type(exc).__name__)
    finally:
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()
        asyncio.set_event_loop(None)

    logger.info("worker_resources_released")


def get_worker_session() -> AsyncSession:
    """
    New session on the worker's pooled engine.

    Callers close it; the engine lives until worker shutdown.
    """
    global _worker_engine, _worker_session_factory  # noqa: PLW0603
    if _worker_session_factory is None:
        _worker_engine = build_engine()
        if settings.OTEL_ENABLED:
            from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor  # noqa: PLC0415

            SQLAlchemyInstrumentor().instrument(engine=_worker_engine.sync_engine)
        _worker_session_factory = session_factory_for(_worker_engine)
    return _worker_session_factory()


def get_worker_loop() -> asyncio.AbstractEventLoop:
    """
    The worker's event loop.

    Raises:
        RuntimeError: If the worker was not initialized or has shut down
    """
    if _worker_loop is None or _worker_loop.is_closed():
        msg = "Worker event loop is not running; init_worker_resources must run in the worker process first."
        raise RuntimeError(msg)
    return _worker_loop
