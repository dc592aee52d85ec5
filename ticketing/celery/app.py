"""Celery application instance and configuration."""

import structlog
from celery import Celery
from celery.signals import beat_init
from opentelemetry import trace

from ticketing.core.config import require_config, settings
from ticketing.core.logging import configure_logging

logger = structlog.get_logger(__name__)

# Route Celery's logging through the structlog pipeline
configure_logging(log_level=settings.LOG_LEVEL)

require_config("CELERY_BROKER_URL", "CELERY_RESULT_BACKEND")

celery_app = Celery("ticketing")

celery_app.conf.update(
    broker_url=settings.CELERY_BROKER_URL,
    result_backend=settings.CELERY_RESULT_BACKEND,
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task tracking
    task_track_started=True,
    # Task time limits (5 min hard, 4 min soft)
    task_time_limit=300,
    task_soft_time_limit=240,
    # Don't hijack root logger - let structlog handle it
    worker_hijack_root_logger=False,
)

# CeleryInstrumentor must run before task registration.
# The TracerProvider is set per worker process in database.py after fork.
if settings.OTEL_ENABLED:
    from opentelemetry.instrumentation.celery import CeleryInstrumentor

    CeleryInstrumentor().instrument()
    logger.info("celery_otel_instrumentation_enabled")


@beat_init.connect
def init_beat_otel(
    **kwargs: object,
) -> None:
    """Give the Beat scheduler process its own TracerProvider."""
    if settings.OTEL_ENABLED:
        try:
            from ticketing.core.telemetry import get_tracer_provider  # noqa: PLC0415  # Lazy import for fork-safety

            if provider := get_tracer_provider():
                trace.set_tracer_provider(provider)
                logger.info("beat_otel_tracer_provider_initialized")
        except ValueError:
            # Missing OTLP endpoint: Beat keeps scheduling without tracing
            logger.exception("beat_otel_initialization_failed")


# Registers tasks and populates celery_app.conf.beat_schedule; must stay after celery_app is created
from ticketing.celery import (  # noqa: E402
    schedules,  # noqa: F401
    tasks,  # noqa: F401
)
