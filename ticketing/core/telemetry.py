"""Tracing setup and the span helper services wrap their operations in."""

import threading
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from ticketing import __version__
from ticketing.core.config import require_config, settings

if TYPE_CHECKING:
    from opentelemetry.trace.span import Span

logger = structlog.get_logger(__name__)

# One provider per process; forked workers build their own exporter threads
_tracer_provider: TracerProvider | None = None
_tracer_provider_lock = threading.Lock()

AttributeValue = str | int | float | bool | list[str] | list[int] | list[float] | list[bool]


def get_tracer_provider() -> TracerProvider | None:
    """
    The process TracerProvider, built on first use.

    Returns:
        None when OTEL_ENABLED is off

    Raises:
        ValueError: Outside DEBUG, when no OTLP traces endpoint is configured
    """
    if not settings.OTEL_ENABLED:
        return None

    global _tracer_provider  # noqa: PLW0603
    with _tracer_provider_lock:
        if _tracer_provider is None:
            _tracer_provider = _build_tracer_provider()
    return _tracer_provider


def _build_tracer_provider() -> TracerProvider:
    if not settings.DEBUG:
        require_config("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")

    provider = TracerProvider(
        resource=Resource(
            attributes={
                "service.name": settings.OTEL_SERVICE_NAME,
                "service.version": __version__,
                "deployment.environment": settings.OTEL_ENVIRONMENT,
            }
        )
    )

    endpoint = settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT
    if not endpoint:
        logger.warning("otel_traces_not_exported", reason="no OTLP traces endpoint")
        return provider

    exporter = OTLPSpanExporter(endpoint=endpoint, headers=_parse_otlp_headers(settings.OTEL_EXPORTER_OTLP_HEADERS or ""))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("otel_tracer_provider_created", endpoint=endpoint, environment=settings.OTEL_ENVIRONMENT)
    return provider


def _parse_otlp_headers(raw: str) -> dict[str, str]:
    """
    Split ``key=value,key=value`` into a header dict.

    Only the first ``=`` separates, so base64 values keep their padding.
    Pairs without ``=`` are logged and dropped.
    """
    headers: dict[str, str] = {}
    for pair in (p.strip() for p in raw.split(",")):
        if not pair:
            continue
        if "=" not in pair:
            logger.warning("otel_malformed_header", pair=pair)
            continue
        key, value = pair.split("=", 1)
        headers[key.strip()] = value.strip()
    return headers


def shutdown_tracer_provider() -> None:
    """Flush pending spans; a no-op when no provider was built."""
    if _tracer_provider is not None:
        _tracer_provider.shutdown()


@contextmanager
def service_span(
    name: str,
    service: str,
    kind: SpanKind = SpanKind.INTERNAL,
    **attributes: AttributeValue,
) -> Generator["Span"]:
    """Span around one service operation, tagged with ``peer.service``.

    The span ends OK when the block returns. An exception propagates and the
    SDK records it with StatusCode.ERROR.

    Args:
        name: Span name, e.g. "razorpay.create_order"
        service: Value for peer.service, e.g. "razorpay"
        kind: CLIENT for calls out of the process
        **attributes: Extra span attributes
    """
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(name, kind=kind, attributes={"peer.service": service, **attributes}) as span:
        yield span
        span.set_status(Status(StatusCode.OK))
