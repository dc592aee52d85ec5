"""Access logging middleware using structlog with OTEL trace correlation."""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

# Callback query strings carry gateway signatures
_REDACTED_QUERY_PATHS = ("/payments/callback",)


class AccessLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one structured event per HTTP request.

    Log fields:
        - method, path, status_code
        - duration_ms: Request duration in milliseconds
        - client_ip, and forwarded_for when an X-Forwarded-For header is present
        - query: Query string, except on payment callback paths
        - trace_id/span_id: Added by the OTEL processor
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.perf_counter()

        # X-Forwarded-For can be spoofed; both values are logged and the reader decides
        client_ip = request.client.host if request.client else "unknown"
        forwarded_for = None
        if xff_header := request.headers.get("x-forwarded-for"):
            forwarded_for = xff_header.split(",")[0].strip()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        path = request.url.path

        log_kwargs: dict[str, str | int | float | None] = {
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": client_ip,
        }
        if forwarded_for:
            log_kwargs["forwarded_for"] = forwarded_for
        if request.url.query and not path.endswith(_REDACTED_QUERY_PATHS):
            log_kwargs["query"] = request.url.query

        logger.info("http_request", **log_kwargs)

        return response
