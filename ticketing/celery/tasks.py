"""Celery tasks for background processing."""

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, Protocol, TypedDict

import structlog

from ticketing.celery.app import celery_app
from ticketing.celery.database import get_worker_loop, get_worker_session
from ticketing.services.payment_gateway import RazorpayGateway
from ticketing.services.payment_service import PaymentService
from ticketing.services.storage import TicketingStore

logger = structlog.get_logger(__name__)


def run_in_worker_loop[T](
    coro_func: Callable[..., Awaitable[T]],
    *args: Any,  # noqa: ANN401 - Pass-through args to async function
    **kwargs: Any,  # noqa: ANN401 - Pass-through kwargs to async function
) -> T:
    """
    Run an async function in the worker's persistent event loop.

    Raises:
        RuntimeError: If worker not initialized or event loop is closed
    """
    loop = get_worker_loop()
    return loop.run_until_complete(coro_func(*args, **kwargs))


class TaskRequest(Protocol):
    @property
    def retries(self) -> int:
        """Number of times task has been retried."""
        ...


class BoundTask(Protocol):
    """Protocol for Celery bound task self parameter."""

    @property
    def request(self) -> TaskRequest:
        """Task request object."""
        ...

    def retry(self, exc: Exception | None = None, countdown: int | None = None) -> Exception:
        """Raise an exception that signals task retry."""
        ...


class ReconcileResult(TypedDict):
    """Result from reconcile_payment_orders task."""

    status: str
    checked: int
    settled: int
    still_open: int
    errors: int


@celery_app.task(  # type: ignore[arg-type]
    bind=True,
    max_retries=3,
    name="ticketing.celery.tasks.reconcile_payment_orders",
)
def reconcile_payment_orders(self: BoundTask, older_than_minutes: int | None = None) -> ReconcileResult:
    """
    Settle open payment orders whose payment was captured at the gateway.

    Runs every 5 minutes via Celery Beat. Picks up orders left open by a
    lost callback or a failed settlement write.

    Args:
        self: Celery task instance (bound via bind=True)
        older_than_minutes: Minimum order age (RECONCILE_AFTER_MINUTES when omitted)

    Returns:
        ReconcileResult with counts

    Raises:
        Retry: If the task should be retried due to transient failure
    """
    try:
        result = run_in_worker_loop(_reconcile_async, older_than_minutes)
        logger.info("reconcile_task_completed", result=result)
        return result
    except Exception as exc:
        logger.error(
            "reconcile_task_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            retry_count=self.request.retries,
        )
        raise self.retry(exc=exc, countdown=60) from exc


async def _reconcile_async(older_than_minutes: int | None = None) -> ReconcileResult:
    session = get_worker_session()
    try:
        service = PaymentService(TicketingStore(session), RazorpayGateway.from_settings())
        older_than = timedelta(minutes=older_than_minutes) if older_than_minutes is not None else None
        summary = await service.reconcile_open_orders(older_than)
        return ReconcileResult(
            status="success",
            checked=summary.checked,
            settled=summary.settled,
            still_open=summary.still_open,
            errors=summary.errors,
        )
    finally:
        await session.close()
