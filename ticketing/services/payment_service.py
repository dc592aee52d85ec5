"""Payment order lifecycle: creation, checkout, callback settlement, reconciliation."""

import asyncio
import uuid
import weakref
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import ClassVar

import structlog
from opentelemetry.trace import SpanKind

from ticketing.core.config import settings
from ticketing.core.exceptions import (
    GatewayRejected,
    GatewayUnavailable,
    InvalidAmount,
    InvalidInput,
    OrderAlreadyFailed,
    OrderNotFound,
    PersistenceFailure,
    VerificationFailed,
)
from ticketing.core.telemetry import service_span
from ticketing.models.payment import OPEN_ORDER_STATUSES, LinkedEntityType, OrderStatus, PaymentOrder
from ticketing.services.payment_gateway import RazorpayGateway, to_subunits
from ticketing.services.storage import TicketingStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    """What the payer's checkout needs to open the gateway widget."""

    key_id: str
    order_id: str
    amount: Decimal
    amount_subunits: int
    currency: str
    entity_type: LinkedEntityType
    entity_id: uuid.UUID
    payment_url: str


@dataclass(frozen=True)
class VerifiedResult:
    """Outcome of an accepted callback.

    ``duplicate`` is True when the order had already been settled and this
    call changed nothing.
    """

    order_id: str
    payment_id: str
    entity_type: LinkedEntityType
    entity_id: uuid.UUID
    amount: Decimal
    currency: str
    settled_at: datetime | None
    duplicate: bool = False


@dataclass
class ReconcileSummary:
    checked: int = 0
    settled: int = 0
    still_open: int = 0
    errors: int = 0
    settled_order_ids: list[str] = field(default_factory=list)


class PaymentService:
    """Drives payment orders through CREATED -> AWAITING_CALLBACK -> VERIFIED | FAILED."""

    # Callbacks for the same order run one at a time within a process.
    # Settlement is additionally a conditional update, which covers other processes.
    _order_locks: ClassVar[weakref.WeakValueDictionary[str, asyncio.Lock]] = weakref.WeakValueDictionary()

    def __init__(
        self,
        store: TicketingStore,
        gateway: RazorpayGateway,
        checkout_base_url: str | None = None,
    ) -> None:
        """
        Initialize the payment service.

        Args:
            store: Ticket, challan and order storage
            gateway: Razorpay client
            checkout_base_url: Hosted checkout page (settings value when omitted)
        """
        self.store = store
        self.gateway = gateway
        self.checkout_base_url = (checkout_base_url or settings.CHECKOUT_BASE_URL).rstrip("/")

    @classmethod
    def _lock_for(cls, order_id: str) -> asyncio.Lock:
        lock = cls._order_locks.get(order_id)
        if lock is None:
            lock = asyncio.Lock()
            cls._order_locks[order_id] = lock
        return lock

    def payment_url(self, order: PaymentOrder) -> str:
        return f"{self.checkout_base_url}/{order.gateway_order_id}"

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        entity_type: LinkedEntityType,
        entity_id: uuid.UUID,
    ) -> PaymentOrder:
        """
        Mint a gateway order for a ticket or challan and record it.

        Args:
            amount: Amount in rupees, must be positive
            currency: ISO currency code
            entity_type: What the order pays for
            entity_id: Ticket or challan id

        Returns:
            The recorded PaymentOrder in CREATED status

        Raises:
            InvalidAmount: If amount <= 0 (the gateway is not called)
            GatewayUnavailable: If the gateway could not be reached
            GatewayTimeout: If the gateway did not answer in time
            GatewayRejected: If the gateway refused the order
            PersistenceFailure: If the order could not be recorded
        """
        if amount <= 0:
            logger.info("payment_order_rejected_amount", amount=str(amount), entity_type=entity_type.value)
            raise InvalidAmount

        # Razorpay caps receipts at 40 characters
        receipt = f"{entity_type.value}-{entity_id.hex[:24]}"
        gateway_order = await self.gateway.create_order(
            amount,
            currency,
            receipt,
            notes={"entity_type": entity_type.value, "entity_id": str(entity_id)},
        )

        order = PaymentOrder(
            gateway_order_id=gateway_order.order_id,
            amount=amount,
            currency=currency,
            entity_type=entity_type,
            entity_id=entity_id,
            status=OrderStatus.CREATED,
        )
        await self.store.add_order(order)

        logger.info(
            "payment_order_created",
            order_id=order.gateway_order_id,
            entity_type=entity_type.value,
            entity_id=str(entity_id),
            amount=str(amount),
            currency=currency,
        )
        return order

    async def begin_checkout(self, order: PaymentOrder) -> CheckoutSession:
        """
        Hand an order to the payer and start waiting for the gateway callback.

        Calling this again for an order already awaiting its callback returns
        the same session.

        Raises:
            OrderAlreadyFailed: If the order has failed
            InvalidInput: If the order has already been paid
        """
        moved = await self.store.transition_order(
            order,
            OrderStatus.AWAITING_CALLBACK,
            from_statuses=OPEN_ORDER_STATUSES,
        )
        if not moved:
            if order.status == OrderStatus.FAILED:
                raise OrderAlreadyFailed
            raise InvalidInput("Payment order has already been paid.")

        logger.info("payment_checkout_started", order_id=order.gateway_order_id)
        return CheckoutSession(
            key_id=self.gateway.key_id,
            order_id=order.gateway_order_id,
            amount=order.amount,
            amount_subunits=to_subunits(order.amount),
            currency=order.currency,
            entity_type=order.entity_type,
            entity_id=order.entity_id,
            payment_url=self.payment_url(order),
        )

    @staticmethod
    def _result(order: PaymentOrder, *, duplicate: bool) -> VerifiedResult:
        return VerifiedResult(
            order_id=order.gateway_order_id,
            payment_id=order.payment_id or "",
            entity_type=order.entity_type,
            entity_id=order.entity_id,
            amount=order.amount,
            currency=order.currency,
            settled_at=order.settled_at,
            duplicate=duplicate,
        )

    async def handle_callback(self, payment_id: str, order_id: str, signature: str) -> VerifiedResult:
        """
        Verify a gateway callback and settle the order it names.

        The signature is checked on every call, including repeats for an
        order that is already settled. A repeat with a valid signature
        returns the original result with ``duplicate=True`` and writes
        nothing.

        Args:
            payment_id: razorpay_payment_id
            order_id: razorpay_order_id
            signature: razorpay_signature

        Returns:
            VerifiedResult

        Raises:
            OrderNotFound: If no order has this id
            OrderAlreadyFailed: If the order has failed
            VerificationFailed: If the signature does not match
            PersistenceFailure: If settlement could not be recorded (order stays open)
        """
        with service_span(
            "payments.handle_callback",
            "payments",
            kind=SpanKind.INTERNAL,
            **{"payment.order_id": order_id},
        ) as span:
            async with self._lock_for(order_id):
                order = await self.store.get_order(order_id)
                if order is None:
                    logger.warning("payment_callback_unknown_order", order_id=order_id)
                    raise OrderNotFound

                if order.status == OrderStatus.FAILED:
                    logger.warning("payment_callback_for_failed_order", order_id=order_id)
                    raise OrderAlreadyFailed

                if not self.gateway.verify_payment_signature(order_id, payment_id, signature):
                    logger.warning(
                        "payment_signature_mismatch",
                        order_id=order_id,
                        payment_id=payment_id,
                        order_status=order.status.value,
                        security_event=True,
                    )
                    if order.status in OPEN_ORDER_STATUSES:
                        await self.store.fail_order(order)
                    span.set_attribute("payment.outcome", "signature_mismatch")
                    raise VerificationFailed

                if order.status == OrderStatus.VERIFIED:
                    logger.info("payment_callback_duplicate", order_id=order_id, payment_id=payment_id)
                    span.set_attribute("payment.outcome", "duplicate")
                    return self._result(order, duplicate=True)

                settled = await self.store.settle_order(order, payment_id)
                if not settled:
                    # Settled or failed by another process since we loaded it
                    if order.status == OrderStatus.VERIFIED:
                        span.set_attribute("payment.outcome", "duplicate")
                        return self._result(order, duplicate=True)
                    raise OrderAlreadyFailed

                logger.info(
                    "payment_settled",
                    order_id=order_id,
                    payment_id=payment_id,
                    entity_type=order.entity_type.value,
                    entity_id=str(order.entity_id),
                )
                span.set_attribute("payment.outcome", "settled")
                return self._result(order, duplicate=False)

    async def reconcile_open_orders(self, older_than: timedelta | None = None) -> ReconcileSummary:
        """
        Settle open orders whose payment was captured but never recorded.

        Orders are left open when a callback is lost or settlement hit a
        ``PersistenceFailure``. For each open order older than the cutoff the
        gateway is asked for the order's payments; a captured payment is
        settled through the same conditional update as a callback.

        Args:
            older_than: Minimum order age (RECONCILE_AFTER_MINUTES when omitted)

        Returns:
            ReconcileSummary with per-outcome counts
        """
        if older_than is None:
            older_than = timedelta(minutes=settings.RECONCILE_AFTER_MINUTES)
        cutoff = datetime.now(UTC) - older_than
        summary = ReconcileSummary()

        with service_span("payments.reconcile", "payments", **{"reconcile.cutoff": cutoff.isoformat()}) as span:
            orders = await self.store.list_open_orders(cutoff)
            for order in orders:
                summary.checked += 1
                try:
                    payments = await self.gateway.fetch_order_payments(order.gateway_order_id)
                except (GatewayUnavailable, GatewayRejected) as e:
                    summary.errors += 1
                    logger.warning("reconcile_fetch_failed", order_id=order.gateway_order_id, error=e.detail)
                    continue

                captured = next((p for p in payments if p.is_captured), None)
                if captured is None:
                    summary.still_open += 1
                    continue

                async with self._lock_for(order.gateway_order_id):
                    try:
                        settled = await self.store.settle_order(order, captured.payment_id)
                    except PersistenceFailure:
                        summary.errors += 1
                        continue

                if settled:
                    summary.settled += 1
                    summary.settled_order_ids.append(order.gateway_order_id)
                    logger.info(
                        "reconcile_order_settled",
                        order_id=order.gateway_order_id,
                        payment_id=captured.payment_id,
                    )

            span.set_attribute("reconcile.checked", summary.checked)
            span.set_attribute("reconcile.settled", summary.settled)

        logger.info(
            "reconcile_completed",
            checked=summary.checked,
            settled=summary.settled,
            still_open=summary.still_open,
            errors=summary.errors,
        )
        return summary
