"""Challan issuance and payment link delivery."""

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import structlog

from ticketing.core.config import settings
from ticketing.core.exceptions import (
    ChallanNotFound,
    InvalidFineAmount,
    InvalidInput,
    NotificationFailure,
    TicketNotFound,
)
from ticketing.models.payment import LinkedEntityType
from ticketing.models.ticket import Challan, PaymentStatus
from ticketing.services.fare_service import FARE_QUANTUM
from ticketing.services.messaging_service import MessagingService, PaymentNotification
from ticketing.services.payment_service import CheckoutSession, PaymentService
from ticketing.services.storage import TicketingStore
from ticketing.utils.pii import hash_pii

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChallanIssueResult:
    """An issued challan with its payment order and delivery outcome.

    ``checkout`` is None for a zero fine, which is recorded as already paid.
    A delivery failure is reported here and never undoes issuance.
    """

    challan: Challan
    checkout: CheckoutSession | None
    notification: PaymentNotification | None
    notification_sent: bool
    notification_error: str | None = None


class ChallanService:
    """Issues challans and gets their payment links to the passenger."""

    def __init__(self, store: TicketingStore, payments: PaymentService, messenger: MessagingService) -> None:
        """
        Initialize the challan service.

        Args:
            store: Ticket, challan and order storage
            payments: Payment order service
            messenger: Payment link delivery
        """
        self.store = store
        self.payments = payments
        self.messenger = messenger

    async def issue(
        self,
        user_id: str,
        reason: str | None = None,
        fine_amount: Decimal | None = None,
        ticket_ref: uuid.UUID | None = None,
    ) -> ChallanIssueResult:
        """
        Issue a challan and send the passenger a payment link.

        The challan is stored before any gateway call, so it stays issued
        (and Pending) if the order cannot be created; ``request_payment``
        retries that step.

        Args:
            user_id: Passenger phone number (E.164)
            reason: Why the challan was issued (DEFAULT_CHALLAN_REASON when omitted)
            fine_amount: Fine in rupees (DEFAULT_FINE_AMOUNT when omitted)
            ticket_ref: Ticket the challan relates to, if any

        Returns:
            ChallanIssueResult

        Raises:
            InvalidFineAmount: If fine_amount is negative or finer than one paisa
            TicketNotFound: If ticket_ref names no ticket
            GatewayUnavailable: If the order could not be created (challan stays issued)
            GatewayRejected: If the gateway refused the order (challan stays issued)
        """
        fine = settings.DEFAULT_FINE_AMOUNT if fine_amount is None else fine_amount
        if fine < 0:
            raise InvalidFineAmount
        rounded = fine.quantize(FARE_QUANTUM, rounding=ROUND_HALF_UP)
        if rounded != fine:
            raise InvalidFineAmount("Fine amount must be in whole paise.")
        fine = rounded

        if ticket_ref is not None and await self.store.get_ticket(ticket_ref) is None:
            raise TicketNotFound

        challan = Challan(
            user_id=user_id,
            ticket_id=ticket_ref,
            reason=reason or settings.DEFAULT_CHALLAN_REASON,
            fine_amount=fine,
            payment_status=PaymentStatus.PAID if fine == 0 else PaymentStatus.PENDING,
        )
        await self.store.create_challan(challan)
        logger.info(
            "challan_issued",
            challan_id=str(challan.id),
            recipient_hash=hash_pii(user_id),
            fine_amount=str(fine),
            ticket_id=str(ticket_ref) if ticket_ref else None,
        )

        if fine == 0:
            return ChallanIssueResult(challan=challan, checkout=None, notification=None, notification_sent=False)

        return await self._send_payment_request(challan)

    async def request_payment(self, challan_id: uuid.UUID) -> ChallanIssueResult:
        """
        Resend the payment link for an unpaid challan.

        A challan keeps at most one open order: while one is still waiting
        for its callback the same order is sent again. A fresh order is
        minted only when none is open (first order failed or was never
        created).

        Raises:
            ChallanNotFound: If no challan has this id
            InvalidInput: If the challan is already paid
        """
        challan = await self.store.get_challan(challan_id)
        if challan is None:
            raise ChallanNotFound
        if challan.payment_status == PaymentStatus.PAID:
            raise InvalidInput("Challan has already been paid.")

        open_order = await self.store.get_open_order_for_entity(LinkedEntityType.CHALLAN, challan.id)
        if open_order is not None:
            logger.info("challan_payment_order_reused", challan_id=str(challan.id), order_id=open_order.gateway_order_id)
            return await self._deliver(challan, await self.payments.begin_checkout(open_order))

        if challan.payment_status == PaymentStatus.FAILED:
            await self.store.update_payment_status(LinkedEntityType.CHALLAN, challan.id, PaymentStatus.PENDING)

        return await self._send_payment_request(challan)

    async def _send_payment_request(self, challan: Challan) -> ChallanIssueResult:
        order = await self.payments.create_order(
            challan.fine_amount,
            settings.PAYMENT_CURRENCY,
            LinkedEntityType.CHALLAN,
            challan.id,
        )
        return await self._deliver(challan, await self.payments.begin_checkout(order))

    async def _deliver(self, challan: Challan, checkout: CheckoutSession) -> ChallanIssueResult:
        try:
            notification = await self.messenger.send_payment_link(
                challan.user_id,
                checkout.payment_url,
                checkout.amount,
                checkout.currency,
            )
        except NotificationFailure as e:
            logger.warning(
                "challan_notification_failed",
                challan_id=str(challan.id),
                order_id=checkout.order_id,
                error=e.detail,
            )
            return ChallanIssueResult(
                challan=challan,
                checkout=checkout,
                notification=None,
                notification_sent=False,
                notification_error=e.detail,
            )

        return ChallanIssueResult(
            challan=challan,
            checkout=checkout,
            notification=notification,
            notification_sent=True,
        )
