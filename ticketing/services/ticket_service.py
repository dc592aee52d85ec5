"""Ticket quoting and booking."""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

import structlog

from ticketing.core.config import settings
from ticketing.core.exceptions import GatewayRejected, GatewayUnavailable, TicketNotFound, UnknownStation
from ticketing.core.stations import StationCatalog, get_station_catalog
from ticketing.models.payment import LinkedEntityType
from ticketing.models.ticket import PaymentStatus, Ticket
from ticketing.services.fare_service import FareQuote, FareRequest, compute_fare
from ticketing.services.payment_service import CheckoutSession, PaymentService
from ticketing.services.storage import TicketingStore
from ticketing.utils.pii import hash_pii

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Booking:
    ticket: Ticket
    checkout: CheckoutSession


class TicketService:
    """Books tickets and opens checkout for them."""

    def __init__(
        self,
        store: TicketingStore,
        payments: PaymentService,
        catalog: StationCatalog | None = None,
    ) -> None:
        """
        Initialize the ticket service.

        Args:
            store: Ticket, challan and order storage
            payments: Payment order service
            catalog: Station catalog (process-wide catalog when omitted)
        """
        self.store = store
        self.payments = payments
        self.catalog = catalog or get_station_catalog()

    def quote(self, request: FareRequest) -> FareQuote:
        return compute_fare(request, self.catalog)

    async def book(self, user_id: str, journey_date: date, request: FareRequest) -> Booking:
        """
        Book a ticket: price it, record it as Pending and open checkout.

        The ticket is stored before the gateway is called. If the order
        cannot be created the ticket is marked Failed and the gateway error
        is raised.

        Args:
            user_id: Passenger phone number (E.164)
            journey_date: Date of travel
            request: Route, classes and validity

        Returns:
            Booking with the stored ticket and its checkout session

        Raises:
            UnknownStation: If either station is not in the catalog
            GatewayUnavailable: If the gateway could not be reached
            GatewayRejected: If the gateway refused the order
        """
        quote = self.quote(request)
        if not quote.available:
            raise UnknownStation

        ticket = Ticket(
            user_id=user_id,
            from_station=request.from_station,
            to_station=request.to_station,
            journey_date=journey_date,
            fare_class=request.fare_class,
            passenger_class=request.passenger_class,
            validity=request.validity,
            fare=quote.amount,
            payment_status=PaymentStatus.PENDING,
        )
        await self.store.create_ticket(ticket)
        logger.info(
            "ticket_created",
            ticket_id=str(ticket.id),
            user_hash=hash_pii(user_id),
            fare=str(quote.amount),
        )

        try:
            order = await self.payments.create_order(
                quote.amount,
                settings.PAYMENT_CURRENCY,
                LinkedEntityType.TICKET,
                ticket.id,
            )
            checkout = await self.payments.begin_checkout(order)
        except (GatewayUnavailable, GatewayRejected) as e:
            logger.warning("ticket_payment_order_failed", ticket_id=str(ticket.id), kind=e.kind)
            await self.store.update_payment_status(LinkedEntityType.TICKET, ticket.id, PaymentStatus.FAILED)
            raise

        return Booking(ticket=ticket, checkout=checkout)

    async def get_ticket(self, ticket_id: uuid.UUID) -> Ticket:
        ticket = await self.store.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFound
        return ticket

    async def list_tickets(self, user_id: str) -> Sequence[Ticket]:
        return await self.store.get_tickets_by_user(user_id)
