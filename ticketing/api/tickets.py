"""Fare quote and ticket booking endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ticketing.api.dependencies import get_ticket_service
from ticketing.core.config import settings
from ticketing.schemas.tickets import (
    CheckoutResponse,
    FareQuoteRequest,
    FareQuoteResponse,
    TicketBookingRequest,
    TicketBookingResponse,
    TicketResponse,
)
from ticketing.services.fare_service import FareRequest
from ticketing.services.ticket_service import TicketService
from ticketing.utils.phone import normalize_phone

router = APIRouter(prefix="/tickets", tags=["tickets"])


def _fare_request(request: FareQuoteRequest) -> FareRequest:
    return FareRequest(
        from_station=request.from_station,
        to_station=request.to_station,
        fare_class=request.fare_class,
        passenger_class=request.passenger_class,
        validity=request.validity,
    )


@router.post("/fare", response_model=FareQuoteResponse)
async def quote_fare(
    request: FareQuoteRequest,
    service: TicketService = Depends(get_ticket_service),
) -> FareQuoteResponse:
    """
    Quote a fare.

    An unknown station is not an error here: the quote comes back with
    ``available=false`` and amount 0.
    """
    quote = service.quote(_fare_request(request))
    return FareQuoteResponse(
        amount=quote.amount,
        currency=settings.PAYMENT_CURRENCY,
        available=quote.available,
        distance_factor=quote.distance_factor,
    )


@router.post("", response_model=TicketBookingResponse, status_code=status.HTTP_201_CREATED)
async def book_ticket(
    request: TicketBookingRequest,
    service: TicketService = Depends(get_ticket_service),
) -> TicketBookingResponse:
    """
    Book a ticket and open checkout.

    The ticket is Pending until the gateway callback is verified.
    """
    booking = await service.book(request.user_id, request.journey_date, _fare_request(request))
    return TicketBookingResponse(
        ticket=TicketResponse.model_validate(booking.ticket),
        checkout=CheckoutResponse.model_validate(booking.checkout),
    )


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    user_id: str = Query(..., description="Passenger phone number"),
    service: TicketService = Depends(get_ticket_service),
) -> list[TicketResponse]:
    """List a passenger's tickets, newest first."""
    try:
        phone = normalize_phone(user_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    tickets = await service.list_tickets(phone)
    return [TicketResponse.model_validate(ticket) for ticket in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: UUID,
    service: TicketService = Depends(get_ticket_service),
) -> TicketResponse:
    ticket = await service.get_ticket(ticket_id)
    return TicketResponse.model_validate(ticket)
