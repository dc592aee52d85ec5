"""Pydantic schemas for fare quotes and ticket booking."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ticketing.models.ticket import FareClass, PassengerClass, PaymentStatus, TripValidity
from ticketing.utils.phone import normalize_phone

# Labels printed on tickets and used by the booking form
FARE_CLASS_ALIASES = {
    "second class": FareClass.STANDARD.value,
    "second": FareClass.STANDARD.value,
    "first class": FareClass.PREMIUM.value,
    "first": FareClass.PREMIUM.value,
}
VALIDITY_ALIASES = {
    "one-way": TripValidity.ONE_WAY.value,
    "one way": TripValidity.ONE_WAY.value,
    "single": TripValidity.ONE_WAY.value,
    "round trip": TripValidity.ROUND_TRIP.value,
    "return trip": TripValidity.ROUND_TRIP.value,
}


def _resolve_label(value: Any, aliases: dict[str, str]) -> Any:
    if not isinstance(value, str):
        return value
    key = value.strip().lower()
    return aliases.get(key, key)


# ==================== Fare Schemas ====================


class FareQuoteRequest(BaseModel):
    """Route and classes for a fare quote."""

    from_station: str = Field(..., min_length=1, max_length=100)
    to_station: str = Field(..., min_length=1, max_length=100)
    fare_class: FareClass = FareClass.STANDARD
    passenger_class: PassengerClass = PassengerClass.ADULT
    validity: TripValidity = TripValidity.ONE_WAY

    @field_validator("fare_class", mode="before")
    @classmethod
    def resolve_fare_class(cls, v: Any) -> Any:
        """Accept "Second Class" / "First Class" as printed on tickets."""
        return _resolve_label(v, FARE_CLASS_ALIASES)

    @field_validator("passenger_class", mode="before")
    @classmethod
    def resolve_passenger_class(cls, v: Any) -> Any:
        return _resolve_label(v, {})

    @field_validator("validity", mode="before")
    @classmethod
    def resolve_validity(cls, v: Any) -> Any:
        """Accept "One-Way" / "Return" and similar labels."""
        return _resolve_label(v, VALIDITY_ALIASES)


class FareQuoteResponse(BaseModel):
    amount: Decimal
    currency: str
    available: bool = Field(..., description="False when a station is not in the catalog")
    distance_factor: int


# ==================== Booking Schemas ====================


class TicketBookingRequest(FareQuoteRequest):
    """Request to book a ticket and open checkout."""

    user_id: str = Field(..., description="Passenger phone number")
    journey_date: date

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        """Normalize the passenger phone number to E.164."""
        return normalize_phone(v)


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    from_station: str
    to_station: str
    journey_date: date
    fare_class: FareClass
    passenger_class: PassengerClass
    validity: TripValidity
    fare: Decimal
    issued_at: datetime
    payment_ref: str | None
    payment_status: PaymentStatus


class CheckoutResponse(BaseModel):
    """Everything the gateway checkout widget needs."""

    model_config = ConfigDict(from_attributes=True)

    key_id: str
    order_id: str
    amount: Decimal
    amount_subunits: int = Field(..., description="Amount in paise")
    currency: str
    payment_url: str


class TicketBookingResponse(BaseModel):
    ticket: TicketResponse
    checkout: CheckoutResponse
