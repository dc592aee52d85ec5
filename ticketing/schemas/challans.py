"""Pydantic schemas for challans."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ticketing.models.ticket import PaymentStatus
from ticketing.schemas.tickets import CheckoutResponse
from ticketing.utils.phone import normalize_phone


class ChallanIssueRequest(BaseModel):
    """Request to issue a challan.

    Reason and fine default to the configured values when omitted.
    """

    user_id: str = Field(..., description="Passenger phone number")
    reason: str | None = Field(None, max_length=255)
    fine_amount: Decimal | None = Field(None, max_digits=10, decimal_places=2)
    ticket_id: UUID | None = None

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        return normalize_phone(v)


class ChallanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ticket_id: UUID | None
    user_id: str
    reason: str
    fine_amount: Decimal
    issued_at: datetime
    payment_ref: str | None
    payment_status: PaymentStatus


class NotificationResponse(BaseModel):
    sent: bool
    error: str | None = None
    whatsapp_url: str | None = None
    message: str | None = None


class ChallanIssueResponse(BaseModel):
    """Issued challan with its payment link and delivery outcome."""

    challan: ChallanResponse
    checkout: CheckoutResponse | None = None
    payment_link: str | None = None
    notification: NotificationResponse
