"""Pydantic schemas for gateway callbacks."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ticketing.models.payment import LinkedEntityType


class PaymentCallback(BaseModel):
    """Fields Razorpay posts back after checkout."""

    razorpay_payment_id: str = Field(..., min_length=1, max_length=64)
    razorpay_order_id: str = Field(..., min_length=1, max_length=64)
    razorpay_signature: str = Field(..., min_length=1, max_length=128)


class VerifiedPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    payment_id: str
    entity_type: LinkedEntityType
    entity_id: UUID
    amount: Decimal
    currency: str
    settled_at: datetime | None
    duplicate: bool = Field(..., description="True if the order was already settled by an earlier callback")
