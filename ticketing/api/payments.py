"""Payment gateway callback endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from ticketing.api.dependencies import get_payment_service
from ticketing.schemas.payments import PaymentCallback, VerifiedPaymentResponse
from ticketing.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/verify", response_model=VerifiedPaymentResponse)
async def verify_payment(
    callback: PaymentCallback,
    service: PaymentService = Depends(get_payment_service),
) -> VerifiedPaymentResponse:
    """
    Verify a checkout callback and settle its order.

    Safe to repeat: a callback for an order that is already settled returns
    the original result with ``duplicate=true``.
    """
    result = await service.handle_callback(
        callback.razorpay_payment_id,
        callback.razorpay_order_id,
        callback.razorpay_signature,
    )
    return VerifiedPaymentResponse(**asdict(result))


@router.get("/callback", response_model=VerifiedPaymentResponse)
async def payment_callback(
    razorpay_payment_id: str = Query(..., min_length=1, max_length=64),
    razorpay_order_id: str = Query(..., min_length=1, max_length=64),
    razorpay_signature: str = Query(..., min_length=1, max_length=128),
    service: PaymentService = Depends(get_payment_service),
) -> VerifiedPaymentResponse:
    """Redirect-style callback: the same fields as query parameters."""
    result = await service.handle_callback(razorpay_payment_id, razorpay_order_id, razorpay_signature)
    return VerifiedPaymentResponse(**asdict(result))
