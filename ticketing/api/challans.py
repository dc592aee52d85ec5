"""Challan endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from ticketing.api.dependencies import get_challan_service, get_store
from ticketing.core.exceptions import ChallanNotFound
from ticketing.schemas.challans import (
    ChallanIssueRequest,
    ChallanIssueResponse,
    ChallanResponse,
    NotificationResponse,
)
from ticketing.schemas.tickets import CheckoutResponse
from ticketing.services.challan_service import ChallanIssueResult, ChallanService
from ticketing.services.storage import TicketingStore

router = APIRouter(prefix="/challans", tags=["challans"])


def _issue_response(result: ChallanIssueResult) -> ChallanIssueResponse:
    notification = result.notification
    return ChallanIssueResponse(
        challan=ChallanResponse.model_validate(result.challan),
        checkout=CheckoutResponse.model_validate(result.checkout) if result.checkout else None,
        payment_link=result.checkout.payment_url if result.checkout else None,
        notification=NotificationResponse(
            sent=result.notification_sent,
            error=result.notification_error,
            whatsapp_url=notification.whatsapp_url if notification else None,
            message=notification.message if notification else None,
        ),
    )


@router.post("", response_model=ChallanIssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_challan(
    request: ChallanIssueRequest,
    service: ChallanService = Depends(get_challan_service),
) -> ChallanIssueResponse:
    """
    Issue a challan and send the passenger a payment link.

    A delivery failure is reported in ``notification`` and does not fail
    the request. A gateway failure does: the challan stays issued and
    ``POST /challans/{id}/payment-order`` retries it.
    """
    result = await service.issue(
        user_id=request.user_id,
        reason=request.reason,
        fine_amount=request.fine_amount,
        ticket_ref=request.ticket_id,
    )
    return _issue_response(result)


@router.get("/{challan_id}", response_model=ChallanResponse)
async def get_challan(
    challan_id: UUID,
    store: TicketingStore = Depends(get_store),
) -> ChallanResponse:
    challan = await store.get_challan(challan_id)
    if challan is None:
        raise ChallanNotFound
    return ChallanResponse.model_validate(challan)


@router.post("/{challan_id}/payment-order", response_model=ChallanIssueResponse)
async def request_challan_payment(
    challan_id: UUID,
    service: ChallanService = Depends(get_challan_service),
) -> ChallanIssueResponse:
    """Resend the payment link for an unpaid challan, reusing its open order."""
    result = await service.request_payment(challan_id)
    return _issue_response(result)
