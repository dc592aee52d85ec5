"""Domain exceptions for booking, payment and challan flows.

Every error is an ``HTTPException`` so services can raise it directly and
FastAPI answers with the right status code. Each class also carries a stable
``kind`` that the API renders next to ``detail`` so clients can tell a
gateway timeout from a rejected order without parsing messages.
"""

from fastapi import HTTPException, status


class TicketingError(HTTPException):
    """Base class for all ticketing errors."""

    default_status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request could not be processed."
    kind: str = "ticketing_error"
    retryable: bool = False

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(status_code=self.default_status_code, detail=detail or self.default_detail)


# ---------------------------------------------------------------------------
# Rejected locally, never reaches the gateway
# ---------------------------------------------------------------------------
class InvalidInput(TicketingError):
    default_detail = "Invalid input."
    kind = "invalid_input"


class UnknownStation(InvalidInput):
    default_detail = "Fare unavailable: station not in catalog."


class InvalidAmount(InvalidInput):
    default_detail = "Amount must be greater than zero."


class InvalidFineAmount(InvalidInput):
    default_detail = "Fine amount must not be negative."


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------
class GatewayUnavailable(TicketingError):
    default_status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Payment gateway is unavailable. Please try again."
    kind = "gateway_unavailable"


class GatewayTimeout(GatewayUnavailable):
    default_status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_detail = "Payment gateway timed out. Please try again."
    kind = "gateway_timeout"


class GatewayRejected(TicketingError):
    default_status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment gateway rejected the request."
    kind = "gateway_rejected"


# ---------------------------------------------------------------------------
# Callback handling
# ---------------------------------------------------------------------------
class VerificationFailed(TicketingError):
    default_detail = "Payment signature verification failed."
    kind = "verification_failed"


class OrderNotFound(TicketingError):
    default_status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Payment order not found."
    kind = "order_not_found"


class OrderAlreadyFailed(TicketingError):
    default_status_code = status.HTTP_409_CONFLICT
    default_detail = "Payment order has already failed."
    kind = "order_failed"


class PersistenceFailure(TicketingError):
    """Storage write failed; the operation may be retried."""

    default_status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Could not record the payment. It will be reconciled."
    kind = "persistence_failure"
    retryable = True


# ---------------------------------------------------------------------------
# Lookups and other collaborators
# ---------------------------------------------------------------------------
class TicketNotFound(TicketingError):
    default_status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Ticket not found."
    kind = "not_found"


class ChallanNotFound(TicketingError):
    default_status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Challan not found."
    kind = "not_found"


class OcrUnavailable(TicketingError):
    default_status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Ticket parsing service is unavailable."
    kind = "ocr_unavailable"


class NotificationFailure(TicketingError):
    default_status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment link could not be delivered."
    kind = "notification_failure"
