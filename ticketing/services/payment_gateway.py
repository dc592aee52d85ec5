"""Razorpay gateway client.

Covers the three gateway calls the payment flow needs: minting an order,
listing an order's payments for reconciliation, and checking the signature
Razorpay attaches to a checkout callback. The Razorpay SDK is synchronous,
so network calls run in the default executor.
"""

import asyncio
import functools
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import razorpay
import requests
import structlog
from opentelemetry.trace import SpanKind
from pydantic import BaseModel, ValidationError
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError

from ticketing.core.config import settings
from ticketing.core.exceptions import GatewayRejected, GatewayTimeout, GatewayUnavailable
from ticketing.core.telemetry import service_span

logger = structlog.get_logger(__name__)

SUBUNITS_PER_UNIT = Decimal("100")  # Razorpay amounts are in paise


class GatewayOrder(BaseModel):
    """Order as returned by the gateway."""

    order_id: str
    amount: Decimal
    currency: str
    receipt: str | None = None
    status: str


class GatewayPayment(BaseModel):
    """Payment attempt against an order."""

    payment_id: str
    order_id: str
    amount: Decimal
    currency: str
    status: str  # created, authorized, captured, refunded, failed

    @property
    def is_captured(self) -> bool:
        return self.status == "captured"


def to_subunits(amount: Decimal) -> int:
    """Convert rupees to paise, rounding half-up."""
    return int((amount * SUBUNITS_PER_UNIT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_subunits(value: int) -> Decimal:
    return (Decimal(value) / SUBUNITS_PER_UNIT).quantize(Decimal("0.01"))


class RazorpayGateway:
    """Async wrapper around the Razorpay SDK client."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the gateway client.

        Args:
            key_id: Razorpay key id (public, also handed to checkout)
            key_secret: Razorpay key secret (API auth and callback signatures)
            base_url: API host; the SDK appends the versioned path
            timeout: Per-request timeout in seconds
            session: Optional requests session (tests inject an in-memory one)
        """
        self.key_id = key_id
        self.timeout = timeout
        self._client = razorpay.Client(
            session=session,
            auth=(key_id, key_secret),
            base_url=base_url.rstrip("/"),
        )

    @classmethod
    def from_settings(cls) -> "RazorpayGateway":
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            base_url=settings.RAZORPAY_API_URL,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        )

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any) -> dict[str, Any]:
        """
        Run one SDK call off the event loop and check the decoded body.

        Raises:
            GatewayTimeout: If the request timed out
            GatewayUnavailable: If the gateway could not be reached or reported a server error
            GatewayRejected: If the gateway refused the request or answered garbage
        """
        loop = asyncio.get_running_loop()
        try:
            body = await loop.run_in_executor(None, functools.partial(func, *args, timeout=self.timeout))
        except requests.Timeout as e:
            logger.warning("gateway_timeout", operation=operation, error=str(e))
            raise GatewayTimeout from e
        except ValueError as e:
            # Undecodable body, including requests.JSONDecodeError
            raise GatewayRejected("Payment gateway returned a malformed response.") from e
        except requests.RequestException as e:
            logger.warning("gateway_unreachable", operation=operation, error=str(e))
            raise GatewayUnavailable from e
        except (ServerError, GatewayError) as e:
            logger.warning("gateway_server_error", operation=operation, error=str(e))
            raise GatewayUnavailable(f"Payment gateway error: {e}") from e
        except BadRequestError as e:
            logger.warning("gateway_request_rejected", operation=operation, description=str(e))
            raise GatewayRejected(f"Payment gateway rejected the request: {e}") from e

        if not isinstance(body, dict):
            raise GatewayRejected("Payment gateway returned a malformed response.")
        return body

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder:
        """
        Mint a gateway order for an amount.

        Args:
            amount: Amount in major units (rupees)
            currency: ISO currency code
            receipt: Our reference for the order (shown in the Razorpay dashboard)
            notes: Free-form key/value notes stored on the order

        Returns:
            GatewayOrder with the gateway-assigned order id
        """
        with service_span(
            "razorpay.create_order",
            "razorpay",
            kind=SpanKind.CLIENT,
            **{"payment.currency": currency, "payment.receipt": receipt},
        ) as span:
            body = await self._call(
                "create_order",
                self._client.order.create,
                {
                    "amount": to_subunits(amount),
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes or {},
                },
            )
            try:
                order = GatewayOrder(
                    order_id=body["id"],
                    amount=from_subunits(body["amount"]),
                    currency=body["currency"],
                    receipt=body.get("receipt"),
                    status=body.get("status", "created"),
                )
            except (KeyError, TypeError, ValidationError) as e:
                raise GatewayRejected("Payment gateway returned an incomplete order.") from e

            span.set_attribute("payment.order_id", order.order_id)
            logger.info("gateway_order_created", order_id=order.order_id, amount=str(order.amount), currency=currency)
            return order

    async def fetch_order_payments(self, order_id: str) -> list[GatewayPayment]:
        """
        List payment attempts made against an order.

        Args:
            order_id: Gateway order id

        Returns:
            Payments in the order the gateway lists them
        """
        with service_span(
            "razorpay.fetch_order_payments",
            "razorpay",
            kind=SpanKind.CLIENT,
            **{"payment.order_id": order_id},
        ):
            body = await self._call("fetch_order_payments", self._client.order.payments, order_id)
            try:
                return [
                    GatewayPayment(
                        payment_id=item["id"],
                        order_id=item.get("order_id", order_id),
                        amount=from_subunits(item["amount"]),
                        currency=item["currency"],
                        status=item["status"],
                    )
                    for item in body.get("items", [])
                ]
            except (KeyError, TypeError, ValidationError) as e:
                raise GatewayRejected("Payment gateway returned malformed payments.") from e

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """
        Check the signature Razorpay sends with a checkout callback.

        Args:
            order_id: razorpay_order_id from the callback
            payment_id: razorpay_payment_id from the callback
            signature: razorpay_signature from the callback

        Returns:
            True if the signature matches
        """
        try:
            self._client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except SignatureVerificationError:
            return False
        except TypeError:
            # compare_digest refuses non-ASCII text
            return False
        return True
