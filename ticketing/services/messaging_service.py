"""WhatsApp payment link stub.

Builds the wa.me deep link an inspector shares with a passenger and records
the outgoing message to a local outbox instead of calling a messaging API.
"""

import asyncio
import functools
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from urllib.parse import quote

import structlog
from opentelemetry.trace import SpanKind

from ticketing.core.config import settings
from ticketing.core.exceptions import NotificationFailure
from ticketing.core.telemetry import service_span
from ticketing.utils.pii import hash_pii

logger = structlog.get_logger(__name__)

OUTBOX_FILENAME = "whatsapp_outbox.txt"
CURRENCY_SYMBOLS = {"INR": "₹"}


@dataclass(frozen=True)
class PaymentNotification:
    """A payment link message as handed to the passenger."""

    recipient_hash: str
    message: str
    whatsapp_url: str
    sent_at: datetime


def format_amount(amount: Decimal, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency)
    return f"{symbol}{amount}" if symbol else f"{amount} {currency}"


def build_payment_message(payment_url: str, amount: Decimal, currency: str = "INR") -> str:
    return f"Please pay your challan using this link: {payment_url}\nAmount: {format_amount(amount, currency)}"


def build_whatsapp_link(phone: str, message: str, base_url: str | None = None) -> str:
    """
    Build a click-to-chat link.

    wa.me wants the number as bare digits with country code, no "+".

    Raises:
        NotificationFailure: If the phone number has no digits
    """
    digits = re.sub(r"\D", "", phone)
    if not digits:
        raise NotificationFailure("Phone number has no digits.")
    base = (base_url or settings.WHATSAPP_BASE_URL).rstrip("/")
    return f"{base}/{digits}?text={quote(message, safe='')}"


class MessagingService:
    """
    Sends payment links to passengers.

    This is a stub: messages are logged and appended to an outbox file under
    SMS_LOG_DIR rather than delivered. The phone number is only ever written
    hashed.
    """

    def __init__(self, log_dir: str | None = None) -> None:
        """
        Initialize the messaging service.

        Args:
            log_dir: Outbox directory (SMS_LOG_DIR when omitted; no file when neither is set)
        """
        directory = log_dir if log_dir is not None else settings.SMS_LOG_DIR
        self.outbox_file = Path(directory) / OUTBOX_FILENAME if directory else None

    async def send_payment_link(
        self,
        phone: str,
        payment_url: str,
        amount: Decimal,
        currency: str = "INR",
    ) -> PaymentNotification:
        """
        Send a payment link to a passenger.

        Args:
            phone: Recipient phone number (E.164)
            payment_url: Checkout URL for the order
            amount: Amount due
            currency: ISO currency code

        Returns:
            PaymentNotification describing what was sent

        Raises:
            NotificationFailure: If the number is unusable or the outbox write failed
        """
        with service_span("whatsapp.send_payment_link", "whatsapp", kind=SpanKind.CLIENT) as span:
            message = build_payment_message(payment_url, amount, currency)
            whatsapp_url = build_whatsapp_link(phone, message)

            phone_hash = hash_pii(phone)
            span.set_attribute("whatsapp.recipient_hash", phone_hash)
            span.set_attribute("whatsapp.stub", True)
            sent_at = datetime.now(UTC)

            if self.outbox_file is not None:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(
                    None,
                    functools.partial(self._write_to_outbox_sync, message, sent_at.isoformat(), phone_hash),
                )

            logger.info("payment_link_sent", recipient_hash=phone_hash, payment_url=payment_url)
            return PaymentNotification(
                recipient_hash=phone_hash,
                message=message,
                whatsapp_url=whatsapp_url,
                sent_at=sent_at,
            )

    def _write_to_outbox_sync(self, message: str, timestamp: str, phone_hash: str) -> None:
        """Append one outbox entry (runs in thread pool)."""
        if self.outbox_file is None:
            return

        entry = f"[{timestamp}] TO: {phone_hash} | MESSAGE: {message!r}\n"
        try:
            self.outbox_file.parent.mkdir(parents=True, exist_ok=True)
            with self.outbox_file.open("a", encoding="utf-8") as f:
                f.write(entry)
        except OSError as e:
            logger.error("payment_link_outbox_write_failed", error=str(e), recipient_hash=phone_hash)
            raise NotificationFailure(f"Could not record payment link: {e}") from e
