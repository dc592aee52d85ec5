"""Tests for the WhatsApp payment link stub."""

from decimal import Decimal
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest

from ticketing.core.exceptions import NotificationFailure
from ticketing.services.messaging_service import (
    MessagingService,
    build_payment_message,
    build_whatsapp_link,
    format_amount,
)
from ticketing.utils.pii import hash_pii

PHONE = "+919876543210"
PAYMENT_URL = "https://pay.example.test/checkout/order_TEST0000000001"


class TestMessageFormatting:
    def test_rupee_amount(self) -> None:
        assert format_amount(Decimal("500.00"), "INR") == "₹500.00"

    def test_other_currency_uses_code(self) -> None:
        assert format_amount(Decimal("5.00"), "USD") == "5.00 USD"

    def test_payment_message(self) -> None:
        message = build_payment_message(PAYMENT_URL, Decimal("500.00"))

        assert message == f"Please pay your challan using this link: {PAYMENT_URL}\nAmount: ₹500.00"


class TestWhatsappLink:
    def test_strips_plus_and_encodes_message(self) -> None:
        message = build_payment_message(PAYMENT_URL, Decimal("500.00"))

        link = build_whatsapp_link(PHONE, message, base_url="https://wa.me")

        parts = urlsplit(link)
        assert parts.netloc == "wa.me"
        assert parts.path == "/919876543210"
        assert " " not in link
        assert parse_qs(parts.query)["text"] == [message]

    def test_phone_without_digits(self) -> None:
        with pytest.raises(NotificationFailure):
            build_whatsapp_link("not a number", "hi")


class TestSendPaymentLink:
    @pytest.mark.asyncio
    async def test_writes_hashed_recipient_to_outbox(
        self,
        messaging_service: MessagingService,
        outbox_dir: Path,
    ) -> None:
        notification = await messaging_service.send_payment_link(PHONE, PAYMENT_URL, Decimal("500.00"))

        assert notification.recipient_hash == hash_pii(PHONE)
        assert notification.whatsapp_url.startswith("https://wa.me/919876543210?text=")
        outbox = (outbox_dir / "whatsapp_outbox.txt").read_text(encoding="utf-8")
        assert hash_pii(PHONE) in outbox
        assert PAYMENT_URL in outbox
        assert "9876543210" not in outbox.replace(hash_pii(PHONE), "")

    @pytest.mark.asyncio
    async def test_appends_one_line_per_message(
        self,
        messaging_service: MessagingService,
        outbox_dir: Path,
    ) -> None:
        await messaging_service.send_payment_link(PHONE, PAYMENT_URL, Decimal("500.00"))
        await messaging_service.send_payment_link(PHONE, PAYMENT_URL, Decimal("250.00"))

        lines = (outbox_dir / "whatsapp_outbox.txt").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2

    @pytest.mark.asyncio
    async def test_unwritable_outbox_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")
        service = MessagingService(log_dir=str(blocker))

        with pytest.raises(NotificationFailure):
            await service.send_payment_link(PHONE, PAYMENT_URL, Decimal("500.00"))

    @pytest.mark.asyncio
    async def test_without_outbox(self) -> None:
        service = MessagingService(log_dir="")

        notification = await service.send_payment_link(PHONE, PAYMENT_URL, Decimal("500.00"))

        assert service.outbox_file is None
        assert "Amount: ₹500.00" in notification.message
