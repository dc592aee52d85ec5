"""Tests for challan issuance and payment link delivery."""

import uuid
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import select

from ticketing.core.config import settings
from ticketing.core.exceptions import (
    ChallanNotFound,
    GatewayUnavailable,
    InvalidFineAmount,
    InvalidInput,
    TicketNotFound,
    VerificationFailed,
)
from ticketing.models.payment import LinkedEntityType, OrderStatus
from ticketing.models.ticket import Challan, FareClass, PassengerClass, PaymentStatus, Ticket, TripValidity
from ticketing.services.challan_service import ChallanService
from ticketing.services.messaging_service import MessagingService
from ticketing.services.payment_service import PaymentService
from ticketing.services.storage import TicketingStore

from tests.helpers.razorpay import FakeRazorpay, sign

PHONE = "+919876543210"


@pytest.fixture
def challan_service(
    store: TicketingStore,
    payment_service: PaymentService,
    messaging_service: MessagingService,
) -> ChallanService:
    return ChallanService(store, payment_service, messaging_service)


class TestIssue:
    @pytest.mark.asyncio
    async def test_issues_challan_with_payment_link(
        self,
        challan_service: ChallanService,
        store: TicketingStore,
        outbox_dir: Path,
    ) -> None:
        result = await challan_service.issue(PHONE, reason="No ticket", fine_amount=Decimal("500"))

        assert result.challan.payment_status == PaymentStatus.PENDING
        assert result.challan.fine_amount == Decimal("500.00")
        assert result.checkout is not None
        assert result.checkout.entity_type == LinkedEntityType.CHALLAN
        assert result.checkout.entity_id == result.challan.id
        assert result.notification_sent is True
        assert result.notification is not None
        assert result.checkout.payment_url in result.notification.message
        assert (outbox_dir / "whatsapp_outbox.txt").exists()

        order = await store.get_order(result.checkout.order_id)
        assert order is not None
        assert order.status == OrderStatus.AWAITING_CALLBACK

    @pytest.mark.asyncio
    async def test_defaults(self, challan_service: ChallanService) -> None:
        result = await challan_service.issue(PHONE)

        assert result.challan.reason == settings.DEFAULT_CHALLAN_REASON
        assert result.challan.fine_amount == settings.DEFAULT_FINE_AMOUNT

    @pytest.mark.asyncio
    async def test_zero_fine_is_paid_without_order(
        self,
        challan_service: ChallanService,
        fake_razorpay: FakeRazorpay,
    ) -> None:
        result = await challan_service.issue(PHONE, fine_amount=Decimal("0"))

        assert result.challan.payment_status == PaymentStatus.PAID
        assert result.checkout is None
        assert result.notification_sent is False
        assert fake_razorpay.requests == []

    @pytest.mark.asyncio
    async def test_negative_fine(self, challan_service: ChallanService, fake_razorpay: FakeRazorpay) -> None:
        with pytest.raises(InvalidFineAmount):
            await challan_service.issue(PHONE, fine_amount=Decimal("-10"))

        assert fake_razorpay.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fine", [Decimal("0.004"), Decimal("12.345")])
    async def test_sub_paisa_fine_is_rejected(
        self,
        challan_service: ChallanService,
        store: TicketingStore,
        fake_razorpay: FakeRazorpay,
        fine: Decimal,
    ) -> None:
        with pytest.raises(InvalidFineAmount):
            await challan_service.issue(PHONE, fine_amount=fine)

        assert fake_razorpay.requests == []
        result = await store.db.execute(select(Challan))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_fine_is_normalized_to_paise(self, challan_service: ChallanService) -> None:
        result = await challan_service.issue(PHONE, fine_amount=Decimal("500.5"))

        assert result.challan.fine_amount == Decimal("500.50")
        assert result.checkout is not None
        assert result.checkout.amount_subunits == 50050

    @pytest.mark.asyncio
    async def test_unknown_ticket_reference(self, challan_service: ChallanService) -> None:
        with pytest.raises(TicketNotFound):
            await challan_service.issue(PHONE, ticket_ref=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_links_existing_ticket(self, challan_service: ChallanService, store: TicketingStore) -> None:
        ticket = Ticket(
            user_id=PHONE,
            from_station="Dadar",
            to_station="Bandra",
            journey_date=date(2024, 11, 4),
            fare_class=FareClass.STANDARD,
            passenger_class=PassengerClass.ADULT,
            validity=TripValidity.ONE_WAY,
            fare=Decimal("30.00"),
        )
        await store.create_ticket(ticket)

        result = await challan_service.issue(PHONE, ticket_ref=ticket.id)

        assert result.challan.ticket_id == ticket.id

    @pytest.mark.asyncio
    async def test_delivery_failure_keeps_challan(
        self,
        store: TicketingStore,
        payment_service: PaymentService,
        tmp_path: Path,
    ) -> None:
        blocker = tmp_path / "outbox-file"
        blocker.write_text("")
        service = ChallanService(store, payment_service, MessagingService(log_dir=str(blocker)))

        result = await service.issue(PHONE)

        assert result.notification_sent is False
        assert result.notification_error is not None
        assert result.checkout is not None
        stored = await store.get_challan(result.challan.id)
        assert stored is not None
        assert stored.payment_status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_gateway_failure_keeps_challan_issued(
        self,
        challan_service: ChallanService,
        store: TicketingStore,
        fake_razorpay: FakeRazorpay,
    ) -> None:
        fake_razorpay.fail_with = "connect"

        with pytest.raises(GatewayUnavailable):
            await challan_service.issue(PHONE)

        result = await store.db.execute(select(Challan))
        challan = result.scalar_one()
        assert challan.payment_status == PaymentStatus.PENDING

        fake_razorpay.fail_with = None
        retried = await challan_service.request_payment(challan.id)
        assert retried.checkout is not None
        assert retried.notification_sent is True


class TestRequestPayment:
    @pytest.mark.asyncio
    async def test_unknown_challan(self, challan_service: ChallanService) -> None:
        with pytest.raises(ChallanNotFound):
            await challan_service.request_payment(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_paid_challan_is_rejected(self, challan_service: ChallanService) -> None:
        issued = await challan_service.issue(PHONE, fine_amount=Decimal("0"))

        with pytest.raises(InvalidInput):
            await challan_service.request_payment(issued.challan.id)

    @pytest.mark.asyncio
    async def test_failed_challan_gets_fresh_order(
        self,
        challan_service: ChallanService,
        payment_service: PaymentService,
        store: TicketingStore,
    ) -> None:
        issued = await challan_service.issue(PHONE)
        assert issued.checkout is not None
        with pytest.raises(VerificationFailed):
            await payment_service.handle_callback("pay_x", issued.checkout.order_id, "tampered")
        failed = await store.get_challan(issued.challan.id)
        assert failed is not None
        assert failed.payment_status == PaymentStatus.FAILED

        retried = await challan_service.request_payment(issued.challan.id)

        assert retried.checkout is not None
        assert retried.checkout.order_id != issued.checkout.order_id
        stored = await store.get_challan(issued.challan.id)
        assert stored is not None
        assert stored.payment_status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_paid_by_callback(
        self,
        challan_service: ChallanService,
        payment_service: PaymentService,
        store: TicketingStore,
    ) -> None:
        issued = await challan_service.issue(PHONE)
        assert issued.checkout is not None
        order_id = issued.checkout.order_id

        await payment_service.handle_callback(
            "pay_fine", order_id, sign(order_id, "pay_fine", settings.RAZORPAY_KEY_SECRET)
        )

        stored = await store.get_challan(issued.challan.id)
        assert stored is not None
        assert stored.payment_status == PaymentStatus.PAID
        assert stored.payment_ref == "pay_fine"

    @pytest.mark.asyncio
    async def test_pending_challan_reuses_open_order(
        self,
        challan_service: ChallanService,
        fake_razorpay: FakeRazorpay,
    ) -> None:
        issued = await challan_service.issue(PHONE)
        assert issued.checkout is not None

        resent = await challan_service.request_payment(issued.challan.id)

        assert resent.checkout is not None
        assert resent.checkout.order_id == issued.checkout.order_id
        assert resent.notification_sent is True
        assert fake_razorpay.order_creations == 1

    @pytest.mark.asyncio
    async def test_resend_then_pay_settles_once(
        self,
        challan_service: ChallanService,
        payment_service: PaymentService,
    ) -> None:
        issued = await challan_service.issue(PHONE, fine_amount=Decimal("500"))
        resent = await challan_service.request_payment(issued.challan.id)
        assert resent.checkout is not None
        order_id = resent.checkout.order_id

        first = await payment_service.handle_callback(
            "pay_a", order_id, sign(order_id, "pay_a", settings.RAZORPAY_KEY_SECRET)
        )
        second = await payment_service.handle_callback(
            "pay_a", order_id, sign(order_id, "pay_a", settings.RAZORPAY_KEY_SECRET)
        )

        assert [first.duplicate, second.duplicate] == [False, True]
        with pytest.raises(InvalidInput):
            await challan_service.request_payment(issued.challan.id)

    @pytest.mark.asyncio
    async def test_capture_on_second_open_order_keeps_first_payment(
        self,
        challan_service: ChallanService,
        payment_service: PaymentService,
        store: TicketingStore,
    ) -> None:
        issued = await challan_service.issue(PHONE, fine_amount=Decimal("500"))
        assert issued.checkout is not None
        first_order_id = issued.checkout.order_id
        # A second order for the same challan, as a concurrent resend could leave behind
        extra = await payment_service.create_order(
            Decimal("500.00"), "INR", LinkedEntityType.CHALLAN, issued.challan.id
        )
        extra_order_id = extra.gateway_order_id
        await payment_service.begin_checkout(extra)

        await payment_service.handle_callback(
            "pay_a", first_order_id, sign(first_order_id, "pay_a", settings.RAZORPAY_KEY_SECRET)
        )
        await payment_service.handle_callback(
            "pay_b", extra_order_id, sign(extra_order_id, "pay_b", settings.RAZORPAY_KEY_SECRET)
        )

        stored = await store.get_challan(issued.challan.id)
        assert stored is not None
        assert stored.payment_status == PaymentStatus.PAID
        assert stored.payment_ref == "pay_a"
        # The second capture is still on record for refund
        extra_stored = await store.get_order(extra_order_id)
        assert extra_stored is not None
        assert extra_stored.status == OrderStatus.VERIFIED
        assert extra_stored.payment_id == "pay_b"

    @pytest.mark.asyncio
    async def test_tampered_callback_on_second_order_keeps_challan_paid(
        self,
        challan_service: ChallanService,
        payment_service: PaymentService,
        store: TicketingStore,
    ) -> None:
        issued = await challan_service.issue(PHONE)
        assert issued.checkout is not None
        order_id = issued.checkout.order_id
        extra = await payment_service.create_order(
            issued.challan.fine_amount, "INR", LinkedEntityType.CHALLAN, issued.challan.id
        )
        extra_order_id = extra.gateway_order_id

        await payment_service.handle_callback(
            "pay_a", order_id, sign(order_id, "pay_a", settings.RAZORPAY_KEY_SECRET)
        )
        with pytest.raises(VerificationFailed):
            await payment_service.handle_callback("pay_x", extra_order_id, "tampered")

        stored = await store.get_challan(issued.challan.id)
        assert stored is not None
        assert stored.payment_status == PaymentStatus.PAID
        assert stored.payment_ref == "pay_a"
