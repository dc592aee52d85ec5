"""Ticket, challan and payment order persistence.

This is the only place that writes to the database. Every write commits
its own transaction and turns driver errors into ``PersistenceFailure`` so
callers see one retryable error kind regardless of backend.
"""

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import PersistenceFailure
from ticketing.models.payment import OPEN_ORDER_STATUSES, LinkedEntityType, OrderStatus, PaymentOrder
from ticketing.models.ticket import Challan, PaymentStatus, Ticket

logger = structlog.get_logger(__name__)

_ENTITY_MODELS: dict[LinkedEntityType, type[Ticket] | type[Challan]] = {
    LinkedEntityType.TICKET: Ticket,
    LinkedEntityType.CHALLAN: Challan,
}


class TicketingStore:
    """Storage for tickets, challans and payment orders."""

    def __init__(self, db: AsyncSession) -> None:
        """
        Initialize the store.

        Args:
            db: Database session
        """
        self.db = db

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("storage_write_failed", action=action, error=str(e))
            raise PersistenceFailure from e

    # ==================== Tickets and challans ====================

    async def create_ticket(self, ticket: Ticket) -> uuid.UUID:
        self.db.add(ticket)
        await self._commit("create_ticket")
        return ticket.id

    async def create_challan(self, challan: Challan) -> uuid.UUID:
        self.db.add(challan)
        await self._commit("create_challan")
        return challan.id

    async def get_ticket(self, ticket_id: uuid.UUID) -> Ticket | None:
        return await self.db.get(Ticket, ticket_id)

    async def get_challan(self, challan_id: uuid.UUID) -> Challan | None:
        return await self.db.get(Challan, challan_id)

    async def get_tickets_by_user(self, user_id: str) -> Sequence[Ticket]:
        """
        List a passenger's tickets, newest first.

        Args:
            user_id: E.164 phone number
        """
        result = await self.db.execute(
            select(Ticket).where(Ticket.user_id == user_id).order_by(Ticket.issued_at.desc())
        )
        return result.scalars().all()

    async def update_payment_status(
        self,
        entity_type: LinkedEntityType,
        entity_id: uuid.UUID,
        status: PaymentStatus,
        payment_ref: str | None = None,
    ) -> None:
        """
        Set the payment status of a ticket or challan.

        Raises:
            PersistenceFailure: If the entity does not exist or the write fails
        """
        try:
            await self._set_entity_status(entity_type, entity_id, status, payment_ref)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("storage_write_failed", action="update_payment_status", error=str(e))
            raise PersistenceFailure from e
        await self._commit("update_payment_status")
        await self._refresh_entity(entity_type, entity_id)

    async def _set_entity_status(
        self,
        entity_type: LinkedEntityType,
        entity_id: uuid.UUID,
        status: PaymentStatus,
        payment_ref: str | None,
        keep_paid: bool = False,
    ) -> bool:
        """
        Issue the entity UPDATE inside the current transaction.

        With ``keep_paid`` a Paid entity is left untouched, including its
        payment_ref.

        Returns:
            True if the row was updated, False if it was already Paid and kept

        Raises:
            PersistenceFailure: If no such entity exists (the transaction is rolled back)
        """
        model = _ENTITY_MODELS[entity_type]
        values: dict[str, object] = {"payment_status": status}
        if payment_ref is not None:
            values["payment_ref"] = payment_ref

        stmt = update(model).where(model.id == entity_id)
        if keep_paid:
            stmt = stmt.where(model.payment_status != PaymentStatus.PAID)
        result = await self.db.execute(stmt.values(**values).execution_options(synchronize_session=False))
        if result.rowcount:  # type: ignore[attr-defined]
            return True

        if keep_paid:
            exists = await self.db.scalar(select(model.id).where(model.id == entity_id))
            if exists is not None:
                return False

        await self.db.rollback()
        logger.error("storage_entity_missing", entity_type=entity_type.value, entity_id=str(entity_id))
        raise PersistenceFailure(f"{entity_type.value.capitalize()} {entity_id} not found.")

    async def _refresh_entity(self, entity_type: LinkedEntityType, entity_id: uuid.UUID) -> None:
        entity = self.db.identity_map.get(self.db.sync_session.identity_key(_ENTITY_MODELS[entity_type], entity_id))
        if entity is not None:
            await self.db.refresh(entity)

    # ==================== Payment orders ====================

    async def add_order(self, order: PaymentOrder) -> PaymentOrder:
        self.db.add(order)
        await self._commit("add_order")
        return order

    async def get_open_order_for_entity(
        self,
        entity_type: LinkedEntityType,
        entity_id: uuid.UUID,
    ) -> PaymentOrder | None:
        """Most recent order for a ticket or challan that is still waiting to be paid."""
        result = await self.db.execute(
            select(PaymentOrder)
            .where(
                PaymentOrder.entity_type == entity_type,
                PaymentOrder.entity_id == entity_id,
                PaymentOrder.status.in_(OPEN_ORDER_STATUSES),
            )
            .order_by(PaymentOrder.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_order(self, gateway_order_id: str) -> PaymentOrder | None:
        """Load an order by gateway order id, bypassing any stale copy in the session."""
        result = await self.db.execute(
            select(PaymentOrder)
            .where(PaymentOrder.gateway_order_id == gateway_order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def transition_order(
        self,
        order: PaymentOrder,
        to_status: OrderStatus,
        from_statuses: Sequence[OrderStatus] = OPEN_ORDER_STATUSES,
    ) -> bool:
        """
        Move an order to a new status if it is currently in one of ``from_statuses``.

        Returns:
            True if this call made the transition, False if the order was not in an expected status
        """
        try:
            result = await self.db.execute(
                update(PaymentOrder)
                .where(PaymentOrder.id == order.id, PaymentOrder.status.in_(from_statuses))
                .values(status=to_status)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("storage_write_failed", action="transition_order", error=str(e))
            raise PersistenceFailure from e
        await self._commit("transition_order")
        await self.db.refresh(order)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def settle_order(self, order: PaymentOrder, payment_id: str) -> bool:
        """
        Atomically mark an open order Verified and its ticket/challan Paid.

        Both updates share one transaction: either the order is Verified and
        the entity is Paid with ``payment_id`` as its reference, or nothing
        changed and the order is still open. An entity already Paid through
        another order keeps its original reference; the capture on this order
        is recorded and logged for refund.

        Args:
            order: Open payment order
            payment_id: Gateway payment id to record

        Returns:
            True if this call settled the order, False if it was no longer open

        Raises:
            PersistenceFailure: If the write failed (order stays open)
        """
        try:
            result = await self.db.execute(
                update(PaymentOrder)
                .where(PaymentOrder.id == order.id, PaymentOrder.status.in_(OPEN_ORDER_STATUSES))
                .values(status=OrderStatus.VERIFIED, payment_id=payment_id, settled_at=datetime.now(UTC))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                await self.db.rollback()
                await self.db.refresh(order)
                return False

            entity_updated = await self._set_entity_status(
                order.entity_type, order.entity_id, PaymentStatus.PAID, payment_id, keep_paid=True
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("storage_write_failed", action="settle_order", error=str(e))
            raise PersistenceFailure from e

        await self._commit("settle_order")
        if not entity_updated:
            logger.error(
                "payment_captured_for_paid_entity",
                order_id=order.gateway_order_id,
                payment_id=payment_id,
                entity_type=order.entity_type.value,
                entity_id=str(order.entity_id),
                refund_required=True,
            )
        await self.db.refresh(order)
        await self._refresh_entity(order.entity_type, order.entity_id)
        return True

    async def fail_order(self, order: PaymentOrder) -> bool:
        """
        Atomically mark an open order Failed and its ticket/challan Failed.

        A ticket or challan already Paid through another order stays Paid.

        Returns:
            True if this call failed the order, False if it was no longer open
        """
        try:
            result = await self.db.execute(
                update(PaymentOrder)
                .where(PaymentOrder.id == order.id, PaymentOrder.status.in_(OPEN_ORDER_STATUSES))
                .values(status=OrderStatus.FAILED)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                await self.db.rollback()
                await self.db.refresh(order)
                return False

            await self._set_entity_status(
                order.entity_type, order.entity_id, PaymentStatus.FAILED, None, keep_paid=True
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("storage_write_failed", action="fail_order", error=str(e))
            raise PersistenceFailure from e

        await self._commit("fail_order")
        await self.db.refresh(order)
        await self._refresh_entity(order.entity_type, order.entity_id)
        return True

    async def list_open_orders(self, created_before: datetime) -> Sequence[PaymentOrder]:
        """Orders still waiting for a callback that were created before a cutoff."""
        result = await self.db.execute(
            select(PaymentOrder)
            .where(PaymentOrder.status.in_(OPEN_ORDER_STATUSES), PaymentOrder.created_at < created_before)
            .order_by(PaymentOrder.created_at)
        )
        return result.scalars().all()
