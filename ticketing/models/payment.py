"""Payment order model."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ticketing.models.base import BaseModel


class OrderStatus(str, enum.Enum):
    """Lifecycle of a gateway order.

    CREATED -> AWAITING_CALLBACK -> VERIFIED | FAILED. The last two are terminal.
    """

    CREATED = "created"
    AWAITING_CALLBACK = "awaiting_callback"
    VERIFIED = "verified"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.VERIFIED, OrderStatus.FAILED)


OPEN_ORDER_STATUSES = (OrderStatus.CREATED, OrderStatus.AWAITING_CALLBACK)


class LinkedEntityType(str, enum.Enum):
    """What a payment order pays for."""

    TICKET = "ticket"
    CHALLAN = "challan"


class PaymentOrder(BaseModel):
    """A gateway order reserving an amount for a ticket or challan."""

    __tablename__ = "payment_orders"

    gateway_order_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        comment="Order id minted by the gateway",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    entity_type: Mapped[LinkedEntityType] = mapped_column(
        Enum(
            LinkedEntityType,
            name="linked_entity_type",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(
            OrderStatus,
            name="order_status",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=OrderStatus.CREATED,
        nullable=False,
    )
    payment_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Gateway payment id, set once verified",
    )
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_payment_orders_entity", "entity_type", "entity_id"),
        Index("ix_payment_orders_status_created_at", "status", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation of the payment order."""
        return f"<PaymentOrder(id={self.id}, gateway_order_id={self.gateway_order_id}, status={self.status})>"
