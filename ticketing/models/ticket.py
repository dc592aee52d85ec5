"""Ticket and challan models."""

import enum
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ticketing.models.base import BaseModel


class FareClass(str, enum.Enum):
    """Travel class (Second Class is standard, First Class is premium)."""

    STANDARD = "standard"
    PREMIUM = "premium"


class PassengerClass(str, enum.Enum):
    ADULT = "adult"
    CHILD = "child"


class TripValidity(str, enum.Enum):
    ONE_WAY = "one_way"
    ROUND_TRIP = "return"


class PaymentStatus(str, enum.Enum):
    """Payment state of a ticket or challan."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


def _enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        create_constraint=True,
        values_callable=lambda x: [e.value for e in x],
    )


class Ticket(BaseModel):
    """A booked journey. Only the payment fields change after creation."""

    __tablename__ = "tickets"

    user_id: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="E.164 phone number of the passenger",
    )
    from_station: Mapped[str] = mapped_column(String(100), nullable=False)
    to_station: Mapped[str] = mapped_column(String(100), nullable=False)
    journey_date: Mapped[date] = mapped_column(Date, nullable=False)
    fare_class: Mapped[FareClass] = mapped_column(_enum_column(FareClass, "fare_class"), nullable=False)
    passenger_class: Mapped[PassengerClass] = mapped_column(
        _enum_column(PassengerClass, "passenger_class"),
        nullable=False,
    )
    validity: Mapped[TripValidity] = mapped_column(_enum_column(TripValidity, "trip_validity"), nullable=False)
    fare: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    payment_ref: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Gateway payment id recorded at settlement",
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum_column(PaymentStatus, "payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    __table_args__ = (Index("ix_tickets_user_id_issued_at", "user_id", "issued_at"),)

    def __repr__(self) -> str:
        """String representation of the ticket."""
        return f"<Ticket(id={self.id}, route={self.from_station}->{self.to_station}, status={self.payment_status})>"


class Challan(BaseModel):
    """A fine issued against a passenger, optionally tied to a ticket."""

    __tablename__ = "challans"

    ticket_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tickets.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    fine_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    payment_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum_column(PaymentStatus, "payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation of the challan."""
        return f"<Challan(id={self.id}, amount={self.fine_amount}, status={self.payment_status})>"
