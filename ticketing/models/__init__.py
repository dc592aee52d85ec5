"""Database models for the ticketing service."""

# Import all models to register them with SQLAlchemy metadata
from ticketing.models.base import Base, BaseModel
from ticketing.models.payment import OPEN_ORDER_STATUSES, LinkedEntityType, OrderStatus, PaymentOrder
from ticketing.models.ticket import (
    Challan,
    FareClass,
    PassengerClass,
    PaymentStatus,
    Ticket,
    TripValidity,
)

__all__ = [
    # Base
    "Base",
    "BaseModel",
    # Ticketing models
    "Ticket",
    "Challan",
    "FareClass",
    "PassengerClass",
    "TripValidity",
    "PaymentStatus",
    # Payment models
    "PaymentOrder",
    "OrderStatus",
    "LinkedEntityType",
    "OPEN_ORDER_STATUSES",
]
