"""FastAPI dependencies wiring services to a request's database session."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.database import get_db
from ticketing.core.stations import StationCatalog, get_station_catalog
from ticketing.services.challan_service import ChallanService
from ticketing.services.messaging_service import MessagingService
from ticketing.services.ocr_service import OcrService
from ticketing.services.payment_gateway import RazorpayGateway
from ticketing.services.payment_service import PaymentService
from ticketing.services.storage import TicketingStore
from ticketing.services.ticket_service import TicketService


def get_catalog() -> StationCatalog:
    return get_station_catalog()


def get_gateway() -> RazorpayGateway:
    return RazorpayGateway.from_settings()


def get_messaging_service() -> MessagingService:
    return MessagingService()


def get_ocr_service() -> OcrService:
    return OcrService()


def get_store(db: AsyncSession = Depends(get_db)) -> TicketingStore:
    return TicketingStore(db)


def get_payment_service(
    store: TicketingStore = Depends(get_store),
    gateway: RazorpayGateway = Depends(get_gateway),
) -> PaymentService:
    return PaymentService(store, gateway)


def get_challan_service(
    store: TicketingStore = Depends(get_store),
    payments: PaymentService = Depends(get_payment_service),
    messenger: MessagingService = Depends(get_messaging_service),
) -> ChallanService:
    return ChallanService(store, payments, messenger)


def get_ticket_service(
    store: TicketingStore = Depends(get_store),
    payments: PaymentService = Depends(get_payment_service),
    catalog: StationCatalog = Depends(get_catalog),
) -> TicketService:
    return TicketService(store, payments, catalog)
