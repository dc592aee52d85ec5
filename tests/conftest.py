"""Pytest configuration and fixtures."""

import os
import tempfile

# Settings are read at import time, so the environment must be in place
# before any ticketing module is imported
os.environ["DEBUG"] = "true"
os.environ["OTEL_ENABLED"] = "false"
os.environ["SECRET_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["SECRET_RAZORPAY_KEY_SECRET"] = "rzp_test_secret_0123456789"
os.environ["SECRET_PII_HASH"] = "test-pii-hash-secret-0123456789abcdef"
os.environ["CHECKOUT_BASE_URL"] = "https://pay.example.test/checkout"
os.environ["OCR_SERVICE_URL"] = "http://ocr.example.test"
os.environ["SMS_LOG_DIR"] = tempfile.mkdtemp(prefix="ticketing-outbox-")
os.environ["SECRET_CELERY_BROKER_URL"] = "memory://"
os.environ["SECRET_CELERY_RESULT_BACKEND"] = "cache+memory://"

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ticketing.api.dependencies import get_gateway, get_messaging_service
from ticketing.core.config import settings
from ticketing.core.database import get_db
from ticketing.core.stations import StationCatalog, default_station_catalog
from ticketing.main import app
from ticketing.models import Base
from ticketing.services.messaging_service import MessagingService
from ticketing.services.payment_gateway import RazorpayGateway
from ticketing.services.payment_service import PaymentService
from ticketing.services.storage import TicketingStore

from tests.helpers.razorpay import FakeRazorpay

pytest_plugins = ["tests.fixtures.otel"]

GATEWAY_TEST_URL = "https://api.razorpay.example.test"


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """
    In-memory SQLite database with all tables, one per test.

    StaticPool keeps the single in-memory connection alive for every session.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Database session matching the application's session settings."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> TicketingStore:
    return TicketingStore(db_session)


@pytest.fixture
def catalog() -> StationCatalog:
    return default_station_catalog()


@pytest.fixture
def fake_razorpay() -> FakeRazorpay:
    return FakeRazorpay()


@pytest.fixture
def gateway(fake_razorpay: FakeRazorpay) -> RazorpayGateway:
    """Razorpay client wired to the in-memory fake."""
    return RazorpayGateway(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        base_url=GATEWAY_TEST_URL,
        timeout=1.0,
        session=fake_razorpay.session,
    )


@pytest.fixture
def payment_service(store: TicketingStore, gateway: RazorpayGateway) -> PaymentService:
    return PaymentService(store, gateway)


@pytest.fixture
def outbox_dir(tmp_path: Path) -> Path:
    return tmp_path / "outbox"


@pytest.fixture
def messaging_service(outbox_dir: Path) -> MessagingService:
    return MessagingService(log_dir=str(outbox_dir))


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    gateway: RazorpayGateway,
    messaging_service: MessagingService,
) -> AsyncGenerator[AsyncClient]:
    """
    HTTP client against the app with the test database and fake gateway.

    Tests that parse images override get_ocr_service themselves.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_messaging_service] = lambda: messaging_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
