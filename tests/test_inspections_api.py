"""Tests for ticket inspection endpoints."""

from collections.abc import Generator

import httpx
import pytest
from httpx import AsyncClient

from ticketing.api.dependencies import get_ocr_service
from ticketing.main import app
from ticketing.services.ocr_service import OcrService

# Churchgate station
CHURCHGATE = {"latitude": 18.9353, "longitude": 72.8270}
# Borivali, far from the southern end of the line
BORIVALI = {"latitude": 19.2292, "longitude": 72.8573}


@pytest.fixture
def ocr_payload() -> dict[str, object]:
    return {
        "fromStation": "Churchgate",
        "toStation": "Grant Road",
        "issuedAt": "2024-11-04T08:30:00+05:30",
        "validity": "One-Way",
        "classValue": "Second Class",
    }


@pytest.fixture
def ocr_override(ocr_payload: dict[str, object]) -> Generator[None]:
    """Serve a fixed parse result from the OCR service."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=ocr_payload)

    service = OcrService(base_url="http://ocr.example.test", transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_ocr_service] = lambda: service
    yield
    app.dependency_overrides.pop(get_ocr_service, None)


class TestAssess:
    @pytest.mark.asyncio
    async def test_valid_ticket_near_route(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/inspections/assess",
            json={
                "ticket": {
                    "from_station": "Churchgate",
                    "to_station": "Grant Road",
                    "issued_at": "2024-11-04T08:30:00Z",
                    "validity": "One-Way",
                },
                "position": CHURCHGATE,
                "checked_at": "2024-11-04T20:00:00Z",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["warnings"] == []
        assert data["expiry"]["expired"] is False
        assert data["expiry"]["window_hours"] == 24
        assert data["proximity"]["status"] == "ok"
        assert data["proximity"]["nearest_station"] == "Churchgate"

    @pytest.mark.asyncio
    async def test_expired_return_ticket_far_from_route(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/inspections/assess",
            json={
                "ticket": {
                    "fromStation": "Churchgate",
                    "toStation": "Grant Road",
                    "issuedAt": "2024-11-04T08:30:00Z",
                    "validity": "Return",
                },
                "position": BORIVALI,
                "checked_at": "2024-11-06T09:00:00Z",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["expiry"]["window_hours"] == 48
        assert data["warnings"] == ["ticket_expired", "far_from_route"]

    @pytest.mark.asyncio
    async def test_without_position(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/inspections/assess",
            json={"ticket": {"from_station": "Churchgate", "to_station": "Atlantis"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["expiry"] is None
        assert data["proximity"]["status"] == "coordinates_not_found"
        assert data["proximity"]["missing_stations"] == ["Atlantis"]
        assert data["warnings"] == ["expiry_not_assessed", "station_coordinates_not_found"]

    @pytest.mark.asyncio
    async def test_position_out_of_range(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/inspections/assess",
            json={"ticket": {}, "position": {"latitude": 123, "longitude": 0}},
        )

        assert response.status_code == 422


class TestParse:
    @pytest.mark.asyncio
    async def test_parse_and_assess(self, async_client: AsyncClient, ocr_override: None) -> None:
        response = await async_client.post(
            "/api/v1/inspections/parse",
            files={"file": ("ticket.jpg", b"\xff\xd8\xffjpeg", "image/jpeg")},
            data={"latitude": str(CHURCHGATE["latitude"]), "longitude": str(CHURCHGATE["longitude"])},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ticket"]["from_station"] == "Churchgate"
        assert data["ticket"]["fare_class"] == "Second Class"
        assert data["assessment"]["proximity"]["status"] == "ok"
        # Issued in 2024, so long past its window
        assert "ticket_expired" in data["assessment"]["warnings"]

    @pytest.mark.asyncio
    async def test_parse_without_position(self, async_client: AsyncClient, ocr_override: None) -> None:
        response = await async_client.post(
            "/api/v1/inspections/parse",
            files={"file": ("ticket.jpg", b"\xff\xd8\xffjpeg", "image/jpeg")},
        )

        assert response.status_code == 200
        assert "position_unavailable" in response.json()["assessment"]["warnings"]

    @pytest.mark.asyncio
    async def test_non_image_upload(self, async_client: AsyncClient, ocr_override: None) -> None:
        response = await async_client.post(
            "/api/v1/inspections/parse",
            files={"file": ("ticket.pdf", b"%PDF-1.7", "application/pdf")},
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_ocr_unavailable(self, async_client: AsyncClient) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        service = OcrService(base_url="http://ocr.example.test", transport=httpx.MockTransport(handler))
        app.dependency_overrides[get_ocr_service] = lambda: service

        response = await async_client.post(
            "/api/v1/inspections/parse",
            files={"file": ("ticket.jpg", b"\xff\xd8\xffjpeg", "image/jpeg")},
        )

        assert response.status_code == 503
        assert response.json()["kind"] == "ocr_unavailable"
