"""Ticket inspection endpoints."""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError

from ticketing.api.dependencies import get_catalog, get_ocr_service
from ticketing.core.exceptions import InvalidInput
from ticketing.core.stations import StationCatalog
from ticketing.schemas.inspection import (
    AssessmentRequest,
    ExpiryResponse,
    ParsedTicket,
    ParseTicketResponse,
    Position,
    ProximityResponse,
    ValidityAssessmentResponse,
)
from ticketing.services.geofence_service import GeoPoint
from ticketing.services.inspection_service import ValidityAssessment, assess_ticket
from ticketing.services.ocr_service import OcrService

router = APIRouter(prefix="/inspections", tags=["inspections"])


def _assessment_response(assessment: ValidityAssessment) -> ValidityAssessmentResponse:
    expiry = assessment.expiry
    proximity = assessment.proximity
    return ValidityAssessmentResponse(
        expiry=ExpiryResponse(
            expired=expiry.expired,
            issued_at=expiry.issued_at,
            expires_at=expiry.expires_at,
            window_hours=int(expiry.window.total_seconds() // 3600),
        )
        if expiry
        else None,
        proximity=ProximityResponse(
            status=proximity.status,
            threshold_meters=proximity.threshold_meters,
            distance_meters=proximity.distance_meters,
            nearest_station=proximity.nearest_station,
            missing_stations=list(proximity.missing_stations),
        )
        if proximity
        else None,
        warnings=assessment.warnings,
    )


def _geo_point(position: Position | None) -> GeoPoint | None:
    return GeoPoint(position.latitude, position.longitude) if position else None


@router.post("/assess", response_model=ValidityAssessmentResponse)
async def assess(
    request: AssessmentRequest,
    catalog: StationCatalog = Depends(get_catalog),
) -> ValidityAssessmentResponse:
    """
    Check a ticket's expiry and the inspector's distance from its route.

    The result is advisory. Omit ``position`` when geolocation failed.
    """
    assessment = assess_ticket(
        request.ticket,
        _geo_point(request.position),
        now=request.checked_at,
        catalog=catalog,
    )
    return _assessment_response(assessment)


@router.post("/parse", response_model=ParseTicketResponse)
async def parse_and_assess(
    file: UploadFile = File(...),
    latitude: float | None = Form(None),
    longitude: float | None = Form(None),
    ocr: OcrService = Depends(get_ocr_service),
    catalog: StationCatalog = Depends(get_catalog),
) -> ParseTicketResponse:
    """Read a ticket photo and assess it in one step."""
    position = None
    if latitude is not None and longitude is not None:
        try:
            position = Position(latitude=latitude, longitude=longitude)
        except ValidationError as e:
            raise InvalidInput("Position is out of range.") from e

    content = await file.read()
    parsed: ParsedTicket = await ocr.parse_ticket_image(
        file.filename or "ticket",
        content,
        file.content_type or "application/octet-stream",
    )
    assessment = assess_ticket(parsed, _geo_point(position), catalog=catalog)
    return ParseTicketResponse(ticket=parsed, assessment=_assessment_response(assessment))
