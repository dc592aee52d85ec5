"""Combine expiry and proximity checks into one advisory assessment."""

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from ticketing.core.config import settings
from ticketing.core.stations import StationCatalog
from ticketing.schemas.inspection import ParsedTicket
from ticketing.services.geofence_service import GeoPoint, ProximityAssessment, ProximityStatus, classify_proximity
from ticketing.services.validity_service import ExpiryAssessment, assess_expiry

logger = structlog.get_logger(__name__)

# Warning codes shown to the inspector
WARNING_EXPIRED = "ticket_expired"
WARNING_EXPIRY_UNKNOWN = "expiry_not_assessed"
WARNING_FAR_FROM_ROUTE = "far_from_route"
WARNING_STATION_UNKNOWN = "station_coordinates_not_found"
WARNING_NO_POSITION = "position_unavailable"
WARNING_ROUTE_UNKNOWN = "route_not_read"


@dataclass(frozen=True)
class ValidityAssessment:
    expiry: ExpiryAssessment | None
    proximity: ProximityAssessment | None
    warnings: list[str] = field(default_factory=list)


def assess_ticket(
    ticket: ParsedTicket,
    position: GeoPoint | None,
    now: datetime | None = None,
    catalog: StationCatalog | None = None,
    threshold_meters: float | None = None,
) -> ValidityAssessment:
    """
    Run the expiry and proximity checks for a parsed ticket.

    Missing inputs skip a check and add a warning; nothing here rejects a
    ticket on its own.

    Args:
        ticket: Fields read off the ticket
        position: Inspector position, None if geolocation failed or timed out
        now: Reference time (current time when omitted)
        catalog: Station catalog (process-wide catalog when omitted)
        threshold_meters: Geofence radius (GEOFENCE_THRESHOLD_METERS when omitted)

    Returns:
        ValidityAssessment
    """
    warnings: list[str] = []

    expiry = assess_expiry(ticket.issued_at, ticket.validity, now=now)
    if expiry is None:
        warnings.append(WARNING_EXPIRY_UNKNOWN)
    elif expiry.expired:
        warnings.append(WARNING_EXPIRED)

    proximity = None
    if ticket.from_station and ticket.to_station:
        proximity = classify_proximity(
            position,
            ticket.from_station,
            ticket.to_station,
            threshold_meters=threshold_meters if threshold_meters is not None else settings.GEOFENCE_THRESHOLD_METERS,
            catalog=catalog,
        )
        match proximity.status:
            case ProximityStatus.WARN:
                warnings.append(WARNING_FAR_FROM_ROUTE)
            case ProximityStatus.COORDINATES_NOT_FOUND:
                warnings.append(WARNING_STATION_UNKNOWN)
            case ProximityStatus.NO_POSITION:
                warnings.append(WARNING_NO_POSITION)
    else:
        warnings.append(WARNING_ROUTE_UNKNOWN)

    logger.info(
        "ticket_assessed",
        expired=expiry.expired if expiry else None,
        proximity=proximity.status.value if proximity else None,
        warnings=warnings,
    )
    return ValidityAssessment(expiry=expiry, proximity=proximity, warnings=warnings)
