"""Pydantic schemas for ticket inspection."""

from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ticketing.services.geofence_service import ProximityStatus


class ParsedTicket(BaseModel):
    """Fields read off a ticket image (or typed in by the inspector).

    Every field is optional: whatever the parser could not read is absent
    and the matching check is skipped.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ticket_id: str | None = Field(None, validation_alias=AliasChoices("ticket_id", "ticketId", "id"))
    phone_number: str | None = Field(None, validation_alias=AliasChoices("phone_number", "phoneNumber", "userId"))
    from_station: str | None = Field(None, validation_alias=AliasChoices("from_station", "fromStation", "from"))
    to_station: str | None = Field(None, validation_alias=AliasChoices("to_station", "toStation", "to"))
    issued_at: datetime | None = Field(
        None,
        validation_alias=AliasChoices("issued_at", "issuedAt", "issue_time", "booking_time"),
    )
    validity: str | None = Field(None, validation_alias=AliasChoices("validity", "ticket_validity"))
    fare_class: str | None = Field(None, validation_alias=AliasChoices("fare_class", "classValue", "class"))
    fare: Decimal | None = Field(None, validation_alias=AliasChoices("fare", "fareValue"))


class Position(BaseModel):
    """Inspector's position from device geolocation."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy_meters: float | None = Field(None, ge=0)


class AssessmentRequest(BaseModel):
    ticket: ParsedTicket
    position: Position | None = Field(None, description="Omit when geolocation failed or timed out")
    checked_at: datetime | None = Field(None, description="Reference time (now when omitted)")


class ExpiryResponse(BaseModel):
    expired: bool
    issued_at: datetime
    expires_at: datetime
    window_hours: int


class ProximityResponse(BaseModel):
    status: ProximityStatus
    threshold_meters: float
    distance_meters: float | None = None
    nearest_station: str | None = None
    missing_stations: list[str] = Field(default_factory=list)


class ValidityAssessmentResponse(BaseModel):
    """Advisory result: warnings inform the inspector and block nothing."""

    expiry: ExpiryResponse | None = None
    proximity: ProximityResponse | None = None
    warnings: list[str] = Field(default_factory=list)


class ParseTicketResponse(BaseModel):
    ticket: ParsedTicket
    assessment: ValidityAssessmentResponse
