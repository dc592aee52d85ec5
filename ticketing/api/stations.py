"""Station catalog endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ticketing.api.dependencies import get_catalog
from ticketing.core.stations import StationCatalog

router = APIRouter(prefix="/stations", tags=["stations"])


class StationResponse(BaseModel):
    name: str
    latitude: float
    longitude: float


class StationCatalogResponse(BaseModel):
    """Stations in fare order."""

    version: str
    stations: list[StationResponse]


@router.get("", response_model=StationCatalogResponse)
async def list_stations(catalog: StationCatalog = Depends(get_catalog)) -> StationCatalogResponse:
    """
    List stations in catalog order.

    Fares are computed from positions in this list, so clients should show
    stations in the order returned.
    """
    return StationCatalogResponse(
        version=catalog.version,
        stations=[StationResponse(name=s.name, latitude=s.latitude, longitude=s.longitude) for s in catalog.stations],
    )
