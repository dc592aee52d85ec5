"""Great-circle distance and station proximity checks.

The proximity check is advisory: it annotates an inspection with a warning
and never blocks anything.
"""

import enum
import math
from dataclasses import dataclass

from ticketing.core.stations import StationCatalog, get_station_catalog

EARTH_RADIUS_METERS = 6_371_000.0
DEFAULT_THRESHOLD_METERS = 500.0


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


class ProximityStatus(str, enum.Enum):
    """Outcome of a proximity check."""

    OK = "ok"
    WARN = "warn"
    COORDINATES_NOT_FOUND = "coordinates_not_found"  # Station missing from catalog, not "too far"
    NO_POSITION = "no_position"  # Caller position unavailable, no judgment made


@dataclass(frozen=True)
class ProximityAssessment:
    status: ProximityStatus
    threshold_meters: float
    distance_meters: float | None = None
    nearest_station: str | None = None
    missing_stations: tuple[str, ...] = ()

    @property
    def is_warning(self) -> bool:
        return self.status == ProximityStatus.WARN


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points on a sphere of radius 6,371 km.

    Args:
        lat1: Latitude of the first point in degrees
        lon1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lon2: Longitude of the second point in degrees

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def classify_proximity(
    position: GeoPoint | None,
    station_a: str,
    station_b: str,
    threshold_meters: float = DEFAULT_THRESHOLD_METERS,
    catalog: StationCatalog | None = None,
) -> ProximityAssessment:
    """
    Check whether a position is near either end of a route.

    Warns when the distance to the nearer endpoint exceeds the threshold.

    Args:
        position: Caller's current position, None if it could not be acquired
        station_a: Route origin
        station_b: Route destination
        threshold_meters: Maximum distance that still counts as "near"
        catalog: Station catalog (process-wide catalog when omitted)

    Returns:
        ProximityAssessment
    """
    catalog = catalog or get_station_catalog()

    endpoints = [(name, catalog.get(name)) for name in (station_a, station_b)]
    missing = tuple(name for name, station in endpoints if station is None)
    if missing:
        return ProximityAssessment(
            status=ProximityStatus.COORDINATES_NOT_FOUND,
            threshold_meters=threshold_meters,
            missing_stations=missing,
        )

    if position is None:
        return ProximityAssessment(status=ProximityStatus.NO_POSITION, threshold_meters=threshold_meters)

    distances = [
        (haversine_meters(position.latitude, position.longitude, station.latitude, station.longitude), name)
        for name, station in endpoints
        if station is not None
    ]
    distance, nearest = min(distances)

    return ProximityAssessment(
        status=ProximityStatus.WARN if distance > threshold_meters else ProximityStatus.OK,
        threshold_meters=threshold_meters,
        distance_meters=round(distance, 1),
        nearest_station=nearest,
    )
