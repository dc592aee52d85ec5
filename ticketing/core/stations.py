"""Station catalog shared by fare computation and geofence checks.

The catalog is ordered: fare distance is the number of steps between two
stations' positions. Coordinates feed the geofence. Both come from one
table so the two can never drift apart.
"""

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from ticketing.core.config import settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Station:
    """A named station with its coordinates."""

    name: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class StationCatalog:
    """Ordered, versioned, read-only station table."""

    version: str
    stations: tuple[Station, ...]
    _index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, int] = {}
        for position, station in enumerate(self.stations):
            if station.name in index:
                msg = f"Duplicate station in catalog: {station.name}"
                raise ValueError(msg)
            index[station.name] = position
        object.__setattr__(self, "_index", index)

    @property
    def names(self) -> list[str]:
        return [station.name for station in self.stations]

    def index_of(self, name: str) -> int | None:
        """Position of a station in the catalog order, or None if unknown."""
        return self._index.get(name)

    def get(self, name: str) -> Station | None:
        position = self._index.get(name)
        return None if position is None else self.stations[position]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self.stations)


# Western, Central and Harbour line stations in booking-form order
MUMBAI_LOCAL_STATIONS: tuple[Station, ...] = (
    # Western Line
    Station("Churchgate", 18.9353, 72.8270),
    Station("Marine Lines", 18.9447, 72.8239),
    Station("Charni Road", 18.9516, 72.8184),
    Station("Grant Road", 18.9633, 72.8160),
    Station("Mumbai Central", 18.9696, 72.8194),
    Station("Dadar", 19.0186, 72.8429),
    Station("Bandra", 19.0544, 72.8406),
    Station("Andheri", 19.1197, 72.8464),
    Station("Borivali", 19.2292, 72.8573),
    Station("Virar", 19.4559, 72.8114),
    # Central Line
    Station("CSMT", 18.9398, 72.8355),
    Station("Byculla", 18.9793, 72.8327),
    Station("Kurla", 19.0656, 72.8793),
    Station("Ghatkopar", 19.0860, 72.9081),
    Station("Thane", 19.1860, 72.9757),
    Station("Dombivli", 19.2183, 73.0868),
    Station("Kalyan", 19.2354, 73.1305),
    # Harbour Line
    Station("Wadala Road", 19.0166, 72.8591),
    Station("Chembur", 19.0622, 72.9011),
    Station("Vashi", 19.0632, 72.9989),
    Station("Nerul", 19.0330, 73.0186),
    Station("Panvel", 18.9910, 73.1206),
)

DEFAULT_CATALOG_VERSION = "mumbai-local-2024.1"


def default_station_catalog() -> StationCatalog:
    return StationCatalog(version=DEFAULT_CATALOG_VERSION, stations=MUMBAI_LOCAL_STATIONS)


def load_station_catalog(path: str | Path) -> StationCatalog:
    """
    Load a station catalog from a JSON file.

    Expected format::

        {"version": "2025.1", "stations": [{"name": "Churchgate", "latitude": 18.93, "longitude": 72.82}]}

    Args:
        path: Path to the JSON catalog file

    Returns:
        StationCatalog with stations in file order

    Raises:
        ValueError: If the file is malformed or lists a station twice
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    try:
        stations = tuple(
            Station(
                name=str(entry["name"]),
                latitude=float(entry["latitude"]),
                longitude=float(entry["longitude"]),
            )
            for entry in raw["stations"]
        )
        version = str(raw["version"])
    except (KeyError, TypeError) as e:
        msg = f"Malformed station catalog {path}: {e}"
        raise ValueError(msg) from e
    return StationCatalog(version=version, stations=stations)


_catalog: StationCatalog | None = None
_catalog_lock = threading.Lock()


def get_station_catalog() -> StationCatalog:
    """
    Get the process-wide station catalog, loading it on first use.

    Returns:
        The catalog from STATION_CATALOG_PATH, or the built-in Mumbai Local table
    """
    global _catalog  # noqa: PLW0603
    if _catalog is None:
        with _catalog_lock:
            if _catalog is None:
                if settings.STATION_CATALOG_PATH:
                    _catalog = load_station_catalog(settings.STATION_CATALOG_PATH)
                else:
                    _catalog = default_station_catalog()
                logger.info("station_catalog_loaded", version=_catalog.version, stations=len(_catalog))
    return _catalog
