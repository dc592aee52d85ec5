"""Fare calculation for Mumbai Local tickets."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ticketing.core.stations import StationCatalog, get_station_catalog
from ticketing.models.ticket import FareClass, PassengerClass, TripValidity

UNIT_RATE = Decimal("10")  # Rupees per station step
PREMIUM_MULTIPLIER = Decimal("2")
CHILD_MULTIPLIER = Decimal("0.5")
# A return ticket costs 1.8x a single, not 2x
ROUND_TRIP_MULTIPLIER = Decimal("1.8")
FARE_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class FareRequest:
    """Everything that determines a fare."""

    from_station: str
    to_station: str
    fare_class: FareClass = FareClass.STANDARD
    passenger_class: PassengerClass = PassengerClass.ADULT
    validity: TripValidity = TripValidity.ONE_WAY


@dataclass(frozen=True)
class FareQuote:
    """Result of a fare computation.

    ``available`` is False when either station is missing from the catalog.
    The amount is then 0 and must not be read as a free ticket.
    """

    amount: Decimal
    available: bool
    distance_factor: int


def distance_factor(from_station: str, to_station: str, catalog: StationCatalog) -> int | None:
    """Number of catalog steps between two stations, floored at 1; None if either is unknown."""
    from_index = catalog.index_of(from_station)
    to_index = catalog.index_of(to_station)
    if from_index is None or to_index is None:
        return None
    return max(1, abs(to_index - from_index))


def compute_fare(request: FareRequest, catalog: StationCatalog | None = None) -> FareQuote:
    """
    Compute the fare for a journey.

    Multipliers are applied in sequence to ``steps * UNIT_RATE``: premium
    class, child passenger, round trip. The result is rounded half-up to
    two decimal places.

    Args:
        request: Route, classes and validity
        catalog: Station catalog (process-wide catalog when omitted)

    Returns:
        FareQuote; amount 0 and available=False when a station is unknown
    """
    catalog = catalog or get_station_catalog()

    steps = distance_factor(request.from_station, request.to_station, catalog)
    if steps is None:
        return FareQuote(amount=Decimal("0.00"), available=False, distance_factor=0)

    fare = Decimal(steps) * UNIT_RATE
    if request.fare_class == FareClass.PREMIUM:
        fare *= PREMIUM_MULTIPLIER
    if request.passenger_class == PassengerClass.CHILD:
        fare *= CHILD_MULTIPLIER
    if request.validity == TripValidity.ROUND_TRIP:
        fare *= ROUND_TRIP_MULTIPLIER

    return FareQuote(
        amount=fare.quantize(FARE_QUANTUM, rounding=ROUND_HALF_UP),
        available=True,
        distance_factor=steps,
    )
