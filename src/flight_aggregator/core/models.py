# src/flight_aggregator/core/models.py

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional


TRIP_ONE_WAY = "one-way"
TRIP_ROUND_TRIP = "round-trip"
TRIP_MULTI_CITY = "multi-city"
TRIP_TYPES = (TRIP_ONE_WAY, TRIP_ROUND_TRIP, TRIP_MULTI_CITY)

CABINS = ("economy", "premium-economy", "business", "first")

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_ERROR = "error"
STATUS_TIMEOUT = "timeout"


def parse_date(value: Any) -> Optional[date]:
    """Accept a date, a datetime or a 'YYYY-MM-DD' string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse ISO timestamps like:
      - '2030-01-01T08:00:00'
      - '2030-01-01T08:00:00Z'
      - '2030-01-01T08:00:00+02:00'

    Naive timestamps are treated as UTC so every instant is comparable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return default


def _str_list(value: Any) -> List[str]:
    # Accept: ["DL","UA"] or "DL,UA" or "DL"
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    return [str(v).strip() for v in value if str(v).strip()]


@dataclass(frozen=True)
class PassengerBreakdown:
    adults: int = 1
    children: int = 0
    infants: int = 0

    @property
    def total(self) -> int:
        return int(self.adults) + int(self.children) + int(self.infants)


@dataclass(frozen=True)
class RouteLeg:
    """One requested leg of a multi-city search."""

    origin: str
    destination: str
    departure_date: Optional[date] = None

    def __post_init__(self):
        if isinstance(self.origin, str):
            object.__setattr__(self, "origin", self.origin.strip().upper())
        if isinstance(self.destination, str):
            object.__setattr__(self, "destination", self.destination.strip().upper())


@dataclass(frozen=True)
class SearchParams:
    origin: str
    destination: str
    departure_date: Optional[date]
    return_date: Optional[date] = None
    trip_type: str = TRIP_ONE_WAY
    passengers: Optional[int] = 1
    passenger_breakdown: Optional[PassengerBreakdown] = None
    legs: List[RouteLeg] = field(default_factory=list)
    cabin: Optional[str] = None  # "economy" | "premium-economy" | "business" | "first"
    max_price: Optional[float] = None
    include_providers: List[str] = field(default_factory=list)
    airlines: List[str] = field(default_factory=list)  # allow-list of carrier codes

    def __post_init__(self):
        # Equal searches must compare (and cache) equal however they were built
        if isinstance(self.origin, str):
            object.__setattr__(self, "origin", self.origin.strip().upper())
        if isinstance(self.destination, str):
            object.__setattr__(self, "destination", self.destination.strip().upper())
        object.__setattr__(
            self, "airlines", [a.strip().upper() for a in self.airlines or [] if a.strip()]
        )
        object.__setattr__(
            self, "include_providers", [p.strip() for p in self.include_providers or [] if p.strip()]
        )

    @property
    def total_passengers(self) -> int:
        if self.passenger_breakdown is not None:
            return self.passenger_breakdown.total
        return int(self.passengers or 0)

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchParams":
        """
        Build params from either the wire shape (from/to/departDate/...)
        or the snake_case shape produced by to_dict().
        """
        breakdown_raw = _pick(data, "passenger_breakdown", "passengerBreakdown")
        breakdown = None
        if breakdown_raw:
            breakdown = PassengerBreakdown(
                adults=int(breakdown_raw.get("adults", 1)),
                children=int(breakdown_raw.get("children", 0)),
                infants=int(breakdown_raw.get("infants", 0)),
            )

        legs = [
            RouteLeg(
                origin=str(_pick(leg, "origin", "from", default="")).upper(),
                destination=str(_pick(leg, "destination", "to", default="")).upper(),
                departure_date=parse_date(_pick(leg, "departure_date", "departDate")),
            )
            for leg in (_pick(data, "legs", "segments") or [])
        ]

        passengers = _pick(data, "passengers")
        max_price = _pick(data, "max_price", "maxPrice")

        return cls(
            origin=str(_pick(data, "origin", "from", default="")).strip().upper(),
            destination=str(_pick(data, "destination", "to", default="")).strip().upper(),
            departure_date=parse_date(_pick(data, "departure_date", "departDate")),
            return_date=parse_date(_pick(data, "return_date", "returnDate")),
            trip_type=str(_pick(data, "trip_type", "tripType", default=TRIP_ONE_WAY)),
            passengers=int(passengers) if passengers is not None else (None if breakdown else 1),
            passenger_breakdown=breakdown,
            legs=legs,
            cabin=_pick(data, "cabin"),
            max_price=float(max_price) if max_price is not None else None,
            include_providers=_str_list(_pick(data, "include_providers", "includeProviders")),
            airlines=[a.upper() for a in _str_list(_pick(data, "airlines"))],
        )


@dataclass(frozen=True)
class Segment:
    """A single flight leg."""

    origin: str
    destination: str
    dep_at: Optional[datetime] = None
    arr_at: Optional[datetime] = None
    carrier_code: Optional[str] = None  # e.g. "AA"
    carrier_name: Optional[str] = None  # e.g. "American Airlines"
    flight_number: Optional[str] = None  # e.g. "1234"
    aircraft_code: Optional[str] = None
    duration_minutes: Optional[int] = None
    departure_terminal: Optional[str] = None
    arrival_terminal: Optional[str] = None
    cabin: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        return cls(
            origin=data["origin"],
            destination=data["destination"],
            dep_at=parse_datetime(data.get("dep_at")),
            arr_at=parse_datetime(data.get("arr_at")),
            carrier_code=data.get("carrier_code"),
            carrier_name=data.get("carrier_name"),
            flight_number=data.get("flight_number"),
            aircraft_code=data.get("aircraft_code"),
            duration_minutes=data.get("duration_minutes"),
            departure_terminal=data.get("departure_terminal"),
            arrival_terminal=data.get("arrival_terminal"),
            cabin=data.get("cabin"),
        )


@dataclass(frozen=True)
class Itinerary:
    """A collection of segments representing one direction of travel."""

    direction: str  # "outbound" | "inbound"
    segments: List[Segment] = field(default_factory=list)
    duration_minutes: Optional[int] = None

    @property
    def stops(self) -> int:
        return max(0, len(self.segments) - 1)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Itinerary":
        return cls(
            direction=data["direction"],
            segments=[Segment.from_dict(s) for s in data.get("segments") or []],
            duration_minutes=data.get("duration_minutes"),
        )


@dataclass(frozen=True)
class StopDetail:
    airport: str
    duration_minutes: int  # layover


@dataclass(frozen=True)
class ScoreBreakdown:
    price: float
    duration: float
    stops: float
    total: float


@dataclass(frozen=True)
class FlightOffer:
    """
    Provider-agnostic offer. Instances are never mutated after a provider
    produces them; ranking attaches score fields via dataclasses.replace.
    """

    provider: str
    provider_offer_id: str
    airline: str
    airline_code: str
    departure_time: datetime
    arrival_time: datetime
    duration_minutes: int
    stops: int
    price: float
    currency: str
    trip_type: str
    departure_airport: str
    arrival_airport: str
    departure_date: date
    return_date: Optional[date] = None
    booking_url: Optional[str] = None
    stop_details: Optional[List[StopDetail]] = None
    itineraries: List[Itinerary] = field(default_factory=list)

    ranking_score: Optional[float] = None
    score_breakdown: Optional[ScoreBreakdown] = None

    def __post_init__(self):
        if self.stop_details is not None and len(self.stop_details) != self.stops:
            raise ValueError(
                f"Offer {self.provider}_{self.provider_offer_id}: stops={self.stops} "
                f"but {len(self.stop_details)} stop details"
            )

    @property
    def id(self) -> str:
        return f"{self.provider}_{self.provider_offer_id}"

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlightOffer":
        stop_details = data.get("stop_details")
        breakdown = data.get("score_breakdown")
        return cls(
            provider=data["provider"],
            provider_offer_id=str(data["provider_offer_id"]),
            airline=data["airline"],
            airline_code=data["airline_code"],
            departure_time=parse_datetime(data["departure_time"]),
            arrival_time=parse_datetime(data["arrival_time"]),
            duration_minutes=int(data["duration_minutes"]),
            stops=int(data["stops"]),
            price=float(data["price"]),
            currency=data["currency"],
            trip_type=data["trip_type"],
            departure_airport=data["departure_airport"],
            arrival_airport=data["arrival_airport"],
            departure_date=parse_date(data["departure_date"]),
            return_date=parse_date(data.get("return_date")),
            booking_url=data.get("booking_url"),
            stop_details=(
                [StopDetail(**s) for s in stop_details] if stop_details is not None else None
            ),
            itineraries=[Itinerary.from_dict(i) for i in data.get("itineraries") or []],
            ranking_score=data.get("ranking_score"),
            score_breakdown=ScoreBreakdown(**breakdown) if breakdown else None,
        )


@dataclass(frozen=True)
class ProviderStatus:
    name: str
    status: str  # "success" | "error" | "timeout"
    results_count: int
    response_time_ms: int  # measured from fan-out start
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderStatus":
        return cls(
            name=data["name"],
            status=data["status"],
            results_count=int(data["results_count"]),
            response_time_ms=int(data["response_time_ms"]),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class SearchResult:
    status: str  # "success" | "partial" | "error"
    query: SearchParams
    flights: List[FlightOffer]
    total_results: int
    providers_queried: List[ProviderStatus]
    timestamp: datetime
    cache_hit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResult":
        return cls(
            status=data["status"],
            query=SearchParams.from_dict(data["query"]),
            flights=[FlightOffer.from_dict(f) for f in data.get("flights") or []],
            total_results=int(data["total_results"]),
            providers_queried=[
                ProviderStatus.from_dict(p) for p in data.get("providers_queried") or []
            ],
            timestamp=parse_datetime(data["timestamp"]),
            cache_hit=bool(data.get("cache_hit", False)),
        )
