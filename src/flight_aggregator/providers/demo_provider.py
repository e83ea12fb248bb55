# src/flight_aggregator/providers/demo_provider.py

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List

from flight_aggregator.core.models import FlightOffer, SearchParams, StopDetail
from flight_aggregator.providers.base import FlightSearchProvider


logger = logging.getLogger(__name__)


# Fixed schedule so results are reproducible across runs.
DEMO_SCHEDULE: List[Dict[str, Any]] = [
    {
        "id": "1",
        "airline": "Delta Air Lines",
        "airline_code": "DL",
        "dep": time(8, 0),
        "duration": 210,
        "price": 450.0,
        "stops": [],
        "booking": "https://www.delta.com/book",
    },
    {
        "id": "2",
        "airline": "United Airlines",
        "airline_code": "UA",
        "dep": time(10, 15),
        "duration": 255,
        "price": 380.0,
        "stops": [("DEN", 50)],
        "booking": "https://www.united.com/book",
    },
    {
        "id": "3",
        "airline": "American Airlines",
        "airline_code": "AA",
        "dep": time(12, 45),
        "duration": 195,
        "price": 520.0,
        "stops": [],
        "booking": "https://www.aa.com/book",
    },
    {
        "id": "4",
        "airline": "Southwest Airlines",
        "airline_code": "WN",
        "dep": time(14, 30),
        "duration": 255,
        "price": 340.0,
        "stops": [("DAL", 45)],
        "booking": "https://www.southwest.com/book",
    },
    {
        "id": "5",
        "airline": "JetBlue Airways",
        "airline_code": "B6",
        "dep": time(7, 0),
        "duration": 210,
        "price": 480.0,
        "stops": [],
        "booking": "https://www.jetblue.com/book",
    },
]


def generate_demo_offers(params: SearchParams) -> List[FlightOffer]:
    """
    Deterministic offers for the requested route.

    Respects:
      - total passengers (prices are per passenger)
      - airline allow-list
    """
    passengers = max(1, params.total_passengers)
    offers: List[FlightOffer] = []

    for row in DEMO_SCHEDULE:
        dep_at = datetime.combine(params.departure_date, row["dep"], tzinfo=timezone.utc)
        arr_at = dep_at + timedelta(minutes=row["duration"])
        booking_url = (
            f"{row['booking']}?from={params.origin}&to={params.destination}"
            f"&date={params.departure_date.isoformat()}"
        )

        offers.append(
            FlightOffer(
                provider="demo",
                provider_offer_id=row["id"],
                airline=row["airline"],
                airline_code=row["airline_code"],
                departure_time=dep_at,
                arrival_time=arr_at,
                duration_minutes=row["duration"],
                stops=len(row["stops"]),
                stop_details=[StopDetail(airport=a, duration_minutes=m) for a, m in row["stops"]],
                price=row["price"] * passengers,
                currency="USD",
                booking_url=booking_url,
                trip_type=params.trip_type,
                departure_airport=params.origin,
                arrival_airport=params.destination,
                departure_date=params.departure_date,
                return_date=params.return_date,
            )
        )

    if params.airlines:
        allowed = {a.upper() for a in params.airlines}
        offers = [o for o in offers if o.airline_code in allowed]

    return offers


class DemoProvider(FlightSearchProvider):
    """
    Deterministic offline provider for dev/testing. No API keys needed.
    """

    name = "demo"

    def search(self, params: SearchParams) -> List[FlightOffer]:
        logger.debug("Generating demo offers for %s -> %s", params.origin, params.destination)
        return generate_demo_offers(params)
