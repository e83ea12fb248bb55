# src/flight_aggregator/providers/csv_provider.py

from __future__ import annotations

import os
from typing import Any, List, Optional

import pandas as pd

from flight_aggregator.core.models import (
    TRIP_MULTI_CITY,
    FlightOffer,
    SearchParams,
    StopDetail,
    parse_date,
)
from flight_aggregator.data_access import DEFAULT_FARES_PATH, load_fare_rows
from flight_aggregator.providers.base import FlightSearchProvider, ProviderError


def _value(row: dict, key: str, default: Any = None) -> Any:
    v = row.get(key, default)
    if v is None:
        return default
    try:
        if pd.isna(v):
            return default
    except (TypeError, ValueError):
        pass
    return v


def _parse_stop_airports(raw: Optional[str]) -> Optional[List[StopDetail]]:
    # "ORD:55;DEN:40" -> [StopDetail(ORD, 55), StopDetail(DEN, 40)]
    if raw is None:
        return None
    details: List[StopDetail] = []
    for part in str(raw).split(";"):
        part = part.strip()
        if not part:
            continue
        airport, _, minutes = part.partition(":")
        details.append(StopDetail(airport=airport.strip().upper(), duration_minutes=int(minutes or 0)))
    return details


def _row_to_offer(d: dict, params: SearchParams, provider_name: str) -> FlightOffer:
    dep_at = d["departure_time"].to_pydatetime()
    arr_at = d["arrival_time"].to_pydatetime()

    stop_details = _parse_stop_airports(_value(d, "stop_airports"))
    if stop_details is not None:
        stops = len(stop_details)
    else:
        stops = int(_value(d, "stops", 0))

    duration = (arr_at - dep_at).total_seconds() // 60

    airline_code = str(d["airline_code"])

    return FlightOffer(
        provider=provider_name,
        provider_offer_id=str(d["offer_id"]),
        airline=str(_value(d, "airline", airline_code)),
        airline_code=airline_code,
        departure_time=dep_at,
        arrival_time=arr_at,
        duration_minutes=int(duration),
        stops=stops,
        stop_details=stop_details,
        price=float(d["price"]),
        currency=str(_value(d, "currency", "USD")),
        booking_url=_value(d, "booking_url"),
        trip_type=str(_value(d, "trip_type", params.trip_type)),
        departure_airport=str(d["origin"]),
        arrival_airport=str(d["destination"]),
        departure_date=d["local_departure_date"],
        return_date=parse_date(_value(d, "return_date")) or params.return_date,
    )


class CSVProvider(FlightSearchProvider):
    """
    Offers from a local fares file. Useful offline and for replaying
    captured provider responses.
    """

    def __init__(self, path: str = DEFAULT_FARES_PATH, name: str = "csv"):
        self.path = path
        self.name = name

    def can_handle(self, params: SearchParams) -> bool:
        return params.trip_type != TRIP_MULTI_CITY

    def is_healthy(self) -> bool:
        return os.path.exists(self.path)

    def search(self, params: SearchParams) -> List[FlightOffer]:
        try:
            df = load_fare_rows(self.path, params)
        except (OSError, ValueError, pd.errors.ParserError) as exc:
            raise ProviderError(f"Cannot read fares file {self.path}: {exc}") from exc

        if df is None or df.empty:
            return []

        rows = df.to_dict(orient="records")
        try:
            return [_row_to_offer(d, params, self.name) for d in rows]
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError(f"Malformed row in fares file {self.path}: {exc}") from exc
