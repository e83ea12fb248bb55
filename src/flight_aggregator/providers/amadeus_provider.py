# src/flight_aggregator/providers/amadeus_provider.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from flight_aggregator.core.models import (
    TRIP_MULTI_CITY,
    TRIP_ROUND_TRIP,
    FlightOffer,
    Itinerary,
    SearchParams,
    Segment,
    StopDetail,
    parse_datetime,
)
from flight_aggregator.providers.base import FlightSearchProvider, ProviderError
from flight_aggregator.services.amadeus_client import AmadeusClient


logger = logging.getLogger(__name__)

FLIGHT_OFFERS_PATH = "/v2/shopping/flight-offers"

CABIN_CODES = {
    "economy": "ECONOMY",
    "premium-economy": "PREMIUM_ECONOMY",
    "business": "BUSINESS",
    "first": "FIRST",
}


def _parse_dt(value: Optional[str]):
    if not value:
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


def _parse_iso8601_duration_minutes(duration: Optional[str]) -> Optional[int]:
    """
    Parse durations like 'PT6H30M' into total minutes.
    """
    if not duration or not isinstance(duration, str):
        return None
    if not duration.startswith("PT"):
        return None

    hours = 0
    minutes = 0
    num = ""
    for ch in duration[2:]:
        if ch.isdigit():
            num += ch
            continue
        if ch == "H" and num:
            hours = int(num)
        elif ch == "M" and num:
            minutes = int(num)
        num = ""

    return hours * 60 + minutes


def _pick_airline_code(offer: dict) -> str:
    # Prefer validating airline codes if present
    vac = offer.get("validatingAirlineCodes")
    if isinstance(vac, list) and vac:
        return str(vac[0])

    itineraries = offer.get("itineraries", []) or []
    if itineraries and itineraries[0].get("segments"):
        return str(itineraries[0]["segments"][0].get("carrierCode", ""))

    return ""


def _build_itineraries(
    offer_raw: Dict[str, Any],
    carriers: Dict[str, str],
    cabin: Optional[str],
) -> List[Itinerary]:
    out: List[Itinerary] = []

    for idx, it in enumerate(offer_raw.get("itineraries", []) or []):
        segs: List[Segment] = []
        for seg in it.get("segments", []) or []:
            dep = seg.get("departure", {}) or {}
            arr = seg.get("arrival", {}) or {}
            carrier_code = seg.get("carrierCode")
            aircraft = seg.get("aircraft", {}) or {}

            segs.append(
                Segment(
                    origin=str(dep.get("iataCode", "")),
                    destination=str(arr.get("iataCode", "")),
                    dep_at=_parse_dt(dep.get("at")),
                    arr_at=_parse_dt(arr.get("at")),
                    carrier_code=str(carrier_code) if carrier_code else None,
                    carrier_name=carriers.get(str(carrier_code)) if carrier_code else None,
                    flight_number=str(seg["number"]) if seg.get("number") is not None else None,
                    aircraft_code=str(aircraft["code"]) if aircraft.get("code") else None,
                    duration_minutes=_parse_iso8601_duration_minutes(seg.get("duration")),
                    departure_terminal=dep.get("terminal"),
                    arrival_terminal=arr.get("terminal"),
                    cabin=cabin,
                )
            )

        out.append(
            Itinerary(
                direction="outbound" if idx == 0 else "inbound",
                segments=segs,
                duration_minutes=_parse_iso8601_duration_minutes(it.get("duration")),
            )
        )

    return out


def _stop_details(segments: List[Segment]) -> List[StopDetail]:
    """Layover at each connection: next departure minus previous arrival."""
    details: List[StopDetail] = []
    for prev, nxt in zip(segments, segments[1:]):
        layover = 0
        if prev.arr_at and nxt.dep_at:
            layover = int(round((nxt.dep_at - prev.arr_at).total_seconds() / 60))
        details.append(StopDetail(airport=nxt.origin, duration_minutes=layover))
    return details


def normalize_offer(
    raw: Dict[str, Any],
    params: SearchParams,
    carriers: Dict[str, str],
) -> FlightOffer:
    """Map one Amadeus flight-offer object onto FlightOffer."""
    itineraries = _build_itineraries(raw, carriers, params.cabin)
    if not itineraries or not itineraries[0].segments:
        raise ProviderError(f"Amadeus offer {raw.get('id')} has no segments")

    outbound = itineraries[0]
    first_seg = outbound.segments[0]
    last_seg = outbound.segments[-1]
    if first_seg.dep_at is None or last_seg.arr_at is None:
        raise ProviderError(f"Amadeus offer {raw.get('id')} has unparseable times")

    duration = outbound.duration_minutes
    if duration is None:
        duration = int((last_seg.arr_at - first_seg.dep_at).total_seconds() // 60)

    price = raw.get("price", {}) or {}
    airline_code = _pick_airline_code(raw)

    return FlightOffer(
        provider="amadeus",
        provider_offer_id=str(raw.get("id", "")),
        airline=carriers.get(airline_code, airline_code),
        airline_code=airline_code,
        departure_time=first_seg.dep_at,
        arrival_time=last_seg.arr_at,
        duration_minutes=duration,
        stops=outbound.stops,
        stop_details=_stop_details(outbound.segments),
        price=float(price.get("grandTotal") or price.get("total") or 0),
        currency=str(price.get("currency", "USD")),
        trip_type=params.trip_type,
        departure_airport=params.origin,
        arrival_airport=params.destination,
        departure_date=params.departure_date,
        return_date=params.return_date,
        itineraries=itineraries,
    )


class AmadeusProvider(FlightSearchProvider):
    """
    Live provider (Amadeus Self-Service Flight Offers Search).
    """

    name = "amadeus"

    def __init__(self, client: Optional[AmadeusClient] = None, max_results: int = 50):
        self.client = client or AmadeusClient()
        self.max_results = max_results

    def _build_query(self, params: SearchParams) -> Dict[str, Any]:
        breakdown = params.passenger_breakdown
        query: Dict[str, Any] = {
            "originLocationCode": params.origin,
            "destinationLocationCode": params.destination,
            "departureDate": params.departure_date.isoformat(),
            "adults": breakdown.adults if breakdown else max(1, params.total_passengers),
            "currencyCode": "USD",
            "max": self.max_results,
        }
        if breakdown and breakdown.children:
            query["children"] = breakdown.children
        if breakdown and breakdown.infants:
            query["infants"] = breakdown.infants

        if params.trip_type == TRIP_ROUND_TRIP and params.return_date:
            query["returnDate"] = params.return_date.isoformat()
        if params.cabin:
            query["travelClass"] = CABIN_CODES.get(params.cabin, "ECONOMY")
        if params.max_price:
            query["maxPrice"] = int(params.max_price)
        if params.airlines:
            query["includedAirlineCodes"] = ",".join(params.airlines)
        return query

    def can_handle(self, params: SearchParams) -> bool:
        # The GET search endpoint has no multi-city support
        return params.trip_type != TRIP_MULTI_CITY

    def is_healthy(self) -> bool:
        try:
            self.client.ensure_token()
            return True
        except (requests.RequestException, KeyError, ValueError) as exc:
            logger.warning("Amadeus health check failed: %s", exc)
            return False

    def search(self, params: SearchParams) -> List[FlightOffer]:
        try:
            payload = self.client.get(FLIGHT_OFFERS_PATH, self._build_query(params))
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else 502
            raise ProviderError(f"Amadeus search failed: {exc}", status_code=status) from exc

        data = payload.get("data", []) or []
        carriers = (payload.get("dictionaries", {}) or {}).get("carriers", {}) or {}

        offers: List[FlightOffer] = []
        for raw in data:
            try:
                offers.append(normalize_offer(raw, params, carriers))
            except (ProviderError, KeyError, TypeError, ValueError) as exc:
                # Skip the offer, keep the rest of the page
                logger.warning("Skipping Amadeus offer %s: %s", raw.get("id"), exc)

        logger.info("Amadeus returned %d offers (%d raw)", len(offers), len(data))
        return offers
