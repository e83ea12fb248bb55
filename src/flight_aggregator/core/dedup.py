# src/flight_aggregator/core/dedup.py

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from flight_aggregator.core.models import FlightOffer


PRICE_BUCKET = 10.0


def _hour_bucket(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H")


def _price_bucket(price: float) -> int:
    # half-up, so 345.0 and 354.9 land in the same bucket (35)
    return int(math.floor(float(price) / PRICE_BUCKET + 0.5))


def flight_signature(offer: FlightOffer) -> str:
    """
    Heuristic identity of the physical flight behind an offer.

    Two providers selling the same flight rarely agree on ids, minutes or
    cents, so times are compared at hour granularity and prices in $10
    buckets.
    """
    return "|".join(
        [
            offer.departure_airport or "",
            offer.arrival_airport or "",
            (offer.airline_code or "").upper(),
            _hour_bucket(offer.departure_time),
            _hour_bucket(offer.arrival_time),
            str(int(offer.stops)),
            str(_price_bucket(offer.price)),
        ]
    )


def dedupe_offers(offers: Sequence[FlightOffer]) -> List[FlightOffer]:
    """
    Collapse offers sharing a signature into one representative: the
    highest-scored one, or the first one when scores tie or are missing.
    """
    ordered = sorted(offers, key=lambda o: o.ranking_score or 0.0, reverse=True)

    best_by_sig: Dict[str, FlightOffer] = {}
    for o in ordered:
        best_by_sig.setdefault(flight_signature(o), o)
    return list(best_by_sig.values())
