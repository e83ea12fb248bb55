# src/flight_aggregator/core/scoring.py

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from flight_aggregator.core.models import FlightOffer, ScoreBreakdown


WEIGHT_TOLERANCE = 0.01


def round2(value: float) -> float:
    """Round half-up to 2 decimals (0.125 -> 0.13)."""
    return math.floor(float(value) * 100 + 0.5) / 100


@dataclass(frozen=True)
class RankingWeights:
    price: float = 0.60
    duration: float = 0.25
    stops: float = 0.15

    def __post_init__(self):
        for name in ("price", "duration", "stops"):
            if getattr(self, name) < 0:
                raise ValueError(f"Ranking weight '{name}' must not be negative")
        total = self.price + self.duration + self.stops
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Ranking weights must sum to 1.0 (got {total:.4f})")


@dataclass(frozen=True)
class FilterCriteria:
    max_price: Optional[float] = None
    max_stops: Optional[int] = None
    max_duration: Optional[int] = None  # minutes
    airlines: Optional[List[str]] = None  # carrier code allow-list


@dataclass(frozen=True)
class PriceStats:
    min: float
    max: float
    average: float
    median: float


@dataclass(frozen=True)
class _Bounds:
    low: float
    high: float

    @classmethod
    def of(cls, values: Sequence[float]) -> "_Bounds":
        return cls(low=min(values), high=max(values))

    def inverse_score(self, value: float) -> float:
        # Best (lowest) value -> 100, worst -> 0. No spread -> nothing to
        # discriminate, every offer gets the best score.
        if self.low == self.high:
            return 100.0
        return 100.0 * (1 - (value - self.low) / (self.high - self.low))


class RankingEngine:
    """
    Scores offers relative to the candidate set they are ranked with.

    Each dimension (price, duration, stops) is min-max normalized across the
    population and inverted, then the weighted sum gives a 0..100 score.
    Higher is better.
    """

    def __init__(self, weights: Optional[RankingWeights] = None):
        self.weights = weights or RankingWeights()

    def _bounds(self, population: Sequence[FlightOffer]) -> Dict[str, _Bounds]:
        return {
            "price": _Bounds.of([float(o.price) for o in population]),
            "duration": _Bounds.of([float(o.duration_minutes) for o in population]),
            "stops": _Bounds.of([float(o.stops) for o in population]),
        }

    def _breakdown(self, offer: FlightOffer, bounds: Dict[str, _Bounds]) -> ScoreBreakdown:
        price = bounds["price"].inverse_score(float(offer.price))
        duration = bounds["duration"].inverse_score(float(offer.duration_minutes))
        stops = bounds["stops"].inverse_score(float(offer.stops))

        total = (
            price * self.weights.price
            + duration * self.weights.duration
            + stops * self.weights.stops
        )
        return ScoreBreakdown(
            price=round2(price),
            duration=round2(duration),
            stops=round2(stops),
            total=round2(total),
        )

    def score_breakdown(
        self, offer: FlightOffer, population: Sequence[FlightOffer]
    ) -> ScoreBreakdown:
        return self._breakdown(offer, self._bounds(population or [offer]))

    def score(self, offer: FlightOffer, population: Sequence[FlightOffer]) -> float:
        return self.score_breakdown(offer, population).total

    def rank(self, offers: Sequence[FlightOffer]) -> List[FlightOffer]:
        """
        Return new offers annotated with ranking_score/score_breakdown,
        sorted by score descending. Ties keep their input order.
        """
        if not offers:
            return []

        bounds = self._bounds(offers)
        scored: List[FlightOffer] = []
        for o in offers:
            breakdown = self._breakdown(o, bounds)
            scored.append(replace(o, ranking_score=breakdown.total, score_breakdown=breakdown))

        # sorted() is stable, also with reverse=True
        return sorted(scored, key=lambda o: o.ranking_score, reverse=True)


def filter_offers(
    offers: Sequence[FlightOffer], criteria: Optional[FilterCriteria] = None
) -> List[FlightOffer]:
    """Keep offers matching every criterion that is set."""
    if criteria is None:
        return list(offers)

    allowed = {a.upper() for a in criteria.airlines} if criteria.airlines else None

    def passes(o: FlightOffer) -> bool:
        if criteria.max_price is not None and o.price > criteria.max_price:
            return False
        if criteria.max_stops is not None and o.stops > criteria.max_stops:
            return False
        if criteria.max_duration is not None and o.duration_minutes > criteria.max_duration:
            return False
        if allowed is not None and (o.airline_code or "").upper() not in allowed:
            return False
        return True

    return [o for o in offers if passes(o)]


_SORT_KEYS: Dict[str, Callable[[FlightOffer], float]] = {
    "price": lambda o: float(o.price),
    "duration": lambda o: float(o.duration_minutes),
    "stops": lambda o: float(o.stops),
    "score": lambda o: float(o.ranking_score or 0.0),
}


def sort_offers(
    offers: Sequence[FlightOffer], sort_by: str = "score", order: str = "desc"
) -> List[FlightOffer]:
    if sort_by not in _SORT_KEYS:
        raise ValueError(f"Unknown sort field: {sort_by}")
    if order not in ("asc", "desc"):
        raise ValueError(f"Unknown sort order: {order}")
    return sorted(offers, key=_SORT_KEYS[sort_by], reverse=(order == "desc"))


def price_stats(offers: Sequence[FlightOffer]) -> PriceStats:
    if not offers:
        return PriceStats(min=0.0, max=0.0, average=0.0, median=0.0)

    prices = pd.Series([float(o.price) for o in offers], dtype="float64")
    return PriceStats(
        min=round2(prices.min()),
        max=round2(prices.max()),
        average=round2(prices.mean()),
        median=round2(prices.median()),
    )
