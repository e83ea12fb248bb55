# src/flight_aggregator/services/aggregator.py

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from flight_aggregator.core.dedup import dedupe_offers
from flight_aggregator.core.models import (
    STATUS_ERROR,
    STATUS_PARTIAL,
    STATUS_SUCCESS,
    FlightOffer,
    ProviderStatus,
    SearchParams,
    SearchResult,
)
from flight_aggregator.core.scoring import (
    FilterCriteria,
    PriceStats,
    RankingEngine,
    filter_offers,
    price_stats,
    sort_offers,
)
from flight_aggregator.core.validation import ValidationResult, validate_search_params
from flight_aggregator.providers.base import FlightSearchProvider
from flight_aggregator.providers.registry import ProviderRegistry
from flight_aggregator.services.cache import DEFAULT_TTL_SECONDS, CacheGate, search_cache_key
from flight_aggregator.services.fanout import FanOutExecutor


logger = logging.getLogger(__name__)


def overall_status(statuses: Sequence[ProviderStatus]) -> str:
    if not statuses:
        return STATUS_ERROR
    succeeded = [s for s in statuses if s.status == STATUS_SUCCESS]
    if len(succeeded) == len(statuses):
        return STATUS_SUCCESS
    if succeeded:
        return STATUS_PARTIAL
    return STATUS_ERROR


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlightAggregator:
    """
    Coordinates one search across every selected provider.

    Pipeline: cache read -> provider selection -> fan-out -> dedupe -> rank
    -> cache write. Deduplication runs before ranking, so the ranking
    population is the deduplicated offer set.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        cache: Optional[CacheGate] = None,
        engine: Optional[RankingEngine] = None,
        executor: Optional[FanOutExecutor] = None,
        cache_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.registry = registry if registry is not None else ProviderRegistry()
        self.cache = cache if cache is not None else CacheGate()
        self.engine = engine if engine is not None else RankingEngine()
        self.executor = executor if executor is not None else FanOutExecutor(self.registry)
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock

    def register_provider(self, provider: FlightSearchProvider) -> None:
        self.registry.register(provider)

    def get_providers(self) -> List[str]:
        return self.registry.list()

    def provider_health(self) -> Dict[str, bool]:
        return self.registry.health()

    def validate_search_params(
        self, params: SearchParams, today: Optional[date] = None
    ) -> ValidationResult:
        return validate_search_params(params, today=today)

    def _read_cache(self, key: str) -> Optional[SearchResult]:
        cached = self.cache.get(key)
        if cached is None:
            return None
        try:
            result = SearchResult.from_dict(cached)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Discarding undecodable cache entry %s: %s", key, exc)
            return None
        return replace(result, cache_hit=True)

    def search_flights(self, params: SearchParams) -> SearchResult:
        cache_key = search_cache_key(params)

        cached = self._read_cache(cache_key)
        if cached is not None:
            logger.info("Cache hit for key %s", cache_key)
            return cached

        providers = self.registry.select(params)
        if not providers:
            logger.info("No providers available for %s -> %s", params.origin, params.destination)
            return SearchResult(
                status=STATUS_ERROR,
                query=params,
                flights=[],
                total_results=0,
                providers_queried=[],
                timestamp=self._clock(),
                cache_hit=False,
            )

        logger.info("Querying providers %s for %s -> %s", providers, params.origin, params.destination)
        fanout = self.executor.run(providers, params)

        deduped = dedupe_offers(fanout.offers)
        ranked = self.engine.rank(deduped)
        logger.debug(
            "Collected %d offers, %d after dedupe", len(fanout.offers), len(deduped)
        )

        result = SearchResult(
            status=overall_status(fanout.statuses),
            query=params,
            flights=ranked,
            total_results=len(ranked),
            providers_queried=fanout.statuses,
            timestamp=self._clock(),
            cache_hit=False,
        )

        self.cache.set(cache_key, replace(result, cache_hit=False).to_dict(), self.cache_ttl_seconds)
        return result

    def filter_offers(
        self, offers: Sequence[FlightOffer], criteria: Optional[FilterCriteria] = None
    ) -> List[FlightOffer]:
        return filter_offers(offers, criteria)

    def sort_offers(
        self, offers: Sequence[FlightOffer], sort_by: str = "score", order: str = "desc"
    ) -> List[FlightOffer]:
        return sort_offers(offers, sort_by, order)

    def price_stats(self, offers: Sequence[FlightOffer]) -> PriceStats:
        return price_stats(offers)
