# src/flight_aggregator/providers/registry.py

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from flight_aggregator.core.models import SearchParams
from flight_aggregator.providers.base import FlightSearchProvider


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Named set of provider capabilities.

    Populated at startup and only read afterwards, so concurrent searches
    read it without locking.
    """

    def __init__(self, providers: Optional[List[FlightSearchProvider]] = None):
        self._providers: Dict[str, FlightSearchProvider] = {}
        for p in providers or []:
            self.register(p)

    def register(self, provider: FlightSearchProvider) -> None:
        if not provider.name:
            raise ValueError("Provider must have a non-empty name")
        if provider.name in self._providers:
            logger.info("Replacing registered provider %s", provider.name)
        self._providers[provider.name] = provider

    def unregister(self, name: str) -> None:
        self._providers.pop(name, None)

    def get(self, name: str) -> Optional[FlightSearchProvider]:
        return self._providers.get(name)

    def list(self) -> List[str]:
        return list(self._providers.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def select(self, params: SearchParams) -> List[str]:
        """
        Providers to query for this request.

        An explicit subset is intersected with what is registered; unknown
        names are dropped silently. Matching ignores case. The result may
        be empty.
        """
        if not params.include_providers:
            return self.list()

        by_lower = {name.lower(): name for name in self._providers}
        selected: List[str] = []
        for requested in params.include_providers:
            name = by_lower.get(requested.strip().lower())
            if name is not None and name not in selected:
                selected.append(name)
        return selected

    def health(self) -> Dict[str, bool]:
        status: Dict[str, bool] = {}
        for name, provider in self._providers.items():
            try:
                status[name] = bool(provider.is_healthy())
            except Exception as exc:
                logger.warning("Health check for %s failed: %s", name, exc)
                status[name] = False
        return status
