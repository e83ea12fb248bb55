# src/flight_aggregator/providers/base.py

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from flight_aggregator.core.models import FlightOffer, SearchParams


class ProviderError(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 502,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


class FlightSearchProvider(ABC):
    """
    Capability every provider exposes to the aggregator.
    Normalization into FlightOffer stays inside each implementation.
    """

    name: str = ""

    @abstractmethod
    def search(self, params: SearchParams) -> List[FlightOffer]:
        ...

    def can_handle(self, params: SearchParams) -> bool:
        return True

    def is_healthy(self) -> bool:
        return True
