# src/flight_aggregator/services/fanout.py

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import requests

from flight_aggregator.core.models import (
    STATUS_ERROR,
    STATUS_SUCCESS,
    STATUS_TIMEOUT,
    FlightOffer,
    ProviderStatus,
    SearchParams,
)
from flight_aggregator.providers.registry import ProviderRegistry


logger = logging.getLogger(__name__)

TIMEOUT_ERRORS = (TimeoutError, requests.Timeout)


@dataclass
class FanOutResult:
    offers: List[FlightOffer] = field(default_factory=list)
    statuses: List[ProviderStatus] = field(default_factory=list)


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class FanOutExecutor:
    """
    Runs one provider search per selected provider on a thread pool and
    waits for all of them (or for the deadline, when one is set).

    Each call is isolated: whatever a provider does, it produces exactly one
    ProviderStatus and never affects the other providers' results.
    """

    def __init__(self, registry: ProviderRegistry, timeout_seconds: Optional[float] = None):
        self.registry = registry
        self.timeout_seconds = timeout_seconds

    def _call_provider(
        self,
        name: str,
        params: SearchParams,
        elapsed_ms: Callable[[], int],
    ) -> Tuple[List[FlightOffer], ProviderStatus]:
        provider = self.registry.get(name)
        if provider is None:
            return [], ProviderStatus(
                name=name,
                status=STATUS_ERROR,
                results_count=0,
                response_time_ms=elapsed_ms(),
                error=f"Provider {name} not found",
            )

        try:
            if not provider.can_handle(params):
                return [], ProviderStatus(
                    name=name,
                    status=STATUS_ERROR,
                    results_count=0,
                    response_time_ms=elapsed_ms(),
                    error=f"Provider {name} cannot handle this search",
                )
            offers = list(provider.search(params) or [])
        except TIMEOUT_ERRORS as exc:
            logger.warning("Provider %s timed out: %s", name, exc)
            return [], ProviderStatus(
                name=name,
                status=STATUS_TIMEOUT,
                results_count=0,
                response_time_ms=elapsed_ms(),
                error=f"Provider {name} timed out: {_error_message(exc)}",
            )
        except Exception as exc:
            logger.warning("Error querying provider %s: %s", name, exc)
            return [], ProviderStatus(
                name=name,
                status=STATUS_ERROR,
                results_count=0,
                response_time_ms=elapsed_ms(),
                error=_error_message(exc),
            )

        return offers, ProviderStatus(
            name=name,
            status=STATUS_SUCCESS,
            results_count=len(offers),
            response_time_ms=elapsed_ms(),
        )

    def run(self, provider_names: List[str], params: SearchParams) -> FanOutResult:
        """
        Query every named provider concurrently.

        Statuses come back in the order the providers were requested and
        offers are concatenated in that same order, whatever order the
        calls completed in. Response times are measured from the start of
        the fan-out so they are comparable across providers.
        """
        if not provider_names:
            return FanOutResult()

        start = time.monotonic()

        def elapsed_ms() -> int:
            return int(round((time.monotonic() - start) * 1000))

        pool = ThreadPoolExecutor(
            max_workers=len(provider_names), thread_name_prefix="provider-search"
        )
        try:
            futures = {
                pool.submit(self._call_provider, name, params, elapsed_ms): idx
                for idx, name in enumerate(provider_names)
            }
            done, _ = wait(futures, timeout=self.timeout_seconds)
            deadline_ms = elapsed_ms()
        finally:
            # Calls still running past the deadline are abandoned, not joined
            pool.shutdown(wait=False, cancel_futures=True)

        outcomes: Dict[int, Tuple[List[FlightOffer], ProviderStatus]] = {}
        for future, idx in futures.items():
            name = provider_names[idx]
            if future in done:
                outcomes[idx] = future.result()
                continue
            logger.warning("Provider %s did not answer within %ss", name, self.timeout_seconds)
            outcomes[idx] = (
                [],
                ProviderStatus(
                    name=name,
                    status=STATUS_TIMEOUT,
                    results_count=0,
                    response_time_ms=deadline_ms,
                    error=f"Provider {name} timed out after {self.timeout_seconds}s",
                ),
            )

        result = FanOutResult()
        for idx in range(len(provider_names)):
            offers, status = outcomes[idx]
            result.offers.extend(offers)
            result.statuses.append(status)
        return result
