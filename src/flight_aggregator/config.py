# src/flight_aggregator/config.py

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from flight_aggregator.core.scoring import RankingEngine, RankingWeights
from flight_aggregator.data_access import DEFAULT_FARES_PATH
from flight_aggregator.providers.amadeus_provider import AmadeusProvider
from flight_aggregator.providers.base import FlightSearchProvider
from flight_aggregator.providers.csv_provider import CSVProvider
from flight_aggregator.providers.demo_provider import DemoProvider
from flight_aggregator.providers.registry import ProviderRegistry
from flight_aggregator.services.aggregator import FlightAggregator
from flight_aggregator.services.amadeus_client import AmadeusClient
from flight_aggregator.services.cache import (
    DEFAULT_DB_PATH,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_REDIS_PORT,
    DEFAULT_TTL_SECONDS,
    CacheGate,
    CacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
    SqliteCacheStore,
)
from flight_aggregator.services.fanout import FanOutExecutor


logger = logging.getLogger(__name__)

CACHE_BACKENDS = ("memory", "sqlite", "redis")


@dataclass(frozen=True)
class Settings:
    providers: List[str] = field(default_factory=lambda: ["demo"])
    cache_enabled: bool = True
    cache_backend: str = "memory"
    cache_db_path: str = DEFAULT_DB_PATH
    cache_ttl_seconds: int = DEFAULT_TTL_SECONDS
    cache_max_entries: int = DEFAULT_MAX_ENTRIES
    redis_host: str = "localhost"
    redis_port: int = DEFAULT_REDIS_PORT
    redis_password: str = ""
    redis_db: int = 0
    provider_timeout_seconds: Optional[float] = None
    ranking_weights: RankingWeights = field(default_factory=RankingWeights)
    fares_csv_path: str = DEFAULT_FARES_PATH
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_env: str = "test"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.cache_backend not in CACHE_BACKENDS:
            raise ValueError(
                f"Unknown cache backend '{self.cache_backend}' (expected one of {', '.join(CACHE_BACKENDS)})"
            )
        if self.cache_ttl_seconds <= 0:
            raise ValueError("CACHE_TTL_SECONDS must be positive")
        if self.cache_max_entries <= 0:
            raise ValueError("CACHE_MAX_ENTRIES must be positive")


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def _env_float(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = (env.get(key) or "").strip()
    return float(raw) if raw else None


def load_settings(environ: Optional[Mapping[str, str]] = None, env_file: Optional[str] = None) -> Settings:
    """
    Read settings from the environment. When no mapping is passed, a .env
    file (if any) is loaded first; real environment variables win.
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    defaults = RankingWeights()
    overrides = {
        "price": _env_float(environ, "RANKING_PRICE_WEIGHT"),
        "duration": _env_float(environ, "RANKING_DURATION_WEIGHT"),
        "stops": _env_float(environ, "RANKING_STOPS_WEIGHT"),
    }
    weights = RankingWeights(
        **{k: (v if v is not None else getattr(defaults, k)) for k, v in overrides.items()}
    )

    providers = [
        p.strip().lower()
        for p in environ.get("FLIGHT_PROVIDERS", "demo").split(",")
        if p.strip()
    ]

    return Settings(
        providers=providers,
        cache_enabled=_env_bool(environ, "CACHE_ENABLED", True),
        cache_backend=environ.get("CACHE_BACKEND", "memory").strip().lower(),
        cache_db_path=environ.get("CACHE_DB_PATH", DEFAULT_DB_PATH),
        cache_ttl_seconds=int(environ.get("CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS)),
        cache_max_entries=int(environ.get("CACHE_MAX_ENTRIES", DEFAULT_MAX_ENTRIES)),
        redis_host=environ.get("REDIS_HOST", "localhost").strip(),
        redis_port=int(environ.get("REDIS_PORT", DEFAULT_REDIS_PORT)),
        redis_password=environ.get("REDIS_PASSWORD", ""),
        redis_db=int(environ.get("REDIS_DB", 0)),
        provider_timeout_seconds=_env_float(environ, "PROVIDER_TIMEOUT_SECONDS"),
        ranking_weights=weights,
        fares_csv_path=environ.get("FARES_CSV_PATH", DEFAULT_FARES_PATH),
        amadeus_client_id=environ.get("AMADEUS_CLIENT_ID", "").strip(),
        amadeus_client_secret=environ.get("AMADEUS_CLIENT_SECRET", "").strip(),
        amadeus_env=environ.get("AMADEUS_ENV", "test").strip().lower(),
        log_level=environ.get("LOG_LEVEL", "INFO").strip().upper(),
    )


def build_cache_store(settings: Settings) -> Optional[CacheStore]:
    if not settings.cache_enabled:
        logger.info("Cache disabled via CACHE_ENABLED")
        return None
    if settings.cache_backend == "sqlite":
        return SqliteCacheStore(settings.cache_db_path)
    if settings.cache_backend == "redis":
        return RedisCacheStore(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            db=settings.redis_db,
        )
    return InMemoryCacheStore(max_entries=settings.cache_max_entries)


def _build_provider(name: str, settings: Settings) -> Optional[FlightSearchProvider]:
    if name == "demo":
        return DemoProvider()
    if name == "csv":
        return CSVProvider(settings.fares_csv_path)
    if name == "amadeus":
        client = AmadeusClient(
            client_id=settings.amadeus_client_id,
            client_secret=settings.amadeus_client_secret,
            env=settings.amadeus_env,
        )
        return AmadeusProvider(client)
    return None


def build_registry(settings: Settings) -> ProviderRegistry:
    """Register every configured provider; skip the ones that cannot start."""
    registry = ProviderRegistry()
    for name in settings.providers:
        try:
            provider = _build_provider(name, settings)
        except ValueError as exc:
            logger.warning("Provider %s not registered: %s", name, exc)
            continue
        if provider is None:
            logger.warning("Unknown flight provider: %s", name)
            continue
        registry.register(provider)

    logger.info("Initialized %d flight providers: %s", len(registry), registry.list())
    return registry


def build_aggregator(settings: Optional[Settings] = None) -> FlightAggregator:
    settings = settings or load_settings()
    registry = build_registry(settings)
    return FlightAggregator(
        registry=registry,
        cache=CacheGate(build_cache_store(settings), settings.cache_ttl_seconds),
        engine=RankingEngine(settings.ranking_weights),
        executor=FanOutExecutor(registry, timeout_seconds=settings.provider_timeout_seconds),
        cache_ttl_seconds=settings.cache_ttl_seconds,
    )
