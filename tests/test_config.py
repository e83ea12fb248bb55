"""Environment-driven settings and aggregator wiring."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from flight_aggregator.config import (
    Settings,
    build_aggregator,
    build_cache_store,
    build_registry,
    load_settings,
)
from flight_aggregator.core.models import SearchParams
from flight_aggregator.core.scoring import RankingWeights


def test_defaults():
    settings = load_settings({})

    assert settings.providers == ["demo"]
    assert settings.cache_enabled is True
    assert settings.cache_backend == "memory"
    assert settings.cache_ttl_seconds == 600
    assert settings.provider_timeout_seconds is None
    assert settings.ranking_weights == RankingWeights()
    assert settings.log_level == "INFO"


def test_overrides():
    settings = load_settings(
        {
            "FLIGHT_PROVIDERS": " Demo, CSV ,",
            "CACHE_ENABLED": "false",
            "CACHE_BACKEND": "SQLite",
            "CACHE_TTL_SECONDS": "120",
            "PROVIDER_TIMEOUT_SECONDS": "2.5",
            "RANKING_PRICE_WEIGHT": "0.5",
            "RANKING_DURATION_WEIGHT": "0.3",
            "RANKING_STOPS_WEIGHT": "0.2",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.providers == ["demo", "csv"]
    assert settings.cache_enabled is False
    assert settings.cache_backend == "sqlite"
    assert settings.cache_ttl_seconds == 120
    assert settings.provider_timeout_seconds == 2.5
    assert settings.ranking_weights == RankingWeights(price=0.5, duration=0.3, stops=0.2)
    assert settings.log_level == "DEBUG"


def test_zero_weight_override_is_kept():
    settings = load_settings(
        {"RANKING_PRICE_WEIGHT": "0.75", "RANKING_DURATION_WEIGHT": "0.25", "RANKING_STOPS_WEIGHT": "0"}
    )
    assert settings.ranking_weights.stops == 0.0


@pytest.mark.parametrize(
    "environ",
    [
        {"RANKING_PRICE_WEIGHT": "0.9"},
        {"CACHE_BACKEND": "memcached"},
        {"CACHE_TTL_SECONDS": "0"},
        {"CACHE_MAX_ENTRIES": "0"},
    ],
)
def test_invalid_settings_rejected(environ):
    with pytest.raises(ValueError):
        load_settings(environ)


def test_registry_skips_unknown_and_unconfigured_providers(monkeypatch):
    monkeypatch.delenv("AMADEUS_CLIENT_ID", raising=False)
    monkeypatch.delenv("AMADEUS_CLIENT_SECRET", raising=False)

    registry = build_registry(Settings(providers=["demo", "kayak", "amadeus", "csv"]))
    assert registry.list() == ["demo", "csv"]


def test_aggregator_with_sqlite_cache(tmp_path):
    settings = Settings(
        providers=["demo"],
        cache_backend="sqlite",
        cache_db_path=str(tmp_path / "cache.sqlite"),
    )
    aggregator = build_aggregator(settings)
    params = SearchParams(origin="JFK", destination="LAX", departure_date=date(2030, 1, 1))

    assert aggregator.cache.healthy()
    assert aggregator.search_flights(params).cache_hit is False
    assert aggregator.search_flights(params).cache_hit is True


def test_aggregator_with_cache_disabled():
    aggregator = build_aggregator(Settings(cache_enabled=False))
    params = SearchParams(origin="JFK", destination="LAX", departure_date=date(2030, 1, 1))

    assert aggregator.cache.healthy() is False
    assert aggregator.search_flights(params).cache_hit is False
    assert aggregator.search_flights(params).cache_hit is False


def test_timeout_reaches_executor():
    aggregator = build_aggregator(Settings(provider_timeout_seconds=3.0))
    assert aggregator.executor.timeout_seconds == 3.0


def test_redis_settings_parsed():
    settings = load_settings(
        {
            "CACHE_BACKEND": "redis",
            "REDIS_HOST": " cache.internal ",
            "REDIS_PORT": "6380",
            "REDIS_PASSWORD": "s3cret",
            "REDIS_DB": "3",
        }
    )

    assert settings.cache_backend == "redis"
    assert settings.redis_host == "cache.internal"
    assert settings.redis_port == 6380
    assert settings.redis_password == "s3cret"
    assert settings.redis_db == 3


def test_redis_backend_builds_redis_store(monkeypatch):
    factory = MagicMock()
    monkeypatch.setattr("flight_aggregator.services.cache.redis.Redis", factory)

    store = build_cache_store(
        Settings(cache_backend="redis", redis_host="cache.internal", redis_port=6379)
    )

    assert store.is_connected() is True
    kwargs = factory.call_args.kwargs
    assert (kwargs["host"], kwargs["port"], kwargs["ssl"]) == ("cache.internal", 6379, False)


def test_memory_backend_honours_max_entries():
    store = build_cache_store(load_settings({"CACHE_MAX_ENTRIES": "2"}))
    for key in ("a", "b", "c"):
        store.set_with_ttl(key, "v", 60)
    assert len(store) == 2
