"""Command-line interface over the demo provider."""

import json

import pytest

from flight_aggregator.cli import main


@pytest.fixture(autouse=True)
def demo_only(monkeypatch):
    monkeypatch.setenv("FLIGHT_PROVIDERS", "demo")
    monkeypatch.setenv("CACHE_ENABLED", "false")
    monkeypatch.delenv("RANKING_PRICE_WEIGHT", raising=False)
    monkeypatch.delenv("RANKING_DURATION_WEIGHT", raising=False)
    monkeypatch.delenv("RANKING_STOPS_WEIGHT", raising=False)
    monkeypatch.delenv("CACHE_BACKEND", raising=False)
    monkeypatch.delenv("CACHE_TTL_SECONDS", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")


def test_search_prints_ranked_json(capsys):
    assert main(["search", "JFK", "LAX", "2030-01-01"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "success"
    assert payload["total_results"] == 5
    assert payload["flights"][0]["airline_code"] == "WN"
    assert payload["providers_queried"][0]["name"] == "demo"


def test_search_filters_sorts_and_reports_stats(capsys):
    code = main(
        [
            "search", "jfk", "lax", "2030-01-01",
            "--max-stops", "0",
            "--sort-by", "price",
            "--order", "asc",
            "--stats",
        ]
    )
    assert code == 0

    payload = json.loads(capsys.readouterr().out)
    assert [f["price"] for f in payload["flights"]] == [450.0, 480.0, 520.0]
    assert payload["total_results"] == 3
    assert payload["price_stats"]["min"] == 450.0


def test_invalid_search_exits_2(capsys):
    assert main(["search", "JF", "LAX", "2000-01-01"]) == 2

    err = capsys.readouterr().err
    assert "Invalid departure airport code" in err
    assert "Departure date cannot be in the past" in err


def test_unparseable_date_exits_2(capsys):
    assert main(["search", "JFK", "LAX", "2030-13-01"]) == 2
    assert "Invalid search parameters" in capsys.readouterr().err


def test_unknown_provider_subset_is_error_status(capsys):
    assert main(["search", "JFK", "LAX", "2030-01-01", "--providers", "kayak"]) == 1
    assert json.loads(capsys.readouterr().out)["status"] == "error"


def test_providers_command(capsys):
    assert main(["providers", "--health"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload == {"providers": ["demo"], "count": 1, "health": {"demo": True}}


def test_bad_configuration_exits_2(monkeypatch, capsys):
    monkeypatch.setenv("CACHE_BACKEND", "memcached")
    assert main(["providers"]) == 2
    assert "Invalid configuration" in capsys.readouterr().err
