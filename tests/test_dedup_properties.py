"""
Property-based tests for cross-provider deduplication.
"""

from datetime import datetime, timezone

from hypothesis import given, settings

from flight_aggregator.core.dedup import dedupe_offers, flight_signature

from factories import make_offer, offer_lists


@given(offers=offer_lists)
@settings(max_examples=100)
def test_dedupe_is_idempotent(offers):
    once = dedupe_offers(offers)
    assert dedupe_offers(once) == once


@given(offers=offer_lists)
@settings(max_examples=100)
def test_dedupe_keeps_one_offer_per_signature(offers):
    deduped = dedupe_offers(offers)
    signatures = [flight_signature(o) for o in deduped]

    assert len(signatures) == len(set(signatures))
    assert set(signatures) == {flight_signature(o) for o in offers}


def test_same_flight_from_two_providers_collapses():
    a = make_offer(
        provider="demo",
        offer_id="1",
        price=345.0,
        dep=datetime(2030, 1, 1, 8, 5, tzinfo=timezone.utc),
    )
    b = make_offer(
        provider="csv",
        offer_id="JL1",
        price=348.0,
        dep=datetime(2030, 1, 1, 8, 40, tzinfo=timezone.utc),
    )
    assert flight_signature(a) == flight_signature(b)
    assert len(dedupe_offers([a, b])) == 1


def test_different_stops_are_distinct_flights():
    a = make_offer(offer_id="1", stops=0)
    b = make_offer(offer_id="2", stops=1)
    assert len(dedupe_offers([a, b])) == 2


def test_prices_in_different_buckets_are_distinct():
    a = make_offer(offer_id="1", price=344.0)
    b = make_offer(offer_id="2", price=356.0)
    assert len(dedupe_offers([a, b])) == 2


def test_same_hour_on_another_day_is_distinct():
    a = make_offer(offer_id="1", dep=datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc))
    b = make_offer(offer_id="2", dep=datetime(2030, 1, 2, 8, 0, tzinfo=timezone.utc))
    assert len(dedupe_offers([a, b])) == 2


def test_airline_code_case_is_ignored():
    a = make_offer(offer_id="1", airline_code="dl")
    b = make_offer(offer_id="2", airline_code="DL")
    assert len(dedupe_offers([a, b])) == 1


def test_highest_score_is_the_representative():
    low = make_offer(provider="csv", offer_id="low", ranking_score=10.0)
    high = make_offer(provider="demo", offer_id="high", ranking_score=90.0)

    assert [o.provider_offer_id for o in dedupe_offers([low, high])] == ["high"]


def test_unscored_duplicates_keep_first_seen():
    first = make_offer(provider="demo", offer_id="first")
    second = make_offer(provider="csv", offer_id="second")

    assert [o.provider_offer_id for o in dedupe_offers([first, second])] == ["first"]


def test_dedupe_empty():
    assert dedupe_offers([]) == []
