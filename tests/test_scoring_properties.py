"""
Property-based tests for ranking, filtering, sorting and price statistics.
"""

from datetime import date

import pytest
from hypothesis import given, settings, strategies as st

from flight_aggregator.core.models import SearchParams
from flight_aggregator.core.scoring import (
    FilterCriteria,
    RankingEngine,
    RankingWeights,
    filter_offers,
    price_stats,
    round2,
    sort_offers,
)
from flight_aggregator.providers.demo_provider import generate_demo_offers

from factories import make_offer, offer_lists


@given(offers=offer_lists)
@settings(max_examples=100)
def test_rank_keeps_every_offer(offers):
    """Ranking reorders and annotates offers but never adds or drops one."""
    ranked = RankingEngine().rank(offers)

    assert len(ranked) == len(offers)
    assert sorted(o.id for o in ranked) == sorted(o.id for o in offers)


@given(offers=offer_lists)
@settings(max_examples=100)
def test_rank_scores_bounded_and_descending(offers):
    ranked = RankingEngine().rank(offers)

    scores = [o.ranking_score for o in ranked]
    assert all(0.0 <= s <= 100.0 for s in scores)
    assert scores == sorted(scores, reverse=True)
    for o in ranked:
        assert o.score_breakdown is not None
        assert o.score_breakdown.total == o.ranking_score


@given(offers=offer_lists)
@settings(max_examples=50)
def test_rank_is_idempotent(offers):
    engine = RankingEngine()
    once = engine.rank(offers)
    twice = engine.rank(once)

    assert [o.id for o in twice] == [o.id for o in once]
    assert [o.ranking_score for o in twice] == [o.ranking_score for o in once]


@given(
    price=st.floats(min_value=1, max_value=5000, allow_nan=False),
    durations=st.lists(st.integers(min_value=30, max_value=900), min_size=1, max_size=10),
)
@settings(max_examples=50)
def test_equal_prices_get_full_price_score(price, durations):
    offers = [make_offer(offer_id=str(i), price=price, duration=d) for i, d in enumerate(durations)]

    for o in RankingEngine().rank(offers):
        assert o.score_breakdown.price == 100.0


def test_single_offer_scores_100():
    ranked = RankingEngine().rank([make_offer(price=999.0, duration=700, stops=2)])
    assert ranked[0].ranking_score == 100.0


def test_rank_empty():
    assert RankingEngine().rank([]) == []


def test_demo_schedule_ranking():
    """Cheapest offer wins over the fastest nonstop under default weights."""
    params = SearchParams(origin="JFK", destination="LAX", departure_date=date(2030, 1, 1))
    ranked = RankingEngine().rank(generate_demo_offers(params))

    by_code = {o.airline_code: o for o in ranked}
    assert by_code["WN"].ranking_score == 60.0
    assert by_code["AA"].ranking_score == 40.0
    assert by_code["DL"].ranking_score == pytest.approx(57.08)
    assert [o.airline_code for o in ranked] == ["WN", "DL", "B6", "UA", "AA"]


def test_score_uses_population_bounds():
    cheap = make_offer(offer_id="a", price=100.0)
    pricey = make_offer(offer_id="b", price=300.0)
    engine = RankingEngine()

    breakdown = engine.score_breakdown(pricey, [cheap, pricey])
    assert breakdown.price == 0.0
    assert engine.score(cheap, [cheap, pricey]) == 100.0


def test_ties_keep_input_order():
    offers = [make_offer(offer_id=str(i), price=200.0) for i in range(5)]
    ranked = RankingEngine().rank(offers)
    assert [o.provider_offer_id for o in ranked] == ["0", "1", "2", "3", "4"]


def test_custom_weights_change_winner():
    cheap_slow = make_offer(offer_id="cheap", price=100.0, duration=600)
    pricey_fast = make_offer(offer_id="fast", price=400.0, duration=120)

    by_price = RankingEngine(RankingWeights(price=1.0, duration=0.0, stops=0.0))
    by_duration = RankingEngine(RankingWeights(price=0.0, duration=1.0, stops=0.0))

    assert by_price.rank([cheap_slow, pricey_fast])[0].provider_offer_id == "cheap"
    assert by_duration.rank([cheap_slow, pricey_fast])[0].provider_offer_id == "fast"


@pytest.mark.parametrize(
    "weights",
    [
        {"price": 0.5, "duration": 0.5, "stops": 0.5},
        {"price": 0.3, "duration": 0.3, "stops": 0.3},
        {"price": 1.2, "duration": -0.1, "stops": -0.1},
    ],
)
def test_invalid_weights_rejected(weights):
    with pytest.raises(ValueError):
        RankingWeights(**weights)


def test_weights_within_tolerance_accepted():
    w = RankingWeights(price=0.6, duration=0.25, stops=0.145)
    assert w.stops == 0.145


def test_round2_is_half_up():
    assert round2(0.125) == 0.13
    assert round2(57.083333) == 57.08
    assert round2(46.666666) == 46.67


@given(offers=offer_lists)
@settings(max_examples=50)
def test_filter_without_criteria_is_identity(offers):
    assert filter_offers(offers) == list(offers)
    assert filter_offers(offers, FilterCriteria()) == list(offers)


@given(
    offers=offer_lists,
    max_price=st.one_of(st.none(), st.floats(min_value=1, max_value=5000, allow_nan=False)),
    max_stops=st.one_of(st.none(), st.integers(min_value=0, max_value=3)),
    max_duration=st.one_of(st.none(), st.integers(min_value=30, max_value=1500)),
    airlines=st.one_of(st.none(), st.lists(st.sampled_from(["dl", "UA", "aa"]), max_size=3)),
)
@settings(max_examples=100)
def test_filter_keeps_exactly_matching_offers(offers, max_price, max_stops, max_duration, airlines):
    criteria = FilterCriteria(
        max_price=max_price, max_stops=max_stops, max_duration=max_duration, airlines=airlines
    )
    kept = filter_offers(offers, criteria)
    allowed = {a.upper() for a in airlines} if airlines else None

    def matches(o):
        return (
            (max_price is None or o.price <= max_price)
            and (max_stops is None or o.stops <= max_stops)
            and (max_duration is None or o.duration_minutes <= max_duration)
            and (allowed is None or o.airline_code in allowed)
        )

    assert kept == [o for o in offers if matches(o)]


def test_filter_max_stops_zero_keeps_nonstops():
    offers = [make_offer(offer_id="a", stops=0), make_offer(offer_id="b", stops=1)]
    assert [o.provider_offer_id for o in filter_offers(offers, FilterCriteria(max_stops=0))] == ["a"]


@given(offers=offer_lists)
@settings(max_examples=50)
def test_sort_by_price_ascending(offers):
    prices = [o.price for o in sort_offers(offers, "price", "asc")]
    assert prices == sorted(prices)


def test_sort_by_duration_descending():
    offers = [make_offer(offer_id=str(d), duration=d) for d in (90, 300, 150)]
    assert [o.duration_minutes for o in sort_offers(offers, "duration", "desc")] == [300, 150, 90]


def test_sort_rejects_unknown_field_and_order():
    with pytest.raises(ValueError):
        sort_offers([], "airline")
    with pytest.raises(ValueError):
        sort_offers([], "price", "sideways")


def test_price_stats_empty():
    stats = price_stats([])
    assert (stats.min, stats.max, stats.average, stats.median) == (0.0, 0.0, 0.0, 0.0)


def test_price_stats_even_count_median():
    offers = [make_offer(offer_id=str(p), price=p) for p in (400.0, 100.0, 300.0, 200.0)]
    stats = price_stats(offers)
    assert stats.min == 100.0
    assert stats.max == 400.0
    assert stats.average == 250.0
    assert stats.median == 250.0


def test_price_stats_rounds_average():
    offers = [make_offer(offer_id=str(p), price=p) for p in (100.0, 100.0, 100.01)]
    assert price_stats(offers).average == 100.0
