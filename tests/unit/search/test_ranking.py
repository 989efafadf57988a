"""
Tests for relevance scoring and sort directives.
"""

from datetime import timedelta

import pytest

from stocksearch.search.config import RankingConfig
from stocksearch.search.ranking import (
    RelevanceScorer,
    ScoringRule,
    SortDirective,
    default_rules,
    sort_by_directive,
)
from stocksearch.search.tokenizer import ParsedQuery, QueryTokenizer


@pytest.fixture
def scorer():
    return RelevanceScorer()


def parse(text):
    return QueryTokenizer().parse(text)


class TestScoring:
    def test_exact_measure_beats_in_band(self, scorer, make_listing):
        exact = make_listing(gsm=120)
        near = make_listing(gsm=125)
        parsed = parse("120gsm")

        assert scorer.score(exact, parsed) > scorer.score(near, parsed)
        assert scorer.explain(near, parsed)["measure_in_band"] == 20
        assert scorer.explain(near, parsed)["exact_measure"] == 0

    def test_field_weights(self, scorer, make_listing):
        listing = make_listing(make="ITC", grade="Supreme", brand="Board", gsm=120)
        breakdown = scorer.explain(listing, parse("itc"))

        assert breakdown["make_term"] == 30
        assert breakdown["description_term"] == 8
        assert breakdown["grade_term"] == 0
        assert breakdown["total"] == scorer.score(listing, parse("itc"))

    def test_phrase_in_description(self, scorer, make_listing):
        listing = make_listing(make="ITC", grade="Supreme", brand="Board", gsm=120)
        assert scorer.explain(listing, parse("Supreme Board"))["description_phrase"] == 60
        assert scorer.explain(listing, parse("Board Supreme"))["description_phrase"] == 0

    def test_per_term_hits_accumulate(self, scorer, make_listing):
        listing = make_listing(make="ITC", grade="Supreme", brand="Board")
        breakdown = scorer.explain(listing, parse("itc supreme board"))
        assert breakdown["description_term"] == 3 * 8

    def test_empty_query_scores_zero(self, scorer, make_listing):
        assert scorer.score(make_listing(), ParsedQuery(text="")) == 0.0

    @pytest.mark.parametrize("raw", ["a", "x y", "!!"])
    def test_short_token_query_scores_uniformly(self, scorer, make_listing, raw):
        parsed = parse(raw)
        assert parsed.is_empty

        matching = make_listing(description="alpha board x y !!")
        other = make_listing(description="xyz")

        assert scorer.score(matching, parsed) == scorer.score(other, parsed) == 0.0
        assert scorer.explain(matching, parsed)["total"] == 0.0

    def test_custom_rules(self, make_listing):
        rules = [ScoringRule("is_mumbai", 5, lambda l, q: int(l.location == "Mumbai"))]
        scorer = RelevanceScorer(rules=rules)
        assert scorer.score(make_listing(location="Mumbai"), parse("x board")) == 5

    def test_default_rules_follow_config(self):
        config = RankingConfig(make_weight=40)
        weights = {rule.name: rule.weight for rule in default_rules(config)}
        assert weights["make_term"] == 40

    def test_invalid_weight_order_rejected(self):
        with pytest.raises(ValueError):
            RankingConfig(exact_measure_weight=10, measure_in_band_weight=20)


class TestOrdering:
    def test_score_then_directive_then_id(self, scorer, make_listing, fixed_now):
        same_time = fixed_now - timedelta(days=1)
        a = make_listing(id=1, gsm=120, created_at=same_time)
        b = make_listing(id=2, gsm=125, created_at=same_time)
        c = make_listing(id=3, gsm=120, created_at=same_time)

        ranked = scorer.rank([a, b, c], parse("120gsm"))
        assert [r.listing.id for r in ranked] == [3, 1, 2]
        assert [r.rank for r in ranked] == [1, 2, 3]

    def test_empty_query_orders_by_directive(self, scorer, make_listing, fixed_now):
        old = make_listing(id=1, created_at=fixed_now - timedelta(days=3))
        new = make_listing(id=2, created_at=fixed_now - timedelta(days=1))

        newest = scorer.rank([old, new], ParsedQuery(text=""), SortDirective.NEWEST)
        oldest = scorer.rank([old, new], ParsedQuery(text=""), SortDirective.OLDEST)
        assert [r.listing.id for r in newest] == [2, 1]
        assert [r.listing.id for r in oldest] == [1, 2]

    def test_missing_sort_keys_last(self, make_listing):
        listings = [
            make_listing(id=1, gsm=None),
            make_listing(id=2, gsm=300),
            make_listing(id=3, gsm=100),
        ]
        low = sort_by_directive(listings, SortDirective.GSM_LOW)
        high = sort_by_directive(listings, SortDirective.GSM_HIGH)
        assert [l.id for l in low] == [3, 2, 1]
        assert [l.id for l in high] == [2, 3, 1]

    def test_size_directive_uses_area(self, make_listing):
        small = make_listing(id=1, deckle_mm=500, grain_mm=700)
        large = make_listing(id=2, deckle_mm=700, grain_mm=1000)
        ordered = sort_by_directive([large, small], SortDirective.SIZE_SMALL)
        assert [l.id for l in ordered] == [1, 2]

    def test_hidden_price_sorts_as_missing(self, make_listing):
        hidden = make_listing(id=1, price=1.0, show_price=False)
        shown = make_listing(id=2, price=99.0)
        ordered = sort_by_directive([hidden, shown], SortDirective.PRICE_LOW)
        assert [l.id for l in ordered] == [2, 1]

    def test_text_directive_is_case_insensitive(self, make_listing):
        listings = [
            make_listing(id=1, location="pune"),
            make_listing(id=2, location="Delhi"),
        ]
        ordered = sort_by_directive(listings, SortDirective.LOCATION)
        assert [l.id for l in ordered] == [2, 1]

    @pytest.mark.parametrize("raw", ["bogus", None, "", 7])
    def test_unknown_directive_falls_back_to_newest(self, raw):
        assert SortDirective.parse(raw) is SortDirective.NEWEST

    def test_directive_parse_is_case_insensitive(self):
        assert SortDirective.parse("GSM-High") is SortDirective.GSM_HIGH
