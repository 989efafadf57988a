"""
Tests for query tokenization.
"""

import pytest
from hypothesis import given, settings, strategies as st

from stocksearch.search.config import TokenizerConfig
from stocksearch.search.tokenizer import (
    BareNumberDetector,
    QueryTokenizer,
    SuffixMeasureDetector,
    normalize_query,
)


@pytest.fixture
def tokenizer():
    return QueryTokenizer()


class TestNormalizeQuery:
    def test_trims_collapses_and_casefolds(self):
        assert normalize_query("  ITC   Supreme\tBoard  ") == "itc supreme board"

    def test_empty_input(self):
        assert normalize_query(None) == ""
        assert normalize_query("   ") == ""


class TestSuffixDetection:
    @pytest.mark.parametrize(
        "query,expected",
        [
            ("ITC 120gsm", 120),
            ("ITC 120 gsm", 120),
            ("ITC 120GSM", 120),
            ("300g/m2 duplex", 300),
            ("250gm kraft", 250),
            ("80g maplitho", 80),
        ],
    )
    def test_suffixed_measure(self, tokenizer, query, expected):
        parsed = tokenizer.parse(query)
        assert parsed.numeric_candidate == expected

    def test_suffix_substring_removed_from_terms(self, tokenizer):
        parsed = tokenizer.parse("ITC 120gsm Supreme")
        assert parsed.remaining_terms == ["itc", "supreme"]

    def test_suffix_takes_precedence_over_bare_number(self, tokenizer):
        parsed = tokenizer.parse("lot 450 ITC 120gsm")
        assert parsed.numeric_candidate == 120
        assert "450" in parsed.remaining_terms

    def test_word_starting_with_g_is_not_a_suffix(self):
        detector = SuffixMeasureDetector()
        assert detector.detect("100 grey") is None


class TestBareNumberHeuristic:
    def test_bare_number_in_range(self, tokenizer):
        parsed = tokenizer.parse("ITC 120")
        assert parsed.numeric_candidate == 120
        assert parsed.remaining_terms == ["itc"]

    def test_out_of_range_numbers_stay_terms(self, tokenizer):
        parsed = tokenizer.parse("order 9999 kraft")
        assert parsed.numeric_candidate is None
        assert parsed.remaining_terms == ["order", "9999", "kraft"]

    def test_first_plausible_number_wins(self):
        detector = BareNumberDetector(minimum=20, maximum=2000)
        match = detector.detect("lot 12 sheets 350 and 400")
        assert match.value == 350

    def test_decimal_numbers_ignored(self):
        detector = BareNumberDetector()
        assert detector.detect("63.5 x 91.0") is None

    def test_heuristic_can_be_disabled(self):
        tokenizer = QueryTokenizer(TokenizerConfig(enable_bare_numbers=False))
        parsed = tokenizer.parse("ITC 120")
        assert parsed.numeric_candidate is None
        assert parsed.remaining_terms == ["itc", "120"]

    def test_configured_range(self):
        tokenizer = QueryTokenizer(TokenizerConfig(bare_number_min=100, bare_number_max=500))
        assert tokenizer.parse("duplex 90").numeric_candidate is None
        assert tokenizer.parse("duplex 300").numeric_candidate == 300


class TestTermsAndTolerance:
    def test_no_numbers_means_no_candidate(self, tokenizer):
        parsed = tokenizer.parse("Supreme Board")
        assert parsed.numeric_candidate is None
        assert parsed.tolerance == 0.0
        assert parsed.measure_band is None
        assert parsed.remaining_terms == ["supreme", "board"]

    def test_short_tokens_dropped(self, tokenizer):
        parsed = tokenizer.parse("a ITC b")
        assert parsed.remaining_terms == ["itc"]

    def test_terms_deduplicated_and_punctuation_stripped(self, tokenizer):
        parsed = tokenizer.parse("Board, board (ITC)")
        assert parsed.remaining_terms == ["board", "itc"]

    def test_default_tolerance(self, tokenizer):
        parsed = tokenizer.parse("120gsm")
        assert parsed.tolerance == 10.0
        assert parsed.measure_band == (110.0, 130.0)

    def test_explicit_tolerance(self, tokenizer):
        assert tokenizer.parse("120gsm", tolerance=5).measure_band == (115.0, 125.0)
        assert tokenizer.parse("120gsm", tolerance=0).tolerance == 0.0

    def test_empty_query(self, tokenizer):
        parsed = tokenizer.parse("   ")
        assert parsed.is_empty
        assert parsed.text == ""


@given(st.text(max_size=60))
@settings(max_examples=200)
def test_terms_are_normalized_and_long_enough(raw):
    """
    For any input, every term is lower-cased, at least two characters long,
    unique, and contained in the normalized query text.
    """
    parsed = QueryTokenizer().parse(raw)

    assert len(parsed.remaining_terms) == len(set(parsed.remaining_terms))
    for term in parsed.remaining_terms:
        assert len(term) >= 2
        assert term == term.casefold()
        assert term in parsed.text


@given(st.integers(min_value=1, max_value=99999))
@settings(max_examples=100)
def test_suffixed_number_always_detected(value):
    parsed = QueryTokenizer().parse(f"kraft {value}gsm")
    assert parsed.numeric_candidate == value
    assert parsed.remaining_terms == ["kraft"]
