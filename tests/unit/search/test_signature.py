"""
Tests for query signatures (cache keys).
"""

from stocksearch.search.filters import NumericRange, StructuredFilters
from stocksearch.search.ranking import SortDirective
from stocksearch.search.signature import QuerySignature


def build(text="ITC 120gsm", filters=None, page=1, page_size=12, sort="newest", exclude=None):
    return QuerySignature.build(text, filters, page, page_size, sort, exclude)


def test_whitespace_and_case_do_not_matter():
    assert build("  ITC   120GSM ") == build("itc 120gsm")
    assert build("  ITC   120GSM ").cache_key() == build("itc 120gsm").cache_key()


def test_filter_order_and_duplicates_do_not_matter():
    a = build(filters=StructuredFilters(makes=["JK", "ITC", "JK"]))
    b = build(filters=StructuredFilters(makes=["ITC", "JK"]))
    assert a.cache_key() == b.cache_key()


def test_every_field_participates():
    base = build()
    variants = [
        build(text="ITC 150gsm"),
        build(filters=StructuredFilters(gsm_range=NumericRange(min=100))),
        build(page=2),
        build(page_size=24),
        build(sort=SortDirective.GSM_LOW),
        build(exclude=7),
    ]
    keys = {base.cache_key()} | {v.cache_key() for v in variants}
    assert len(keys) == len(variants) + 1


def test_unknown_sort_canonicalized():
    assert build(sort="bogus") == build(sort="newest")


def test_key_format():
    key = build().cache_key()
    assert key.startswith("search:")
    assert len(key) == len("search:") + 32
