"""
Tests for search configuration.
"""

import pytest

from stocksearch.search.config import (
    PaginationConfig,
    SearchConfig,
    TokenizerConfig,
    get_search_config,
    reset_config,
)


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


def test_defaults_validate():
    config = SearchConfig()
    config.validate()
    assert config.pagination.default_page_size == 12
    assert config.facets.limit_for("gsm") == 50
    assert config.cache.ttl_seconds == 300


def test_from_env(monkeypatch):
    monkeypatch.setenv("SEARCH_DEFAULT_TOLERANCE", "5")
    monkeypatch.setenv("SEARCH_BARE_NUMBER_MAX", "1500")
    monkeypatch.setenv("SEARCH_STORE_TIMEOUT", "2.5")

    config = SearchConfig.from_env()
    assert config.tokenizer.default_tolerance == 5.0
    assert config.tokenizer.bare_number_max == 1500
    assert config.store_timeout_seconds == 2.5


def test_global_config_is_cached():
    first = get_search_config()
    assert get_search_config() is first

    reset_config()
    assert get_search_config() is not first


def test_invalid_sub_configs_rejected():
    with pytest.raises(ValueError):
        TokenizerConfig(bare_number_min=500, bare_number_max=100)
    with pytest.raises(ValueError):
        PaginationConfig(default_page_size=200, max_page_size=100)


def test_validate_catches_inconsistent_env(monkeypatch):
    monkeypatch.setenv("SEARCH_MAX_PAGE_SIZE", "5")
    with pytest.raises(AssertionError):
        get_search_config()
