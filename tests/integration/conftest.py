"""
Integration test fixtures
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from stocksearch.api.config import APISettings
from stocksearch.api.main import create_app
from stocksearch.caching import InMemoryResultCache
from stocksearch.search import PredicateBuilder, SearchService, SQLAlchemyListingStore


@pytest.fixture
def catalog(add_listings, fixed_now):
    """
    Small listing catalog.

    Returns a dict of name -> id. "retired" is inactive and must never
    be returned by search.
    """
    rows = {
        "itc_120": {
            "seller_id": 1, "make": "ITC", "grade": "Supreme", "brand": "Board", "gsm": 120,
            "deckle_mm": 635.0, "grain_mm": 910.0, "price": 55.0, "location": "Mumbai",
            "created_at": fixed_now - timedelta(hours=1),
        },
        "itc_150": {
            "seller_id": 2, "make": "ITC", "grade": "Supreme", "brand": "Board", "gsm": 150,
            "deckle_mm": 700.0, "grain_mm": 1000.0, "price": 61.0, "location": "Mumbai",
            "created_at": fixed_now - timedelta(hours=2),
        },
        "itc_125": {
            "seller_id": 1, "make": "ITC", "grade": "Cyber", "brand": "Duplex", "gsm": 125,
            "deckle_mm": 550.0, "grain_mm": 800.0, "price": 48.0, "location": "Delhi",
            "created_at": fixed_now - timedelta(hours=3),
        },
        "jk_70": {
            "seller_id": None, "make": "JK", "grade": "Copier", "brand": "Sirpur", "gsm": 70,
            "deckle_mm": 560.0, "grain_mm": 860.0, "price": None, "location": "Pune",
            "created_at": fixed_now - timedelta(days=5),
        },
        "century_80": {
            "seller_id": None, "make": "Century", "grade": "Maplitho", "brand": None, "gsm": 80,
            "deckle_mm": 610.0, "grain_mm": 860.0, "price": 40.0, "location": "Delhi",
            "unit": "Sheets", "created_at": fixed_now - timedelta(days=20),
        },
        "retired": {
            "seller_id": 3, "make": "ITC", "grade": "Supreme", "brand": "Board", "gsm": 120,
            "is_active": False, "created_at": fixed_now - timedelta(minutes=5),
        },
    }
    ids = add_listings(*rows.values())
    return dict(zip(rows, ids))


@pytest.fixture
def store(session_factory):
    return SQLAlchemyListingStore(session_factory, default_timeout=5.0)


@pytest.fixture
def search_service(store, clock):
    return SearchService(store, predicate_builder=PredicateBuilder(clock=clock))


@pytest.fixture
def api_settings():
    return APISettings(
        DATABASE_URL="sqlite://",
        API_CACHE_BACKEND="memory",
        API_DEFAULT_PAGE_SIZE=12,
        API_LOG_LEVEL="WARNING",
    )


@pytest.fixture
def client(api_settings, store):
    """Test client wired to the SQLite-backed store."""
    app = create_app(settings=api_settings, store=store, cache=InMemoryResultCache())
    with TestClient(app) as test_client:
        yield test_client
