"""
Pytest configuration and shared fixtures
"""

import itertools
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from stocksearch.db import Base, ListingRecord, build_engine, build_session_factory
from stocksearch.models import Listing

# Fixed "now" for date-range filters (naive UTC, like created_at)
FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock returning FIXED_NOW, for PredicateBuilder."""
    return lambda: FIXED_NOW


@pytest.fixture
def make_listing():
    """
    Factory for in-memory Listing objects.

    Ids increase with each call; created_at defaults to one hour apart so the
    newest listing is the one created last.
    """
    counter = itertools.count(1)

    def _make(**overrides) -> Listing:
        listing_id = overrides.pop("id", None) or next(counter)
        data = {
            "id": listing_id,
            "make": "ITC",
            "grade": "Supreme",
            "brand": "Board",
            "gsm": 120,
            "deckle_mm": 635.0,
            "grain_mm": 910.0,
            "price": 55.0,
            "quantity": 1000.0,
            "unit": "Kg",
            "location": "Mumbai",
            "company": "Acme Paper",
            "created_at": FIXED_NOW - timedelta(hours=100 - listing_id),
        }
        data.update(overrides)
        return Listing(**data)

    return _make


@pytest.fixture
def engine():
    """In-memory SQLite engine with the listings table."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def add_listings(session_factory):
    """Insert listing rows; returns the persisted ids in insertion order."""

    def _add(*rows):
        ids = []
        with session_factory() as session:
            for row in rows:
                data = {
                    "make": "ITC",
                    "grade": "Supreme",
                    "brand": "Board",
                    "gsm": 120,
                    "quantity": 100.0,
                    "unit": "Kg",
                    "location": "Mumbai",
                    "created_at": FIXED_NOW - timedelta(days=1),
                }
                data.update(row)
                record = ListingRecord(**data)
                session.add(record)
                session.flush()
                ids.append(record.id)
            session.commit()
        return ids

    return _add
