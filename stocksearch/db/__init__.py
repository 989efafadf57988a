"""
Database ORM Models
SQLAlchemy ORM models and session factories.
"""

from .models import Base, ListingRecord, listings_table
from .session import build_engine, build_session_factory

__all__ = [
    "Base",
    "ListingRecord",
    "listings_table",
    "build_engine",
    "build_session_factory",
]
