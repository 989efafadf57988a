"""
SQLAlchemy ORM Models
Database table definitions using SQLAlchemy ORM.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Float, Index, Integer, String, Text, TIMESTAMP, event
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import expression, func

from ..models.listing import compose_description

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ListingRecord(Base):
    """
    Stock listing model.

    One row per listing. The description column is derived from
    make/grade/brand/gsm and kept in sync on every insert and update.
    """
    __tablename__ = 'listings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    seller_id = Column(Integer, nullable=True, index=True,
                       comment='Owner of the listing (excluded from their own searches)')

    # Categorical attributes
    make = Column(String(255), nullable=True, index=True)
    grade = Column(String(255), nullable=True, index=True)
    brand = Column(String(255), nullable=True, index=True)
    category = Column(String(255), nullable=True)

    # Measures (dimensions stored in millimetres)
    gsm = Column(Integer, nullable=True, index=True, comment='Grams per square metre')
    deckle_mm = Column(Float, nullable=True)
    grain_mm = Column(Float, nullable=True)

    description = Column(Text, nullable=False, default='',
                         comment='Derived: "Make Grade Brand 120gsm"')

    # Offer
    price = Column(Float, nullable=True)
    show_price = Column(Boolean, nullable=False, default=True, server_default=expression.true())
    quantity = Column(Float, nullable=True)
    unit = Column(String(50), nullable=True)

    # Seller context
    location = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, server_default=expression.true(),
                       comment='Only active listings are visible to search')

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=True, onupdate=_utcnow)

    __table_args__ = (
        Index('ix_listings_active_created', 'is_active', 'created_at'),
    )

    def refresh_description(self) -> None:
        """Re-derive the composite description from its source columns."""
        self.description = compose_description(self.make, self.grade, self.brand, self.gsm)

    def __repr__(self):
        return f"<ListingRecord(id={self.id}, description={self.description!r})>"


@event.listens_for(ListingRecord, 'before_insert')
@event.listens_for(ListingRecord, 'before_update')
def _sync_description(mapper, connection, target: ListingRecord) -> None:
    target.refresh_description()


listings_table = ListingRecord.__table__
