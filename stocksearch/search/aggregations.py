"""
Facet Aggregation
Live value counts over the filtered candidate set.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..models.listing import Listing
from .config import FacetConfig

logger = logging.getLogger(__name__)

# Facet name -> listing attribute
FACET_FIELDS = {
    "makes": "make",
    "grades": "grade",
    "brands": "brand",
    "gsm": "gsm",
    "locations": "location",
    "units": "unit",
}

# Range summary name -> numeric listing attribute
RANGE_FIELDS = {
    "gsm_range": "gsm",
    "price_range": "price",
}


@dataclass(frozen=True)
class FacetBucket:
    """One facet value and the number of listings carrying it."""

    field: str
    key: Any
    doc_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "doc_count": self.doc_count}


@dataclass(frozen=True)
class RangeStats:
    """Min/max/mean of a numeric field, used to seed range sliders."""

    name: str
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    count: int = 0

    @classmethod
    def from_values(cls, name: str, values: Sequence[float]) -> "RangeStats":
        if not values:
            return cls(name=name)
        return cls(
            name=name,
            min=min(values),
            max=max(values),
            avg=round(sum(values) / len(values), 2),
            count=len(values),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"min": self.min, "max": self.max, "avg": self.avg, "count": self.count}


def empty_ranges() -> Dict[str, RangeStats]:
    return {name: RangeStats(name=name) for name in RANGE_FIELDS}


def _facet_value(value: Any) -> Optional[Any]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, (int, float)) and value <= 0:
        return None
    return value


def _bucket_order(bucket: FacetBucket):
    key = bucket.key
    if isinstance(key, str):
        return (-bucket.doc_count, 0, key.casefold(), key)
    return (-bucket.doc_count, 1, key, "")


def order_buckets(facet: str, counts: Dict[Any, int], limit: int) -> List[FacetBucket]:
    """Sort buckets by count descending then key ascending, truncated to limit."""
    buckets = [
        FacetBucket(field=facet, key=key, doc_count=count)
        for key, count in counts.items()
        if count > 0
    ]
    buckets.sort(key=_bucket_order)
    return buckets[:limit]


class AggregationEngine:
    """
    Computes facet buckets for makes, grades, brands, gsm, locations and units.

    Counts are taken over the same filtered set the results come from, so a
    bucket never exceeds the result total. Null, blank and non-positive
    values never produce buckets.
    """

    def __init__(self, config: Optional[FacetConfig] = None):
        self.config = config or FacetConfig()

    def aggregate(self, listings: Iterable[Listing]) -> Dict[str, List[FacetBucket]]:
        counters: Dict[str, Counter] = {facet: Counter() for facet in FACET_FIELDS}

        for listing in listings:
            for facet, attribute in FACET_FIELDS.items():
                value = _facet_value(getattr(listing, attribute))
                if value is not None:
                    counters[facet][value] += 1

        return {
            facet: order_buckets(facet, counter, self.config.limit_for(facet))
            for facet, counter in counters.items()
        }

    def summarize(self, listings: Iterable[Listing]) -> Dict[str, RangeStats]:
        """Range stats for gsm and price; hidden prices are left out."""
        values: Dict[str, List[float]] = {name: [] for name in RANGE_FIELDS}

        for listing in listings:
            for name, attribute in RANGE_FIELDS.items():
                if attribute == "price" and not listing.show_price:
                    continue
                value = _facet_value(getattr(listing, attribute))
                if value is not None:
                    values[name].append(value)

        return {name: RangeStats.from_values(name, found) for name, found in values.items()}

    @staticmethod
    def to_dict(
        aggregations: Dict[str, List[FacetBucket]],
        ranges: Optional[Dict[str, RangeStats]] = None,
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            facet: [bucket.to_dict() for bucket in aggregations.get(facet, [])]
            for facet in FACET_FIELDS
        }
        ranges = ranges or {}
        for name in RANGE_FIELDS:
            data[name] = ranges.get(name, RangeStats(name=name)).to_dict()
        return data
