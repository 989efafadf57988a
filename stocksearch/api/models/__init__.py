"""
API Models
Pydantic request/response models for the search endpoints.
"""

from .search import (
    Aggregations,
    DimensionParams,
    FacetBucketModel,
    RangeStatsModel,
    FilterParams,
    ListingResult,
    RangeParams,
    SearchRequest,
    SearchResponse,
    SuggestionModel,
    SuggestionsResponse,
)

__all__ = [
    "Aggregations",
    "DimensionParams",
    "FacetBucketModel",
    "RangeStatsModel",
    "FilterParams",
    "ListingResult",
    "RangeParams",
    "SearchRequest",
    "SearchResponse",
    "SuggestionModel",
    "SuggestionsResponse",
]
