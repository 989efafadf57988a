"""
Search Module
Query parsing, predicate building, relevance ranking, facets and pagination.
"""

from .aggregations import AggregationEngine, FacetBucket, RangeStats
from .config import SearchConfig, get_search_config, reset_config
from .filters import (
    DateRange,
    DimensionFilter,
    DimensionUnit,
    NumericRange,
    Predicate,
    PredicateBuilder,
    StructuredFilters,
)
from .pagination import Page, Paginator
from .ranking import RelevanceScorer, ScoredListing, ScoringRule, SortDirective, default_rules
from .search_service import SearchOutcome, SearchRequest, SearchService, Suggestion
from .signature import QuerySignature
from .store import ListingStore, SQLAlchemyListingStore, StoreError, StoreTimeoutError
from .tokenizer import (
    BareNumberDetector,
    MeasureDetector,
    ParsedQuery,
    QueryTokenizer,
    SuffixMeasureDetector,
    normalize_query,
)

__all__ = [
    # Config
    "SearchConfig",
    "get_search_config",
    "reset_config",
    # Tokenizer
    "QueryTokenizer",
    "ParsedQuery",
    "MeasureDetector",
    "SuffixMeasureDetector",
    "BareNumberDetector",
    "normalize_query",
    # Filters
    "StructuredFilters",
    "NumericRange",
    "DimensionFilter",
    "DimensionUnit",
    "DateRange",
    "Predicate",
    "PredicateBuilder",
    # Ranking
    "RelevanceScorer",
    "ScoringRule",
    "ScoredListing",
    "SortDirective",
    "default_rules",
    # Facets and pagination
    "AggregationEngine",
    "FacetBucket",
    "RangeStats",
    "Paginator",
    "Page",
    # Signature
    "QuerySignature",
    # Store
    "ListingStore",
    "SQLAlchemyListingStore",
    "StoreError",
    "StoreTimeoutError",
    # Service
    "SearchService",
    "SearchRequest",
    "SearchOutcome",
    "Suggestion",
]
