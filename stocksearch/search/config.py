"""
Search Configuration
Centralized configuration for tokenization, ranking weights, facets, pagination and caching.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass
class TokenizerConfig:
    """Query tokenization configuration."""

    # Unit suffixes that mark a number as a GSM value ("120gsm", "120 g/m2")
    measure_suffixes: Tuple[str, ...] = ("gsm", "g/m2", "gm", "g")

    # Bare-number fallback ("ITC 120" -> 120); the range is a product tuning parameter
    enable_bare_numbers: bool = True
    bare_number_min: int = 20
    bare_number_max: int = 2000

    # Tolerance applied to the detected GSM unless the request supplies one
    default_tolerance: float = 10.0

    # Shorter tokens are dropped from the free-text terms
    min_term_length: int = 2

    def __post_init__(self):
        if self.bare_number_min > self.bare_number_max:
            raise ValueError(
                f"bare_number_min ({self.bare_number_min}) must be <= "
                f"bare_number_max ({self.bare_number_max})"
            )
        if self.default_tolerance < 0:
            raise ValueError(f"default_tolerance must be >= 0, got {self.default_tolerance}")


@dataclass
class RankingConfig:
    """Weights for the additive relevance rules."""

    # Whole normalized query found inside the description
    description_phrase_weight: float = 60.0

    # GSM equality vs. GSM inside the tolerance band
    exact_measure_weight: float = 45.0
    measure_in_band_weight: float = 20.0

    # Per-term field matches
    make_weight: float = 30.0
    grade_weight: float = 25.0
    brand_weight: float = 20.0
    description_term_weight: float = 8.0

    def __post_init__(self):
        """Validate that the weights keep the documented precedence."""
        weights = {
            "description_phrase_weight": self.description_phrase_weight,
            "exact_measure_weight": self.exact_measure_weight,
            "measure_in_band_weight": self.measure_in_band_weight,
            "make_weight": self.make_weight,
            "grade_weight": self.grade_weight,
            "brand_weight": self.brand_weight,
            "description_term_weight": self.description_term_weight,
        }
        negative = [name for name, value in weights.items() if value < 0]
        if negative:
            raise ValueError(f"Ranking weights must be non-negative: {negative}")

        if not (
            self.description_phrase_weight
            > self.exact_measure_weight
            > self.measure_in_band_weight
        ):
            raise ValueError(
                "Ranking weights must satisfy phrase > exact measure > measure in band"
            )
        if self.make_weight < max(self.grade_weight, self.brand_weight):
            raise ValueError("make_weight must be >= grade_weight and brand_weight")
        if self.description_term_weight > min(self.grade_weight, self.brand_weight):
            raise ValueError("description_term_weight must not exceed field match weights")


@dataclass
class FacetConfig:
    """Facet (aggregation) configuration."""

    # Maximum buckets returned per facet
    limits: Dict[str, int] = field(
        default_factory=lambda: {
            "makes": 20,
            "grades": 20,
            "brands": 20,
            "gsm": 50,
            "locations": 20,
            "units": 20,
        }
    )

    # When enabled, a facet with an active selection is counted without its own
    # filter so sibling values stay visible (one extra store query per facet).
    disjunctive: bool = False

    def limit_for(self, facet: str) -> int:
        return self.limits.get(facet, 20)


@dataclass
class PaginationConfig:
    """Pagination bounds."""

    default_page_size: int = 12
    max_page_size: int = 100

    def __post_init__(self):
        if self.default_page_size < 1 or self.max_page_size < 1:
            raise ValueError("Page sizes must be positive")
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must be <= max_page_size")


@dataclass
class CacheConfig:
    """Result cache configuration."""

    ttl_seconds: int = 300  # 5 minutes
    max_entries: int = 1024


@dataclass
class SuggestionConfig:
    """Autocomplete configuration."""

    min_query_length: int = 2
    default_limit: int = 10
    max_limit: int = 15
    include_descriptions: bool = True  # Offer matching descriptions as "product" entries


@dataclass
class SearchConfig:
    """Top-level search configuration combining all sub-configs."""

    tokenizer: TokenizerConfig = field(default_factory=TokenizerConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    facets: FacetConfig = field(default_factory=FacetConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    suggestions: SuggestionConfig = field(default_factory=SuggestionConfig)

    # Record store
    store_timeout_seconds: Optional[float] = 5.0
    max_candidates: int = 10000  # Upper bound on rows scored per query

    @classmethod
    def from_env(cls) -> "SearchConfig":
        """Load configuration from environment variables."""
        config = cls()

        if tolerance := os.getenv("SEARCH_DEFAULT_TOLERANCE"):
            config.tokenizer.default_tolerance = float(tolerance)

        if bare_min := os.getenv("SEARCH_BARE_NUMBER_MIN"):
            config.tokenizer.bare_number_min = int(bare_min)

        if bare_max := os.getenv("SEARCH_BARE_NUMBER_MAX"):
            config.tokenizer.bare_number_max = int(bare_max)

        if max_page_size := os.getenv("SEARCH_MAX_PAGE_SIZE"):
            config.pagination.max_page_size = int(max_page_size)

        if timeout := os.getenv("SEARCH_STORE_TIMEOUT"):
            config.store_timeout_seconds = float(timeout)

        if max_candidates := os.getenv("SEARCH_MAX_CANDIDATES"):
            config.max_candidates = int(max_candidates)

        return config

    def validate(self) -> None:
        """Validate configuration consistency."""
        assert (
            self.tokenizer.bare_number_min <= self.tokenizer.bare_number_max
        ), "Bare number range is empty"

        assert (
            self.pagination.default_page_size <= self.pagination.max_page_size
        ), "Default page size must not exceed the maximum"

        assert self.cache.ttl_seconds > 0, "Cache TTL must be positive"

        assert (
            self.suggestions.default_limit <= self.suggestions.max_limit
        ), "Default suggestion limit must not exceed the maximum"

        assert self.max_candidates > 0, "max_candidates must be positive"


# Global configuration instance
_global_config: Optional[SearchConfig] = None


def get_search_config() -> SearchConfig:
    """Get global search configuration (singleton pattern)."""
    global _global_config
    if _global_config is None:
        _global_config = SearchConfig.from_env()
        _global_config.validate()
    return _global_config


def reset_config() -> None:
    """Reset global configuration (useful for testing)."""
    global _global_config
    _global_config = None
