"""
Search Service
Orchestrates tokenization, retrieval, ranking, facets, pagination and caching.
"""

import logging
import re
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..caching.result_cache import InMemoryResultCache, ResultCache
from .aggregations import (
    FACET_FIELDS,
    RANGE_FIELDS,
    AggregationEngine,
    FacetBucket,
    RangeStats,
    empty_ranges,
    order_buckets,
)
from .config import SearchConfig
from .filters import Clause, FilterOperator, Predicate, PredicateBuilder, StructuredFilters
from .pagination import Paginator
from .ranking import RelevanceScorer, ScoredListing, SortDirective
from .signature import QuerySignature
from .store import ListingStore, StoreError
from .tokenizer import QueryTokenizer

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass
class SearchRequest:
    """
    Search request as seen by the engine.

    page/page_size/sort accept raw input; they are clamped and normalized
    before use.
    """

    query: Optional[str] = None
    filters: StructuredFilters = field(default_factory=StructuredFilters)

    # Pagination
    page: Any = 1
    page_size: Any = None

    sort: Any = SortDirective.NEWEST

    # Hide the requester's own listings
    exclude_requester_id: Optional[int] = None

    # Store deadline in seconds (None = configured default)
    timeout: Optional[float] = None

    request_id: Optional[str] = None


@dataclass(frozen=True)
class SearchOutcome:
    """
    Ranked page plus facets and numeric range stats.

    A failed search carries success=False, a message and no partial data.
    truncated is set when more rows matched than were ranked; total, facets
    and ranges still cover every match.
    """

    success: bool
    results: List[ScoredListing]
    total: int
    page: int
    page_size: int
    aggregations: Dict[str, List[FacetBucket]]
    ranges: Dict[str, RangeStats] = field(default_factory=empty_ranges)
    truncated: bool = False
    cached: bool = False
    message: Optional[str] = None
    took_ms: float = 0.0

    @property
    def total_pages(self) -> int:
        if not self.total or not self.page_size:
            return 0
        return -(-self.total // self.page_size)

    @property
    def ids(self) -> List[int]:
        return [result.listing.id for result in self.results]

    @classmethod
    def failure(cls, message: str, page: int, page_size: int) -> "SearchOutcome":
        return cls(
            success=False,
            results=[],
            total=0,
            page=page,
            page_size=page_size,
            aggregations={facet: [] for facet in FACET_FIELDS},
            message=message,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "success": self.success,
            "data": [result.to_dict() for result in self.results],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
            "aggregations": AggregationEngine.to_dict(self.aggregations, self.ranges),
            "truncated": self.truncated,
            "cached": self.cached,
            "message": self.message,
            "tookMs": self.took_ms,
        }


@dataclass(frozen=True)
class Suggestion:
    """Autocomplete entry."""

    text: str
    type: str  # 'make', 'grade', 'brand', 'gsm' or 'product'
    score: int

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "type": self.type, "score": self.score}


class SearchService:
    """
    Faceted relevance search over stock listings.

    Pipeline:
    1. Tokenize the query (GSM candidate + terms)
    2. Build the store predicate from query and filters
    3. Fetch candidates from the store
    4. Score and order in memory
    5. Count facets and numeric ranges over the same candidates (in the store
       when more rows matched than the candidate cap)
    6. Slice the requested page

    The whole pipeline is wrapped by the result cache, keyed by the
    canonical query signature.
    """

    def __init__(
        self,
        store: ListingStore,
        cache: Optional[ResultCache] = None,
        config: Optional[SearchConfig] = None,
        tokenizer: Optional[QueryTokenizer] = None,
        predicate_builder: Optional[PredicateBuilder] = None,
        scorer: Optional[RelevanceScorer] = None,
    ):
        """
        Initialize search service.

        Args:
            store: Listing store
            cache: Result cache (defaults to an in-process TTL cache)
            config: Search configuration
            tokenizer: Query tokenizer
            predicate_builder: Predicate builder (inject a clock through it)
            scorer: Relevance scorer
        """
        self.store = store
        self.config = config or SearchConfig()
        self.cache = cache
        if self.cache is None:
            self.cache = InMemoryResultCache(
                ttl=self.config.cache.ttl_seconds,
                max_entries=self.config.cache.max_entries,
            )

        self.tokenizer = tokenizer or QueryTokenizer(self.config.tokenizer)
        self.predicate_builder = predicate_builder or PredicateBuilder()
        self.scorer = scorer or RelevanceScorer(self.config.ranking)
        self.aggregator = AggregationEngine(self.config.facets)
        self.paginator = Paginator(self.config.pagination)

        logger.info(f"Search service initialized (cache={self.cache.backend})")

    async def search(self, request: SearchRequest) -> SearchOutcome:
        """
        Run a search.

        Args:
            request: Search request

        Returns:
            SearchOutcome; store failures yield success=False instead of raising
        """
        start_time = time.time()
        log_extra = {"request_id": request.request_id}

        page = self.paginator.clamp_page(request.page)
        page_size = self.paginator.clamp_page_size(request.page_size)
        sort = SortDirective.parse(request.sort)

        cache_key = self._cache_key(request, page, page_size, sort)
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for search: {cache_key}", extra=log_extra)
            return replace(cached, cached=True, took_ms=_elapsed_ms(start_time))

        try:
            outcome = await self._execute(request, page, page_size, sort)
        except StoreError as e:
            logger.error(f"Search failed: {e}", extra=log_extra)
            return replace(
                SearchOutcome.failure("Search is temporarily unavailable", page, page_size),
                took_ms=_elapsed_ms(start_time),
            )

        self._cache_set(cache_key, outcome)

        outcome = replace(outcome, took_ms=_elapsed_ms(start_time))
        logger.info(
            f"Search completed: {outcome.total} results, page {page}/{outcome.total_pages} "
            f"in {outcome.took_ms:.2f}ms",
            extra=log_extra,
        )
        return outcome

    async def _execute(
        self,
        request: SearchRequest,
        page: int,
        page_size: int,
        sort: SortDirective,
    ) -> SearchOutcome:
        filters = request.filters or StructuredFilters()
        timeout = self._timeout(request.timeout)

        parsed = self.tokenizer.parse(request.query, tolerance=filters.gsm_tolerance)
        predicate = self.predicate_builder.build(parsed, filters, request.exclude_requester_id)

        limit = self.config.max_candidates
        listings = await self._call_store(
            self.store.fetch_rows(predicate, limit=limit, timeout=timeout)
        )

        total = len(listings)
        if total >= limit:
            total = await self._call_store(self.store.count_rows(predicate, timeout=timeout))
        truncated = total > len(listings)

        ranked = self.scorer.rank(listings, parsed, sort)

        if truncated:
            # Only the newest rows are ranked; counts come from the store
            logger.warning(
                f"Query matched {total} listings; ranking the newest {len(listings)}",
                extra={"request_id": request.request_id},
            )
            aggregations = await self._store_facets(predicate, timeout)
            ranges = await self._store_ranges(predicate, timeout)
        else:
            aggregations = self.aggregator.aggregate(listings)
            ranges = self.aggregator.summarize(listings)

        if self.config.facets.disjunctive:
            aggregations.update(await self._disjunctive_facets(filters, predicate, timeout))

        result_page = self.paginator.paginate(ranked, page, page_size)

        return SearchOutcome(
            success=True,
            results=result_page.items,
            total=total,
            page=result_page.page,
            page_size=result_page.page_size,
            aggregations=aggregations,
            ranges=ranges,
            truncated=truncated,
        )

    async def _store_facets(
        self,
        predicate: Predicate,
        timeout: Optional[float],
    ) -> Dict[str, List[FacetBucket]]:
        facets = {}
        for facet, column in FACET_FIELDS.items():
            limit = self.config.facets.limit_for(facet)
            rows = await self._call_store(
                self.store.count_distinct(column, predicate, limit=limit, timeout=timeout)
            )
            facets[facet] = order_buckets(facet, dict(rows), limit)
        return facets

    async def _store_ranges(
        self,
        predicate: Predicate,
        timeout: Optional[float],
    ) -> Dict[str, RangeStats]:
        ranges = {}
        for name, column in RANGE_FIELDS.items():
            scope = predicate
            if column == "price":
                scope = predicate.and_(Clause("show_price", FilterOperator.EQ, True))
            low, high, mean, count = await self._call_store(
                self.store.range_stats(column, scope, timeout=timeout)
            )
            ranges[name] = RangeStats(
                name=name,
                min=low,
                max=high,
                avg=None if mean is None else round(mean, 2),
                count=count,
            )
        return ranges

    async def _disjunctive_facets(
        self,
        filters: StructuredFilters,
        predicate: Predicate,
        timeout: Optional[float],
    ) -> Dict[str, List[FacetBucket]]:
        """Recount each selected facet as if its own selection were absent."""
        facets = {}
        for facet in filters.selections():
            if facet not in FACET_FIELDS:
                continue
            column = FACET_FIELDS[facet]
            limit = self.config.facets.limit_for(facet)
            rows = await self._call_store(
                self.store.count_distinct(
                    column, predicate.without(column), limit=limit, timeout=timeout
                )
            )
            facets[facet] = order_buckets(facet, dict(rows), limit)
        return facets

    async def suggest(self, q: Optional[str], limit: Optional[int] = None) -> List[Suggestion]:
        """
        Autocomplete suggestions for a partial query.

        Args:
            q: Partial query text
            limit: Maximum suggestions (capped by configuration)

        Returns:
            Suggestions ordered by listing count, then text
        """
        text = (q or "").strip()
        settings = self.config.suggestions
        if len(text) < settings.min_query_length:
            return []

        limit = settings.default_limit if limit is None else limit
        limit = min(max(int(limit), 1), settings.max_limit)

        active = Predicate.active_only()
        suggestions: Dict[tuple, Suggestion] = {}

        try:
            for column in ("make", "grade", "brand"):
                rows = await self._call_store(
                    self.store.count_distinct(
                        column,
                        active.and_(Clause(column, FilterOperator.LIKE, text)),
                        limit=limit,
                    )
                )
                for value, count in rows:
                    key = (str(value).casefold(), column)
                    if key not in suggestions:
                        suggestions[key] = Suggestion(text=str(value), type=column, score=count)

            if settings.include_descriptions:
                rows = await self._call_store(
                    self.store.count_distinct(
                        "description",
                        active.and_(Clause("description", FilterOperator.LIKE, text)),
                        limit=limit,
                    )
                )
                for value, count in rows:
                    key = (str(value).casefold(), "product")
                    if key not in suggestions:
                        suggestions[key] = Suggestion(text=str(value), type="product", score=count)

            digits = _NON_DIGITS.sub("", text)
            if digits:
                rows = await self._call_store(self.store.count_distinct("gsm", active))
                for value, count in rows:
                    if str(value).startswith(digits):
                        suggestions[(str(value), "gsm")] = Suggestion(
                            text=f"{value} GSM", type="gsm", score=count
                        )
        except StoreError as e:
            logger.error(f"Suggestion lookup failed for '{text}': {e}")
            return []

        ordered = sorted(suggestions.values(), key=lambda s: (-s.score, s.text.casefold()))
        return ordered[:limit]

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {"cache": self.cache.stats()}

    async def _call_store(self, awaitable):
        """Await a store call, normalizing every failure to StoreError."""
        try:
            return await awaitable
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Store call failed: {e}") from e

    def _timeout(self, requested: Optional[float]) -> Optional[float]:
        if requested is not None and requested > 0:
            return requested
        return self.config.store_timeout_seconds

    def _cache_key(
        self,
        request: SearchRequest,
        page: int,
        page_size: int,
        sort: SortDirective,
    ) -> Optional[str]:
        try:
            return QuerySignature.build(
                request.query,
                request.filters,
                page,
                page_size,
                sort,
                request.exclude_requester_id,
            ).cache_key()
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not build cache key: {e}")
            self.cache.statistics.record_error()
            return None

    def _cache_get(self, key: Optional[str]) -> Optional[SearchOutcome]:
        if key is None:
            return None
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.error(f"Cache GET failed for {key}: {e}")
            self.cache.statistics.record_error()
            return None

    def _cache_set(self, key: Optional[str], outcome: SearchOutcome) -> None:
        if key is None:
            return
        try:
            self.cache.set(key, outcome)
        except Exception as e:
            logger.error(f"Cache SET failed for {key}: {e}")
            self.cache.statistics.record_error()


def _elapsed_ms(start_time: float) -> float:
    return (time.time() - start_time) * 1000
