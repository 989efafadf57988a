"""
Search Models
Pydantic models for the search and suggestion endpoints.

Malformed filter input is coerced to "no constraint" instead of rejected.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...search import (
    DateRange,
    DimensionFilter,
    DimensionUnit,
    NumericRange,
    SearchRequest as EngineSearchRequest,
    SortDirective,
    StructuredFilters,
)

MAX_QUERY_LENGTH = 500

_UNIT_ALIASES = {
    "mm": "mm",
    "millimeter": "mm",
    "millimeters": "mm",
    "millimetre": "mm",
    "millimetres": "mm",
    "cm": "cm",
    "centimeter": "cm",
    "centimeters": "cm",
    "centimetre": "cm",
    "centimetres": "cm",
    "in": "inch",
    "inch": "inch",
    "inches": "inch",
    '"': "inch",
}


def _to_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
    try:
        value = float(v)
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def _to_int(v: Any) -> Optional[int]:
    value = _to_float(v)
    return None if value is None else int(value)


def _to_string_list(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, (str, int, float)) and not isinstance(v, bool):
        v = [v]
    if not isinstance(v, (list, tuple, set)):
        return []
    values = []
    for item in v:
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            continue
        item = str(item).strip()
        if item:
            values.append(item)
    return values


def _dict_or_none(v: Any) -> Any:
    return v if isinstance(v, (dict, BaseModel)) else None


class RangeParams(BaseModel):
    """Inclusive numeric bounds."""

    min: Optional[float] = None
    max: Optional[float] = None

    @field_validator("min", "max", mode="before")
    @classmethod
    def coerce_bound(cls, v):
        """Non-numeric bounds mean "no bound"."""
        return _to_float(v)

    def to_range(self) -> NumericRange:
        return NumericRange(min=self.min, max=self.max)


class DimensionParams(BaseModel):
    """Deckle/grain bounds in one unit (default cm)."""

    unit: str = "cm"
    deckle: RangeParams = Field(default_factory=RangeParams)
    grain: RangeParams = Field(default_factory=RangeParams)

    @field_validator("unit", mode="before")
    @classmethod
    def coerce_unit(cls, v):
        if not isinstance(v, str):
            return "cm"
        return _UNIT_ALIASES.get(v.strip().lower(), "cm")

    @field_validator("deckle", "grain", mode="before")
    @classmethod
    def coerce_range(cls, v):
        return _dict_or_none(v) or RangeParams()

    def to_filter(self) -> DimensionFilter:
        return DimensionFilter(
            unit=DimensionUnit(self.unit),
            deckle=self.deckle.to_range(),
            grain=self.grain.to_range(),
        )


class FilterParams(BaseModel):
    """Structured filters; multi-select lists are OR'ed within a field."""

    model_config = ConfigDict(populate_by_name=True)

    makes: List[str] = Field(default_factory=list)
    grades: List[str] = Field(default_factory=list)
    brands: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    units: List[str] = Field(default_factory=list)

    gsm_range: RangeParams = Field(default_factory=RangeParams, alias="gsmRange")
    gsm_tolerance: Optional[float] = Field(None, alias="gsmTolerance")
    price_range: RangeParams = Field(default_factory=RangeParams, alias="priceRange")
    dimension_range: DimensionParams = Field(
        default_factory=DimensionParams, alias="dimensionRange"
    )
    date_range: str = Field("all", alias="dateRange")

    @field_validator("makes", "grades", "brands", "categories", "locations", "units", mode="before")
    @classmethod
    def coerce_list(cls, v):
        """Accept a scalar as a one-element list; drop non-string items."""
        return _to_string_list(v)

    @field_validator("gsm_range", "price_range", mode="before")
    @classmethod
    def coerce_range(cls, v):
        return _dict_or_none(v) or RangeParams()

    @field_validator("dimension_range", mode="before")
    @classmethod
    def coerce_dimensions(cls, v):
        return _dict_or_none(v) or DimensionParams()

    @field_validator("gsm_tolerance", mode="before")
    @classmethod
    def coerce_tolerance(cls, v):
        value = _to_float(v)
        return value if value is not None and value >= 0 else None

    @field_validator("date_range", mode="before")
    @classmethod
    def coerce_date_range(cls, v):
        value = str(v).strip().lower() if isinstance(v, str) else "all"
        return value if value in {d.value for d in DateRange} else "all"

    def to_filters(self) -> StructuredFilters:
        return StructuredFilters(
            makes=self.makes,
            grades=self.grades,
            brands=self.brands,
            categories=self.categories,
            locations=self.locations,
            units=self.units,
            gsm_range=self.gsm_range.to_range(),
            price_range=self.price_range.to_range(),
            gsm_tolerance=self.gsm_tolerance,
            dimensions=self.dimension_range.to_filter(),
            date_range=DateRange(self.date_range),
        )


class SearchRequest(BaseModel):
    """
    Search request model.

    Free-text query plus structured filters, pagination and sort directive.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "query": "ITC 120gsm",
                "filters": {
                    "makes": ["ITC"],
                    "dimensionRange": {"unit": "cm", "deckle": {"min": 60}},
                },
                "page": 1,
                "pageSize": 12,
                "sortBy": "newest",
            }
        },
    )

    query: Optional[str] = Field(None, description="Search query text")
    filters: FilterParams = Field(default_factory=FilterParams)
    exclude_requester_id: Optional[int] = Field(None, alias="excludeRequesterId")

    # Pagination
    page: int = Field(default=1, description="Page number (1-indexed)")
    page_size: Optional[int] = Field(None, alias="pageSize", description="Results per page")

    sort_by: str = Field(default="newest", alias="sortBy")

    @field_validator("query", mode="before")
    @classmethod
    def coerce_query(cls, v):
        if v is None:
            return None
        if not isinstance(v, str):
            v = str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else ""
        return v[:MAX_QUERY_LENGTH]

    @field_validator("filters", mode="before")
    @classmethod
    def coerce_filters(cls, v):
        return _dict_or_none(v) or FilterParams()

    @field_validator("exclude_requester_id", mode="before")
    @classmethod
    def coerce_requester(cls, v):
        return _to_int(v)

    @field_validator("page", mode="before")
    @classmethod
    def coerce_page(cls, v):
        value = _to_int(v)
        return value if value is not None and value >= 1 else 1

    @field_validator("page_size", mode="before")
    @classmethod
    def coerce_page_size(cls, v):
        """Unusable sizes fall back to the default; oversize is clamped later."""
        value = _to_int(v)
        return value if value is not None and value >= 1 else None

    @field_validator("sort_by", mode="before")
    @classmethod
    def coerce_sort(cls, v):
        return SortDirective.parse(v).value

    def to_engine_request(self, request_id: Optional[str] = None) -> EngineSearchRequest:
        return EngineSearchRequest(
            query=self.query,
            filters=self.filters.to_filters(),
            page=self.page,
            page_size=self.page_size,
            sort=SortDirective(self.sort_by),
            exclude_requester_id=self.exclude_requester_id,
            request_id=request_id,
        )


class ListingResult(BaseModel):
    """Single listing in a result page."""

    id: int
    seller_id: Optional[int] = None
    make: Optional[str] = None
    grade: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    gsm: Optional[int] = None
    deckle_mm: Optional[float] = None
    grain_mm: Optional[float] = None
    dimensions: Optional[str] = Field(None, description='Display size, e.g. "63.5 x 91.0 cm"')
    description: str
    price: Optional[float] = Field(None, description="Hidden (null) when the seller hides it")
    show_price: bool = True
    quantity: Optional[float] = None
    unit: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    # Relevance
    score: float = Field(..., ge=0, description="Relevance score")
    rank: int = Field(..., ge=1, description="Position in the full ranked list (1-indexed)")


class FacetBucketModel(BaseModel):
    key: Any
    doc_count: int


class RangeStatsModel(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    count: int = 0


class Aggregations(BaseModel):
    makes: List[FacetBucketModel] = Field(default_factory=list)
    grades: List[FacetBucketModel] = Field(default_factory=list)
    brands: List[FacetBucketModel] = Field(default_factory=list)
    gsm: List[FacetBucketModel] = Field(default_factory=list)
    locations: List[FacetBucketModel] = Field(default_factory=list)
    units: List[FacetBucketModel] = Field(default_factory=list)

    # Bounds for range sliders; hidden prices are excluded
    gsm_range: RangeStatsModel = Field(default_factory=RangeStatsModel)
    price_range: RangeStatsModel = Field(default_factory=RangeStatsModel)


class SearchResponse(BaseModel):
    """
    Search response model.

    Contains one page of ranked listings, facet counts and paging metadata.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: List[ListingResult] = Field(default_factory=list)

    # Pagination info
    total: int = Field(..., description="Total number of matching listings")
    page: int = Field(..., description="Current page (1-indexed)")
    page_size: int = Field(..., alias="pageSize")
    total_pages: int = Field(..., alias="totalPages")

    aggregations: Aggregations = Field(default_factory=Aggregations)
    truncated: bool = Field(False, description="True when only the newest matches were ranked")
    cached: bool = False
    message: Optional[str] = None
    took_ms: float = Field(0.0, alias="tookMs", description="Search time in milliseconds")


class SuggestionModel(BaseModel):
    text: str
    type: str
    score: int


class SuggestionsResponse(BaseModel):
    success: bool = True
    suggestions: List[SuggestionModel] = Field(default_factory=list)

    @classmethod
    def from_suggestions(cls, suggestions: List[Any]) -> "SuggestionsResponse":
        return cls(suggestions=[SuggestionModel(**s.to_dict()) for s in suggestions])