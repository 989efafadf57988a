"""
Listing Filtering
Typed filter sets and the parametrized SQL predicates built from them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .tokenizer import ParsedQuery

logger = logging.getLogger(__name__)


# Columns a predicate may reference
LISTING_FIELDS = frozenset(
    {
        "id",
        "seller_id",
        "make",
        "grade",
        "brand",
        "category",
        "gsm",
        "deckle_mm",
        "grain_mm",
        "description",
        "price",
        "show_price",
        "quantity",
        "unit",
        "location",
        "company",
        "is_active",
        "created_at",
    }
)

# Free-text terms are matched against these columns
TEXT_SEARCH_FIELDS = ("make", "grade", "brand", "description")

# Multi-select filter name -> column
CATEGORICAL_FIELDS = {
    "makes": "make",
    "grades": "grade",
    "brands": "brand",
    "categories": "category",
    "locations": "location",
    "units": "unit",
}

LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how created_at is stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FilterOperator(Enum):
    """Comparison operators for filters."""

    EQ = "="
    NE = "!="
    GTE = ">="
    LTE = "<="
    IN = "IN"
    BETWEEN = "BETWEEN"
    LIKE = "LIKE"  # Case-insensitive, wildcards escaped
    IS_NULL = "IS NULL"


class DateRange(str, Enum):
    """Listing age windows."""

    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"

    def cutoff(self, now: datetime) -> Optional[datetime]:
        """Earliest created_at admitted by this window."""
        if self is DateRange.TODAY:
            return now.replace(hour=0, minute=0, second=0, microsecond=0)
        if self is DateRange.WEEK:
            return now - timedelta(days=7)
        if self is DateRange.MONTH:
            return now - timedelta(days=30)
        return None


class DimensionUnit(str, Enum):
    """Units accepted for dimension filters; stored values are millimetres."""

    MM = "mm"
    CM = "cm"
    INCH = "inch"

    @property
    def to_mm(self) -> float:
        return {"mm": 1.0, "cm": 10.0, "inch": 25.4}[self.value]


@dataclass
class NumericRange:
    """Inclusive numeric bounds; either side may be absent."""

    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_set(self) -> bool:
        return self.min is not None or self.max is not None

    def scaled(self, factor: float) -> "NumericRange":
        return NumericRange(
            min=None if self.min is None else self.min * factor,
            max=None if self.max is None else self.max * factor,
        )


@dataclass
class DimensionFilter:
    """Deckle/grain bounds expressed in a single unit."""

    unit: DimensionUnit = DimensionUnit.CM
    deckle: NumericRange = field(default_factory=NumericRange)
    grain: NumericRange = field(default_factory=NumericRange)

    @property
    def is_set(self) -> bool:
        return self.deckle.is_set or self.grain.is_set


@dataclass
class StructuredFilters:
    """
    Collection of filters for listing search.

    Multi-select lists are OR'ed within a field and AND'ed across fields.
    Empty lists and unset ranges mean "no constraint".
    """

    # Categorical multi-select
    makes: List[str] = field(default_factory=list)
    grades: List[str] = field(default_factory=list)
    brands: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    units: List[str] = field(default_factory=list)

    # Numeric ranges
    gsm_range: NumericRange = field(default_factory=NumericRange)
    price_range: NumericRange = field(default_factory=NumericRange)

    # Explicit tolerance for the GSM detected in the query text
    gsm_tolerance: Optional[float] = None

    dimensions: DimensionFilter = field(default_factory=DimensionFilter)
    date_range: DateRange = DateRange.ALL

    def __post_init__(self):
        for name in CATEGORICAL_FIELDS:
            setattr(self, name, _clean_values(getattr(self, name)))

    def selections(self) -> Dict[str, List[str]]:
        """Active multi-select filters keyed by filter name."""
        return {
            name: getattr(self, name) for name in CATEGORICAL_FIELDS if getattr(self, name)
        }

    def canonical(self) -> Dict[str, Any]:
        """Order-insensitive representation used for cache keys."""
        data: Dict[str, Any] = {
            name: sorted(set(values)) for name, values in self.selections().items()
        }
        if self.gsm_range.is_set:
            data["gsm_range"] = [self.gsm_range.min, self.gsm_range.max]
        if self.price_range.is_set:
            data["price_range"] = [self.price_range.min, self.price_range.max]
        if self.gsm_tolerance is not None:
            data["gsm_tolerance"] = self.gsm_tolerance
        if self.dimensions.is_set:
            deckle = self.dimensions.deckle.scaled(self.dimensions.unit.to_mm)
            grain = self.dimensions.grain.scaled(self.dimensions.unit.to_mm)
            data["dimensions_mm"] = [deckle.min, deckle.max, grain.min, grain.max]
        if self.date_range is not DateRange.ALL:
            data["date_range"] = self.date_range.value
        return data


def _clean_values(values: Optional[Sequence[Any]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    cleaned: List[str] = []
    for value in values:
        if value is None:
            continue
        value = str(value).strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


@dataclass(frozen=True)
class BoundParam:
    """Named placeholder value, tagged with the column it is compared against."""

    name: str
    value: Any
    field: Optional[str] = None


class _ParamAllocator:
    def __init__(self):
        self.params: List[BoundParam] = []

    def bind(self, value: Any, field_name: Optional[str]) -> str:
        name = f"p{len(self.params)}"
        self.params.append(BoundParam(name, value, field_name))
        return f":{name}"


@dataclass(frozen=True)
class Clause:
    """
    Single filter condition on one column.

    Example:
        Clause("gsm", FilterOperator.BETWEEN, (110, 130))  # gsm BETWEEN 110 AND 130
        Clause("make", FilterOperator.IN, ("ITC", "JK"))
    """

    field: str
    operator: FilterOperator
    value: Any = None

    def __post_init__(self):
        if self.field not in LISTING_FIELDS:
            raise ValueError(f"Unknown listing field: {self.field}")

    def to_sql(self, params: _ParamAllocator) -> str:
        if self.operator is FilterOperator.IN:
            placeholders = ", ".join(params.bind(v, self.field) for v in self.value)
            return f"{self.field} IN ({placeholders})"
        if self.operator is FilterOperator.BETWEEN:
            low, high = self.value
            return (
                f"{self.field} BETWEEN {params.bind(low, self.field)} "
                f"AND {params.bind(high, self.field)}"
            )
        if self.operator is FilterOperator.LIKE:
            # Pattern is bound as plain text, not with the column's type
            pattern = f"%{escape_like(str(self.value).casefold())}%"
            return f"LOWER({self.field}) LIKE {params.bind(pattern, None)} ESCAPE '{LIKE_ESCAPE}'"
        if self.operator is FilterOperator.IS_NULL:
            return f"{self.field} IS NULL"
        return f"{self.field} {self.operator.value} {params.bind(self.value, self.field)}"


@dataclass(frozen=True)
class AnyOf:
    """OR-group of clauses."""

    clauses: Tuple[Clause, ...]

    def to_sql(self, params: _ParamAllocator) -> str:
        return "(" + " OR ".join(clause.to_sql(params) for clause in self.clauses) + ")"


Condition = Union[Clause, AnyOf]


@dataclass(frozen=True)
class Predicate:
    """
    Conjunction of conditions over the listings table.

    Rendering never interpolates values; every value travels as a BoundParam.
    """

    conditions: Tuple[Condition, ...] = ()

    @classmethod
    def active_only(cls) -> "Predicate":
        return cls((Clause("is_active", FilterOperator.EQ, True),))

    def and_(self, *conditions: Condition) -> "Predicate":
        return Predicate(self.conditions + tuple(conditions))

    def without(self, field_name: str) -> "Predicate":
        """Drop the multi-select clause on field_name (used by disjunctive facets)."""
        kept = tuple(
            condition
            for condition in self.conditions
            if not (
                isinstance(condition, Clause)
                and condition.field == field_name
                and condition.operator is FilterOperator.IN
            )
        )
        return Predicate(kept)

    def to_sql(self) -> Tuple[str, List[BoundParam]]:
        """
        Build SQL WHERE clause.

        Returns:
            Tuple of (where_clause, parameters)
            Example: ("is_active = :p0 AND gsm BETWEEN :p1 AND :p2", [BoundParam(...), ...])
        """
        params = _ParamAllocator()
        if not self.conditions:
            return "1 = 1", []
        sql = " AND ".join(condition.to_sql(params) for condition in self.conditions)
        return sql, params.params


class PredicateBuilder:
    """
    Builds the store predicate from a parsed query and structured filters.

    Produces a conjunction of: active flag, requester exclusion, one OR-group
    per free-text term, the GSM band, multi-select IN lists, numeric and
    dimensional ranges (in millimetres) and the date cutoff.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or utcnow

    def build(
        self,
        parsed: ParsedQuery,
        filters: Optional[StructuredFilters] = None,
        exclude_requester_id: Optional[int] = None,
    ) -> Predicate:
        filters = filters or StructuredFilters()
        conditions: List[Condition] = [Clause("is_active", FilterOperator.EQ, True)]

        if exclude_requester_id is not None:
            conditions.append(
                AnyOf(
                    (
                        Clause("seller_id", FilterOperator.IS_NULL),
                        Clause("seller_id", FilterOperator.NE, exclude_requester_id),
                    )
                )
            )

        for term in parsed.remaining_terms:
            conditions.append(
                AnyOf(tuple(Clause(f, FilterOperator.LIKE, term) for f in TEXT_SEARCH_FIELDS))
            )

        if parsed.numeric_candidate is not None:
            if parsed.tolerance > 0:
                low, high = parsed.measure_band
                conditions.append(Clause("gsm", FilterOperator.BETWEEN, (low, high)))
            else:
                conditions.append(Clause("gsm", FilterOperator.EQ, parsed.numeric_candidate))

        for name, values in filters.selections().items():
            conditions.append(Clause(CATEGORICAL_FIELDS[name], FilterOperator.IN, tuple(values)))

        conditions.extend(_range_clauses("gsm", filters.gsm_range))
        if filters.price_range.is_set:
            # Hidden prices never take part in price filtering
            conditions.append(Clause("show_price", FilterOperator.EQ, True))
            conditions.extend(_range_clauses("price", filters.price_range))

        factor = filters.dimensions.unit.to_mm
        conditions.extend(_range_clauses("deckle_mm", filters.dimensions.deckle.scaled(factor)))
        conditions.extend(_range_clauses("grain_mm", filters.dimensions.grain.scaled(factor)))

        cutoff = filters.date_range.cutoff(self.clock())
        if cutoff is not None:
            conditions.append(Clause("created_at", FilterOperator.GTE, cutoff))

        predicate = Predicate(tuple(conditions))
        logger.debug(f"Built predicate with {len(conditions)} conditions")
        return predicate


def _range_clauses(field_name: str, bounds: NumericRange) -> List[Clause]:
    clauses = []
    if bounds.min is not None:
        clauses.append(Clause(field_name, FilterOperator.GTE, bounds.min))
    if bounds.max is not None:
        clauses.append(Clause(field_name, FilterOperator.LTE, bounds.max))
    return clauses
