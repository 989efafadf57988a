"""
Relevance Ranking
Additive rule-based scoring of candidate listings plus deterministic sort directives.

Ranking Formula:
score = Σ rule hits × rule weight
(phrase 60, exact gsm 45, gsm in band 20, make 30, grade 25, brand 20, description term 8)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.listing import Listing
from .config import RankingConfig
from .tokenizer import ParsedQuery

logger = logging.getLogger(__name__)


class SortDirective(str, Enum):
    """Secondary orderings applied after relevance."""

    NEWEST = "newest"
    OLDEST = "oldest"
    GSM_LOW = "gsm-low"
    GSM_HIGH = "gsm-high"
    QUANTITY_LOW = "quantity-low"
    QUANTITY_HIGH = "quantity-high"
    SIZE_SMALL = "size-small"
    SIZE_LARGE = "size-large"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    LOCATION = "location"
    COMPANY = "company"
    CATEGORY = "category"

    @classmethod
    def parse(cls, value: Any) -> "SortDirective":
        """Map any input to a directive; unknown values fall back to newest."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NEWEST


def _text_key(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value else None


# directive -> (sort key, descending)
_DIRECTIVE_KEYS: Dict[SortDirective, tuple] = {
    SortDirective.NEWEST: (lambda l: l.created_at, True),
    SortDirective.OLDEST: (lambda l: l.created_at, False),
    SortDirective.GSM_LOW: (lambda l: l.gsm, False),
    SortDirective.GSM_HIGH: (lambda l: l.gsm, True),
    SortDirective.QUANTITY_LOW: (lambda l: l.quantity, False),
    SortDirective.QUANTITY_HIGH: (lambda l: l.quantity, True),
    SortDirective.SIZE_SMALL: (lambda l: l.size_mm2, False),
    SortDirective.SIZE_LARGE: (lambda l: l.size_mm2, True),
    SortDirective.PRICE_LOW: (lambda l: l.price if l.show_price else None, False),
    SortDirective.PRICE_HIGH: (lambda l: l.price if l.show_price else None, True),
    SortDirective.LOCATION: (lambda l: _text_key(l.location), False),
    SortDirective.COMPANY: (lambda l: _text_key(l.company), False),
    SortDirective.CATEGORY: (lambda l: _text_key(l.category), False),
}


def sort_by_directive(listings: Sequence[Listing], directive: SortDirective) -> List[Listing]:
    """
    Order listings by a directive with id descending as tie-breaker.

    Listings without a value for the sort key always come last.
    """
    key, descending = _DIRECTIVE_KEYS[directive]
    ordered = sorted(listings, key=lambda l: l.id, reverse=True)
    present = [l for l in ordered if key(l) is not None]
    missing = [l for l in ordered if key(l) is None]
    present.sort(key=key, reverse=descending)
    return present + missing


@dataclass(frozen=True)
class ScoringRule:
    """
    Weighted match rule.

    The predicate returns a hit count (0/1, or the number of terms hit);
    the rule contributes hits × weight.
    """

    name: str
    weight: float
    predicate: Callable[[Listing, ParsedQuery], int]

    def apply(self, listing: Listing, parsed: ParsedQuery) -> float:
        return self.predicate(listing, parsed) * self.weight


@dataclass
class ScoredListing:
    """Listing with its relevance score and position in the ranked list."""

    listing: Listing
    score: float
    rank: int
    page: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.listing.to_public_dict()
        data["score"] = self.score
        data["rank"] = self.rank
        return data


def _terms_in(value: Optional[str], terms: Sequence[str]) -> int:
    if not value or not terms:
        return 0
    haystack = value.casefold()
    return sum(1 for term in terms if term in haystack)


def _phrase_hit(listing: Listing, parsed: ParsedQuery) -> int:
    if not parsed.text or not listing.description:
        return 0
    return int(parsed.text in listing.description.casefold())


def _exact_measure_hit(listing: Listing, parsed: ParsedQuery) -> int:
    if parsed.numeric_candidate is None or listing.gsm is None:
        return 0
    return int(listing.gsm == parsed.numeric_candidate)


def _in_band_hit(listing: Listing, parsed: ParsedQuery) -> int:
    if parsed.numeric_candidate is None or listing.gsm is None:
        return 0
    if listing.gsm == parsed.numeric_candidate:
        return 0
    return int(abs(listing.gsm - parsed.numeric_candidate) <= parsed.tolerance)


def default_rules(config: Optional[RankingConfig] = None) -> List[ScoringRule]:
    """Build the default rule list from ranking weights."""
    config = config or RankingConfig()
    return [
        ScoringRule("description_phrase", config.description_phrase_weight, _phrase_hit),
        ScoringRule("exact_measure", config.exact_measure_weight, _exact_measure_hit),
        ScoringRule("measure_in_band", config.measure_in_band_weight, _in_band_hit),
        ScoringRule(
            "make_term",
            config.make_weight,
            lambda l, q: _terms_in(l.make, q.remaining_terms),
        ),
        ScoringRule(
            "grade_term",
            config.grade_weight,
            lambda l, q: _terms_in(l.grade, q.remaining_terms),
        ),
        ScoringRule(
            "brand_term",
            config.brand_weight,
            lambda l, q: _terms_in(l.brand, q.remaining_terms),
        ),
        ScoringRule(
            "description_term",
            config.description_term_weight,
            lambda l, q: _terms_in(l.description, q.remaining_terms),
        ),
    ]


class RelevanceScorer:
    """
    Scores and orders candidate listings.

    Order is score descending, then the sort directive, then id descending.
    An empty query scores every listing 0 so only the directive applies.
    """

    def __init__(
        self,
        config: Optional[RankingConfig] = None,
        rules: Optional[Sequence[ScoringRule]] = None,
    ):
        self.config = config or RankingConfig()
        self.rules = list(rules) if rules is not None else default_rules(self.config)
        logger.debug(f"Relevance scorer initialized with {len(self.rules)} rules")

    def score(self, listing: Listing, parsed: ParsedQuery) -> float:
        # No terms and no measure: the predicate adds no text clause, so every
        # candidate ties and the sort directive decides
        if parsed.is_empty:
            return 0.0
        return float(sum(rule.apply(listing, parsed) for rule in self.rules))

    def rank(
        self,
        listings: Sequence[Listing],
        parsed: ParsedQuery,
        directive: SortDirective = SortDirective.NEWEST,
    ) -> List[ScoredListing]:
        """
        Score and order listings.

        Args:
            listings: Candidates already filtered by the store
            parsed: Parsed query
            directive: Secondary ordering

        Returns:
            ScoredListing list with 1-based ranks
        """
        ordered = sort_by_directive(listings, directive)
        scores = {listing.id: self.score(listing, parsed) for listing in ordered}

        # Stable sort keeps the directive order among equal scores
        ordered.sort(key=lambda l: scores[l.id], reverse=True)

        return [
            ScoredListing(listing=listing, score=scores[listing.id], rank=position)
            for position, listing in enumerate(ordered, start=1)
        ]

    def explain(self, listing: Listing, parsed: ParsedQuery) -> Dict[str, float]:
        """
        Per-rule contribution for one listing.

        Returns:
            Dict mapping rule name -> contribution, plus "total"
        """
        if parsed.is_empty:
            breakdown = {rule.name: 0.0 for rule in self.rules}
        else:
            breakdown = {rule.name: rule.apply(listing, parsed) for rule in self.rules}
        breakdown["total"] = sum(breakdown.values())
        return breakdown
