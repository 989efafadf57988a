"""
Query Tokenization
Parse free-text queries into a GSM candidate and free-text terms.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .config import TokenizerConfig

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

# Characters trimmed from the edges of each term
_TERM_PUNCTUATION = " \t\"'`.,;:!?()[]{}<>"


def normalize_query(text: Optional[str]) -> str:
    """Trim, collapse internal whitespace and case-fold a query string."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip().casefold()


@dataclass(frozen=True)
class MeasureMatch:
    """A numeric measure found in the query text."""

    value: int
    span: Tuple[int, int]


@dataclass
class ParsedQuery:
    """
    Structured signals extracted from a raw query.

    Example:
        "ITC 120gsm" -> ParsedQuery(text="itc 120gsm", numeric_candidate=120,
                                    tolerance=10.0, remaining_terms=["itc"])
    """

    text: str
    numeric_candidate: Optional[int] = None
    tolerance: float = 0.0
    remaining_terms: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.numeric_candidate is None and not self.remaining_terms

    @property
    def measure_band(self) -> Optional[Tuple[float, float]]:
        """Inclusive (low, high) GSM band, or None without a candidate."""
        if self.numeric_candidate is None:
            return None
        return (
            self.numeric_candidate - self.tolerance,
            self.numeric_candidate + self.tolerance,
        )


class MeasureDetector(ABC):
    """Finds a GSM value inside normalized query text."""

    @abstractmethod
    def detect(self, text: str) -> Optional[MeasureMatch]:
        """Return the first measure found in text, or None."""


class SuffixMeasureDetector(MeasureDetector):
    """
    Digits followed by a unit suffix ("120gsm", "120 gsm", "300g/m2").

    At most one space may separate the number from its suffix.
    """

    def __init__(self, suffixes: Sequence[str] = ("gsm", "g/m2", "gm", "g")):
        # Longest suffix first so "gsm" wins over "g"
        ordered = sorted(suffixes, key=len, reverse=True)
        alternation = "|".join(re.escape(suffix) for suffix in ordered)
        self._pattern = re.compile(
            rf"(?<![\w.])(\d+) ?(?:{alternation})(?![\w/])",
            re.IGNORECASE,
        )

    def detect(self, text: str) -> Optional[MeasureMatch]:
        match = self._pattern.search(text)
        if match is None:
            return None
        return MeasureMatch(value=int(match.group(1)), span=match.span())


class BareNumberDetector(MeasureDetector):
    """
    Heuristic: the first standalone 2-4 digit number inside a plausible range.

    "ITC 120" is read as 120 gsm. Numbers outside the range (order ids,
    years) are left in the text as ordinary terms.
    """

    _pattern = re.compile(r"(?<![\w.])(\d{2,4})(?![\w.])")

    def __init__(self, minimum: int = 20, maximum: int = 2000):
        self.minimum = minimum
        self.maximum = maximum

    def detect(self, text: str) -> Optional[MeasureMatch]:
        for match in self._pattern.finditer(text):
            value = int(match.group(1))
            if self.minimum <= value <= self.maximum:
                return MeasureMatch(value=value, span=match.span())
        return None


class QueryTokenizer:
    """
    Splits a raw query into a numeric candidate and lower-cased terms.

    Detectors are tried in order; the first hit wins and its matched
    substring is removed before the remaining text is split into terms.
    """

    def __init__(
        self,
        config: Optional[TokenizerConfig] = None,
        detectors: Optional[Sequence[MeasureDetector]] = None,
    ):
        self.config = config or TokenizerConfig()

        if detectors is None:
            detectors = [SuffixMeasureDetector(self.config.measure_suffixes)]
            if self.config.enable_bare_numbers:
                detectors.append(
                    BareNumberDetector(
                        self.config.bare_number_min,
                        self.config.bare_number_max,
                    )
                )
        self.detectors = list(detectors)

    def parse(self, raw: Optional[str], tolerance: Optional[float] = None) -> ParsedQuery:
        """
        Parse a raw query.

        Args:
            raw: Query text as typed by the user
            tolerance: Explicit GSM tolerance; falls back to the configured default

        Returns:
            ParsedQuery
        """
        text = normalize_query(raw)
        if not text:
            return ParsedQuery(text="")

        numeric_candidate = None
        remainder = text
        for detector in self.detectors:
            match = detector.detect(remainder)
            if match is not None:
                numeric_candidate = match.value
                start, end = match.span
                remainder = f"{remainder[:start]} {remainder[end:]}"
                break

        effective_tolerance = 0.0
        if numeric_candidate is not None:
            if tolerance is not None and tolerance >= 0:
                effective_tolerance = float(tolerance)
            else:
                effective_tolerance = float(self.config.default_tolerance)

        terms = self._split_terms(remainder)

        logger.debug(
            f"Parsed query {text!r}: candidate={numeric_candidate}, "
            f"tolerance={effective_tolerance}, terms={terms}"
        )

        return ParsedQuery(
            text=text,
            numeric_candidate=numeric_candidate,
            tolerance=effective_tolerance,
            remaining_terms=terms,
        )

    def _split_terms(self, text: str) -> List[str]:
        terms: List[str] = []
        for token in text.split():
            token = token.strip(_TERM_PUNCTUATION)
            if len(token) < self.config.min_term_length:
                continue
            if token not in terms:
                terms.append(token)
        return terms
