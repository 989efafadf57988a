"""
Query Signature
Canonical identity of a search request, used as the result cache key.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .filters import StructuredFilters
from .ranking import SortDirective
from .tokenizer import normalize_query


@dataclass(frozen=True)
class QuerySignature:
    """
    Canonicalized search request.

    Two requests share a signature when they differ only in whitespace,
    letter case or the order and duplication of multi-select values.
    """

    text: str
    filters_json: str
    page: int
    page_size: int
    sort: str
    exclude_requester_id: Optional[int] = None

    @classmethod
    def build(
        cls,
        text: Optional[str],
        filters: Optional[StructuredFilters],
        page: int,
        page_size: int,
        sort: SortDirective,
        exclude_requester_id: Optional[int] = None,
    ) -> "QuerySignature":
        canonical_filters = (filters or StructuredFilters()).canonical()
        return cls(
            text=normalize_query(text),
            filters_json=json.dumps(canonical_filters, sort_keys=True, default=str),
            page=page,
            page_size=page_size,
            sort=SortDirective.parse(sort).value,
            exclude_requester_id=exclude_requester_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "q": self.text,
            "filters": json.loads(self.filters_json),
            "page": self.page,
            "page_size": self.page_size,
            "sort": self.sort,
            "exclude": self.exclude_requester_id,
        }

    def canonical_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), default=str)

    def cache_key(self) -> str:
        """
        Generate cache key for this search.

        Returns:
            "search:<md5 of canonical JSON>"
        """
        digest = hashlib.md5(self.canonical_json().encode()).hexdigest()
        return f"search:{digest}"
