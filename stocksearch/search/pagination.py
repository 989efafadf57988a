"""
Pagination
Clamp page parameters and slice ranked results.
"""

import math
from dataclasses import dataclass, is_dataclass, replace
from typing import Any, Generic, List, Optional, Sequence, TypeVar

from .config import PaginationConfig

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """A slice of ranked results plus the totals needed to navigate."""

    items: List[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class Paginator:
    """1-based pagination with a bounded page size."""

    def __init__(self, config: Optional[PaginationConfig] = None):
        self.config = config or PaginationConfig()

    def clamp_page(self, page: Any) -> int:
        try:
            page = int(page)
        except (TypeError, ValueError):
            return 1
        return max(page, 1)

    def clamp_page_size(self, page_size: Any) -> int:
        if page_size is None:
            return self.config.default_page_size
        try:
            page_size = int(page_size)
        except (TypeError, ValueError):
            return self.config.default_page_size
        return min(max(page_size, 1), self.config.max_page_size)

    def paginate(self, items: Sequence[T], page: Any = 1, page_size: Any = None) -> Page[T]:
        """
        Slice items for one page.

        A page beyond the last returns no items but keeps the total.
        """
        page = self.clamp_page(page)
        page_size = self.clamp_page_size(page_size)

        start = (page - 1) * page_size
        window = list(items[start : start + page_size])

        # Scored results carry the page they were served on
        window = [
            replace(item, page=page) if is_dataclass(item) and hasattr(item, "page") else item
            for item in window
        ]

        return Page(items=window, total=len(items), page=page, page_size=page_size)
