"""
Listing Store
Predicate-based retrieval of listings from the relational record store.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Protocol, Tuple

from pydantic import ValidationError
from sqlalchemy import String, bindparam, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..db.models import listings_table
from ..models.listing import Listing
from .filters import LISTING_FIELDS, Predicate

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the record store cannot answer a query."""
    pass


class StoreTimeoutError(StoreError):
    """Raised when a store query exceeds its deadline."""
    pass


class ListingStore(Protocol):
    """Listing-query interface consumed by the search service."""

    async def fetch_rows(
        self,
        predicate: Predicate,
        *,
        limit: int,
        timeout: Optional[float] = None,
    ) -> List[Listing]:
        ...

    async def count_distinct(
        self,
        field: str,
        predicate: Predicate,
        *,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[Tuple[Any, int]]:
        ...

    async def count_rows(self, predicate: Predicate, *, timeout: Optional[float] = None) -> int:
        ...

    async def range_stats(
        self,
        field: str,
        predicate: Predicate,
        *,
        timeout: Optional[float] = None,
    ) -> Tuple[Any, Any, Optional[float], int]:
        ...

    async def ping(self) -> bool:
        ...


def compile_predicate(predicate: Predicate):
    """
    Turn a Predicate into a bound SQL text clause.

    Each parameter is typed by the column it is compared against so the
    driver receives properly converted values.
    """
    sql, params = predicate.to_sql()
    bound = [
        bindparam(
            param.name,
            param.value,
            type_=listings_table.c[param.field].type if param.field else String(),
        )
        for param in params
    ]
    return text(sql).bindparams(*bound)


class SQLAlchemyListingStore:
    """
    ListingStore backed by the listings table.

    Blocking session work runs in the threadpool and is awaited with a
    deadline. On PostgreSQL the deadline is also set as the statement timeout.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        default_timeout: Optional[float] = 5.0,
    ):
        self.session_factory = session_factory
        self.default_timeout = default_timeout

    async def fetch_rows(
        self,
        predicate: Predicate,
        *,
        limit: int,
        timeout: Optional[float] = None,
    ) -> List[Listing]:
        """
        Fetch listings matching predicate, newest first.

        At most limit rows are returned; callers compare against count_rows
        to detect truncation.

        Args:
            predicate: Filter conjunction
            limit: Maximum rows to return
            timeout: Seconds before the query is abandoned

        Returns:
            List of Listing
        """
        stmt = (
            select(listings_table)
            .where(compile_predicate(predicate))
            .order_by(listings_table.c.created_at.desc(), listings_table.c.id.desc())
            .limit(limit)
        )

        def work(session: Session) -> List[Listing]:
            rows = session.execute(stmt).mappings().all()
            return [Listing.model_validate(dict(row)) for row in rows]

        return await self._run(work, timeout)

    async def count_distinct(
        self,
        field: str,
        predicate: Predicate,
        *,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[Tuple[Any, int]]:
        """
        Count matching listings per distinct value of field.

        Returns:
            List of (value, count), count descending then value ascending.
            Null and blank values are skipped.
        """
        if field not in LISTING_FIELDS:
            raise ValueError(f"Unknown listing field: {field}")

        column = listings_table.c[field]
        doc_count = func.count().label("doc_count")

        stmt = (
            select(column, doc_count)
            .where(compile_predicate(predicate))
            .where(column.is_not(None))
        )
        if isinstance(column.type, String):
            stmt = stmt.where(func.trim(column) != "")
        stmt = stmt.group_by(column).order_by(doc_count.desc(), column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        def work(session: Session) -> List[Tuple[Any, int]]:
            return [(row[0], int(row[1])) for row in session.execute(stmt).all()]

        return await self._run(work, timeout)

    async def count_rows(self, predicate: Predicate, *, timeout: Optional[float] = None) -> int:
        """Exact number of listings matching predicate."""
        stmt = (
            select(func.count())
            .select_from(listings_table)
            .where(compile_predicate(predicate))
        )

        def work(session: Session) -> int:
            return int(session.execute(stmt).scalar_one())

        return await self._run(work, timeout)

    async def range_stats(
        self,
        field: str,
        predicate: Predicate,
        *,
        timeout: Optional[float] = None,
    ) -> Tuple[Any, Any, Optional[float], int]:
        """
        Min, max, mean and count of a numeric field over matching listings.

        Null and non-positive values are skipped.
        """
        if field not in LISTING_FIELDS:
            raise ValueError(f"Unknown listing field: {field}")

        column = listings_table.c[field]
        stmt = (
            select(func.min(column), func.max(column), func.avg(column), func.count(column))
            .where(compile_predicate(predicate))
            .where(column > 0)
        )

        def work(session: Session) -> Tuple[Any, Any, Optional[float], int]:
            low, high, mean, count = session.execute(stmt).one()
            return low, high, None if mean is None else float(mean), int(count)

        return await self._run(work, timeout)

    async def ping(self) -> bool:
        """Check that the store is reachable."""
        try:
            await self._run(lambda session: session.execute(text("SELECT 1")), self.default_timeout)
            return True
        except StoreError as e:
            logger.warning(f"Store ping failed: {e}")
            return False

    async def _run(self, work: Callable[[Session], Any], timeout: Optional[float]) -> Any:
        timeout = self.default_timeout if timeout is None else timeout

        def execute() -> Any:
            with self.session_factory() as session:
                if timeout and session.get_bind().dialect.name == "postgresql":
                    session.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))
                return work(session)

        try:
            if timeout:
                return await asyncio.wait_for(run_in_threadpool(execute), timeout)
            return await run_in_threadpool(execute)
        except asyncio.TimeoutError as e:
            logger.error(f"Store query timed out after {timeout}s")
            raise StoreTimeoutError(f"Store query timed out after {timeout}s") from e
        except SQLAlchemyError as e:
            logger.error(f"Store query failed: {e}")
            raise StoreError(f"Store query failed: {e}") from e
        except ValidationError as e:
            logger.error(f"Store returned a malformed listing row: {e}")
            raise StoreError(f"Malformed listing row: {e}") from e
