"""
Search Endpoints
POST /search - Faceted relevance search over stock listings.
GET /search/suggestions - Autocomplete for makes, grades, brands and GSM.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_request_id, get_search_service
from ..errors import SearchUnavailableError
from ..models.search import SearchRequest, SearchResponse, SuggestionsResponse
from ...search import SearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["search"])


@router.post("/search", response_model=SearchResponse, status_code=status.HTTP_200_OK)
async def search(
    request: SearchRequest,
    search_service: SearchService = Depends(get_search_service),
    request_id: str = Depends(get_request_id),
) -> SearchResponse:
    """
    Search listings by free text and structured filters.

    Workflow:
    1. Coerce the request into engine filters
    2. Run the cached search pipeline
    3. Return one page of ranked listings with facet counts

    Args:
        request: Search request with query, filters, page and sort
        search_service: Search service instance
        request_id: Request ID for tracing

    Returns:
        Search response with results, aggregations and paging metadata

    Raises:
        SearchUnavailableError: When the listing store fails (HTTP 503)
    """
    logger.info(
        f"Search request: query='{request.query}', page={request.page}, sort={request.sort_by}",
        extra={"request_id": request_id},
    )

    outcome = await search_service.search(request.to_engine_request(request_id=request_id))

    if not outcome.success:
        raise SearchUnavailableError(
            outcome.message or "Search is temporarily unavailable",
            page=outcome.page,
            page_size=outcome.page_size,
        )

    return SearchResponse.model_validate(outcome.to_dict())


@router.get("/search/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    q: str = Query("", max_length=100, description="Partial query"),
    limit: Optional[int] = Query(None, ge=1, le=50, description="Maximum suggestions"),
    search_service: SearchService = Depends(get_search_service),
    request_id: str = Depends(get_request_id),
) -> SuggestionsResponse:
    """
    Autocomplete suggestions.

    Queries shorter than two characters return an empty list.
    """
    results = await search_service.suggest(q, limit=limit)
    logger.debug(f"Suggestions for '{q}': {len(results)}", extra={"request_id": request_id})
    return SuggestionsResponse.from_suggestions(results)
