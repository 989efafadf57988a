"""
Health Check Endpoints
Endpoints for health checks and status monitoring.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status

from ..dependencies import get_search_service
from ...search import SearchService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Basic health check.

    Returns:
        Simple health status
    """
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/status", status_code=status.HTTP_200_OK)
async def status_check(
    request: Request,
    search_service: SearchService = Depends(get_search_service),
) -> Dict[str, Any]:
    """
    Detailed status check.

    Checks status of:
    - Listing store (database)
    - Result cache
    - Request latency

    Returns:
        Detailed status information
    """
    settings = request.app.state.settings
    status_info = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "components": {},
    }

    # Check database
    database_ok = await search_service.store.ping()
    status_info["components"]["database"] = {
        "status": "healthy" if database_ok else "unhealthy",
        "url": settings.safe_database_url,
    }
    if not database_ok:
        status_info["status"] = "degraded"

    # Result cache
    cache_stats = search_service.cache.stats()
    status_info["components"]["cache"] = {"status": "healthy", **cache_stats}
    ping = getattr(search_service.cache, "ping", None)
    if ping is not None and not ping():
        status_info["components"]["cache"]["status"] = "unhealthy"
        status_info["status"] = "degraded"

    # Latency
    latency = request.app.state.latency_tracker.get_stats()
    status_info["latency_ms"] = latency
    if latency["count"] and latency["p95"] > settings.target_p95_latency_ms:
        logger.warning(
            f"p95 latency {latency['p95']:.2f}ms exceeds target {settings.target_p95_latency_ms}ms"
        )

    return status_info
