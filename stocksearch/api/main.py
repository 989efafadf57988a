"""
FastAPI Main Application
Application factory for the Stock Search API.

Run with:
    python -m stocksearch.api.main
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from .config import APISettings, get_settings
from .dependencies import build_result_cache, dispose_db_engine
from .errors import setup_error_handlers
from .middleware import LatencyTracker, RequestLoggingMiddleware
from .routers import health_router, search_router
from ..caching import ResultCache
from ..search import ListingStore

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Apply the configured log level on startup; release the engine on shutdown."""
    settings: APISettings = app.state.settings
    logging.getLogger().setLevel(settings.log_level)
    logger.info(
        f"{settings.app_name} {settings.version} starting "
        f"(store={settings.safe_database_url}, cache={app.state.cache.backend})"
    )

    yield

    logger.info(f"{settings.app_name} shutting down")
    if app.state.search_service is not None:
        logger.info(f"Final cache stats: {app.state.search_service.get_stats()['cache']}")
    dispose_db_engine()


def _add_middleware(app: FastAPI, settings: APISettings) -> None:
    # Last added runs outermost; request logging wraps everything else
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        RequestLoggingMiddleware,
        tracker=app.state.latency_tracker,
        slow_request_ms=settings.slow_request_ms,
    )


def create_app(
    settings: Optional[APISettings] = None,
    store: Optional[ListingStore] = None,
    cache: Optional[ResultCache] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: API settings (defaults to environment)
        store: Listing store (defaults to the SQLAlchemy store, created on first request)
        cache: Result cache (defaults to the backend named in settings)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=settings.description,
        version=settings.version,
        lifespan=lifespan,
    )

    # Shared state read by the dependencies
    app.state.settings = settings
    app.state.store = store
    app.state.cache = cache if cache is not None else build_result_cache(settings)
    app.state.search_service = None
    app.state.latency_tracker = LatencyTracker()

    _add_middleware(app, settings)
    setup_error_handlers(app)

    app.include_router(health_router)
    app.include_router(search_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.version,
            "endpoints": {
                "search": "/api/v1/search",
                "suggestions": "/api/v1/search/suggestions",
                "health": "/health",
                "status": "/status",
                "docs": app.docs_url,
            },
        }

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "stocksearch.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
