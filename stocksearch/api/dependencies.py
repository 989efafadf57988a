"""
Dependency Injection
FastAPI dependencies for the listing store, result cache and search service.
"""

import logging

from fastapi import Request
from sqlalchemy.orm import sessionmaker

from .config import APISettings, get_settings
from ..caching import InMemoryResultCache, NullResultCache, RedisResultCache, ResultCache
from ..db.session import build_engine, build_session_factory
from ..search import SearchConfig, SearchService, SQLAlchemyListingStore
from ..search.config import CacheConfig, FacetConfig, PaginationConfig

logger = logging.getLogger(__name__)

# Database engine and session factory
_engine = None
_SessionLocal = None


def get_db_engine():
    """Get database engine (singleton)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
        logger.info(f"Database engine created: {settings.safe_database_url}")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get database session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = build_session_factory(get_db_engine())
        logger.info("Database session factory created")
    return _SessionLocal


def dispose_db_engine() -> None:
    """Close pooled connections and forget the engine (app shutdown)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _SessionLocal = None


def build_result_cache(settings: APISettings) -> ResultCache:
    """Create the result cache selected by API_CACHE_BACKEND."""
    if settings.cache_backend == "redis":
        return RedisResultCache(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            ttl=settings.cache_ttl_search,
        )
    if settings.cache_backend == "none":
        return NullResultCache()
    return InMemoryResultCache(
        ttl=settings.cache_ttl_search,
        max_entries=settings.cache_max_entries,
    )


def build_search_config(settings: APISettings) -> SearchConfig:
    """Engine configuration with API overrides applied."""
    config = SearchConfig.from_env()
    config.pagination = PaginationConfig(
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    config.cache = CacheConfig(
        ttl_seconds=settings.cache_ttl_search,
        max_entries=settings.cache_max_entries,
    )
    config.facets = FacetConfig(disjunctive=settings.disjunctive_facets)
    config.store_timeout_seconds = settings.store_timeout_seconds
    config.validate()
    return config


def get_search_service(request: Request) -> SearchService:
    """
    Get the application's search service (created on first use).

    Use as FastAPI dependency:
        @router.post("/search")
        async def search(service: SearchService = Depends(get_search_service)):
            ...
    """
    state = request.app.state
    service = getattr(state, "search_service", None)
    if service is None:
        settings: APISettings = state.settings
        store = state.store
        if store is None:
            store = SQLAlchemyListingStore(
                get_session_factory(),
                default_timeout=settings.store_timeout_seconds,
            )
            state.store = store
        service = SearchService(store, cache=state.cache, config=build_search_config(settings))
        state.search_service = service
    return service


def get_request_id(request: Request) -> str:
    """Request id assigned by the logging middleware."""
    return getattr(request.state, "request_id", "-")
