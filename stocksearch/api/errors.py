"""
Error Handlers
Exception types and handlers that shape error responses.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..search.aggregations import AggregationEngine

logger = logging.getLogger(__name__)


def _error_body(message: str, error_type: str, details: Any = None) -> Dict[str, Any]:
    body = {"error": {"message": message, "type": error_type}}
    if details is not None:
        body["error"]["details"] = details
    return body


def _request_context(request: Request) -> Dict[str, Any]:
    return {
        "path": request.url.path,
        "request_id": getattr(request.state, "request_id", None),
    }


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_content(self) -> Dict[str, Any]:
        return _error_body(self.message, self.__class__.__name__, self.details)


class SearchUnavailableError(APIError):
    """
    Raised when the listing store cannot serve a search.

    The body keeps the search response shape (empty page, empty facets) so
    clients parse failures and results the same way.
    """

    def __init__(self, message: str, page: int = 1, page_size: int = 12):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"page": page, "pageSize": page_size},
        )

    def to_content(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "data": [],
            "total": 0,
            "page": self.details["page"],
            "pageSize": self.details["pageSize"],
            "totalPages": 0,
            "aggregations": AggregationEngine.to_dict({}),
            "truncated": False,
            "cached": False,
        }


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register exception handlers on the app.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            f"{exc.__class__.__name__} ({exc.status_code}): {exc.message}",
            extra=_request_context(request),
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Body that cannot be parsed at all (e.g. not JSON)."""
        logger.warning(f"Rejected request: {exc}", extra=_request_context(request))

        errors = [
            {
                "loc": [str(part) for part in error.get("loc", ())],
                "msg": str(error.get("msg", "")),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body("Request validation failed", "ValidationError", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.url.path}: {exc}",
            exc_info=True,
            extra=_request_context(request),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("An unexpected error occurred", "InternalServerError"),
        )
