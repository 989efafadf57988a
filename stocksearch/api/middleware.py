"""
Request Middleware
Request logging, request ids and latency tracking.
"""

import logging
import time
import uuid
from collections import deque
from threading import Lock
from typing import Callable, Dict, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Default threshold above which requests are logged as warnings
SLOW_REQUEST_MS = 300


class LatencyTracker:
    """
    Tracks request latency statistics.

    Maintains a rolling window of recent request latencies
    and calculates percentiles.
    """

    def __init__(self, window_size: int = 1000):
        self.window_size = window_size
        self.latencies: deque = deque(maxlen=window_size)
        self.lock = Lock()

    def record(self, latency_ms: float) -> None:
        """Record a latency measurement."""
        with self.lock:
            self.latencies.append(latency_ms)

    def get_stats(self) -> Dict[str, float]:
        """
        Get latency statistics.

        Returns:
            Dict with count, p50, p95, p99 and mean
        """
        with self.lock:
            values = sorted(self.latencies)

        if not values:
            return {"count": 0, "p50": 0.0, "p95": 0.0, "p99": 0.0, "mean": 0.0}

        return {
            "count": len(values),
            "p50": self._percentile(values, 50),
            "p95": self._percentile(values, 95),
            "p99": self._percentile(values, 99),
            "mean": sum(values) / len(values),
        }

    @staticmethod
    def _percentile(sorted_values: List[float], percentile: int) -> float:
        index = int((percentile / 100.0) * len(sorted_values))
        return sorted_values[min(index, len(sorted_values) - 1)]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with its duration and records latency.

    Propagates X-Request-ID (generated when absent) and sets X-Response-Time.
    """

    def __init__(
        self,
        app,
        tracker: Optional[LatencyTracker] = None,
        slow_request_ms: float = SLOW_REQUEST_MS,
    ):
        super().__init__(app)
        self.tracker = tracker or LatencyTracker()
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={"request_id": request_id},
        )

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.url.path} after {duration_ms:.2f}ms",
                exc_info=True,
                extra={"request_id": request_id},
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        self.tracker.record(duration_ms)

        log = logger.warning if duration_ms > self.slow_request_ms else logger.info
        log(
            f"Request completed: {request.method} {request.url.path} "
            f"{response.status_code} in {duration_ms:.2f}ms",
            extra={"request_id": request_id},
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
