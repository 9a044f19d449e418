"""
FastAPI middleware for request observability.

This module provides:
- Request/Response logging with request_id propagation
- Request timing for latency tracking
- Request ID in response headers for debugging

Middleware Stack Order (in main.py):
    1. LoggingMiddleware (outermost - captures everything)
    2. CORS Middleware
    3. Application routes
"""

import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.logging_config import set_request_id, clear_request_id

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request/Response logging middleware with request_id propagation.

    Log Output (JSON):
    {
        "message": "Request completed",
        "request_id": "abc-123",
        "extra": {
            "method": "GET",
            "path": "/api/v1/health-data/patients/3",
            "status_code": 200,
            "duration_ms": 45.2
        }
    }
    """

    # Paths to exclude from detailed logging (reduce noise)
    EXCLUDED_PATHS = {"/health", "/ready", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with logging and timing."""
        # Honour an upstream request ID so traces join across services
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        set_request_id(request_id)

        method = request.method
        path = request.url.path
        start_time = time.perf_counter()

        if path not in self.EXCLUDED_PATHS:
            logger.info(
                "Request started",
                extra={
                    "method": method,
                    "path": path,
                    "query": str(request.query_params) if request.query_params else None,
                }
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with exception",
                extra={"method": method, "path": path, "error": str(e)}
            )
            clear_request_id()
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        if path not in self.EXCLUDED_PATHS:
            log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                log_level,
                "Request completed",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            )

        clear_request_id()
        response.headers["X-Request-ID"] = request_id
        return response
