"""
Request Logging Middleware
Logs sync and status requests with timing information
"""
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

QUIET_PATHS = ("/health",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging middleware.
    Logs every HTTP request with method, path, status code, and duration.
    Health checks and status polls log at DEBUG.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        path = request.url.path
        # Status is polled every few seconds while a job runs
        quiet = path in QUIET_PATHS or path.endswith("/status")
        logger.log(
            logging.DEBUG if quiet else logging.INFO,
            f"{request.method} {path} - {response.status_code} ({duration_ms:.2f}ms)",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "client_host": request.client.host if request.client else None
            }
        )

        return response
