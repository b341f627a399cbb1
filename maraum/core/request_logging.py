"""Request logging middleware.

Tags every API request with a short request id, echoed back in the
``X-Request-ID`` header, and logs method, path, status and duration.
Bodies are never logged since they carry learner messages.
"""

import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log HTTP requests and responses."""

    def __init__(self, app, exclude_paths: list[str] | None = None) -> None:
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/health", "/api/v1/health"]

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        extra = {"request_id": request_id}

        start_time = time.perf_counter()
        logger.info(f"{request.method} {request.url.path}", extra=extra)

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"{request.method} {request.url.path} failed: {type(e).__name__} "
                f"duration={duration_ms:.1f}ms",
                extra=extra,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"duration={duration_ms:.1f}ms",
            extra=extra,
        )
        response.headers["X-Request-ID"] = request_id
        return response
