"""
Access Logging Middleware

Logs every API request with a correlation id, status and duration, and
warns about slow requests.
"""

import time
import uuid
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from vision.core.config import settings

logger = logging.getLogger(__name__)


class AccessLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log API access.

    Captures:
    - Request details (method, path, client IP)
    - Response status and duration
    - Request tracking (X-Request-ID, reused when the caller sends one)
    """

    def __init__(self, app: ASGIApp, enabled: bool = True, slow_threshold_ms: int = None):
        """
        Initialize the middleware.

        Args:
            app: FastAPI application
            enabled: Whether logging is enabled (the request id is always set)
            slow_threshold_ms: Duration above which a request is logged as WARNING
        """
        super().__init__(app)
        self.enabled = enabled
        self.slow_threshold_ms = slow_threshold_ms or settings.SLOW_REQUEST_THRESHOLD_MS

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate request ID for correlation
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        duration_ms = int((time.time() - start_time) * 1000)

        response.headers["X-Request-ID"] = request_id

        if not self.enabled or request.url.path in ["/", "/health", "/docs", "/openapi.json"]:
            return response

        message = (
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {duration_ms}ms [ip={self._get_client_ip(request)} request_id={request_id}]"
        )
        if duration_ms > self.slow_threshold_ms:
            logger.warning(f"Slow request: {message}")
        else:
            logger.info(message)

        return response

    def _get_client_ip(self, request: Request) -> str:
        """
        Extract client IP address from request.

        Checks X-Forwarded-For header first (for proxied requests),
        then falls back to direct client IP.
        """
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # Take first IP in the chain
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"
