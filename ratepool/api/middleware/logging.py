"""
API middleware for request logging.
"""

import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# Request Logging
# =============================================================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its status, duration and caller role."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        role = "keyed" if request.headers.get("x-api-key") else "anonymous"

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} "
            f"status={response.status_code} "
            f"caller={role} "
            f"duration={duration_ms:.1f}ms"
        )

        return response
