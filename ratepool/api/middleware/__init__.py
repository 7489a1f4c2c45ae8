"""
RatePool API Middleware.
"""

from ratepool.api.middleware.logging import RequestLoggingMiddleware

__all__ = [
    "RequestLoggingMiddleware",
]
