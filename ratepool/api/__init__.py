"""
RatePool REST API.

FastAPI application exposing campaign, participant and item endpoints.
"""

from ratepool.api.main import app, create_app

__all__ = ["app", "create_app"]
