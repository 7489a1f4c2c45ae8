"""
API Routes for RatePool.

Organized by resource type:
- campaigns: Campaign creation, inspection, deactivation and registration
- participants: Next item, judgement submission and progress
- items: Catalog withdrawal
"""

from ratepool.api.routes.campaigns import router as campaigns_router
from ratepool.api.routes.participants import router as participants_router
from ratepool.api.routes.items import router as items_router

__all__ = [
    "campaigns_router",
    "participants_router",
    "items_router",
]
