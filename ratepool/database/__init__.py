"""
Database module for RatePool.

Provides MongoDB integration for persistent storage of campaigns,
participants, assignments and judgements.
"""

from ratepool.database.mongodb import (
    MongoStore,
    MongoClaimTransaction,
    initialize_database,
)

__all__ = [
    "MongoStore",
    "MongoClaimTransaction",
    "initialize_database",
]
