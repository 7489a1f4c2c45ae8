"""
Storage backends for RatePool.

The in-memory store lives here; the MongoDB-backed store lives in
``ratepool.database`` next to its connection handling.
"""

from ratepool.storage.base import ClaimTransaction, SchedulerStore
from ratepool.storage.memory import InMemoryStore

__all__ = [
    "ClaimTransaction",
    "SchedulerStore",
    "InMemoryStore",
]
