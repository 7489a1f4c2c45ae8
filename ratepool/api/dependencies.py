"""
Dependency injection for RatePool API.

Provides the store, the scheduler service and the caller capability
for API routes.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header

from ratepool.config.settings import get_settings
from ratepool.core.models import Capability
from ratepool.database.mongodb import initialize_database
from ratepool.scheduling.service import SchedulerService
from ratepool.storage.base import SchedulerStore
from ratepool.storage.memory import InMemoryStore

logger = logging.getLogger(__name__)


# =============================================================================
# Storage
# =============================================================================

_store: Optional[SchedulerStore] = None


def get_store() -> SchedulerStore:
    """
    Get the configured store.

    Returns:
        MongoStore when RATEPOOL_STORAGE=mongodb, otherwise InMemoryStore

    Raises:
        RuntimeError: If the database connection fails
    """
    global _store

    if _store is None:
        settings = get_settings()
        if settings.uses_mongodb:
            db = initialize_database(settings.mongodb_uri, settings.db_name)
            if not db.connected:
                raise RuntimeError("Failed to connect to database")
            _store = db
        else:
            _store = InMemoryStore()
        logger.info(f"Storage backend initialized: {_store.name}")

    return _store


# =============================================================================
# Scheduler
# =============================================================================

_service: Optional[SchedulerService] = None


def get_service() -> SchedulerService:
    """Get the scheduler service bound to the configured store."""
    global _service

    if _service is None:
        _service = SchedulerService(get_store(), settings=get_settings())

    return _service


# =============================================================================
# Capability
# =============================================================================

def get_capability(x_api_key: Optional[str] = Header(None)) -> Capability:
    """
    Resolve the caller capability.

    A request carrying the configured operator key is an operator;
    everything else acts as a participant.
    """
    operator_key = get_settings().operator_api_key
    if operator_key and x_api_key and hmac.compare_digest(x_api_key, operator_key):
        return Capability.OPERATOR
    return Capability.PARTICIPANT


# =============================================================================
# Cleanup
# =============================================================================

def cleanup():
    """Release the store and service."""
    global _store, _service

    if _store is not None and hasattr(_store, "disconnect"):
        _store.disconnect()
    _store = None
    _service = None
