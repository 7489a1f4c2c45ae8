"""
Shared fixtures and configuration for RatePool tests.
"""

import pytest
from datetime import datetime, timedelta, timezone


class FakeClock:
    """Settable clock injected into the services."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def settings():
    """Settings with the default validation bounds, independent of the env."""
    from ratepool.config.settings import Settings
    s = Settings()
    s.storage_backend = "memory"
    s.operator_api_key = "operator-secret"
    s.rating_min = 1
    s.rating_max = 9
    s.justification_min_length = 10
    s.default_expiry_hours = 24.0
    return s


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# Scheduler Fixtures
# =============================================================================

@pytest.fixture
def store():
    """Fresh in-memory store."""
    from ratepool.storage.memory import InMemoryStore
    return InMemoryStore()


@pytest.fixture
def service(store, settings, clock):
    """Scheduler service over the in-memory store."""
    from ratepool.scheduling.service import SchedulerService
    return SchedulerService(store, settings=settings, clock=clock)


@pytest.fixture
def campaign(service):
    """10 items, 3 judgements each, 5 expected participants."""
    from ratepool.core.models import Capability
    return service.create_campaign(
        Capability.OPERATOR,
        item_ids=list(range(10)),
        redundancy=3,
        expected_participants=5,
        name="Pain scale batch",
    )


@pytest.fixture
def participant(service, campaign):
    """A registered participant holding bucket 0."""
    from ratepool.core.models import Capability
    return service.register_participant(Capability.PARTICIPANT, campaign.campaign_id, "guest-1")
