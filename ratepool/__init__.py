"""
RatePool - Balanced redundant judgement scheduling

Distributes a fixed batch of items across an expected number of
participants so that each item collects a target number of independent
judgements, with near-equal workload per participant.

Key Features:
- Deterministic, load-balanced allocation plans frozen at campaign creation
- Atomic bucket claims: each participant gets exactly one bucket
- Exactly-once judgements per (participant, item) assignment
- Catalog withdrawal that cancels pending work
- In-memory and MongoDB storage backends
"""

__version__ = "0.1.0"
__author__ = "RatePool Team"

from ratepool.core.models import (
    AllocationPlan,
    Campaign,
    Capability,
    ClaimResult,
    Progress,
)
from ratepool.scheduling.planner import plan
from ratepool.scheduling.service import SchedulerService
from ratepool.storage.memory import InMemoryStore

__all__ = [
    # Records
    "AllocationPlan",
    "Campaign",
    "Capability",
    "ClaimResult",
    "Progress",
    # Scheduling
    "plan",
    "SchedulerService",
    # Storage
    "InMemoryStore",
]
