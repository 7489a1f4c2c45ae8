"""
Balanced redundant-assignment scheduling.

- planner: deterministic, load-balanced bucket plans
- claims: atomic bucket reservation on registration
- scoring: assignment lifecycle and judgement recording
- service: capability-checked facade over all of the above
"""

from ratepool.scheduling.planner import plan
from ratepool.scheduling.claims import SlotClaimService
from ratepool.scheduling.scoring import ScoringStateMachine
from ratepool.scheduling.service import SchedulerService

__all__ = [
    "plan",
    "SlotClaimService",
    "ScoringStateMachine",
    "SchedulerService",
]
