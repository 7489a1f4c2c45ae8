"""
Core domain records and errors for RatePool.
"""

from ratepool.core.models import (
    AllocationPlan,
    Assignment,
    AssignmentStatus,
    Campaign,
    Capability,
    ClaimResult,
    Judgement,
    Participant,
    PlanStats,
    Progress,
    utc_now,
)
from ratepool.core.errors import (
    SchedulerError,
    InvalidParameter,
    PermissionDenied,
    NotFound,
    CampaignNotFound,
    ParticipantNotFound,
    CampaignExpired,
    CapacityExceeded,
    NoSuchAssignment,
    DuplicateJudgement,
    StorageUnavailable,
    IdentityConflict,
)

__all__ = [
    # Records
    "AllocationPlan",
    "Assignment",
    "AssignmentStatus",
    "Campaign",
    "Capability",
    "ClaimResult",
    "Judgement",
    "Participant",
    "PlanStats",
    "Progress",
    "utc_now",
    # Errors
    "SchedulerError",
    "InvalidParameter",
    "PermissionDenied",
    "NotFound",
    "CampaignNotFound",
    "ParticipantNotFound",
    "CampaignExpired",
    "CapacityExceeded",
    "NoSuchAssignment",
    "DuplicateJudgement",
    "StorageUnavailable",
    "IdentityConflict",
]
