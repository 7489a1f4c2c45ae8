"""
Pydantic schemas for API request/response validation.

Provides type-safe request and response models for all endpoints.
Item identifiers travel as strings over HTTP.
"""

from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from ratepool.core.models import (
    Assignment,
    Campaign,
    ClaimResult,
    Judgement,
    Progress,
)


# =============================================================================
# Campaign Schemas
# =============================================================================

class CampaignCreate(BaseModel):
    """Request to create a campaign and freeze its allocation plan."""
    item_ids: List[str] = Field(..., description="Items to distribute, in catalog order")
    redundancy: int = Field(..., description="Judgements needed per item (R)")
    expected_participants: int = Field(..., description="Expected number of participants (E)")
    expires_at: Optional[datetime] = Field(None, description="Absolute expiry instant (UTC)")
    expires_in_hours: Optional[float] = Field(None, description="Relative expiry if expires_at is unset")
    max_uses: Optional[int] = Field(None, description="Usage ceiling (defaults to expected_participants)")
    name: str = Field("", description="Display name")
    description: str = Field("", description="Free-text description")


class PlanStatsSchema(BaseModel):
    """Allocation plan statistics."""
    total_slots: int
    capacity: int
    coverage_complete: bool
    assigned_slots: int
    shortfall: int
    bucket_count: int


class CampaignResponse(BaseModel):
    """Campaign with its plan statistics."""
    campaign_id: str
    name: str
    description: str
    item_count: int
    redundancy: int
    expected_participants: int
    expires_at: datetime
    max_uses: int
    claim_counter: int
    remaining_claims: int
    is_active: bool
    created_at: datetime
    stats: PlanStatsSchema
    buckets: List[List[str]] = []

    @classmethod
    def from_campaign(cls, campaign: Campaign) -> 'CampaignResponse':
        return cls(
            campaign_id=campaign.campaign_id,
            name=campaign.name,
            description=campaign.description,
            item_count=len(campaign.item_ids),
            redundancy=campaign.redundancy,
            expected_participants=campaign.expected_participants,
            expires_at=campaign.expires_at,
            max_uses=campaign.max_uses,
            claim_counter=campaign.claim_counter,
            remaining_claims=campaign.remaining_claims,
            is_active=campaign.is_active,
            created_at=campaign.created_at,
            stats=PlanStatsSchema(**campaign.plan.stats.to_dict()),
            buckets=[[str(item_id) for item_id in bucket] for bucket in campaign.plan.buckets],
        )


# =============================================================================
# Participant Schemas
# =============================================================================

class ParticipantRegister(BaseModel):
    """Request to join a campaign."""
    identity: str = Field(..., description="Stable caller-defined participant key")


class ParticipantResponse(BaseModel):
    """Participant with its assigned items."""
    participant_id: str
    campaign_id: str
    bucket_index: int
    item_ids: List[str]
    created: bool

    @classmethod
    def from_claim(cls, result: ClaimResult) -> 'ParticipantResponse':
        return cls(
            participant_id=result.participant.participant_id,
            campaign_id=result.participant.campaign_id,
            bucket_index=result.participant.bucket_index,
            item_ids=[str(item_id) for item_id in result.item_ids],
            created=result.created,
        )


class NextItemResponse(BaseModel):
    """Next item to judge."""
    item_id: Optional[str] = None
    message: Optional[str] = None


class ProgressResponse(BaseModel):
    """Participant progress."""
    total: int
    completed: int
    remaining: int
    cancelled: int
    completion_percentage: int

    @classmethod
    def from_progress(cls, progress: Progress) -> 'ProgressResponse':
        return cls(**progress.to_dict())


# =============================================================================
# Judgement Schemas
# =============================================================================

class JudgementCreate(BaseModel):
    """Request to record a judgement."""
    item_id: str
    rating: int = Field(..., description="Rating within the configured bounds")
    justification: str = Field(..., description="Reason for the rating")
    additional_notes: Optional[str] = None
    time_spent_seconds: Optional[int] = None


class AssignmentResponse(BaseModel):
    """Assignment state after a transition."""
    participant_id: str
    item_id: str
    status: str
    sequence: int
    assigned_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_assignment(cls, assignment: Assignment) -> 'AssignmentResponse':
        return cls(
            participant_id=assignment.participant_id,
            item_id=str(assignment.item_id),
            status=assignment.status.value,
            sequence=assignment.sequence,
            assigned_at=assignment.assigned_at,
            completed_at=assignment.completed_at,
            cancelled_at=assignment.cancelled_at,
        )


class JudgementResponse(BaseModel):
    """A stored judgement."""
    participant_id: str
    item_id: str
    rating: int
    justification: str
    additional_notes: Optional[str] = None
    time_spent_seconds: Optional[int] = None
    recorded_at: datetime

    @classmethod
    def from_judgement(cls, judgement: Judgement) -> 'JudgementResponse':
        data = judgement.to_dict()
        data["item_id"] = str(data["item_id"])
        return cls(**data)


class JudgementListResponse(BaseModel):
    """Judgements of a campaign."""
    campaign_id: str
    judgements: List[JudgementResponse]
    total: int


class ParticipantJudgementsResponse(BaseModel):
    """Judgements submitted by one participant, newest first."""
    participant_id: str
    judgements: List[JudgementResponse]
    total: int


# =============================================================================
# Item Schemas
# =============================================================================

class WithdrawResponse(BaseModel):
    """Outcome of an item withdrawal."""
    item_id: str
    cancelled: int


# =============================================================================
# Common Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    storage_backend: str
    storage_connected: bool
    timestamp: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    code: str
