"""
Domain records for campaigns, plans, participants and judgements.

These dataclasses are shared by the planner, the claim service, the
scoring state machine and every store backend. Each record serializes
with ``to_dict()`` and restores with ``from_dict()`` so the MongoDB
store can persist it without a separate schema layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Tuple


ItemId = Hashable
Bucket = Tuple[ItemId, ...]


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _to_datetime(value: Any) -> Optional[datetime]:
    """Accept datetimes (MongoDB) or ISO strings (JSON) and return aware UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class Capability(str, Enum):
    """Caller capability passed explicitly with every scheduler call."""
    OPERATOR = "operator"
    PARTICIPANT = "participant"


class AssignmentStatus(str, Enum):
    """Lifecycle state of a single (participant, item) assignment."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PlanStats:
    """
    Summary statistics of an allocation plan.

    Attributes:
        total_slots: Judgements needed in total (T = N * R)
        capacity: Items per participant (C = ceil(T / E))
        coverage_complete: Whether every item can reach R judgements
        assigned_slots: Judgement slots actually placed in buckets
        shortfall: Slots that could not be placed (T - assigned_slots)
        bucket_count: Number of buckets (E)
    """
    total_slots: int
    capacity: int
    coverage_complete: bool
    assigned_slots: int
    shortfall: int
    bucket_count: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total_slots": self.total_slots,
            "capacity": self.capacity,
            "coverage_complete": self.coverage_complete,
            "assigned_slots": self.assigned_slots,
            "shortfall": self.shortfall,
            "bucket_count": self.bucket_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlanStats':
        """Create from dictionary."""
        return cls(
            total_slots=int(data["total_slots"]),
            capacity=int(data["capacity"]),
            coverage_complete=bool(data["coverage_complete"]),
            assigned_slots=int(data["assigned_slots"]),
            shortfall=int(data["shortfall"]),
            bucket_count=int(data["bucket_count"]),
        )


@dataclass(frozen=True)
class AllocationPlan:
    """Ordered, immutable buckets of item ids plus their statistics."""
    buckets: Tuple[Bucket, ...]
    stats: PlanStats

    def __len__(self) -> int:
        return len(self.buckets)

    def bucket(self, index: int) -> Bucket:
        """Return the items of bucket ``index``."""
        return self.buckets[index]

    def occurrences(self) -> Dict[ItemId, int]:
        """Count how many buckets contain each item."""
        counts: Dict[ItemId, int] = {}
        for bucket in self.buckets:
            for item_id in bucket:
                counts[item_id] = counts.get(item_id, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "buckets": [list(bucket) for bucket in self.buckets],
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AllocationPlan':
        """Create from dictionary."""
        return cls(
            buckets=tuple(tuple(bucket) for bucket in data["buckets"]),
            stats=PlanStats.from_dict(data["stats"]),
        )


@dataclass
class Campaign:
    """
    One distribution token: a frozen item batch, a redundancy target and
    an expected participant count, together with its precomputed plan.

    Only ``claim_counter`` and ``is_active`` change after creation.
    """
    campaign_id: str
    item_ids: Tuple[ItemId, ...]
    redundancy: int
    expected_participants: int
    plan: AllocationPlan
    expires_at: datetime
    max_uses: int
    name: str = ""
    description: str = ""
    claim_counter: int = 0
    is_active: bool = True
    created_at: datetime = field(default_factory=utc_now)

    @property
    def claim_limit(self) -> int:
        """Claims allowed before the campaign is exhausted."""
        return min(len(self.plan), self.max_uses)

    @property
    def remaining_claims(self) -> int:
        return max(self.claim_limit - self.claim_counter, 0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "campaign_id": self.campaign_id,
            "name": self.name,
            "description": self.description,
            "item_ids": list(self.item_ids),
            "redundancy": self.redundancy,
            "expected_participants": self.expected_participants,
            "plan": self.plan.to_dict(),
            "expires_at": self.expires_at,
            "max_uses": self.max_uses,
            "claim_counter": self.claim_counter,
            "is_active": self.is_active,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Campaign':
        """Create from dictionary."""
        return cls(
            campaign_id=data["campaign_id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            item_ids=tuple(data["item_ids"]),
            redundancy=int(data["redundancy"]),
            expected_participants=int(data["expected_participants"]),
            plan=AllocationPlan.from_dict(data["plan"]),
            expires_at=_to_datetime(data["expires_at"]),
            max_uses=int(data["max_uses"]),
            claim_counter=int(data.get("claim_counter", 0)),
            is_active=bool(data.get("is_active", True)),
            created_at=_to_datetime(data.get("created_at")) or utc_now(),
        )


@dataclass(frozen=True)
class Participant:
    """A registrant bound to exactly one bucket of a campaign."""
    participant_id: str
    campaign_id: str
    identity: str
    bucket_index: int
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "participant_id": self.participant_id,
            "campaign_id": self.campaign_id,
            "identity": self.identity,
            "bucket_index": self.bucket_index,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Participant':
        """Create from dictionary."""
        return cls(
            participant_id=data["participant_id"],
            campaign_id=data["campaign_id"],
            identity=data["identity"],
            bucket_index=int(data["bucket_index"]),
            created_at=_to_datetime(data.get("created_at")) or utc_now(),
        )


@dataclass(frozen=True)
class Judgement:
    """The rating and justification recorded for one assignment."""
    participant_id: str
    item_id: ItemId
    rating: int
    justification: str
    additional_notes: Optional[str] = None
    time_spent_seconds: Optional[int] = None
    recorded_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "participant_id": self.participant_id,
            "item_id": self.item_id,
            "rating": self.rating,
            "justification": self.justification,
            "additional_notes": self.additional_notes,
            "time_spent_seconds": self.time_spent_seconds,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Judgement':
        """Create from dictionary."""
        return cls(
            participant_id=data["participant_id"],
            item_id=data["item_id"],
            rating=int(data["rating"]),
            justification=data["justification"],
            additional_notes=data.get("additional_notes"),
            time_spent_seconds=data.get("time_spent_seconds"),
            recorded_at=_to_datetime(data.get("recorded_at")) or utc_now(),
        )


@dataclass(frozen=True)
class Assignment:
    """
    A concrete (participant, item) pairing requiring one judgement.

    ``sequence`` is the position of the item inside the claimed bucket
    and defines the order in which items are served.
    """
    participant_id: str
    campaign_id: str
    item_id: ItemId
    sequence: int
    status: AssignmentStatus = AssignmentStatus.PENDING
    assigned_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, ItemId]:
        return (self.participant_id, self.item_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "participant_id": self.participant_id,
            "campaign_id": self.campaign_id,
            "item_id": self.item_id,
            "sequence": self.sequence,
            "status": self.status.value,
            "assigned_at": self.assigned_at,
            "completed_at": self.completed_at,
            "cancelled_at": self.cancelled_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Assignment':
        """Create from dictionary."""
        return cls(
            participant_id=data["participant_id"],
            campaign_id=data["campaign_id"],
            item_id=data["item_id"],
            sequence=int(data["sequence"]),
            status=AssignmentStatus(data.get("status", AssignmentStatus.PENDING.value)),
            assigned_at=_to_datetime(data.get("assigned_at")) or utc_now(),
            completed_at=_to_datetime(data.get("completed_at")),
            cancelled_at=_to_datetime(data.get("cancelled_at")),
        )


@dataclass(frozen=True)
class Progress:
    """Read-only aggregate over a participant's assignments."""
    total: int
    completed: int
    remaining: int
    cancelled: int = 0

    @property
    def completion_percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(self.completed / self.total * 100)

    @classmethod
    def from_assignments(cls, assignments: List[Assignment]) -> 'Progress':
        completed = sum(1 for a in assignments if a.status is AssignmentStatus.COMPLETED)
        remaining = sum(1 for a in assignments if a.status is AssignmentStatus.PENDING)
        cancelled = len(assignments) - completed - remaining
        return cls(
            total=completed + remaining,
            completed=completed,
            remaining=remaining,
            cancelled=cancelled,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total": self.total,
            "completed": self.completed,
            "remaining": self.remaining,
            "cancelled": self.cancelled,
            "completion_percentage": self.completion_percentage,
        }


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of a registration: the participant and its bucket contents."""
    participant: Participant
    item_ids: Tuple[ItemId, ...]
    created: bool = True
