"""
Error taxonomy for the assignment scheduler.

Every scheduler failure is a synchronous exception carrying a stable
``code`` so callers (the HTTP layer, CLI wrappers) can map it without
string matching. None of these errors leave partial state behind.
"""

from typing import Any, Optional


class SchedulerError(Exception):
    """Base class for all scheduler errors."""

    code = "SCHEDULER_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to a serializable error payload."""
        return {"error": self.message, "code": self.code}


class InvalidParameter(SchedulerError):
    """Malformed campaign or judgement parameters."""

    code = "INVALID_PARAMETER"


class PermissionDenied(SchedulerError):
    """The caller's capability does not allow the operation."""

    code = "PERMISSION_DENIED"


class NotFound(SchedulerError):
    """A referenced record does not exist."""

    code = "NOT_FOUND"


class CampaignNotFound(NotFound):
    code = "CAMPAIGN_NOT_FOUND"

    def __init__(self, campaign_id: str):
        self.campaign_id = campaign_id
        super().__init__(f"Campaign not found: {campaign_id}", campaign_id=campaign_id)


class ParticipantNotFound(NotFound):
    code = "PARTICIPANT_NOT_FOUND"

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        super().__init__(
            f"Participant not found: {participant_id}",
            participant_id=participant_id,
        )


class CampaignExpired(SchedulerError):
    """Claim attempted after the campaign expired or was deactivated."""

    code = "CAMPAIGN_EXPIRED"


class CapacityExceeded(SchedulerError):
    """Claim attempted after the plan buckets or usage ceiling ran out."""

    code = "CAPACITY_EXCEEDED"


class NoSuchAssignment(SchedulerError):
    """No pending assignment exists for the (participant, item) pair."""

    code = "NO_SUCH_ASSIGNMENT"

    def __init__(self, participant_id: str, item_id: Any, reason: Optional[str] = None):
        self.participant_id = participant_id
        self.item_id = item_id
        message = f"No pending assignment for participant {participant_id} and item {item_id}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, participant_id=participant_id, item_id=item_id)


class DuplicateJudgement(SchedulerError):
    """A judgement was already recorded for the assignment."""

    code = "DUPLICATE_JUDGEMENT"

    def __init__(self, participant_id: str, item_id: Any):
        self.participant_id = participant_id
        self.item_id = item_id
        super().__init__(
            f"Judgement already recorded for participant {participant_id} and item {item_id}",
            participant_id=participant_id,
            item_id=item_id,
        )


class StorageUnavailable(SchedulerError):
    """The backing store failed; callers may retry at a higher level."""

    code = "STORAGE_UNAVAILABLE"


class IdentityConflict(SchedulerError):
    """
    Raised by a store when another writer registered the same identity
    first. The claim service resolves it by returning the winner's record.
    """

    code = "IDENTITY_CONFLICT"

    def __init__(self, campaign_id: str, identity: str):
        self.campaign_id = campaign_id
        self.identity = identity
        super().__init__(
            f"Identity already registered under campaign {campaign_id}",
            campaign_id=campaign_id,
        )
