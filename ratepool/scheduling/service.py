"""
Scheduler facade exposing the campaign operations.

Operator calls (campaign creation, withdrawal, deactivation, judgement
listing) and participant calls (registration, next item, submission,
progress, own judgements) all take an explicit ``Capability`` instead of
relying on ambient session state.
"""

import uuid
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from ratepool.config.settings import Settings, get_settings
from ratepool.core.errors import CampaignNotFound, InvalidParameter, PermissionDenied
from ratepool.core.models import (
    Assignment,
    Campaign,
    Capability,
    ClaimResult,
    ItemId,
    Judgement,
    Progress,
    utc_now,
)
from ratepool.scheduling.claims import SlotClaimService
from ratepool.scheduling.planner import plan
from ratepool.scheduling.scoring import ScoringStateMachine
from ratepool.storage.base import SchedulerStore

logger = logging.getLogger(__name__)


def new_campaign_id() -> str:
    return f"campaign_{uuid.uuid4().hex[:16]}"


def _require_capability(capability: Capability, operation: str) -> None:
    if not isinstance(capability, Capability):
        raise PermissionDenied(f"A caller capability is required for {operation}")


def _require_operator(capability: Capability, operation: str) -> None:
    _require_capability(capability, operation)
    if capability is not Capability.OPERATOR:
        raise PermissionDenied(f"Operator capability required for {operation}")


class SchedulerService:
    """
    Complete scheduler surface over one store.

    Example:
        >>> service = SchedulerService(InMemoryStore())
        >>> campaign = service.create_campaign(
        ...     Capability.OPERATOR, item_ids=list(range(10)),
        ...     redundancy=3, expected_participants=5
        ... )
        >>> campaign.plan.stats.capacity
        6
        >>> claim = service.register_participant(
        ...     Capability.PARTICIPANT, campaign.campaign_id, "guest-1"
        ... )
        >>> len(claim.item_ids)
        6
    """

    def __init__(
        self,
        store: SchedulerStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize the service.

        Args:
            store: Storage backend
            settings: Validation bounds and campaign defaults
            clock: Source of the current time
        """
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock
        self.claims = SlotClaimService(store, clock=clock)
        self.scoring = ScoringStateMachine(store, settings=self.settings, clock=clock)

    # =========================================================================
    # Operator operations
    # =========================================================================

    def create_campaign(
        self,
        capability: Capability,
        item_ids: Sequence[ItemId],
        redundancy: int,
        expected_participants: int,
        expires_at: Optional[datetime] = None,
        expires_in_hours: Optional[float] = None,
        max_uses: Optional[int] = None,
        name: str = "",
        description: str = ""
    ) -> Campaign:
        """
        Compute and freeze the allocation plan for a new campaign.

        Args:
            capability: Must be OPERATOR
            item_ids: Items to distribute, in catalog order
            redundancy: Judgements needed per item (R)
            expected_participants: Expected number of registrants (E)
            expires_at: Absolute expiry instant
            expires_in_hours: Relative expiry, used when expires_at is None
            max_uses: Usage ceiling (defaults to E)
            name: Display name
            description: Free-text description

        Returns:
            The stored Campaign including plan statistics

        Raises:
            PermissionDenied: If the caller is not an operator
            InvalidParameter: On malformed parameters; nothing is stored
        """
        _require_operator(capability, "create_campaign")

        now = self.clock()
        allocation = plan(item_ids, redundancy, expected_participants)
        expiry = self._resolve_expiry(now, expires_at, expires_in_hours)

        if max_uses is None:
            max_uses = expected_participants
        if isinstance(max_uses, bool) or not isinstance(max_uses, int) or max_uses < 1:
            raise InvalidParameter(f"max_uses must be an integer >= 1, got {max_uses!r}")

        campaign = Campaign(
            campaign_id=new_campaign_id(),
            name=name,
            description=description,
            item_ids=tuple(item_ids),
            redundancy=redundancy,
            expected_participants=expected_participants,
            plan=allocation,
            expires_at=expiry,
            max_uses=max_uses,
            created_at=now,
        )
        self.store.save_campaign(campaign)

        stats = allocation.stats
        logger.info(
            f"Campaign {campaign.campaign_id} created: {len(campaign.item_ids)} items, "
            f"R={redundancy}, E={expected_participants}, T={stats.total_slots}, "
            f"C={stats.capacity}, coverage_complete={stats.coverage_complete}"
        )
        return campaign

    def _resolve_expiry(
        self,
        now: datetime,
        expires_at: Optional[datetime],
        expires_in_hours: Optional[float]
    ) -> datetime:
        if expires_at is not None:
            if expires_at.tzinfo is None:
                raise InvalidParameter("expires_at must be timezone-aware")
            if expires_at <= now:
                raise InvalidParameter("expires_at must be in the future")
            return expires_at

        hours = self.settings.default_expiry_hours if expires_in_hours is None else expires_in_hours
        if hours <= 0:
            raise InvalidParameter(f"expires_in_hours must be positive, got {hours!r}")
        try:
            return now + timedelta(hours=hours)
        except (OverflowError, ValueError) as e:
            raise InvalidParameter(f"expires_in_hours is out of range: {hours!r}") from e

    def get_campaign(self, capability: Capability, campaign_id: str) -> Campaign:
        """Load a campaign with its plan and claim counter."""
        _require_operator(capability, "get_campaign")
        campaign = self.store.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFound(campaign_id)
        return campaign

    def deactivate_campaign(self, capability: Capability, campaign_id: str) -> Campaign:
        """
        Close a campaign for new registrations. Existing participants keep
        scoring; further claims fail with CampaignExpired.
        """
        _require_operator(capability, "deactivate_campaign")
        campaign = self.store.set_campaign_active(campaign_id, False)
        if campaign is None:
            raise CampaignNotFound(campaign_id)
        logger.info(f"Campaign {campaign_id} deactivated after {campaign.claim_counter} claims")
        return campaign

    def withdraw_item(self, capability: Capability, item_id: ItemId) -> int:
        """Withdraw an item from the catalog; returns cancelled assignments."""
        _require_operator(capability, "withdraw_item")
        return self.scoring.withdraw_item(item_id)

    def list_judgements(self, capability: Capability, campaign_id: str) -> List[Judgement]:
        """Judgements recorded under a campaign."""
        _require_operator(capability, "list_judgements")
        if self.store.get_campaign(campaign_id) is None:
            raise CampaignNotFound(campaign_id)
        return self.scoring.judgements_for_campaign(campaign_id)

    # =========================================================================
    # Participant operations
    # =========================================================================

    def register_participant(
        self,
        capability: Capability,
        campaign_id: str,
        identity: str
    ) -> ClaimResult:
        """Claim the next bucket for ``identity`` (idempotent per identity)."""
        _require_capability(capability, "register_participant")
        return self.claims.claim(campaign_id, identity)

    def get_next_item(self, capability: Capability, participant_id: str) -> Optional[ItemId]:
        """Next item to judge, or None when the participant is done."""
        _require_capability(capability, "get_next_item")
        return self.scoring.next_item(participant_id)

    def submit_judgement(
        self,
        capability: Capability,
        participant_id: str,
        item_id: ItemId,
        rating: int,
        justification: str,
        additional_notes: Optional[str] = None,
        time_spent_seconds: Optional[int] = None
    ) -> Assignment:
        """Record a judgement; see ScoringStateMachine.record_judgement."""
        _require_capability(capability, "submit_judgement")
        return self.scoring.record_judgement(
            participant_id,
            item_id,
            rating,
            justification,
            additional_notes=additional_notes,
            time_spent_seconds=time_spent_seconds,
        )

    def get_progress(self, capability: Capability, participant_id: str) -> Progress:
        """Total, completed and remaining assignments of a participant."""
        _require_capability(capability, "get_progress")
        return self.scoring.progress(participant_id)

    def get_my_judgements(self, capability: Capability, participant_id: str) -> List[Judgement]:
        """Judgements the participant has submitted, newest first."""
        _require_capability(capability, "get_my_judgements")
        return self.scoring.judgements_for_participant(participant_id)
