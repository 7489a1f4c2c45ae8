"""
Slot claiming: binds each new participant to the next unclaimed bucket.

Reading the claim counter, reserving an index and creating the
participant with its assignments happen inside one store-provided
atomic unit, so concurrent registrations always receive distinct,
contiguous bucket indices and a failed claim leaves nothing behind.
Re-registering a known identity never consumes a slot.
"""

import uuid
import logging
from datetime import datetime
from typing import Callable

from ratepool.core.errors import (
    CampaignExpired,
    CampaignNotFound,
    CapacityExceeded,
    IdentityConflict,
    InvalidParameter,
)
from ratepool.core.models import (
    Assignment,
    AssignmentStatus,
    Campaign,
    ClaimResult,
    Participant,
    utc_now,
)
from ratepool.storage.base import ClaimTransaction, SchedulerStore

logger = logging.getLogger(__name__)


def new_participant_id() -> str:
    return f"participant_{uuid.uuid4().hex[:16]}"


class SlotClaimService:
    """
    Atomic bucket reservation for campaign registrations.

    Example:
        >>> claims = SlotClaimService(store)
        >>> result = claims.claim(campaign.campaign_id, "guest-42")
        >>> result.participant.bucket_index
        0
    """

    def __init__(
        self,
        store: SchedulerStore,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize the claim service.

        Args:
            store: Backend providing the atomic claim unit
            clock: Source of the current time, used for expiry checks
        """
        self.store = store
        self.clock = clock

    def claim(self, campaign_id: str, identity: str) -> ClaimResult:
        """
        Register ``identity`` under a campaign, or return its existing slot.

        Args:
            campaign_id: Campaign (access token) identifier
            identity: Caller-defined stable participant key

        Returns:
            ClaimResult with the participant and its bucket items;
            ``created`` is False for a repeat registration

        Raises:
            InvalidParameter: If identity is blank
            CampaignNotFound: If the campaign does not exist
            CampaignExpired: If the campaign expired or was deactivated
            CapacityExceeded: If all buckets or the usage ceiling are used up
        """
        if not isinstance(identity, str) or not identity.strip():
            raise InvalidParameter("Participant identity must be a non-empty string")

        existing = self.store.find_participant(campaign_id, identity)
        if existing is not None:
            return self._existing(campaign_id, existing)

        now = self.clock()
        try:
            result = self.store.run_claim(
                campaign_id,
                lambda txn: self._claim_in(txn, identity, now)
            )
        except IdentityConflict:
            # Lost a same-identity race to another writer; its record wins.
            winner = self.store.find_participant(campaign_id, identity)
            if winner is None:
                raise
            return self._existing(campaign_id, winner)

        if result.created:
            logger.info(
                f"Participant {result.participant.participant_id} claimed bucket "
                f"{result.participant.bucket_index} of campaign {campaign_id} "
                f"({len(result.item_ids)} items)"
            )
        return result

    def _existing(self, campaign_id: str, participant: Participant) -> ClaimResult:
        campaign = self.store.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFound(campaign_id)
        return ClaimResult(
            participant=participant,
            item_ids=campaign.plan.bucket(participant.bucket_index),
            created=False,
        )

    def _claim_in(self, txn: ClaimTransaction, identity: str, now: datetime) -> ClaimResult:
        campaign = txn.campaign

        existing = txn.find_participant(identity)
        if existing is not None:
            return ClaimResult(
                participant=existing,
                item_ids=campaign.plan.bucket(existing.bucket_index),
                created=False,
            )

        self._check_open(campaign, now)
        index = txn.reserve_slot()
        if index >= campaign.claim_limit:
            raise CapacityExceeded(
                f"Campaign {campaign.campaign_id} has no unclaimed slots left",
                campaign_id=campaign.campaign_id,
            )

        bucket = campaign.plan.bucket(index)
        withdrawn = txn.withdrawn(bucket)
        participant = Participant(
            participant_id=new_participant_id(),
            campaign_id=campaign.campaign_id,
            identity=identity,
            bucket_index=index,
            created_at=now,
        )
        assignments = [
            Assignment(
                participant_id=participant.participant_id,
                campaign_id=campaign.campaign_id,
                item_id=item_id,
                sequence=sequence,
                status=AssignmentStatus.CANCELLED if item_id in withdrawn else AssignmentStatus.PENDING,
                assigned_at=now,
                cancelled_at=now if item_id in withdrawn else None,
            )
            for sequence, item_id in enumerate(bucket)
        ]
        txn.insert_participant(participant, assignments)

        return ClaimResult(participant=participant, item_ids=bucket, created=True)

    @staticmethod
    def _check_open(campaign: Campaign, now: datetime) -> None:
        """
        Reject claims on closed campaigns.

        Raises:
            CampaignExpired: Deactivated or past its expiry instant
            CapacityExceeded: Plan buckets or usage ceiling exhausted
        """
        if not campaign.is_active:
            logger.warning(f"Claim rejected: campaign {campaign.campaign_id} is deactivated")
            raise CampaignExpired(
                f"Campaign {campaign.campaign_id} has been deactivated",
                campaign_id=campaign.campaign_id,
            )
        if now >= campaign.expires_at:
            logger.warning(f"Claim rejected: campaign {campaign.campaign_id} expired")
            raise CampaignExpired(
                f"Campaign {campaign.campaign_id} expired at {campaign.expires_at.isoformat()}",
                campaign_id=campaign.campaign_id,
            )
        if campaign.claim_counter >= campaign.claim_limit:
            logger.warning(
                f"Claim rejected: campaign {campaign.campaign_id} exhausted "
                f"({campaign.claim_counter}/{campaign.claim_limit} slots claimed)"
            )
            raise CapacityExceeded(
                f"Campaign {campaign.campaign_id} has no unclaimed slots left",
                campaign_id=campaign.campaign_id,
            )
