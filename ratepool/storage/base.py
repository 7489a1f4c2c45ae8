"""
Storage contract shared by the in-memory and MongoDB backends.

The scheduler keeps all coordination rules (capacity, expiry, state
transitions) in the service layer; a store only has to provide durable
records plus two atomic primitives:

- ``run_claim``: run a claim body so that reading the campaign, bumping
  its claim counter and inserting the participant with its assignments
  commit together or not at all;
- ``complete_assignment``: compare-and-set an assignment from
  ``pending`` to ``completed`` while storing its judgement in the same
  write.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set, TypeVar

from ratepool.core.models import (
    Assignment,
    Campaign,
    ItemId,
    Judgement,
    Participant,
)

T = TypeVar("T")


class ClaimTransaction(ABC):
    """View of one campaign inside an atomic claim unit."""

    @property
    @abstractmethod
    def campaign(self) -> Campaign:
        """Campaign state as read inside the unit."""

    @abstractmethod
    def find_participant(self, identity: str) -> Optional[Participant]:
        """Look up an already-registered identity."""

    @abstractmethod
    def withdrawn(self, item_ids: Iterable[ItemId]) -> Set[ItemId]:
        """Return the subset of ``item_ids`` withdrawn from the catalog."""

    @abstractmethod
    def reserve_slot(self) -> int:
        """Increment the claim counter and return the reserved bucket index."""

    @abstractmethod
    def insert_participant(
        self,
        participant: Participant,
        assignments: List[Assignment]
    ) -> None:
        """Stage the participant and its assignments for commit."""


class SchedulerStore(ABC):
    """Durable campaigns, participants, assignments and judgements."""

    name = "abstract"

    # =========================================================================
    # Campaigns
    # =========================================================================

    @abstractmethod
    def save_campaign(self, campaign: Campaign) -> None:
        """Persist a newly created campaign and its plan."""

    @abstractmethod
    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Load a campaign or return None."""

    @abstractmethod
    def set_campaign_active(self, campaign_id: str, is_active: bool) -> Optional[Campaign]:
        """Flip the active flag; return the updated campaign or None."""

    # =========================================================================
    # Participants & claims
    # =========================================================================

    @abstractmethod
    def find_participant(self, campaign_id: str, identity: str) -> Optional[Participant]:
        """Look up a participant by (campaign, identity)."""

    @abstractmethod
    def get_participant(self, participant_id: str) -> Optional[Participant]:
        """Look up a participant by id."""

    @abstractmethod
    def run_claim(self, campaign_id: str, body: Callable[[ClaimTransaction], T]) -> T:
        """
        Execute ``body`` atomically for ``campaign_id``.

        The body may be re-executed by backends that retry on transient
        write conflicts, so it must not have side effects outside the
        transaction it is handed.

        Raises:
            CampaignNotFound: If the campaign does not exist
            IdentityConflict: If another writer registered the identity first
        """

    # =========================================================================
    # Assignments & judgements
    # =========================================================================

    @abstractmethod
    def get_assignments(self, participant_id: str) -> List[Assignment]:
        """All assignments of a participant ordered by sequence."""

    @abstractmethod
    def get_assignment(self, participant_id: str, item_id: ItemId) -> Optional[Assignment]:
        """One assignment or None."""

    @abstractmethod
    def complete_assignment(self, judgement: Judgement) -> Optional[Assignment]:
        """
        Atomically move the matching ``pending`` assignment to ``completed``
        and store ``judgement`` with it.

        Returns:
            The completed assignment, or None if no pending assignment matched
        """

    @abstractmethod
    def get_judgement(self, participant_id: str, item_id: ItemId) -> Optional[Judgement]:
        """The stored judgement for an assignment, if any."""

    @abstractmethod
    def list_judgements(self, campaign_id: str) -> List[Judgement]:
        """All judgements recorded under a campaign."""

    @abstractmethod
    def list_participant_judgements(self, participant_id: str) -> List[Judgement]:
        """Judgements submitted by one participant, newest first."""

    @abstractmethod
    def withdraw_item(self, item_id: ItemId, now: datetime) -> int:
        """
        Mark ``item_id`` withdrawn and cancel its pending assignments.

        Returns:
            Number of assignments moved to ``cancelled``
        """

    @abstractmethod
    def withdrawn_items(self, item_ids: Iterable[ItemId]) -> Set[ItemId]:
        """The subset of ``item_ids`` that has been withdrawn."""
