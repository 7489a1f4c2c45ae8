"""
Thread-safe in-memory store.

Claims are serialized per campaign with one lock each, so registrations
for different campaigns run in parallel. Every table write (publishing a
claim, completing or cancelling an assignment) happens under one short
registry lock, which makes each state transition a single
compare-and-set against the current status.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, TypeVar

from ratepool.core.errors import CampaignNotFound, IdentityConflict
from ratepool.core.models import (
    Assignment,
    AssignmentStatus,
    Campaign,
    ItemId,
    Judgement,
    Participant,
)
from ratepool.storage.base import ClaimTransaction, SchedulerStore

T = TypeVar("T")


class _MemoryClaimTransaction(ClaimTransaction):
    """Stages a claim; nothing is visible until the store commits it."""

    def __init__(self, store: 'InMemoryStore', campaign: Campaign):
        self._store = store
        self._campaign = campaign
        self.reserved = 0
        self.participant: Optional[Participant] = None
        self.assignments: List[Assignment] = []

    @property
    def campaign(self) -> Campaign:
        return self._campaign

    def find_participant(self, identity: str) -> Optional[Participant]:
        return self._store.find_participant(self._campaign.campaign_id, identity)

    def withdrawn(self, item_ids: Iterable[ItemId]) -> Set[ItemId]:
        return self._store.withdrawn_items(item_ids)

    def reserve_slot(self) -> int:
        index = self._campaign.claim_counter
        self._campaign.claim_counter += 1
        self.reserved += 1
        return index

    def insert_participant(
        self,
        participant: Participant,
        assignments: List[Assignment]
    ) -> None:
        self.participant = participant
        self.assignments = list(assignments)


class InMemoryStore(SchedulerStore):
    """
    Process-local store for tests, demos and single-process deployments.

    Example:
        >>> store = InMemoryStore()
        >>> store.get_campaign("missing") is None
        True
    """

    name = "memory"

    def __init__(self):
        self._lock = threading.Lock()
        self._campaign_locks: Dict[str, threading.Lock] = {}
        self._campaigns: Dict[str, Campaign] = {}
        self._participants: Dict[str, Participant] = {}
        self._identities: Dict[Tuple[str, str], str] = {}
        # participant_id -> item_id -> assignment, in sequence order
        self._assignments: Dict[str, Dict[ItemId, Assignment]] = {}
        self._judgements: Dict[Tuple[str, ItemId], Judgement] = {}
        self._withdrawn: Set[ItemId] = set()

    def _campaign_lock(self, campaign_id: str) -> threading.Lock:
        with self._lock:
            lock = self._campaign_locks.get(campaign_id)
            if lock is None:
                lock = self._campaign_locks[campaign_id] = threading.Lock()
            return lock

    # =========================================================================
    # Campaigns
    # =========================================================================

    def save_campaign(self, campaign: Campaign) -> None:
        with self._lock:
            self._campaigns[campaign.campaign_id] = replace(campaign)

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            return replace(campaign) if campaign is not None else None

    def set_campaign_active(self, campaign_id: str, is_active: bool) -> Optional[Campaign]:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None:
                return None
            campaign.is_active = is_active
            return replace(campaign)

    # =========================================================================
    # Participants & claims
    # =========================================================================

    def find_participant(self, campaign_id: str, identity: str) -> Optional[Participant]:
        with self._lock:
            participant_id = self._identities.get((campaign_id, identity))
            return self._participants.get(participant_id) if participant_id else None

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        with self._lock:
            return self._participants.get(participant_id)

    def withdrawn_items(self, item_ids: Iterable[ItemId]) -> Set[ItemId]:
        with self._lock:
            return {item_id for item_id in item_ids if item_id in self._withdrawn}

    def run_claim(self, campaign_id: str, body: Callable[[ClaimTransaction], T]) -> T:
        with self._campaign_lock(campaign_id):
            campaign = self.get_campaign(campaign_id)
            if campaign is None:
                raise CampaignNotFound(campaign_id)

            txn = _MemoryClaimTransaction(self, campaign)
            result = body(txn)
            self._commit(txn)
            return result

    def _commit(self, txn: _MemoryClaimTransaction) -> None:
        campaign_id = txn.campaign.campaign_id
        with self._lock:
            participant = txn.participant
            if participant is not None:
                key = (campaign_id, participant.identity)
                if key in self._identities:
                    raise IdentityConflict(campaign_id, participant.identity)

            self._campaigns[campaign_id].claim_counter += txn.reserved

            if participant is None:
                return

            # A withdrawal may have landed after the body read the catalog.
            table: Dict[ItemId, Assignment] = {}
            for assignment in txn.assignments:
                if (assignment.status is AssignmentStatus.PENDING
                        and assignment.item_id in self._withdrawn):
                    assignment = replace(
                        assignment,
                        status=AssignmentStatus.CANCELLED,
                        cancelled_at=assignment.assigned_at,
                    )
                table[assignment.item_id] = assignment

            self._participants[participant.participant_id] = participant
            self._identities[key] = participant.participant_id
            self._assignments[participant.participant_id] = table

    # =========================================================================
    # Assignments & judgements
    # =========================================================================

    def get_assignments(self, participant_id: str) -> List[Assignment]:
        with self._lock:
            table = self._assignments.get(participant_id, {})
            return sorted(table.values(), key=lambda a: a.sequence)

    def get_assignment(self, participant_id: str, item_id: ItemId) -> Optional[Assignment]:
        with self._lock:
            return self._assignments.get(participant_id, {}).get(item_id)

    def complete_assignment(self, judgement: Judgement) -> Optional[Assignment]:
        with self._lock:
            table = self._assignments.get(judgement.participant_id, {})
            current = table.get(judgement.item_id)
            if current is None or current.status is not AssignmentStatus.PENDING:
                return None

            completed = replace(
                current,
                status=AssignmentStatus.COMPLETED,
                completed_at=judgement.recorded_at,
            )
            table[judgement.item_id] = completed
            self._judgements[completed.key] = judgement
            return completed

    def get_judgement(self, participant_id: str, item_id: ItemId) -> Optional[Judgement]:
        with self._lock:
            return self._judgements.get((participant_id, item_id))

    def list_judgements(self, campaign_id: str) -> List[Judgement]:
        with self._lock:
            return [
                judgement
                for (participant_id, _), judgement in self._judgements.items()
                if self._participants[participant_id].campaign_id == campaign_id
            ]

    def list_participant_judgements(self, participant_id: str) -> List[Judgement]:
        with self._lock:
            judgements = [
                judgement
                for (owner, _), judgement in self._judgements.items()
                if owner == participant_id
            ]
        return sorted(judgements, key=lambda j: j.recorded_at, reverse=True)

    def withdraw_item(self, item_id: ItemId, now: datetime) -> int:
        cancelled = 0
        with self._lock:
            self._withdrawn.add(item_id)
            for table in self._assignments.values():
                current = table.get(item_id)
                if current is not None and current.status is AssignmentStatus.PENDING:
                    table[item_id] = replace(
                        current,
                        status=AssignmentStatus.CANCELLED,
                        cancelled_at=now,
                    )
                    cancelled += 1
        return cancelled
