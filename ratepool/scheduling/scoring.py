"""
Per-assignment scoring lifecycle.

    pending ──record_judgement──▶ completed   (terminal)
       │
       └──────withdraw_item─────▶ cancelled   (terminal)

Transitions are compare-and-set operations in the store, so concurrent
double submissions produce exactly one completed assignment and one
stored judgement, and a withdrawal racing a submission is settled by
whichever transition commits first.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ratepool.config.settings import Settings, get_settings
from ratepool.core.errors import (
    DuplicateJudgement,
    InvalidParameter,
    NoSuchAssignment,
    ParticipantNotFound,
)
from ratepool.core.models import (
    Assignment,
    AssignmentStatus,
    ItemId,
    Judgement,
    Participant,
    Progress,
    utc_now,
)
from ratepool.storage.base import SchedulerStore

logger = logging.getLogger(__name__)


class ScoringStateMachine:
    """
    Serves items to participants and records their judgements.

    Example:
        >>> scoring = ScoringStateMachine(store)
        >>> item = scoring.next_item(participant_id)
        >>> scoring.record_judgement(participant_id, item, 7, "Eyes half closed, slow blinks")
        >>> scoring.progress(participant_id).completed
        1
    """

    def __init__(
        self,
        store: SchedulerStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize the state machine.

        Args:
            store: Backend holding assignments and judgements
            settings: Validation bounds (defaults to global settings)
            clock: Source of the current time for transition timestamps
        """
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock

    def _participant(self, participant_id: str) -> Participant:
        participant = self.store.get_participant(participant_id)
        if participant is None:
            raise ParticipantNotFound(participant_id)
        return participant

    def _assignments(self, participant_id: str) -> List[Assignment]:
        """
        Assignments of a participant with the catalog applied.

        A claim that committed concurrently with a withdrawal can hold a
        pending assignment for a withdrawn item; the withdrawal is
        re-applied before anything is served or counted.
        """
        assignments = self.store.get_assignments(participant_id)
        pending = [a.item_id for a in assignments if a.status is AssignmentStatus.PENDING]
        stale = self.store.withdrawn_items(pending) if pending else set()
        if not stale:
            return assignments

        for item_id in stale:
            cancelled = self.store.withdraw_item(item_id, self.clock())
            logger.info(f"Re-applied withdrawal of item {item_id}: {cancelled} assignments cancelled")
        return self.store.get_assignments(participant_id)

    def next_item(self, participant_id: str) -> Optional[ItemId]:
        """
        Oldest pending item of a participant (FIFO by bucket order).

        Returns:
            Item id, or None when nothing remains

        Raises:
            ParticipantNotFound: If the participant is unknown
        """
        self._participant(participant_id)
        for assignment in self._assignments(participant_id):
            if assignment.status is AssignmentStatus.PENDING:
                return assignment.item_id
        return None

    def validate_judgement(
        self,
        rating: int,
        justification: str,
        time_spent_seconds: Optional[int] = None
    ) -> str:
        """
        Check judgement content before any state is touched.

        Returns:
            The stripped justification

        Raises:
            InvalidParameter: On an out-of-range rating, a short
                justification or a negative duration
        """
        low, high = self.settings.rating_min, self.settings.rating_max
        if isinstance(rating, bool) or not isinstance(rating, int) or not low <= rating <= high:
            raise InvalidParameter(f"Rating must be an integer between {low} and {high}")

        text = (justification or "").strip()
        if len(text) < self.settings.justification_min_length:
            raise InvalidParameter(
                f"Justification must be at least "
                f"{self.settings.justification_min_length} characters long"
            )

        if time_spent_seconds is not None and time_spent_seconds < 0:
            raise InvalidParameter("time_spent_seconds cannot be negative")

        return text

    def record_judgement(
        self,
        participant_id: str,
        item_id: ItemId,
        rating: int,
        justification: str,
        additional_notes: Optional[str] = None,
        time_spent_seconds: Optional[int] = None
    ) -> Assignment:
        """
        Store a judgement and close its assignment in one atomic step.

        Args:
            participant_id: Participant submitting the judgement
            item_id: Item being judged
            rating: Integer rating within the configured bounds
            justification: Free-text reason for the rating
            additional_notes: Optional extra remarks
            time_spent_seconds: Optional time spent on the item

        Returns:
            The completed Assignment

        Raises:
            InvalidParameter: If the judgement content is malformed
            NoSuchAssignment: Unknown participant, wrong item, or the
                assignment was cancelled
            DuplicateJudgement: The assignment was already completed
        """
        text = self.validate_judgement(rating, justification, time_spent_seconds)
        notes = additional_notes.strip() if additional_notes and additional_notes.strip() else None

        judgement = Judgement(
            participant_id=participant_id,
            item_id=item_id,
            rating=rating,
            justification=text,
            additional_notes=notes,
            time_spent_seconds=time_spent_seconds,
            recorded_at=self.clock(),
        )

        if self.store.withdrawn_items([item_id]):
            self.store.withdraw_item(item_id, self.clock())
            raise self._rejection(participant_id, item_id)

        completed = self.store.complete_assignment(judgement)
        if completed is not None:
            logger.debug(f"Judgement recorded: participant={participant_id} item={item_id}")
            return completed

        raise self._rejection(participant_id, item_id)

    def _rejection(self, participant_id: str, item_id: ItemId) -> Exception:
        """Classify a submission that found no pending assignment."""
        current = self.store.get_assignment(participant_id, item_id)
        if current is None:
            return NoSuchAssignment(participant_id, item_id)
        if current.status is AssignmentStatus.COMPLETED:
            return DuplicateJudgement(participant_id, item_id)
        return NoSuchAssignment(participant_id, item_id, reason="item withdrawn")

    def withdraw_item(self, item_id: ItemId) -> int:
        """
        Cancel every pending assignment of an item; completed ones are kept.

        Returns:
            Number of assignments cancelled
        """
        cancelled = self.store.withdraw_item(item_id, self.clock())
        logger.info(f"Item {item_id} withdrawn: {cancelled} pending assignments cancelled")
        return cancelled

    def progress(self, participant_id: str) -> Progress:
        """
        Aggregate a participant's assignments.

        Cancelled assignments are reported separately and excluded from
        ``total`` so that ``completed + remaining == total``.

        Raises:
            ParticipantNotFound: If the participant is unknown
        """
        self._participant(participant_id)
        return Progress.from_assignments(self._assignments(participant_id))

    def judgements_for_campaign(self, campaign_id: str) -> List[Judgement]:
        """Stored judgements of a campaign, for export collaborators."""
        return self.store.list_judgements(campaign_id)

    def judgements_for_participant(self, participant_id: str) -> List[Judgement]:
        """
        Judgements a participant has submitted, newest first.

        Raises:
            ParticipantNotFound: If the participant is unknown
        """
        self._participant(participant_id)
        return self.store.list_participant_judgements(participant_id)
