"""
Participant API endpoints.

Serve the next item of a participant's bucket, record and list judgements,
and report progress.
"""

from fastapi import APIRouter, Depends, status

from ratepool.api.schemas import (
    AssignmentResponse,
    JudgementCreate,
    JudgementResponse,
    NextItemResponse,
    ParticipantJudgementsResponse,
    ProgressResponse,
    ErrorResponse,
)
from ratepool.api.dependencies import get_capability, get_service
from ratepool.core.models import Capability
from ratepool.scheduling.service import SchedulerService


router = APIRouter(prefix="/participants", tags=["participants"])


@router.get(
    "/{participant_id}/next",
    response_model=NextItemResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get the next item to judge"
)
def get_next_item(
    participant_id: str,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    """Earliest pending item in bucket order, or a completion message."""
    item_id = service.get_next_item(capability, participant_id)
    if item_id is None:
        return NextItemResponse(message="All assigned items have been judged")
    return NextItemResponse(item_id=str(item_id))


@router.post(
    "/{participant_id}/judgements",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Submit a judgement"
)
def submit_judgement(
    participant_id: str,
    request: JudgementCreate,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    """
    Record a rating and justification for one assigned item.

    Each assignment accepts exactly one judgement; a second submission
    fails with DUPLICATE_JUDGEMENT.
    """
    assignment = service.submit_judgement(
        capability,
        participant_id,
        request.item_id,
        request.rating,
        request.justification,
        additional_notes=request.additional_notes,
        time_spent_seconds=request.time_spent_seconds,
    )
    return AssignmentResponse.from_assignment(assignment)


@router.get(
    "/{participant_id}/progress",
    response_model=ProgressResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get participant progress"
)
def get_progress(
    participant_id: str,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    return ProgressResponse.from_progress(service.get_progress(capability, participant_id))


@router.get(
    "/{participant_id}/judgements",
    response_model=ParticipantJudgementsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List own judgements"
)
def list_my_judgements(
    participant_id: str,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    """Judgements the participant has submitted, newest first."""
    judgements = service.get_my_judgements(capability, participant_id)
    return ParticipantJudgementsResponse(
        participant_id=participant_id,
        judgements=[JudgementResponse.from_judgement(j) for j in judgements],
        total=len(judgements),
    )
