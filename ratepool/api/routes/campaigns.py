"""
Campaign API endpoints.

Operators create campaigns, inspect them, close them and read back
their judgements. Participants join a campaign by registering an
identity, which claims the next bucket of the frozen plan.
"""

from fastapi import APIRouter, Depends, Response, status

from ratepool.api.schemas import (
    CampaignCreate,
    CampaignResponse,
    ParticipantRegister,
    ParticipantResponse,
    JudgementListResponse,
    JudgementResponse,
    ErrorResponse,
)
from ratepool.api.dependencies import get_capability, get_service
from ratepool.core.models import Capability
from ratepool.scheduling.service import SchedulerService


router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.post(
    "",
    response_model=CampaignResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Create a campaign",
    description="Compute and freeze the allocation plan for a new campaign."
)
def create_campaign(
    request: CampaignCreate,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    campaign = service.create_campaign(
        capability,
        item_ids=request.item_ids,
        redundancy=request.redundancy,
        expected_participants=request.expected_participants,
        expires_at=request.expires_at,
        expires_in_hours=request.expires_in_hours,
        max_uses=request.max_uses,
        name=request.name,
        description=request.description,
    )
    return CampaignResponse.from_campaign(campaign)


@router.get(
    "/{campaign_id}",
    response_model=CampaignResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get a campaign"
)
def get_campaign(
    campaign_id: str,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    """Campaign with plan statistics and the current claim counter."""
    return CampaignResponse.from_campaign(service.get_campaign(capability, campaign_id))


@router.post(
    "/{campaign_id}/deactivate",
    response_model=CampaignResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Deactivate a campaign"
)
def deactivate_campaign(
    campaign_id: str,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    """
    Close a campaign for new registrations.

    Participants that already claimed a bucket keep scoring.
    """
    return CampaignResponse.from_campaign(service.deactivate_campaign(capability, campaign_id))


@router.get(
    "/{campaign_id}/judgements",
    response_model=JudgementListResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="List campaign judgements"
)
def list_judgements(
    campaign_id: str,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    judgements = service.list_judgements(capability, campaign_id)
    return JudgementListResponse(
        campaign_id=campaign_id,
        judgements=[JudgementResponse.from_judgement(j) for j in judgements],
        total=len(judgements),
    )


@router.post(
    "/{campaign_id}/participants",
    response_model=ParticipantResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
    },
    summary="Register a participant",
    description=(
        "Claim the next bucket of the campaign for an identity. "
        "Registering the same identity again returns the existing participant."
    )
)
def register_participant(
    campaign_id: str,
    request: ParticipantRegister,
    response: Response,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    result = service.register_participant(capability, campaign_id, request.identity)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return ParticipantResponse.from_claim(result)
