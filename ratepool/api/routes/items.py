"""
Catalog item endpoints.
"""

from fastapi import APIRouter, Depends

from ratepool.api.schemas import WithdrawResponse, ErrorResponse
from ratepool.api.dependencies import get_capability, get_service
from ratepool.core.models import Capability
from ratepool.scheduling.service import SchedulerService


router = APIRouter(prefix="/items", tags=["items"])


@router.post(
    "/{item_id}/withdraw",
    response_model=WithdrawResponse,
    responses={403: {"model": ErrorResponse}},
    summary="Withdraw an item",
    description=(
        "Remove an item from the catalog. Pending assignments of the item "
        "are cancelled and it is never served again."
    )
)
def withdraw_item(
    item_id: str,
    capability: Capability = Depends(get_capability),
    service: SchedulerService = Depends(get_service),
):
    cancelled = service.withdraw_item(capability, item_id)
    return WithdrawResponse(item_id=item_id, cancelled=cancelled)
