"""Quest endpoints."""
import logging

from fastapi import APIRouter, Depends

from questlog.dependencies import get_quest_service
from questlog.schemas.quest import (
    CodeRedemptionResult,
    QuestInstance,
    QuestLogResponse,
    RedeemCodeRequest,
    UpdateQuestProgressRequest,
)
from questlog.services.quest_service import QuestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quests", tags=["quests"])


@router.get("", response_model=QuestLogResponse)
async def get_quest_log(service: QuestService = Depends(get_quest_service)):
    """Get the caller's quests grouped by status, with counters."""
    return await service.quest_log()


@router.post("/redeem", response_model=CodeRedemptionResult)
async def redeem_code(request: RedeemCodeRequest, service: QuestService = Depends(get_quest_service)):
    """Redeem a scanned quest code."""
    return await service.redeem_code(request.code)


@router.post("/instances/{instance_id}/progress", response_model=QuestInstance)
async def update_progress(
    instance_id: str,
    request: UpdateQuestProgressRequest,
    service: QuestService = Depends(get_quest_service),
):
    return await service.update_progress(instance_id, request.progress)


@router.post("/{quest_id}/start", response_model=QuestInstance)
async def start_quest(quest_id: str, service: QuestService = Depends(get_quest_service)):
    return await service.start_quest(quest_id)
