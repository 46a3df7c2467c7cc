"""Event challenge endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from questlog.dependencies import get_challenge_service
from questlog.schemas.challenge import (
    ChallengeListResponse,
    ChallengeMode,
    ClaimChallengeResponse,
    MergedChallengeView,
    QuestlineAdvanceResponse,
    QuestlineDetailResponse,
)
from questlog.services.challenge_service import ChallengeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/challenges", tags=["challenges"])


@router.get("", response_model=ChallengeListResponse)
async def list_challenges(
    type: Optional[str] = None,
    tier: Optional[str] = None,
    mode: Optional[ChallengeMode] = None,
    service: ChallengeService = Depends(get_challenge_service),
):
    """Get the caller's challenges in display order."""
    return await service.list_challenges(type=type, tier=tier, mode=mode)


@router.get("/claimable", response_model=List[MergedChallengeView])
async def get_claimable_challenges(service: ChallengeService = Depends(get_challenge_service)):
    """Get completed but unclaimed challenges."""
    return await service.claimable()


@router.get("/{challenge_id}", response_model=MergedChallengeView)
async def get_challenge(challenge_id: str, service: ChallengeService = Depends(get_challenge_service)):
    return await service.get_challenge(challenge_id)


@router.get("/{challenge_id}/questline", response_model=QuestlineDetailResponse)
async def get_questline(challenge_id: str, service: ChallengeService = Depends(get_challenge_service)):
    """Get the ordered quests of a questline challenge with the caller's status on each."""
    return await service.questline_details(challenge_id)


@router.post("/{challenge_id}/start", response_model=MergedChallengeView)
async def start_challenge(challenge_id: str, service: ChallengeService = Depends(get_challenge_service)):
    return await service.start(challenge_id)


@router.post("/{challenge_id}/claim", response_model=ClaimChallengeResponse)
async def claim_challenge(challenge_id: str, service: ChallengeService = Depends(get_challenge_service)):
    """Claim a completed challenge's XP and card reward."""
    return await service.claim(challenge_id)


@router.post("/{challenge_id}/questline/{quest_id}/complete", response_model=QuestlineAdvanceResponse)
async def complete_questline_quest(
    challenge_id: str,
    quest_id: str,
    service: ChallengeService = Depends(get_challenge_service),
):
    """Complete one quest of a started questline challenge."""
    return await service.complete_questline_quest(challenge_id, quest_id)
