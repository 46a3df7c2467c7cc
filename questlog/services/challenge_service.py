"""Event challenge service: merged views, start, claim and admin overrides."""

import logging
from typing import List, Optional

from questlog.schemas.admin import AdminActionResponse
from questlog.schemas.challenge import (
    ChallengeListResponse,
    ChallengeMode,
    ChallengeStatus,
    ClaimChallengeResponse,
    MergedChallengeView,
    QuestlineAdvanceResponse,
    QuestlineDetailResponse,
)
from questlog.services.card_catalog import get_card
from questlog.services.challenge_merger import filter_views, sort_for_display
from questlog.services.errors import AlreadyStarted, NotClaimable, NotFound, RemoteFailure, ValidationError
from questlog.services.quest_log_service_base import QuestLogServiceBase
from questlog.services.quest_log_store import ClaimRecorded, ClaimRevoked

logger = logging.getLogger(__name__)


class ChallengeService(QuestLogServiceBase):
    """Service for a player's event challenges."""

    @property
    def subject(self) -> str:
        return "challenge"

    async def list_challenges(
        self,
        *,
        type: Optional[str] = None,
        tier: Optional[str] = None,
        mode: Optional[ChallengeMode] = None,
    ) -> ChallengeListResponse:
        """Challenges in display order (claimable, in progress, claimed) with counts."""
        snapshot = await self.ensure_loaded()
        views = sort_for_display(filter_views(snapshot.challenge_views(), type=type, tier=tier, mode=mode))
        return ChallengeListResponse(
            challenges=views,
            total_count=len(views),
            claimable_count=sum(1 for view in views if view.is_claimable),
            in_progress_count=sum(1 for view in views if view.status == ChallengeStatus.IN_PROGRESS),
            claimed_count=sum(1 for view in views if view.is_claimed),
        )

    async def claimable(self) -> List[MergedChallengeView]:
        snapshot = await self.ensure_loaded()
        return [view for view in snapshot.challenge_views() if view.is_claimable]

    async def get_challenge(self, challenge_id: str) -> MergedChallengeView:
        snapshot = await self.ensure_loaded()
        view = snapshot.challenge_view(challenge_id)
        if view is None:
            raise NotFound(f"Challenge {challenge_id} not found")
        return view

    async def get_status(self, challenge_id: str) -> ChallengeStatus:
        return (await self.get_challenge(challenge_id)).status

    async def questline_details(self, challenge_id: str) -> QuestlineDetailResponse:
        """Ordered questline quests with this player's status on each."""
        view = await self.get_challenge(challenge_id)
        if view.challenge.mode != ChallengeMode.QUESTLINE:
            raise ValidationError(f"Challenge {challenge_id} is not a questline")

        quests = await self.api.fetch_challenge_quests(challenge_id)
        user_rows = {quest.quest_id: quest for quest in view.questline_quests}
        merged = []
        for quest in quests:
            user_row = user_rows.get(quest.quest_id)
            merged.append(
                quest.model_copy(
                    update={
                        "status": user_row.status if user_row else "locked",
                        "completed_at": user_row.completed_at if user_row else None,
                    }
                )
            )
        completed = sum(1 for quest in merged if quest.status == "completed")
        return QuestlineDetailResponse(
            challenge_id=challenge_id,
            quests=merged,
            total=len(merged),
            completed=completed,
            is_complete=len(merged) > 0 and completed >= len(merged),
        )

    async def start(self, challenge_id: str) -> MergedChallengeView:
        """Start a challenge; only allowed from ``not_started``.

        Questline challenges get their per-quest progress rows created instead
        of a plain start record.
        """
        view = await self.get_challenge(challenge_id)
        if view.status != ChallengeStatus.NOT_STARTED:
            raise AlreadyStarted(f"Challenge {challenge_id} is already {view.status.value}")

        if view.challenge.mode == ChallengeMode.QUESTLINE:
            await self.api.initialize_questline_progress(self.user_id, challenge_id)
        else:
            await self.api.start_challenge(self.user_id, challenge_id)
        await self.refresh()
        return await self.get_challenge(challenge_id)

    async def complete_questline_quest(self, challenge_id: str, quest_id: str) -> QuestlineAdvanceResponse:
        """Complete one quest of a started questline and move on to the next."""
        view = await self.get_challenge(challenge_id)
        if view.challenge.mode != ChallengeMode.QUESTLINE:
            raise ValidationError(f"Challenge {challenge_id} is not a questline")
        if view.status == ChallengeStatus.NOT_STARTED:
            raise ValidationError(f"Challenge {challenge_id} has not been started")
        quest = next((q for q in view.questline_quests if q.quest_id == quest_id), None)
        if quest is None:
            raise NotFound(f"Quest {quest_id} is not part of challenge {challenge_id}")
        if quest.status == "completed":
            raise AlreadyStarted(f"Quest {quest_id} is already completed")

        advance = await self.api.complete_questline_quest(self.user_id, challenge_id, quest_id)
        logger.info(
            f"Questline quest {quest_id=} completed in {challenge_id=} for user_id={self.user_id} "
            f"({advance.completed_quests}/{advance.total_quests}, next={advance.next_quest_id})"
        )
        await self.refresh()
        return QuestlineAdvanceResponse(
            challenge_id=challenge_id,
            quest_id=quest_id,
            next_quest_id=advance.next_quest_id,
            completed=advance.completed_quests,
            total=advance.total_quests,
            is_complete=advance.is_challenge_complete,
            challenge=await self.get_challenge(challenge_id),
        )

    async def claim(self, challenge_id: str) -> ClaimChallengeResponse:
        """
        Claim a completed challenge's reward.

        Returns:
            The XP awarded and the collectible card to pick up, if any

        Raises:
            NotClaimable: The challenge is not completed or already claimed
        """
        view = await self.get_challenge(challenge_id)
        if not view.is_claimable:
            reason = "already claimed" if view.is_claimed else "not completed"
            raise NotClaimable(f"Challenge {challenge_id} is {reason}")

        challenge = view.challenge
        result = await self.api.claim_event_challenge(
            self.user_id,
            challenge_id,
            challenge.xp_reward,
            challenge.model_dump(mode="json"),
        )
        card = get_card(challenge.reward.card_id)
        logger.info(
            f"Challenge {challenge_id=} claimed by user_id={self.user_id} "
            f"(xp_awarded={result.xp_awarded}, card={card.id if card else None})"
        )
        self.store.dispatch(ClaimRecorded(challenge_id))
        try:
            await self.refresh()
        except RemoteFailure as e:
            # the award went through; keep showing it as claimed until a refresh succeeds
            logger.warning(f"Refresh after claiming {challenge_id=} failed: {e.message}")
        return ClaimChallengeResponse(
            success=True,
            challenge_id=challenge_id,
            xp_awarded=result.xp_awarded,
            card=card,
            claim_location=challenge.reward.claim_location,
            new_xp=result.new_xp,
        )

    # Admin overrides

    async def admin_complete(self, challenge_id: str) -> AdminActionResponse:
        self._require_admin("complete")
        view = await self.get_challenge(challenge_id)
        return await self._run_admin_action(
            "complete",
            challenge_id,
            f"Mark '{view.challenge.title}' as completed for this player?",
            lambda: self.api.admin_complete_challenge(self.user_id, challenge_id),
        )

    async def admin_uncomplete(self, challenge_id: str) -> AdminActionResponse:
        """Revert a completed challenge to not started, taking back its XP."""
        self._require_admin("uncomplete")
        view = await self.get_challenge(challenge_id)
        if not view.is_completed:
            raise ValidationError(f"Challenge {challenge_id} is not completed")
        return await self._run_admin_action(
            "uncomplete",
            challenge_id,
            f"Revert '{view.challenge.title}' and remove {view.challenge.xp_reward} XP?",
            lambda: self.api.admin_uncomplete_challenge(self.user_id, challenge_id),
        )

    async def admin_reset(self, challenge_id: str) -> AdminActionResponse:
        self._require_admin("reset")
        view = await self.get_challenge(challenge_id)
        return await self._run_admin_action(
            "reset",
            challenge_id,
            f"Reset all progress on '{view.challenge.title}' for this player?",
            lambda: self.api.admin_reset_challenge(self.user_id, challenge_id),
        )

    async def _after_admin_action(self, action: str, target_id: str) -> None:
        if action in ("uncomplete", "reset"):
            self.store.dispatch(ClaimRevoked(target_id))
