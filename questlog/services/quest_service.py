"""Quest service: quest log view, start, progress, code redemption and admin overrides."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from questlog.schemas.admin import AdminActionResponse
from questlog.schemas.quest import (
    CodeRedemptionResult,
    QuestCategories,
    QuestDefinition,
    QuestInstance,
    QuestLogResponse,
    QuestStatus,
)
from questlog.services.errors import AlreadyStarted, NotFound, ValidationError
from questlog.services.player_stats import build_quest_stats
from questlog.services.quest_log_service_base import QuestLogServiceBase
from questlog.utils.datetime_helpers import utc_now

logger = logging.getLogger(__name__)


class QuestService(QuestLogServiceBase):
    """Service for a player's quests."""

    @property
    def subject(self) -> str:
        return "quest"

    def _find_definition(self, quest_id: str) -> Optional[QuestDefinition]:
        return next(
            (d for d in self.snapshot.quest_definitions if d.id == quest_id or d.key == quest_id),
            None,
        )

    def _find_instance(self, quest_id: str, status: Optional[QuestStatus] = None) -> Optional[QuestInstance]:
        return next(
            (
                quest for quest in self.snapshot.quests
                if quest.quest_id == quest_id and (status is None or quest.status == status)
            ),
            None,
        )

    async def quest_log(self, now: Optional[datetime] = None) -> QuestLogResponse:
        """The player's quests grouped for display."""
        snapshot = await self.ensure_loaded()
        now = now or utc_now()

        started_ids = {quest.quest_id for quest in snapshot.quests}
        expired = [quest for quest in snapshot.quests if quest.is_expired(now)]
        expired_ids = {quest.id for quest in expired}
        active = [quest for quest in snapshot.active_quests if quest.id not in expired_ids]
        return QuestLogResponse(
            active=active,
            categories=QuestCategories.from_active(active),
            completed=snapshot.completed_quests,
            available=[d for d in snapshot.quest_definitions if d.id not in started_ids],
            expired=expired,
            stats=build_quest_stats(snapshot.quests, now),
        )

    async def start_quest(self, quest_id: str) -> QuestInstance:
        """Start a quest from its definition."""
        await self.ensure_loaded()
        definition = self._find_definition(quest_id)
        if definition is None:
            raise NotFound(f"Quest {quest_id} not found")

        existing = self._find_instance(definition.id)
        if existing is not None and existing.status in (QuestStatus.ACTIVE, QuestStatus.COMPLETED):
            raise AlreadyStarted(f"Quest {definition.id} is already {existing.status.value}")

        expires_at = None
        if definition.expires_in_seconds:
            expires_at = utc_now() + timedelta(seconds=definition.expires_in_seconds)

        instance = await self.api.start_quest(self.user_id, definition.id, expires_at)
        logger.info(f"Quest {definition.id} started for user_id={self.user_id} ({instance.id=})")
        await self.refresh()
        return next((quest for quest in self.snapshot.quests if quest.id == instance.id), instance)

    async def update_progress(self, instance_id: str, progress: int) -> QuestInstance:
        """Record quest progress, clamped to the target; reaching it completes the quest."""
        if progress < 0:
            raise ValidationError("Progress cannot be negative")

        await self.ensure_loaded()
        instance = next((quest for quest in self.snapshot.quests if quest.id == instance_id), None)
        if instance is None:
            raise NotFound(f"Quest instance {instance_id} not found")
        if instance.status != QuestStatus.ACTIVE:
            raise ValidationError(f"Quest instance {instance_id} is not active")

        clamped = min(progress, instance.target)
        status = QuestStatus.COMPLETED if clamped >= instance.target else QuestStatus.ACTIVE
        completed_at = utc_now() if status == QuestStatus.COMPLETED else None
        await self.api.update_quest_progress(self.user_id, instance_id, clamped, status, completed_at)
        if status == QuestStatus.COMPLETED:
            logger.info(f"Quest instance {instance_id=} completed for user_id={self.user_id}")
        await self.refresh()
        updated = next((quest for quest in self.snapshot.quests if quest.id == instance_id), None)
        return updated or instance.model_copy(update={"progress": clamped, "status": status})

    async def redeem_code(self, code: str) -> CodeRedemptionResult:
        """Redeem a scanned quest code."""
        code = (code or "").strip()
        if not code:
            raise ValidationError("Code is required")

        result = await self.api.redeem_quest_code(self.user_id, code)
        await self.refresh()
        return result

    # Admin overrides

    async def admin_complete_quest(self, quest_id: str) -> AdminActionResponse:
        self._require_admin("complete")
        await self.ensure_loaded()
        if self._find_definition(quest_id) is None and self._find_instance(quest_id) is None:
            raise NotFound(f"Quest {quest_id} not found")
        return await self._run_admin_action(
            "complete",
            quest_id,
            "Mark this quest as completed and award its XP?",
            lambda: self.api.admin_complete_quest(self.user_id, quest_id),
        )

    async def admin_uncomplete_quest(self, quest_id: str) -> AdminActionResponse:
        self._require_admin("uncomplete")
        await self.ensure_loaded()
        if self._find_instance(quest_id, QuestStatus.COMPLETED) is None:
            raise NotFound(f"Quest {quest_id} is not completed")
        return await self._run_admin_action(
            "uncomplete",
            quest_id,
            "Move this quest back to active and remove its XP?",
            lambda: self.api.admin_uncomplete_quest(self.user_id, quest_id),
        )

    async def admin_reset_quest(
        self, quest_id: str, status: QuestStatus = QuestStatus.COMPLETED
    ) -> AdminActionResponse:
        """Remove a quest from the player's ``status`` list; completed quests lose their XP."""
        self._require_admin("reset")
        await self.ensure_loaded()
        if self._find_instance(quest_id, status) is None:
            raise NotFound(f"Quest {quest_id} is not {status.value}")
        xp_note = " and remove its XP" if status == QuestStatus.COMPLETED else ""
        return await self._run_admin_action(
            "reset",
            quest_id,
            f"Reset this quest{xp_note}?",
            lambda: self.api.admin_reset_quest(self.user_id, quest_id, status),
        )
