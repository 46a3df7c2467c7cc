"""Admin action schemas."""
from typing import Optional

from pydantic import AliasChoices, Field

from questlog.schemas.base import BaseSchema
from questlog.schemas.quest import QuestStatus


class AdminActionResult(BaseSchema):
    """Result of an admin call against the game backend."""
    xp_awarded: int = Field(default=0, validation_alias=AliasChoices("xp_awarded", "xpAwarded"))
    message: Optional[str] = None


class AdminResetQuestRequest(BaseSchema):
    """Which list the quest is reset out of."""
    status: QuestStatus = QuestStatus.COMPLETED
    confirm: bool = False


class AdminConfirmRequest(BaseSchema):
    """Explicit confirmation for a destructive admin action."""
    confirm: bool = False


class AdminActionResponse(BaseSchema):
    """Response after an admin action."""
    success: bool
    action: str
    user_id: str
    target_id: str
    xp_awarded: int = 0
    message: Optional[str] = None
