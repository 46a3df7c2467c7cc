"""Quest-related Pydantic schemas."""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, Field, model_validator

from questlog.schemas.base import BaseSchema, FrozenSchema, first_present
from questlog.utils.datetime_helpers import ensure_utc


class QuestStatus(str, Enum):
    """Player-side quest status."""
    AVAILABLE = "available"
    ACTIVE = "active"
    COMPLETED = "completed"


class QuestType(str, Enum):
    """How a quest is progressed."""
    LOCATION = "location"
    SOCIAL = "social"
    SCAN = "scan"
    DAILY = "daily"
    TIMED = "timed"
    COLLECT = "collect"
    CHALLENGE = "challenge"
    POI = "poi"


class QuestDifficulty(str, Enum):
    """Quest difficulty."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestReward(FrozenSchema):
    """Reward granted on quest completion."""
    xp: int = Field(default=0, ge=0)
    gems: int = Field(default=0, ge=0)


def _fold_quest_reward(data: dict[str, Any]) -> dict[str, Any]:
    """Collapse flat reward columns into the ``reward`` object."""
    reward = data.get("reward")
    if isinstance(reward, (dict, QuestReward)):
        return data
    data["reward"] = {
        "xp": first_present(data, "xp_reward", "xpReward", "xp", default=0),
        "gems": first_present(data, "gem_reward", "gemReward", "gems", default=0),
    }
    return data


class QuestDefinition(FrozenSchema):
    """Static quest template."""
    id: str
    key: Optional[str] = None
    title: str = Field(validation_alias=AliasChoices("title", "name"))
    description: str = ""
    reward: QuestReward = QuestReward()
    type: QuestType = QuestType.LOCATION
    category: Optional[str] = None
    target: int = Field(default=1, ge=1, validation_alias=AliasChoices("target", "target_value", "targetValue"))
    difficulty: QuestDifficulty = QuestDifficulty.EASY
    qr_code_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("qr_code_id", "qrCodeId"))
    expires_in_seconds: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("expires_in_seconds", "expiresIn", "time_limit")
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_payload(cls, data: Any) -> Any:
        """Accept the historical field names used by the backend tables."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        metadata = data.get("metadata") or {}
        if data.get("qr_code_id") is None and isinstance(metadata, dict) and metadata.get("qr_code_id"):
            data["qr_code_id"] = metadata["qr_code_id"]
        return _fold_quest_reward(data)


class QuestInstance(FrozenSchema):
    """A player's relationship to a quest definition."""
    id: str
    quest_id: str = Field(validation_alias=AliasChoices("quest_id", "questId"))
    status: QuestStatus = QuestStatus.ACTIVE
    progress: int = Field(default=0, ge=0)
    target: int = Field(default=1, ge=1, validation_alias=AliasChoices("target", "target_value", "targetValue"))
    title: str = Field(default="", validation_alias=AliasChoices("title", "name"))
    description: str = ""
    type: QuestType = QuestType.LOCATION
    category: Optional[str] = None
    is_daily: bool = Field(default=False, validation_alias=AliasChoices("is_daily", "isDaily"))
    reward: QuestReward = QuestReward()
    started_at: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("started_at", "startedAt"))
    completed_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("completed_at", "completedAt")
    )
    expires_at: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("expires_at", "expiresAt"))

    @model_validator(mode="before")
    @classmethod
    def normalize_payload(cls, data: Any) -> Any:
        """Flatten the joined quest row and fold reward columns.

        The backend returns ``user_quests`` rows with the template joined in
        under ``quest`` (or ``quests``); instance fields win over template
        fields with the same name.
        """
        if not isinstance(data, dict):
            return data
        joined = data.get("quest") or data.get("quests")
        if isinstance(joined, dict):
            merged = {k: v for k, v in joined.items() if k != "id"}
            merged.update({k: v for k, v in data.items() if k not in ("quest", "quests")})
            if "quest_id" not in merged and "questId" not in merged and joined.get("id") is not None:
                merged["quest_id"] = joined["id"]
            data = merged
        else:
            data = dict(data)
        return _fold_quest_reward(data)

    @property
    def is_completed(self) -> bool:
        return self.status == QuestStatus.COMPLETED

    def is_expired(self, now: datetime) -> bool:
        """Whether an active quest has passed its expiry."""
        if self.status != QuestStatus.ACTIVE or self.expires_at is None:
            return False
        return ensure_utc(self.expires_at) < ensure_utc(now)


class QuestStats(BaseSchema):
    """Counters shown on the quest log."""
    total_active: int = 0
    total_completed: int = 0
    daily_completed: int = 0
    weekly_completed: int = 0


class QuestCategories(BaseSchema):
    """Active quests grouped the way the quest log tabs show them; a quest can sit in several groups."""
    daily: list[QuestInstance] = []
    story: list[QuestInstance] = []
    challenges: list[QuestInstance] = []
    social: list[QuestInstance] = []
    timed: list[QuestInstance] = []

    @classmethod
    def from_active(cls, quests: list[QuestInstance]) -> "QuestCategories":
        return cls(
            daily=[q for q in quests if q.is_daily or q.category == "daily"],
            story=[q for q in quests if q.category == "story"],
            challenges=[q for q in quests if q.category == "challenge"],
            social=[q for q in quests if q.category == "social"],
            timed=[q for q in quests if q.type == QuestType.TIMED and q.started_at is not None],
        )


class QuestLogResponse(BaseSchema):
    """Quest log view: the player's quests grouped by status."""
    active: list[QuestInstance]
    categories: QuestCategories
    completed: list[QuestInstance]
    available: list[QuestDefinition]
    expired: list[QuestInstance]
    stats: QuestStats


class UpdateQuestProgressRequest(BaseSchema):
    """Request body for a quest progress update."""
    progress: int


class RedeemCodeRequest(BaseSchema):
    """Request body for a scanned quest code."""
    code: str = ""


class CodeRedemptionResult(BaseSchema):
    """Result of redeeming a scanned quest code."""
    quest_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("quest_id", "questId"))
    xp_awarded: int = Field(default=0, validation_alias=AliasChoices("xp_awarded", "xpAwarded"))
    message: Optional[str] = None
