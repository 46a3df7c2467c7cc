"""Event challenge schemas."""
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import AliasChoices, Field, computed_field, field_validator, model_validator

from questlog.schemas.base import BaseSchema, FrozenSchema, first_present
from questlog.schemas.card import CollectibleCard


class ChallengeMode(str, Enum):
    """How a challenge's progress is computed."""
    SIMPLE = "simple"
    QUESTLINE = "questline"


class ChallengeStatus(str, Enum):
    """Per-player challenge status."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CLAIMED = "claimed"


class ChallengeReward(FrozenSchema):
    """Reward descriptor: XP plus an optional physical card claimed on site."""
    xp: int = Field(default=0, ge=0)
    type: str = "physical_card"
    card_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("card_id", "cardId"))
    claim_location: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("claim_location", "claimLocation")
    )
    special: Optional[str] = None


class ChallengeDefinition(FrozenSchema):
    """Static challenge template."""
    id: str
    key: Optional[str] = None
    title: str
    description: str = ""
    long_description: str = Field(default="", validation_alias=AliasChoices("long_description", "longDescription"))
    type: str = "quest_count"
    tier: str = "bronze"
    icon: Optional[str] = None
    progress_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("progress_key", "progressKey"))
    target: int = Field(default=1, ge=0, validation_alias=AliasChoices("target", "target_value", "targetValue"))
    reward: ChallengeReward = ChallengeReward()
    mode: ChallengeMode = Field(
        default=ChallengeMode.SIMPLE, validation_alias=AliasChoices("mode", "challenge_mode", "challengeMode")
    )
    requires_scan: bool = Field(default=False, validation_alias=AliasChoices("requires_scan", "requiresScan"))

    @model_validator(mode="before")
    @classmethod
    def normalize_payload(cls, data: Any) -> Any:
        """Fold the reward XP (``xp_reward``/``xpReward``/``scoreReward``) into ``reward.xp``."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        reward = data.get("reward")
        if isinstance(reward, ChallengeReward):
            return data
        reward = dict(reward or {})
        if reward.get("xp") is None:
            reward["xp"] = first_present(data, "xp_reward", "xpReward", "scoreReward", "score_reward", default=0)
        if reward.get("card_id") is None and reward.get("cardId") is None:
            card_id = first_present(data, "card_id", "cardId", "reward_card_id")
            if card_id is not None:
                reward["card_id"] = card_id
        data["reward"] = reward
        return data

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: Any) -> Any:
        # "progress" is the older name for simple challenges
        if value is None or value == "progress":
            return ChallengeMode.SIMPLE
        return value

    @property
    def xp_reward(self) -> int:
        return self.reward.xp


class UserChallengeRecord(FrozenSchema):
    """Per-player persisted challenge status."""
    challenge_id: str = Field(validation_alias=AliasChoices("challenge_id", "challengeId"))
    status: ChallengeStatus = ChallengeStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None


class QuestlineQuest(FrozenSchema):
    """One quest in a questline, with this player's status."""
    quest_id: str
    challenge_id: Optional[str] = None
    sequence_order: int = 0
    title: str = ""
    description: str = ""
    bonus_xp: int = 0
    is_required: bool = True
    status: str = "locked"
    completed_at: Optional[datetime] = None


class QuestlineProgress(FrozenSchema):
    """Progress through a questline challenge."""
    challenge_id: str
    completed: int = 0
    total: int = 0
    quests: tuple[QuestlineQuest, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.completed >= self.total

    @property
    def is_started(self) -> bool:
        return len(self.quests) > 0

    @classmethod
    def from_rows(cls, challenge_id: str, rows: Iterable[dict[str, Any]]) -> "QuestlineProgress":
        """Build progress from ordered per-quest status rows."""
        quests = sorted(
            (QuestlineQuest.model_validate({"challenge_id": challenge_id, **row}) for row in rows),
            key=lambda q: q.sequence_order,
        )
        completed = sum(1 for q in quests if q.status == "completed")
        return cls(challenge_id=challenge_id, completed=completed, total=len(quests), quests=tuple(quests))


class ChallengeProgress(FrozenSchema):
    """Output of a progress rule evaluation."""
    current_progress: int = Field(ge=0)
    target: int = Field(ge=0)
    is_completed: bool

    @model_validator(mode="after")
    def check_completion(self):
        if self.is_completed != (self.current_progress >= self.target):
            raise ValueError("is_completed must equal current_progress >= target")
        return self


class MergedChallengeView(FrozenSchema):
    """A challenge definition folded together with computed progress and stored status."""
    challenge: ChallengeDefinition
    current_progress: int
    target: int
    is_completed: bool
    is_claimed: bool
    status: ChallengeStatus
    claimed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    questline_quests: tuple[QuestlineQuest, ...] = ()

    @model_validator(mode="after")
    def check_claimed_implies_completed(self):
        if self.is_claimed and not self.is_completed:
            raise ValueError("a claimed challenge must be completed")
        return self

    @property
    def id(self) -> str:
        return self.challenge.id

    @computed_field
    @property
    def is_claimable(self) -> bool:
        return self.is_completed and not self.is_claimed


class ChallengeListResponse(BaseSchema):
    """Challenges in display order with counts."""
    challenges: list[MergedChallengeView]
    total_count: int
    claimable_count: int
    in_progress_count: int
    claimed_count: int


class QuestlineDetailResponse(BaseSchema):
    """Questline quests with this player's status and a summary."""
    challenge_id: str
    quests: list[QuestlineQuest]
    total: int
    completed: int
    is_complete: bool


class ClaimChallengeResponse(BaseSchema):
    """Response after claiming a challenge reward."""
    success: bool
    challenge_id: str
    xp_awarded: int
    card: Optional[CollectibleCard] = None
    claim_location: Optional[str] = None
    new_xp: Optional[int] = None


class RemoteClaimResult(BaseSchema):
    """What the game backend reports after a claim."""
    xp_awarded: int = Field(default=0, validation_alias=AliasChoices("xp_awarded", "xpAwarded"))
    new_xp: Optional[int] = Field(default=None, validation_alias=AliasChoices("new_xp", "newXp"))


class QuestlineAdvance(BaseSchema):
    """What the game backend reports after a questline quest is completed."""
    next_quest_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("next_quest_id", "nextQuestId"))
    is_challenge_complete: bool = Field(
        default=False, validation_alias=AliasChoices("is_challenge_complete", "isChallengeComplete")
    )
    total_quests: int = Field(default=0, validation_alias=AliasChoices("total_quests", "totalQuests"))
    completed_quests: int = Field(default=0, validation_alias=AliasChoices("completed_quests", "completedQuests"))


class QuestlineAdvanceResponse(BaseSchema):
    """Response after completing one quest of a questline."""
    challenge_id: str
    quest_id: str
    next_quest_id: Optional[str] = None
    completed: int
    total: int
    is_complete: bool
    challenge: MergedChallengeView
