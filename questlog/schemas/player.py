"""Player profile and statistics schemas."""
import math
from typing import Any, Optional

from pydantic import AliasChoices, Field, computed_field, field_validator

from questlog.schemas.base import BaseSchema, FrozenSchema


def level_for_xp(xp: int) -> int:
    """Player level for a total XP amount: ``floor(sqrt(xp / 100)) + 1``."""
    return math.floor(math.sqrt(max(xp, 0) / 100)) + 1


class PlayerProfile(FrozenSchema):
    """Player profile as returned by the game backend."""
    id: str
    username: str = "User"
    display_name: str = Field(default="New Player", validation_alias=AliasChoices("display_name", "displayName"))
    email: Optional[str] = None
    xp: int = 0
    login_streak: int = Field(default=0, validation_alias=AliasChoices("login_streak", "loginStreak"))
    friends_count: int = Field(default=0, validation_alias=AliasChoices("friends_count", "friendsCount"))
    friend_teams: tuple[str, ...] = Field(default=(), validation_alias=AliasChoices("friend_teams", "friendTeams"))
    collected_card_ids: tuple[str, ...] = Field(
        default=(), validation_alias=AliasChoices("collected_card_ids", "collectedCardIds", "collection")
    )
    workshop_visited: bool = Field(default=False, validation_alias=AliasChoices("workshop_visited", "workshopVisited"))
    networking_by_country: dict[str, int] = Field(
        default_factory=dict, validation_alias=AliasChoices("networking_by_country", "networkingByCountry")
    )
    explored_by_country: dict[str, int] = Field(
        default_factory=dict, validation_alias=AliasChoices("explored_by_country", "exploredByCountry")
    )
    adventure_by_country: dict[str, int] = Field(
        default_factory=dict, validation_alias=AliasChoices("adventure_by_country", "adventureByCountry")
    )
    is_admin: bool = False

    @field_validator("xp", "login_streak", "friends_count", mode="before")
    @classmethod
    def none_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @computed_field
    @property
    def level(self) -> int:
        return level_for_xp(self.xp)


class PlayerStatsSnapshot(FrozenSchema):
    """Aggregate player statistics, the read-only input to challenge progress rules."""
    total_completed: int = 0
    friend_count: int = 0
    friend_teams: tuple[str, ...] = ()
    workshop_visited: bool = False
    current_streak: int = 0
    unique_cards: int = 0
    collected_cards: int = 0
    networking_by_country: dict[str, int] = Field(default_factory=dict)
    explored_by_country: dict[str, int] = Field(default_factory=dict)
    adventure_by_country: dict[str, int] = Field(default_factory=dict)


class CurrentUser(BaseSchema):
    """Identity behind an access token."""
    id: str
    email: Optional[str] = None
    is_admin: bool = False


class CallerIdentity(FrozenSchema):
    """The authenticated caller of an operation."""
    user_id: str
    email: Optional[str] = None
    is_admin: bool = False
    access_token: Optional[str] = Field(default=None, repr=False)
