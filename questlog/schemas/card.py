"""Collectible card schemas."""
from enum import Enum

from questlog.schemas.base import FrozenSchema


class CardRarity(str, Enum):
    """Card rarity, in ascending order."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class CollectibleCard(FrozenSchema):
    """A collectible card that challenges hand out as rewards."""
    id: str
    name: str
    description: str = ""
    rarity: CardRarity = CardRarity.COMMON
    category: str = "explorer"
    power: int = 0
