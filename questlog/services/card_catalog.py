"""Collectible card catalog used to resolve challenge card rewards."""
import logging
from typing import Dict, Optional

from questlog.schemas.card import CardRarity, CollectibleCard

logger = logging.getLogger(__name__)


CARD_CATALOG: Dict[str, CollectibleCard] = {
    card.id: card
    for card in (
        CollectibleCard(
            id="card_001",
            name="Urban Explorer",
            description="The first steps of every journey through the city.",
            rarity=CardRarity.COMMON,
            category="explorer",
            power=10,
        ),
        CollectibleCard(
            id="card_013",
            name="Neon Sprinter",
            description="Fast through the neon-lit streets.",
            rarity=CardRarity.RARE,
            category="explorer",
            power=35,
        ),
        CollectibleCard(
            id="card_014",
            name="Social Butterfly",
            description="Knows everyone, and everyone knows them.",
            rarity=CardRarity.RARE,
            category="social",
            power=32,
        ),
        CollectibleCard(
            id="card_016",
            name="Underground Guide",
            description="Finds the hidden ways beneath the city.",
            rarity=CardRarity.RARE,
            category="explorer",
            power=34,
        ),
        CollectibleCard(
            id="card_018",
            name="Culinary Artist",
            description="Tasted every stand on the grounds.",
            rarity=CardRarity.RARE,
            category="culture",
            power=30,
        ),
        CollectibleCard(
            id="card_019",
            name="Event Crasher",
            description="Shows up wherever something is happening.",
            rarity=CardRarity.RARE,
            category="social",
            power=33,
        ),
        CollectibleCard(
            id="card_020",
            name="Vintage Hunter",
            description="Collector of things with a story.",
            rarity=CardRarity.RARE,
            category="culture",
            power=31,
        ),
        CollectibleCard(
            id="card_021",
            name="Streak Master",
            description="Comes back day after day.",
            rarity=CardRarity.RARE,
            category="dedication",
            power=36,
        ),
        CollectibleCard(
            id="card_023",
            name="Vibe Master",
            description="Sets the mood of every crowd.",
            rarity=CardRarity.EPIC,
            category="social",
            power=55,
        ),
        CollectibleCard(
            id="card_025",
            name="Urban Shaman",
            description="Reads the city like an old map.",
            rarity=CardRarity.EPIC,
            category="mystic",
            power=58,
        ),
        CollectibleCard(
            id="card_026",
            name="Shadow Walker",
            description="Moves unseen between the districts.",
            rarity=CardRarity.EPIC,
            category="mystic",
            power=57,
        ),
        CollectibleCard(
            id="card_028",
            name="City Legend",
            description="Only the best earn this one.",
            rarity=CardRarity.LEGENDARY,
            category="legend",
            power=90,
        ),
    )
}


def get_card(card_id: Optional[str]) -> Optional[CollectibleCard]:
    """Resolve a card reference by id; unknown ids resolve to ``None``."""
    if not card_id:
        return None
    card = CARD_CATALOG.get(card_id)
    if card is None:
        logger.warning(f"Unknown collectible card reference {card_id=}")
    return card
