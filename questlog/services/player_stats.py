"""Aggregate player statistics from quests and profile data."""
from datetime import datetime, timedelta
from typing import Iterable, Optional

from questlog.schemas.player import PlayerProfile, PlayerStatsSnapshot
from questlog.schemas.quest import QuestInstance, QuestStats, QuestStatus
from questlog.utils.datetime_helpers import is_same_utc_day, is_within_last


def build_player_stats(
    quests: Iterable[QuestInstance],
    profile: Optional[PlayerProfile],
) -> PlayerStatsSnapshot:
    """Recompute the statistics snapshot that challenge rules read."""
    total_completed = sum(1 for quest in quests if quest.status == QuestStatus.COMPLETED)
    if profile is None:
        return PlayerStatsSnapshot(total_completed=total_completed)

    unique_cards = len(set(profile.collected_card_ids))
    return PlayerStatsSnapshot(
        total_completed=total_completed,
        friend_count=profile.friends_count,
        friend_teams=profile.friend_teams,
        workshop_visited=profile.workshop_visited,
        current_streak=profile.login_streak,
        unique_cards=unique_cards,
        collected_cards=len(profile.collected_card_ids),
        networking_by_country=profile.networking_by_country,
        explored_by_country=profile.explored_by_country,
        adventure_by_country=profile.adventure_by_country,
    )


def build_quest_stats(quests: Iterable[QuestInstance], now: datetime) -> QuestStats:
    """Quest log counters relative to ``now``."""
    quests = list(quests)
    completed = [quest for quest in quests if quest.status == QuestStatus.COMPLETED]
    return QuestStats(
        total_active=sum(1 for quest in quests if quest.status == QuestStatus.ACTIVE),
        total_completed=len(completed),
        daily_completed=sum(1 for quest in completed if is_same_utc_day(quest.completed_at, now)),
        weekly_completed=sum(1 for quest in completed if is_within_last(quest.completed_at, timedelta(days=7), now)),
    )
