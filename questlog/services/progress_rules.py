"""Progress rule evaluation for event challenges.

Every rule is a pure function of a ``PlayerStatsSnapshot``: no I/O, no side
effects, total over well-formed snapshots. Missing statistics count as zero
and unknown progress keys evaluate to zero progress.
"""
from typing import Callable, Dict, Mapping, Optional

from questlog.schemas.challenge import (
    ChallengeDefinition,
    ChallengeMode,
    ChallengeProgress,
    QuestlineProgress,
)
from questlog.schemas.player import PlayerStatsSnapshot

StatAccessor = Callable[[PlayerStatsSnapshot], int]


def _country(field: str, country: str) -> StatAccessor:
    def accessor(stats: PlayerStatsSnapshot) -> int:
        return getattr(stats, field).get(country, 0)
    return accessor


PROGRESS_RULES: Dict[str, StatAccessor] = {
    "completedQuests": lambda stats: stats.total_completed,
    "friendCount": lambda stats: stats.friend_count,
    "friendTeams": lambda stats: len(set(stats.friend_teams)),
    "workshopVisited": lambda stats: 1 if stats.workshop_visited else 0,
    "dailyStreak": lambda stats: stats.current_streak,
    "uniqueCards": lambda stats: stats.unique_cards,
    "collectedCards": lambda stats: stats.collected_cards,
    "networkingFrance": _country("networking_by_country", "france"),
    "networkingEngland": _country("networking_by_country", "england"),
    "networkingLuxembourg": _country("networking_by_country", "luxembourg"),
    "exploredGermany": _country("explored_by_country", "germany"),
    "adventureGreece": _country("adventure_by_country", "greece"),
    "vikingScandinavia": _country("adventure_by_country", "scandinavia"),
}

# Alternate spellings used by newer challenge rows
PROGRESS_RULES.update({
    "completed_quests": PROGRESS_RULES["completedQuests"],
    "totalCompleted": PROGRESS_RULES["completedQuests"],
    "total_completed": PROGRESS_RULES["completedQuests"],
    "friend_count": PROGRESS_RULES["friendCount"],
    "friend_teams": PROGRESS_RULES["friendTeams"],
    "workshop_visited": PROGRESS_RULES["workshopVisited"],
    "daily_streak": PROGRESS_RULES["dailyStreak"],
    "unique_cards": PROGRESS_RULES["uniqueCards"],
    "collected_cards": PROGRESS_RULES["collectedCards"],
})


def stat_value(progress_key: Optional[str], stats: PlayerStatsSnapshot) -> int:
    """Current value of the statistic a progress key refers to."""
    accessor = PROGRESS_RULES.get(progress_key or "")
    if accessor is None:
        return 0
    return max(int(accessor(stats) or 0), 0)


def evaluate(
    challenge: ChallengeDefinition,
    stats: PlayerStatsSnapshot,
    questline: Optional[QuestlineProgress] = None,
) -> ChallengeProgress:
    """Evaluate a challenge's progress rule.

    Questline challenges count completed questline quests against the number
    of quests in the line, falling back to the definition target (or 1) when
    the line has not been initialized for this player.
    """
    if challenge.mode == ChallengeMode.QUESTLINE:
        completed = questline.completed if questline else 0
        target = (questline.total if questline else 0) or challenge.target or 1
        return ChallengeProgress(current_progress=completed, target=target, is_completed=completed >= target)

    current = stat_value(challenge.progress_key, stats)
    return ChallengeProgress(
        current_progress=current,
        target=challenge.target,
        is_completed=current >= challenge.target,
    )


def evaluate_all(
    challenges: list[ChallengeDefinition],
    stats: PlayerStatsSnapshot,
    questline_progress: Optional[Mapping[str, QuestlineProgress]] = None,
) -> list[tuple[ChallengeDefinition, ChallengeProgress]]:
    """Evaluate every challenge, preserving source order."""
    questline_progress = questline_progress or {}
    return [(challenge, evaluate(challenge, stats, questline_progress.get(challenge.id))) for challenge in challenges]
