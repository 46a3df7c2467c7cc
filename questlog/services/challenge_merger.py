"""Merge computed challenge progress with stored per-player status records."""
import logging
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional

from questlog.schemas.challenge import (
    ChallengeDefinition,
    ChallengeMode,
    ChallengeProgress,
    ChallengeStatus,
    MergedChallengeView,
    QuestlineProgress,
    UserChallengeRecord,
)

logger = logging.getLogger(__name__)

# Display groups: claim reward first, then in progress, then done.
GROUP_CLAIMABLE = 0
GROUP_IN_PROGRESS = 1
GROUP_CLAIMED = 2


def index_records(records: Iterable[UserChallengeRecord]) -> Dict[str, UserChallengeRecord]:
    """Index records by challenge id; the first record for an id wins."""
    indexed: Dict[str, UserChallengeRecord] = {}
    for record in records:
        if record.challenge_id in indexed:
            logger.warning(f"Duplicate challenge record ignored for {record.challenge_id=}")
            continue
        indexed[record.challenge_id] = record
    return indexed


def derive_status(
    challenge: ChallengeDefinition,
    is_completed: bool,
    is_claimed: bool,
    record: Optional[UserChallengeRecord],
    questline: Optional[QuestlineProgress] = None,
) -> ChallengeStatus:
    """Status precedence: claimed, completed, in progress, not started."""
    if is_claimed:
        return ChallengeStatus.CLAIMED
    if is_completed:
        return ChallengeStatus.COMPLETED
    if record is not None and record.status == ChallengeStatus.IN_PROGRESS:
        return ChallengeStatus.IN_PROGRESS
    if challenge.mode == ChallengeMode.QUESTLINE and questline is not None and questline.is_started:
        return ChallengeStatus.IN_PROGRESS
    return ChallengeStatus.NOT_STARTED


def merge_challenge(
    challenge: ChallengeDefinition,
    progress: ChallengeProgress,
    record: Optional[UserChallengeRecord],
    claimed: Optional[bool] = None,
    questline: Optional[QuestlineProgress] = None,
) -> MergedChallengeView:
    """Fold one challenge's computed progress and stored record into a view.

    A claimed challenge is completed whatever the recomputed progress says.
    ``claimed`` overrides the record's claim state when given. A record the
    backend marked completed (e.g. by an admin) is completed too.
    """
    if claimed is None:
        claimed = record is not None and record.status == ChallengeStatus.CLAIMED
    is_claimed = bool(claimed)
    recorded_complete = record is not None and record.status == ChallengeStatus.COMPLETED
    is_completed = progress.is_completed or recorded_complete or is_claimed
    return MergedChallengeView(
        challenge=challenge,
        current_progress=progress.current_progress,
        target=progress.target,
        is_completed=is_completed,
        is_claimed=is_claimed,
        status=derive_status(challenge, is_completed, is_claimed, record, questline),
        claimed_at=record.claimed_at if record else None,
        completed_at=record.completed_at if record else None,
        questline_quests=questline.quests if questline else (),
    )


def merge_challenges(
    evaluated: Iterable[tuple[ChallengeDefinition, ChallengeProgress]],
    records: Iterable[UserChallengeRecord],
    claimed_ids: Optional[AbstractSet[str]] = None,
    questline_progress: Optional[Mapping[str, QuestlineProgress]] = None,
) -> List[MergedChallengeView]:
    """Produce one merged view per challenge definition, in source order.

    ``claimed_ids``, when given, decides which challenges are claimed;
    otherwise the records do.
    """
    indexed = index_records(records)
    questline_progress = questline_progress or {}
    return [
        merge_challenge(
            challenge,
            progress,
            indexed.get(challenge.id),
            claimed=None if claimed_ids is None else challenge.id in claimed_ids,
            questline=questline_progress.get(challenge.id),
        )
        for challenge, progress in evaluated
    ]


def display_group(view: MergedChallengeView) -> int:
    if view.is_claimed:
        return GROUP_CLAIMED
    if view.is_completed:
        return GROUP_CLAIMABLE
    return GROUP_IN_PROGRESS


def sort_for_display(views: Iterable[MergedChallengeView]) -> List[MergedChallengeView]:
    """Claimable first, then in progress, then claimed; stable within a group."""
    return sorted(views, key=display_group)


def filter_views(
    views: Iterable[MergedChallengeView],
    *,
    type: Optional[str] = None,
    tier: Optional[str] = None,
    mode: Optional[ChallengeMode] = None,
) -> List[MergedChallengeView]:
    """Filter views by challenge type, tier and mode."""
    result = []
    for view in views:
        if type is not None and view.challenge.type != type:
            continue
        if tier is not None and view.challenge.tier != tier:
            continue
        if mode is not None and view.challenge.mode != mode:
            continue
        result.append(view)
    return result
