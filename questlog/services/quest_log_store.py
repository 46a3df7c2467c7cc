"""Quest log state: an immutable snapshot, pure reducers and a small store.

The remote backend owns quests and challenge records; the snapshot is a
cached copy replaced wholesale by each ingestion. Transitions are pure
functions ``reduce(snapshot, action) -> snapshot``.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from pydantic import Field

from questlog.schemas.base import FrozenSchema
from questlog.schemas.challenge import (
    ChallengeDefinition,
    ChallengeStatus,
    MergedChallengeView,
    QuestlineProgress,
    UserChallengeRecord,
)
from questlog.schemas.player import PlayerProfile, PlayerStatsSnapshot
from questlog.schemas.quest import QuestDefinition, QuestInstance, QuestStatus
from questlog.services import progress_rules
from questlog.services.challenge_merger import index_records, merge_challenges
from questlog.services.player_stats import build_player_stats

logger = logging.getLogger(__name__)


class QuestLogSnapshot(FrozenSchema):
    """Everything the quest log shows for one player at one point in time."""
    user_id: Optional[str] = None
    profile: Optional[PlayerProfile] = None
    quest_definitions: tuple[QuestDefinition, ...] = ()
    quests: tuple[QuestInstance, ...] = ()
    challenges: tuple[ChallengeDefinition, ...] = ()
    challenge_records: tuple[UserChallengeRecord, ...] = ()
    questline_progress: Dict[str, QuestlineProgress] = Field(default_factory=dict)
    claimed_ids: frozenset[str] = frozenset()
    fetched_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_loaded(self) -> bool:
        return self.fetched_at is not None

    @property
    def active_quests(self) -> List[QuestInstance]:
        return [quest for quest in self.quests if quest.status == QuestStatus.ACTIVE]

    @property
    def completed_quests(self) -> List[QuestInstance]:
        return [quest for quest in self.quests if quest.status == QuestStatus.COMPLETED]

    @property
    def player_stats(self) -> PlayerStatsSnapshot:
        return build_player_stats(self.quests, self.profile)

    def challenge_views(self) -> List[MergedChallengeView]:
        """Merged challenge views in source order."""
        evaluated = progress_rules.evaluate_all(list(self.challenges), self.player_stats, self.questline_progress)
        return merge_challenges(evaluated, self.challenge_records, self.claimed_ids, self.questline_progress)

    def challenge_view(self, challenge_id: str) -> Optional[MergedChallengeView]:
        return next((view for view in self.challenge_views() if view.id == challenge_id), None)

    def record_for(self, challenge_id: str) -> Optional[UserChallengeRecord]:
        return next((r for r in self.challenge_records if r.challenge_id == challenge_id), None)


@dataclass(frozen=True)
class IngestCompleted:
    """A full fetch of the player's quest and challenge data."""
    user_id: str
    profile: Optional[PlayerProfile]
    quest_definitions: tuple[QuestDefinition, ...]
    quests: tuple[QuestInstance, ...]
    challenges: tuple[ChallengeDefinition, ...]
    challenge_records: tuple[UserChallengeRecord, ...]
    questline_progress: Dict[str, QuestlineProgress] = field(default_factory=dict)
    fetched_at: Optional[datetime] = None


@dataclass(frozen=True)
class ClaimRecorded:
    """A claim the backend accepted, shown as claimed until the next ingest."""
    challenge_id: str


@dataclass(frozen=True)
class ClaimRevoked:
    """An admin reset or uncomplete; the claim is dropped without waiting for the next ingest."""
    challenge_id: str


@dataclass(frozen=True)
class SnapshotCleared:
    """Forget everything, e.g. on sign-out."""


QuestLogAction = Union[IngestCompleted, ClaimRecorded, ClaimRevoked, SnapshotCleared]


def _apply_ingest(snapshot: QuestLogSnapshot, action: IngestCompleted) -> QuestLogSnapshot:
    # the fetched records are the source of truth for claims; locally recorded
    # claims and revocations only bridge the gap until this point
    claimed = {
        challenge_id for challenge_id, record in index_records(action.challenge_records).items()
        if record.status == ChallengeStatus.CLAIMED
    }
    return QuestLogSnapshot(
        user_id=action.user_id,
        profile=action.profile,
        quest_definitions=action.quest_definitions,
        quests=action.quests,
        challenges=action.challenges,
        challenge_records=action.challenge_records,
        questline_progress=dict(action.questline_progress),
        claimed_ids=frozenset(claimed),
        fetched_at=action.fetched_at,
        version=snapshot.version + 1,
    )


def reduce(snapshot: QuestLogSnapshot, action: QuestLogAction) -> QuestLogSnapshot:
    """Pure state transition."""
    if isinstance(action, IngestCompleted):
        return _apply_ingest(snapshot, action)
    if isinstance(action, ClaimRecorded):
        if action.challenge_id in snapshot.claimed_ids:
            return snapshot
        return snapshot.model_copy(
            update={
                "claimed_ids": snapshot.claimed_ids | {action.challenge_id},
                "version": snapshot.version + 1,
            }
        )
    if isinstance(action, ClaimRevoked):
        if action.challenge_id not in snapshot.claimed_ids:
            return snapshot
        return snapshot.model_copy(
            update={
                "claimed_ids": snapshot.claimed_ids - {action.challenge_id},
                "version": snapshot.version + 1,
            }
        )
    if isinstance(action, SnapshotCleared):
        return QuestLogSnapshot(version=snapshot.version + 1)
    raise TypeError(f"Unknown quest log action: {action!r}")


Listener = Callable[[QuestLogSnapshot], None]


class QuestLogStore:
    """
    Holder of the current snapshot.

    Ingestions are tagged with a generation number; a result that arrives
    after a newer ingestion began, or after the store was closed (the view
    went away), is discarded instead of applied.
    """

    def __init__(self, snapshot: Optional[QuestLogSnapshot] = None):
        self._snapshot = snapshot or QuestLogSnapshot()
        self._generation = 0
        self._closed = False
        self._listeners: List[Listener] = []

    @property
    def snapshot(self) -> QuestLogSnapshot:
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    def begin_ingest(self) -> int:
        """Start a new ingestion and return its generation token."""
        self._generation += 1
        return self._generation

    def is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def dispatch(self, action: QuestLogAction, *, generation: Optional[int] = None) -> bool:
        """Apply ``action``; returns False when the result was discarded."""
        if self._closed:
            logger.debug(f"Discarding {type(action).__name__} for closed quest log store")
            return False
        if generation is not None and generation != self._generation:
            logger.debug(f"Discarding stale {type(action).__name__} ({generation=}, current={self._generation})")
            return False

        new_snapshot = reduce(self._snapshot, action)
        if new_snapshot is self._snapshot:
            return True
        self._snapshot = new_snapshot
        for listener in list(self._listeners):
            listener(new_snapshot)
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns the unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Stop accepting updates."""
        self._closed = True
        self._listeners.clear()
