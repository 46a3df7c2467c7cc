"""Tests for merging computed challenge progress with stored records."""
import logging

import pytest
from pydantic import ValidationError

from questlog.schemas.challenge import (
    ChallengeDefinition,
    ChallengeMode,
    ChallengeProgress,
    ChallengeStatus,
    MergedChallengeView,
    QuestlineProgress,
    QuestlineQuest,
    UserChallengeRecord,
)
from questlog.services.challenge_merger import (
    filter_views,
    index_records,
    merge_challenge,
    merge_challenges,
    sort_for_display,
)


def _challenge(challenge_id: str, **overrides) -> ChallengeDefinition:
    data = {"id": challenge_id, "title": challenge_id.title(), "progress_key": "completedQuests", "target": 3}
    data.update(overrides)
    return ChallengeDefinition.model_validate(data)


def _progress(current: int, target: int = 3) -> ChallengeProgress:
    return ChallengeProgress(current_progress=current, target=target, is_completed=current >= target)


def _record(challenge_id: str, status: ChallengeStatus) -> UserChallengeRecord:
    return UserChallengeRecord(challenge_id=challenge_id, status=status)


class TestMergeChallenge:
    """Merging a single challenge."""

    def test_no_record_uses_computed_completion(self):
        view = merge_challenge(_challenge("a"), _progress(3), None)

        assert view.is_completed is True
        assert view.is_claimed is False
        assert view.status == ChallengeStatus.COMPLETED
        assert view.is_claimable

    def test_claimed_record_wins_over_recomputed_progress(self):
        view = merge_challenge(_challenge("a"), _progress(0), _record("a", ChallengeStatus.CLAIMED))

        assert view.is_claimed is True
        assert view.is_completed is True
        assert view.status == ChallengeStatus.CLAIMED
        assert not view.is_claimable

    def test_known_claim_without_record(self):
        view = merge_challenge(_challenge("a"), _progress(1), None, claimed=True)

        assert view.is_claimed and view.is_completed

    def test_explicit_unclaimed_overrides_claimed_record(self):
        view = merge_challenge(_challenge("a"), _progress(3), _record("a", ChallengeStatus.CLAIMED), claimed=False)

        assert view.is_claimed is False
        assert view.is_claimable

    def test_completed_record_marks_view_completed(self):
        view = merge_challenge(_challenge("a"), _progress(1), _record("a", ChallengeStatus.COMPLETED))

        assert view.is_completed is True
        assert view.current_progress == 1
        assert view.status == ChallengeStatus.COMPLETED

    def test_in_progress_record(self):
        view = merge_challenge(_challenge("a"), _progress(1), _record("a", ChallengeStatus.IN_PROGRESS))

        assert view.status == ChallengeStatus.IN_PROGRESS

    def test_started_questline_is_in_progress(self):
        line = QuestlineProgress(
            challenge_id="line",
            completed=0,
            total=2,
            quests=(QuestlineQuest(quest_id="q1", challenge_id="line", status="active"),),
        )
        challenge = _challenge("line", mode=ChallengeMode.QUESTLINE)

        view = merge_challenge(challenge, _progress(0, 2), None, questline=line)

        assert view.status == ChallengeStatus.IN_PROGRESS
        assert view.questline_quests == line.quests

    def test_view_rejects_claimed_but_not_completed(self):
        with pytest.raises(ValidationError):
            MergedChallengeView(
                challenge=_challenge("a"),
                current_progress=0,
                target=3,
                is_completed=False,
                is_claimed=True,
                status=ChallengeStatus.CLAIMED,
            )


class TestMergeChallenges:
    """Merging a list of challenges."""

    def test_duplicate_records_first_one_wins(self, caplog):
        records = [_record("a", ChallengeStatus.IN_PROGRESS), _record("a", ChallengeStatus.CLAIMED)]

        with caplog.at_level(logging.WARNING):
            views = merge_challenges([(_challenge("a"), _progress(1))], records)

        assert views[0].status == ChallengeStatus.IN_PROGRESS
        assert views[0].is_claimed is False
        assert "Duplicate challenge record" in caplog.text

    def test_index_records_keeps_first(self):
        first = _record("a", ChallengeStatus.COMPLETED)
        indexed = index_records([first, _record("a", ChallengeStatus.NOT_STARTED), _record("b", ChallengeStatus.CLAIMED)])

        assert indexed["a"] is first
        assert set(indexed) == {"a", "b"}

    def test_one_view_per_definition_in_source_order(self):
        evaluated = [(_challenge(cid), _progress(0)) for cid in ("c", "a", "b")]

        views = merge_challenges(evaluated, [_record("zzz", ChallengeStatus.CLAIMED)])

        assert [view.id for view in views] == ["c", "a", "b"]

    def test_claimed_ids_decide_claim_state_when_given(self):
        evaluated = [(_challenge("a"), _progress(0)), (_challenge("b"), _progress(3))]
        records = [_record("b", ChallengeStatus.CLAIMED)]

        views = merge_challenges(evaluated, records, claimed_ids=frozenset({"a"}))

        assert [view.is_claimed for view in views] == [True, False]

    def test_merge_is_deterministic(self):
        evaluated = [(_challenge("a"), _progress(4)), (_challenge("b"), _progress(1))]
        records = [_record("b", ChallengeStatus.IN_PROGRESS)]

        assert merge_challenges(evaluated, records) == merge_challenges(evaluated, records)


class TestDisplayOrder:
    """Sorting and filtering of merged views."""

    def _views(self):
        evaluated = [
            (_challenge("claimed-1"), _progress(3)),
            (_challenge("progress-1"), _progress(1)),
            (_challenge("claimable-1"), _progress(5)),
            (_challenge("progress-2"), _progress(0)),
            (_challenge("claimable-2"), _progress(3)),
        ]
        return merge_challenges(evaluated, [_record("claimed-1", ChallengeStatus.CLAIMED)])

    def test_claimable_then_in_progress_then_claimed(self):
        ordered = sort_for_display(self._views())

        assert [view.id for view in ordered] == [
            "claimable-1",
            "claimable-2",
            "progress-1",
            "progress-2",
            "claimed-1",
        ]

    def test_sort_is_stable_and_repeatable(self):
        once = sort_for_display(self._views())

        assert sort_for_display(once) == once

    def test_filter_by_tier_type_and_mode(self):
        views = merge_challenges(
            [
                (_challenge("gold", tier="gold", type="social"), _progress(0)),
                (_challenge("line", tier="gold", mode="questline"), _progress(0)),
                (_challenge("bronze"), _progress(0)),
            ],
            [],
        )

        assert [v.id for v in filter_views(views, tier="gold")] == ["gold", "line"]
        assert [v.id for v in filter_views(views, type="social")] == ["gold"]
        assert [v.id for v in filter_views(views, mode=ChallengeMode.QUESTLINE)] == ["line"]
