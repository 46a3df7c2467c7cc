"""Pytest configuration and fixtures."""
import copy
import os
from collections import defaultdict
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient

# Keep test runs away from any developer .env backend
os.environ.setdefault("GAME_API_URL", "http://game-backend.test")
os.environ.setdefault("LOG_DIR", "logs")

from questlog.schemas.admin import AdminActionResult
from questlog.schemas.challenge import (
    ChallengeDefinition,
    QuestlineAdvance,
    QuestlineProgress,
    QuestlineQuest,
    RemoteClaimResult,
    UserChallengeRecord,
)
from questlog.schemas.player import CallerIdentity, CurrentUser, PlayerProfile
from questlog.schemas.quest import CodeRedemptionResult, QuestDefinition, QuestInstance, QuestStatus
from questlog.services.errors import RemoteFailure

USER_ID = "user-1"
ADMIN_ID = "admin-1"
USER_TOKEN = "token-user-1"
ADMIN_TOKEN = "token-admin-1"
NOW = datetime(2025, 6, 14, 12, 0, tzinfo=UTC)


def _quest_definitions() -> List[Dict[str, Any]]:
    """Quest rows as the backend sends them, using its historical column names."""
    completed = [
        {"id": f"q-c{i}", "name": f"Checkpoint {i}", "xp_reward": 20, "type": "location", "target_value": 1}
        for i in range(1, 6)
    ]
    return completed + [
        {
            "id": "q-walk",
            "name": "City Walk",
            "xp_reward": 50,
            "type": "location",
            "target_value": 1,
            "category": "daily",
        },
        {
            "id": "q-scan",
            "title": "Scan the Mural",
            "xpReward": 100,
            "type": "scan",
            "target": 1,
            "metadata": {"qr_code_id": "MURAL-1"},
        },
        {"id": "q-friends", "title": "Meet 3 people", "xp_reward": 75, "type": "social", "category": "social", "target": 3},
        {"id": "q-timed", "title": "Sprint", "xp_reward": 30, "type": "timed", "expires_in_seconds": 600},
    ]


def _challenges() -> List[Dict[str, Any]]:
    return [
        {
            "id": "ch-quests",
            "title": "Quest Master",
            "type": "quest_count",
            "tier": "silver",
            "progressKey": "completedQuests",
            "target": 3,
            "xp_reward": 200,
            "reward": {"cardId": "card_014", "claimLocation": "Info booth"},
        },
        {
            "id": "ch-friends",
            "title": "Social Star",
            "type": "social",
            "tier": "gold",
            "progress_key": "friendCount",
            "target_value": 5,
            "scoreReward": 150,
        },
        {
            "id": "ch-cards",
            "title": "Collector",
            "type": "collection",
            "tier": "bronze",
            "progress_key": "uniqueCards",
            "target": 2,
            "xpReward": 80,
            "challenge_mode": "progress",
        },
        {
            "id": "ch-line",
            "title": "Old Town Trail",
            "type": "questline",
            "tier": "gold",
            "mode": "questline",
            "target": 3,
            "xp_reward": 300,
        },
    ]


class FakeGameApi:
    """
    In-memory game backend with the same interface as ``GameApiClient``.

    Rows are stored the way the backend returns them and parsed through the
    real schemas on every fetch. Rewards are applied to the profile XP so
    tests can check that awards and deductions happen exactly once.
    """

    def __init__(self):
        self.access_token: Optional[str] = None
        self.healthy = True
        self.fail_on: set[str] = set()
        self.calls: List[tuple] = []
        self.tokens: Dict[str, Dict[str, Any]] = {
            USER_TOKEN: {"id": USER_ID, "email": "player@example.com", "is_admin": False},
            ADMIN_TOKEN: {"id": ADMIN_ID, "email": "staff@example.com", "is_admin": True},
        }
        self.profiles: Dict[str, Dict[str, Any]] = {
            USER_ID: {
                "id": USER_ID,
                "username": "player",
                "displayName": "Player One",
                "xp": 500,
                "loginStreak": 4,
                "friends_count": 2,
                "friend_teams": ["red", "blue", "red"],
                "collectedCardIds": ["card_001", "card_013", "card_001"],
                "workshop_visited": False,
            },
            ADMIN_ID: {"id": ADMIN_ID, "username": "staff", "xp": 0},
        }
        self.quest_definitions = _quest_definitions()
        self.user_quests: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for i in range(1, 6):
            self.user_quests[USER_ID].append({
                "id": f"uq-c{i}",
                "quest_id": f"q-c{i}",
                "status": "completed",
                "progress": 1,
                "completed_at": (NOW - timedelta(days=i - 1)).isoformat(),
                "quest": self._definition_row(f"q-c{i}"),
            })
        self.user_quests[USER_ID].append({
            "id": "uq-friends",
            "quest_id": "q-friends",
            "status": "active",
            "progress": 1,
            "quest": self._definition_row("q-friends"),
        })
        self.challenges = _challenges()
        self.challenge_records: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.challenge_records[USER_ID].append({
            "challengeId": "ch-cards",
            "status": "claimed",
            "completed_at": (NOW - timedelta(days=1)).isoformat(),
            "claimed_at": (NOW - timedelta(days=1)).isoformat(),
        })
        self.questline_rows: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.questline_rows[USER_ID] = [
            {"challenge_id": "ch-line", "quest_id": "ql-2", "sequence_order": 2, "status": "active"},
            {"challenge_id": "ch-line", "quest_id": "ql-1", "sequence_order": 1, "status": "completed"},
        ]
        self.challenge_quests: Dict[str, List[Dict[str, Any]]] = {
            "ch-line": [
                {"quest_id": "ql-3", "sequence_order": 3, "title": "Cathedral"},
                {"quest_id": "ql-1", "sequence_order": 1, "title": "Market Square"},
                {"quest_id": "ql-2", "sequence_order": 2, "title": "Old Bridge", "bonus_xp": 25},
            ],
        }
        self._next_id = 100

    # Helpers

    def _definition_row(self, quest_id: str) -> Dict[str, Any]:
        return next(row for row in _quest_definitions() if row["id"] == quest_id)

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise RemoteFailure(f"{name} failed", remote_status=500)

    def _quest_xp(self, quest_id: str) -> int:
        row = next(row for row in self.quest_definitions if row["id"] == quest_id)
        return QuestDefinition.model_validate(row).reward.xp

    def _add_xp(self, user_id: str, amount: int) -> int:
        self.profiles[user_id]["xp"] = self.profiles[user_id].get("xp", 0) + amount
        return self.profiles[user_id]["xp"]

    def _challenge_record(self, user_id: str, challenge_id: str) -> Optional[Dict[str, Any]]:
        return next(
            (
                row for row in self.challenge_records[user_id]
                if (row.get("challenge_id") or row.get("challengeId")) == challenge_id
            ),
            None,
        )

    def xp(self, user_id: str = USER_ID) -> int:
        return self.profiles[user_id]["xp"]

    def call_count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    # GameApiClient interface

    def with_access_token(self, access_token: Optional[str]) -> "FakeGameApi":
        self.access_token = access_token
        return self

    async def close(self):
        return None

    async def fetch_current_user(self) -> CurrentUser:
        self._record("fetch_current_user")
        user = self.tokens.get(self.access_token or "")
        if user is None:
            raise RemoteFailure("Invalid token", remote_status=401)
        return CurrentUser.model_validate(user)

    async def fetch_player_profile(self, user_id: str) -> PlayerProfile:
        self._record("fetch_player_profile", user_id)
        return PlayerProfile.model_validate(copy.deepcopy(self.profiles[user_id]))

    async def fetch_quest_definitions(self) -> List[QuestDefinition]:
        self._record("fetch_quest_definitions")
        return [QuestDefinition.model_validate(row) for row in self.quest_definitions]

    async def fetch_user_quests(self, user_id: str) -> List[QuestInstance]:
        self._record("fetch_user_quests", user_id)
        return [QuestInstance.model_validate(row) for row in self.user_quests[user_id]]

    async def start_quest(self, user_id: str, quest_id: str, expires_at=None) -> QuestInstance:
        self._record("start_quest", user_id, quest_id, expires_at)
        self._next_id += 1
        row = {
            "id": f"uq-{self._next_id}",
            "quest_id": quest_id,
            "status": "active",
            "progress": 0,
            "started_at": NOW.isoformat(),
            "expires_at": expires_at.isoformat() if expires_at else None,
            "quest": self._definition_row(quest_id),
        }
        self.user_quests[user_id].append(row)
        return QuestInstance.model_validate(row)

    async def update_quest_progress(
        self, user_id: str, instance_id: str, progress: int, status: QuestStatus, completed_at=None
    ):
        self._record("update_quest_progress", user_id, instance_id, progress, status)
        row = next(row for row in self.user_quests[user_id] if row["id"] == instance_id)
        row["progress"] = progress
        if status == QuestStatus.COMPLETED and row["status"] != "completed":
            row["completed_at"] = (completed_at or NOW).isoformat()
            self._add_xp(user_id, self._quest_xp(row["quest_id"]))
        row["status"] = status.value

    async def redeem_quest_code(self, user_id: str, code: str) -> CodeRedemptionResult:
        self._record("redeem_quest_code", user_id, code)
        definition = next(
            (
                QuestDefinition.model_validate(row) for row in self.quest_definitions
                if QuestDefinition.model_validate(row).qr_code_id == code
            ),
            None,
        )
        if definition is None:
            raise RemoteFailure("Invalid code", remote_status=400)
        if any(
            row["quest_id"] == definition.id and row["status"] == "completed"
            for row in self.user_quests[user_id]
        ):
            raise RemoteFailure("Code already redeemed", remote_status=409)
        self.user_quests[user_id].append({
            "id": f"uq-{definition.id}",
            "quest_id": definition.id,
            "status": "completed",
            "progress": 1,
            "completed_at": NOW.isoformat(),
            "quest": self._definition_row(definition.id),
        })
        self._add_xp(user_id, definition.reward.xp)
        return CodeRedemptionResult(quest_id=definition.id, xp_awarded=definition.reward.xp)

    async def fetch_event_challenges(self) -> List[ChallengeDefinition]:
        self._record("fetch_event_challenges")
        return [ChallengeDefinition.model_validate(row) for row in self.challenges]

    async def fetch_user_event_challenges(self, user_id: str) -> List[UserChallengeRecord]:
        self._record("fetch_user_event_challenges", user_id)
        return [UserChallengeRecord.model_validate(row) for row in self.challenge_records[user_id]]

    async def fetch_questline_progress(self, user_id: str) -> Dict[str, QuestlineProgress]:
        self._record("fetch_questline_progress", user_id)
        grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for row in self.questline_rows[user_id]:
            grouped[row["challenge_id"]].append(row)
        total_by_challenge = {cid: len(quests) for cid, quests in self.challenge_quests.items()}
        progress = {}
        for challenge_id, rows in grouped.items():
            line = QuestlineProgress.from_rows(challenge_id, rows)
            progress[challenge_id] = line.model_copy(update={"total": total_by_challenge.get(challenge_id, line.total)})
        return progress

    async def fetch_challenge_quests(self, challenge_id: str) -> List[QuestlineQuest]:
        self._record("fetch_challenge_quests", challenge_id)
        quests = [
            QuestlineQuest.model_validate({"challenge_id": challenge_id, **row})
            for row in self.challenge_quests.get(challenge_id, [])
        ]
        return sorted(quests, key=lambda q: q.sequence_order)

    async def start_challenge(self, user_id: str, challenge_id: str) -> None:
        self._record("start_challenge", user_id, challenge_id)
        self.challenge_records[user_id].append({
            "challenge_id": challenge_id,
            "status": "in_progress",
            "started_at": NOW.isoformat(),
        })

    async def initialize_questline_progress(self, user_id: str, challenge_id: str) -> None:
        self._record("initialize_questline_progress", user_id, challenge_id)
        quests = sorted(self.challenge_quests.get(challenge_id, []), key=lambda row: row["sequence_order"])
        self.questline_rows[user_id].extend(
            {
                "challenge_id": challenge_id,
                "quest_id": row["quest_id"],
                "sequence_order": row["sequence_order"],
                "status": "active" if i == 0 else "locked",
            }
            for i, row in enumerate(quests)
        )

    async def complete_questline_quest(self, user_id: str, challenge_id: str, quest_id: str) -> QuestlineAdvance:
        self._record("complete_questline_quest", user_id, challenge_id, quest_id)
        rows = sorted(
            (row for row in self.questline_rows[user_id] if row["challenge_id"] == challenge_id),
            key=lambda row: row["sequence_order"],
        )
        row = next(row for row in rows if row["quest_id"] == quest_id)
        row.update({"status": "completed", "completed_at": NOW.isoformat()})
        next_row = next((r for r in rows if r["status"] != "completed"), None)
        if next_row is not None:
            next_row["status"] = "active"
        total = len(self.challenge_quests.get(challenge_id, rows))
        completed = sum(1 for r in rows if r["status"] == "completed")
        return QuestlineAdvance(
            next_quest_id=next_row["quest_id"] if next_row else None,
            is_challenge_complete=completed >= total,
            total_quests=total,
            completed_quests=completed,
        )

    async def claim_event_challenge(
        self, user_id: str, challenge_id: str, xp_amount: int, challenge_context: Dict[str, Any]
    ) -> RemoteClaimResult:
        self._record("claim_event_challenge", user_id, challenge_id, xp_amount)
        record = self._challenge_record(user_id, challenge_id)
        if record is not None and record["status"] == "claimed":
            raise RemoteFailure("Challenge already claimed", remote_status=409)
        if record is None:
            record = {"challenge_id": challenge_id}
            self.challenge_records[user_id].append(record)
        record.update({"status": "claimed", "claimed_at": NOW.isoformat(), "completed_at": NOW.isoformat()})
        new_xp = self._add_xp(user_id, xp_amount)
        return RemoteClaimResult(xp_awarded=xp_amount, new_xp=new_xp)

    async def admin_complete_challenge(self, user_id: str, challenge_id: str) -> AdminActionResult:
        self._record("admin_complete_challenge", user_id, challenge_id)
        record = self._challenge_record(user_id, challenge_id)
        if record is None:
            record = {"challenge_id": challenge_id}
            self.challenge_records[user_id].append(record)
        record.update({"status": "completed", "completed_at": NOW.isoformat()})
        return AdminActionResult(xp_awarded=0, message="Challenge completed")

    def _revoke_challenge(self, user_id: str, challenge_id: str) -> int:
        record = self._challenge_record(user_id, challenge_id)
        if record is None or record["status"] != "claimed":
            return 0
        xp = ChallengeDefinition.model_validate(
            next(row for row in self.challenges if row["id"] == challenge_id)
        ).xp_reward
        self._add_xp(user_id, -xp)
        return -xp

    async def admin_uncomplete_challenge(self, user_id: str, challenge_id: str) -> AdminActionResult:
        self._record("admin_uncomplete_challenge", user_id, challenge_id)
        xp = self._revoke_challenge(user_id, challenge_id)
        record = self._challenge_record(user_id, challenge_id)
        if record is not None:
            record.update({"status": "not_started", "completed_at": None, "claimed_at": None})
        return AdminActionResult(xp_awarded=xp, message="Challenge reverted")

    async def admin_reset_challenge(self, user_id: str, challenge_id: str) -> AdminActionResult:
        self._record("admin_reset_challenge", user_id, challenge_id)
        xp = self._revoke_challenge(user_id, challenge_id)
        self.challenge_records[user_id] = [
            row for row in self.challenge_records[user_id]
            if (row.get("challenge_id") or row.get("challengeId")) != challenge_id
        ]
        return AdminActionResult(xp_awarded=xp, message="Challenge reset")

    async def admin_complete_quest(self, user_id: str, quest_id: str) -> AdminActionResult:
        self._record("admin_complete_quest", user_id, quest_id)
        row = next((row for row in self.user_quests[user_id] if row["quest_id"] == quest_id), None)
        if row is None:
            row = {"id": f"uq-{quest_id}", "quest_id": quest_id, "quest": self._definition_row(quest_id)}
            self.user_quests[user_id].append(row)
        elif row.get("status") == "completed":
            return AdminActionResult(xp_awarded=0)
        row.update({"status": "completed", "progress": 1, "completed_at": NOW.isoformat()})
        xp = self._quest_xp(quest_id)
        self._add_xp(user_id, xp)
        return AdminActionResult(xp_awarded=xp)

    async def admin_uncomplete_quest(self, user_id: str, quest_id: str) -> AdminActionResult:
        self._record("admin_uncomplete_quest", user_id, quest_id)
        row = next(row for row in self.user_quests[user_id] if row["quest_id"] == quest_id)
        row.update({"status": "active", "progress": 0, "completed_at": None})
        xp = self._quest_xp(quest_id)
        self._add_xp(user_id, -xp)
        return AdminActionResult(xp_awarded=-xp)

    async def admin_reset_quest(self, user_id: str, quest_id: str, status: QuestStatus) -> AdminActionResult:
        self._record("admin_reset_quest", user_id, quest_id, status)
        removed = [
            row for row in self.user_quests[user_id]
            if row["quest_id"] == quest_id and row["status"] == status.value
        ]
        self.user_quests[user_id] = [row for row in self.user_quests[user_id] if row not in removed]
        xp = 0
        if removed and status == QuestStatus.COMPLETED:
            xp = -self._quest_xp(quest_id)
            self._add_xp(user_id, xp)
        return AdminActionResult(xp_awarded=xp)

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def fake_api() -> FakeGameApi:
    return FakeGameApi()


@pytest.fixture
def player() -> CallerIdentity:
    return CallerIdentity(user_id=USER_ID, email="player@example.com", access_token=USER_TOKEN)


@pytest.fixture
def admin() -> CallerIdentity:
    return CallerIdentity(user_id=ADMIN_ID, email="staff@example.com", is_admin=True, access_token=ADMIN_TOKEN)


@pytest.fixture
async def client(fake_api):
    """HTTP client against the app with the game backend replaced by the fake."""
    from questlog.dependencies import get_api_client
    from questlog.main import app

    app.dependency_overrides[get_api_client] = lambda: fake_api
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
