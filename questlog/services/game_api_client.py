"""HTTP client for the remote game backend."""
import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, TypeVar

import aiohttp
from aiohttp import ClientError, ClientTimeout
from pydantic import BaseModel, ValidationError as PydanticValidationError

from questlog.config import Settings, get_settings
from questlog.schemas.admin import AdminActionResult
from questlog.schemas.challenge import (
    ChallengeDefinition,
    QuestlineAdvance,
    QuestlineProgress,
    QuestlineQuest,
    RemoteClaimResult,
    UserChallengeRecord,
)
from questlog.schemas.player import CurrentUser, PlayerProfile
from questlog.schemas.quest import CodeRedemptionResult, QuestDefinition, QuestInstance, QuestStatus
from questlog.services.errors import RemoteFailure

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class GameApiClient:
    """
    Client for the remote game backend.

    One aiohttp session is created lazily and shared by every token-scoped
    view of the client (see ``with_access_token``); close it on shutdown.
    All failures surface as ``RemoteFailure``.
    """

    def __init__(self, settings: Optional[Settings] = None, access_token: Optional[str] = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.game_api_url.rstrip('/')
        if self.settings.game_api_timeout_seconds is not None:
            self.timeout = ClientTimeout(total=self.settings.game_api_timeout_seconds)
        else:
            self.timeout = None
        self.access_token = access_token
        self._session: Optional[aiohttp.ClientSession] = None
        self._parent: Optional["GameApiClient"] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - ensure session is closed."""
        await self.close()

    def with_access_token(self, access_token: Optional[str]) -> "GameApiClient":
        """Return a view of this client that authenticates as ``access_token``."""
        scoped = GameApiClient(self.settings, access_token=access_token)
        scoped._parent = self._parent or self
        return scoped

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists and is not closed."""
        if self._parent is not None:
            return await self._parent._ensure_session()
        if self._session is None or self._session.closed:
            if self.timeout is not None:
                self._session = aiohttp.ClientSession(timeout=self.timeout)
            else:
                self._session = aiohttp.ClientSession()
            logger.debug("Created new aiohttp session for game API client")
        return self._session

    async def close(self):
        """Close the underlying aiohttp client session."""
        if self._parent is not None:
            return
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("Closed aiohttp session for game API client")
        self._session = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        api_key = self.settings.game_api_key
        if api_key:
            headers["apikey"] = api_key
        token = self.access_token or api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def _error_message(body: str, status: int) -> str:
        try:
            data = json.loads(body) if body else None
        except ValueError:
            data = None
        if isinstance(data, dict):
            for key in ("error", "message", "detail"):
                if data.get(key):
                    return str(data[key])
        return f"Game backend error: {status}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an HTTP request to the game backend and return the decoded JSON body."""
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"

        try:
            async with session.request(method, url, json=payload, params=params, headers=self._headers()) as response:
                if response.status >= 400:
                    body = await response.text()
                    message = self._error_message(body, response.status)
                    logger.error(f"Game API error {response.status} for {method} {path}: {message}")
                    raise RemoteFailure(message, remote_status=response.status)
                if response.status == 204:
                    return None
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    logger.error(f"Game API returned a non-JSON body for {method} {path}: {e}")
                    raise RemoteFailure("Game backend returned malformed data") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Game API timeout for {method} {path}")
            raise RemoteFailure("Game backend timeout - please try again") from e
        except ClientError as e:
            logger.error(f"Game API client error for {method} {path}: {e}")
            raise RemoteFailure("Game backend unavailable - please try again") from e

        if isinstance(data, dict) and data.get("error"):
            logger.error(f"Game API rejected {method} {path}: {data['error']}")
            raise RemoteFailure(str(data["error"]))
        return data

    @staticmethod
    def _rows(data: Any, key: str) -> List[Dict[str, Any]]:
        """Accept either a bare list or ``{key: [...]}``."""
        if data is None:
            return []
        if isinstance(data, dict):
            data = data.get(key) or []
        if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
            raise RemoteFailure(f"Unexpected response format for {key}: {type(data).__name__}")
        return data

    @staticmethod
    def _parse(model: type[ModelT], data: Any) -> ModelT:
        """Validate a response body; a body that does not fit is a remote failure."""
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            logger.error(f"Game API returned malformed {model.__name__}: {e}")
            raise RemoteFailure("Game backend returned malformed data") from e

    def _parse_rows(self, model: type[ModelT], data: Any, key: str) -> List[ModelT]:
        return [self._parse(model, row) for row in self._rows(data, key)]

    # Identity and profile

    async def fetch_current_user(self) -> CurrentUser:
        data = await self._request("GET", "/auth/user")
        return self._parse(CurrentUser, data)

    async def fetch_player_profile(self, user_id: str) -> PlayerProfile:
        data = await self._request("GET", f"/profiles/{user_id}")
        return self._parse(PlayerProfile, data)

    # Quests

    async def fetch_quest_definitions(self) -> List[QuestDefinition]:
        data = await self._request("GET", "/quests", params={"is_active": "true"})
        return self._parse_rows(QuestDefinition, data, "quests")

    async def fetch_user_quests(self, user_id: str) -> List[QuestInstance]:
        data = await self._request("GET", f"/users/{user_id}/quests")
        return self._parse_rows(QuestInstance, data, "quests")

    async def start_quest(self, user_id: str, quest_id: str, expires_at: Optional[datetime] = None) -> QuestInstance:
        payload = {
            "quest_id": quest_id,
            "status": QuestStatus.ACTIVE.value,
            "progress": 0,
            "expires_at": expires_at.isoformat() if expires_at else None,
        }
        logger.info(f"Starting quest {quest_id=} for {user_id=}")
        data = await self._request("POST", f"/users/{user_id}/quests", payload=payload)
        return self._parse(QuestInstance, data)

    async def update_quest_progress(
        self,
        user_id: str,
        instance_id: str,
        progress: int,
        status: QuestStatus,
        completed_at: Optional[datetime] = None,
    ) -> None:
        payload = {
            "progress": progress,
            "status": status.value,
            "completed_at": completed_at.isoformat() if completed_at else None,
        }
        await self._request("PATCH", f"/users/{user_id}/quests/{instance_id}", payload=payload)

    async def redeem_quest_code(self, user_id: str, code: str) -> CodeRedemptionResult:
        logger.info(f"Redeeming quest code {code=} for {user_id=}")
        data = await self._request("POST", f"/users/{user_id}/quest-codes", payload={"code": code})
        return self._parse(CodeRedemptionResult, data or {})

    # Event challenges

    async def fetch_event_challenges(self) -> List[ChallengeDefinition]:
        data = await self._request("GET", "/event-challenges", params={"is_active": "true"})
        return self._parse_rows(ChallengeDefinition, data, "challenges")

    async def fetch_user_event_challenges(self, user_id: str) -> List[UserChallengeRecord]:
        data = await self._request("GET", f"/users/{user_id}/event-challenges")
        return self._parse_rows(UserChallengeRecord, data, "challenges")

    async def fetch_questline_progress(self, user_id: str) -> Dict[str, QuestlineProgress]:
        """Per-challenge questline progress, grouped from ordered status rows."""
        data = await self._request("GET", f"/users/{user_id}/questline-progress")
        grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for row in self._rows(data, "progress"):
            challenge_id = row.get("challenge_id")
            if challenge_id is None:
                logger.warning(f"Questline progress row without challenge_id ignored: {row}")
                continue
            grouped[str(challenge_id)].append(row)
        try:
            return {
                challenge_id: QuestlineProgress.from_rows(challenge_id, rows)
                for challenge_id, rows in grouped.items()
            }
        except PydanticValidationError as e:
            logger.error(f"Game API returned malformed questline progress: {e}")
            raise RemoteFailure("Game backend returned malformed data") from e

    async def fetch_challenge_quests(self, challenge_id: str) -> List[QuestlineQuest]:
        data = await self._request("GET", f"/event-challenges/{challenge_id}/quests")
        quests = [
            self._parse(QuestlineQuest, {"challenge_id": challenge_id, **row})
            for row in self._rows(data, "quests")
        ]
        return sorted(quests, key=lambda q: q.sequence_order)

    async def start_challenge(self, user_id: str, challenge_id: str) -> None:
        logger.info(f"Starting challenge {challenge_id=} for {user_id=}")
        await self._request("POST", f"/users/{user_id}/event-challenges/{challenge_id}/start")

    async def initialize_questline_progress(self, user_id: str, challenge_id: str) -> None:
        """Create the player's per-quest rows for a questline challenge."""
        logger.info(f"Initializing questline {challenge_id=} for {user_id=}")
        await self._request("POST", f"/users/{user_id}/questlines/{challenge_id}/initialize")

    async def complete_questline_quest(self, user_id: str, challenge_id: str, quest_id: str) -> QuestlineAdvance:
        logger.info(f"Completing questline quest {quest_id=} in {challenge_id=} for {user_id=}")
        data = await self._request(
            "POST",
            f"/users/{user_id}/questlines/{challenge_id}/complete",
            payload={"quest_id": quest_id},
        )
        # the backend procedure answers with a one-row result set
        if isinstance(data, list):
            data = data[0] if data else {}
        return self._parse(QuestlineAdvance, data or {})

    async def claim_event_challenge(
        self,
        user_id: str,
        challenge_id: str,
        xp_amount: int,
        challenge_context: Dict[str, Any],
    ) -> RemoteClaimResult:
        payload = {"xp_amount": xp_amount, "challenge": challenge_context}
        logger.info(f"Claiming challenge {challenge_id=} for {user_id=} {xp_amount=}")
        data = await self._request("POST", f"/users/{user_id}/event-challenges/{challenge_id}/claim", payload=payload)
        return self._parse(RemoteClaimResult, data or {"xp_awarded": xp_amount})

    # Admin

    async def _admin_action(self, path: str, payload: Optional[Dict[str, Any]] = None) -> AdminActionResult:
        data = await self._request("POST", path, payload=payload)
        return self._parse(AdminActionResult, data or {})

    async def admin_complete_challenge(self, user_id: str, challenge_id: str) -> AdminActionResult:
        return await self._admin_action(f"/admin/users/{user_id}/event-challenges/{challenge_id}/complete")

    async def admin_uncomplete_challenge(self, user_id: str, challenge_id: str) -> AdminActionResult:
        return await self._admin_action(f"/admin/users/{user_id}/event-challenges/{challenge_id}/uncomplete")

    async def admin_reset_challenge(self, user_id: str, challenge_id: str) -> AdminActionResult:
        return await self._admin_action(f"/admin/users/{user_id}/event-challenges/{challenge_id}/reset")

    async def admin_complete_quest(self, user_id: str, quest_id: str) -> AdminActionResult:
        return await self._admin_action(f"/admin/users/{user_id}/quests/{quest_id}/complete")

    async def admin_uncomplete_quest(self, user_id: str, quest_id: str) -> AdminActionResult:
        return await self._admin_action(f"/admin/users/{user_id}/quests/{quest_id}/uncomplete")

    async def admin_reset_quest(self, user_id: str, quest_id: str, status: QuestStatus) -> AdminActionResult:
        return await self._admin_action(
            f"/admin/users/{user_id}/quests/{quest_id}/reset", payload={"status": status.value}
        )

    async def health_check(self) -> bool:
        """
        Check if the game backend is healthy.

        Returns:
            True if the backend answers its health endpoint, False otherwise
        """
        try:
            data = await self._request("GET", "/health")
        except RemoteFailure as e:
            logger.error(f"Game API health check failed: {e}")
            return False
        return isinstance(data, dict) and data.get("status") == "ok"


# Singleton instance
_game_api_client: GameApiClient | None = None


def get_game_api_client() -> GameApiClient:
    """Get singleton game API client instance."""
    global _game_api_client
    if _game_api_client is None:
        _game_api_client = GameApiClient()
    return _game_api_client


async def close_game_api_client() -> None:
    """Close and drop the singleton client."""
    global _game_api_client
    if _game_api_client is not None:
        await _game_api_client.close()
        _game_api_client = None
