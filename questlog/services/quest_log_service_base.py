"""Base service with ingestion and the shared admin plumbing."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from questlog.schemas.admin import AdminActionResponse, AdminActionResult
from questlog.schemas.player import CallerIdentity
from questlog.services.confirmation import ConfirmationPrompt, PresetConfirmation
from questlog.services.errors import RemoteFailure, Unauthorized
from questlog.services.game_api_client import GameApiClient
from questlog.services.quest_log_store import IngestCompleted, QuestLogSnapshot, QuestLogStore
from questlog.utils.datetime_helpers import utc_now

logger = logging.getLogger(__name__)


class QuestLogServiceBase(ABC):
    """Base service for reading and mutating one player's quest log."""

    def __init__(
        self,
        api: GameApiClient,
        caller: CallerIdentity,
        *,
        user_id: Optional[str] = None,
        store: Optional[QuestLogStore] = None,
        prompt: Optional[ConfirmationPrompt] = None,
    ):
        """Initialize the service.

        Args:
            api: Game backend client, already scoped to the caller's token
            caller: The authenticated caller
            user_id: Player whose quest log is read; defaults to the caller
                (admins act on other players)
            store: Snapshot store to share with other services
            prompt: Confirm capability for destructive actions
        """
        self.api = api
        self.caller = caller
        self.user_id = user_id or caller.user_id
        self.store = store or QuestLogStore()
        self.prompt = prompt or PresetConfirmation(answer=False)

    @property
    @abstractmethod
    def subject(self) -> str:
        """Human-readable name of what this service manages, for prompts and logs."""
        pass

    @property
    def snapshot(self) -> QuestLogSnapshot:
        return self.store.snapshot

    async def refresh(self) -> QuestLogSnapshot:
        """Re-fetch everything for the player and replace the snapshot.

        All fetches run concurrently and apply together; if any of them fails
        the previous snapshot stays in place. A result that arrives after a
        newer refresh started, or after the store was closed, is dropped.
        """
        generation = self.store.begin_ingest()
        try:
            profile, definitions, quests, challenges, records, questlines = await asyncio.gather(
                self.api.fetch_player_profile(self.user_id),
                self.api.fetch_quest_definitions(),
                self.api.fetch_user_quests(self.user_id),
                self.api.fetch_event_challenges(),
                self.api.fetch_user_event_challenges(self.user_id),
                self.api.fetch_questline_progress(self.user_id),
            )
        except PydanticValidationError as e:
            logger.error(f"Malformed game backend data for user_id={self.user_id}: {e}")
            raise RemoteFailure("Game backend returned malformed data") from e
        except RemoteFailure as e:
            logger.error(f"Refresh failed for user_id={self.user_id}: {e.message}")
            raise

        applied = self.store.dispatch(
            IngestCompleted(
                user_id=self.user_id,
                profile=profile,
                quest_definitions=tuple(definitions),
                quests=tuple(quests),
                challenges=tuple(challenges),
                challenge_records=tuple(records),
                questline_progress=questlines,
                fetched_at=utc_now(),
            ),
            generation=generation,
        )
        if applied:
            logger.debug(
                f"Quest log refreshed for user_id={self.user_id} "
                f"(quests={len(quests)}, challenges={len(challenges)}, version={self.snapshot.version})"
            )
        return self.snapshot

    async def ensure_loaded(self) -> QuestLogSnapshot:
        """Refresh once if nothing has been ingested yet."""
        if not self.snapshot.is_loaded:
            await self.refresh()
        return self.snapshot

    def _require_admin(self, action: str) -> None:
        if not self.caller.is_admin:
            logger.warning(f"Non-admin {self.caller.user_id=} attempted {action} on {self.subject}")
            raise Unauthorized("Admin access required")

    async def _run_admin_action(
        self,
        action: str,
        target_id: str,
        message: str,
        call: Callable[[], Awaitable[AdminActionResult]],
    ) -> AdminActionResponse:
        """Gate, confirm, call the backend, then re-ingest.

        A declined confirmation returns an unsuccessful response without
        touching the backend.
        """
        self._require_admin(action)
        title = f"{action.title()} {self.subject}"
        if not await self.prompt.confirm(title, message):
            logger.info(f"Admin {action} of {self.subject} {target_id=} declined by {self.caller.user_id=}")
            return AdminActionResponse(
                success=False, action=action, user_id=self.user_id, target_id=target_id, message="Cancelled"
            )

        result = await call()
        logger.info(
            f"Admin {self.caller.user_id=} ran {action} on {self.subject} {target_id=} "
            f"for user_id={self.user_id} (xp_awarded={result.xp_awarded})"
        )
        await self._after_admin_action(action, target_id)
        await self.refresh()
        return AdminActionResponse(
            success=True,
            action=action,
            user_id=self.user_id,
            target_id=target_id,
            xp_awarded=result.xp_awarded,
            message=result.message,
        )

    async def _after_admin_action(self, action: str, target_id: str) -> None:
        """Hook for local state changes that must follow a successful admin call."""
        return None
