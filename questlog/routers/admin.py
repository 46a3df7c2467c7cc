"""Admin override endpoints for a player's challenges and quests."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Type

from fastapi import APIRouter, Depends

from questlog.dependencies import get_api_client, get_current_player
from questlog.schemas.admin import AdminActionResponse, AdminConfirmRequest, AdminResetQuestRequest
from questlog.schemas.player import CallerIdentity
from questlog.services.challenge_service import ChallengeService
from questlog.services.confirmation import PresetConfirmation
from questlog.services.errors import Unauthorized
from questlog.services.game_api_client import GameApiClient
from questlog.services.quest_service import QuestService

logger = logging.getLogger(__name__)


async def get_admin_player(caller: CallerIdentity = Depends(get_current_player)) -> CallerIdentity:
    """Require an admin caller."""
    if not caller.is_admin:
        logger.warning(f"Non-admin {caller.user_id=} attempted to use admin endpoints")
        raise Unauthorized("Admin access required")
    return caller


class AdminRouterBase(ABC):
    """Base class for admin routers: complete, uncomplete and reset for one kind of target."""

    def __init__(self, segment: str):
        """Initialize the admin router.

        Args:
            segment: Path segment of the target kind, e.g. ``challenges``
        """
        self.segment = segment
        self.router = APIRouter(prefix="/admin/users/{user_id}", tags=["admin"])
        self._setup_routes()

    @property
    @abstractmethod
    def service_class(self) -> Type[Any]:
        """Return the service class that runs the admin actions."""
        pass

    def _service(self, api: GameApiClient, caller: CallerIdentity, user_id: str, confirm: bool):
        return self.service_class(
            api.with_access_token(caller.access_token),
            caller,
            user_id=user_id,
            prompt=PresetConfirmation(answer=confirm),
        )

    @staticmethod
    def _confirmed(request: Optional[AdminConfirmRequest]) -> bool:
        return bool(request and request.confirm)

    def _setup_routes(self):
        """Set up the complete/uncomplete routes; reset is added by subclasses."""

        @self.router.post(f"/{self.segment}/{{target_id}}/complete", response_model=AdminActionResponse)
        async def admin_complete(
            user_id: str,
            target_id: str,
            request: Optional[AdminConfirmRequest] = None,
            caller: CallerIdentity = Depends(get_admin_player),
            api: GameApiClient = Depends(get_api_client),
        ):
            service = self._service(api, caller, user_id, self._confirmed(request))
            return await self._complete(service, target_id)

        @self.router.post(f"/{self.segment}/{{target_id}}/uncomplete", response_model=AdminActionResponse)
        async def admin_uncomplete(
            user_id: str,
            target_id: str,
            request: Optional[AdminConfirmRequest] = None,
            caller: CallerIdentity = Depends(get_admin_player),
            api: GameApiClient = Depends(get_api_client),
        ):
            service = self._service(api, caller, user_id, self._confirmed(request))
            return await self._uncomplete(service, target_id)

    @abstractmethod
    async def _complete(self, service: Any, target_id: str) -> AdminActionResponse:
        pass

    @abstractmethod
    async def _uncomplete(self, service: Any, target_id: str) -> AdminActionResponse:
        pass


class ChallengeAdminRouter(AdminRouterBase):
    """Admin overrides for event challenges."""

    def __init__(self):
        super().__init__("challenges")

    @property
    def service_class(self) -> Type[Any]:
        return ChallengeService

    def _setup_routes(self):
        super()._setup_routes()

        @self.router.post("/challenges/{target_id}/reset", response_model=AdminActionResponse)
        async def admin_reset_challenge(
            user_id: str,
            target_id: str,
            request: Optional[AdminConfirmRequest] = None,
            caller: CallerIdentity = Depends(get_admin_player),
            api: GameApiClient = Depends(get_api_client),
        ):
            service = self._service(api, caller, user_id, self._confirmed(request))
            return await service.admin_reset(target_id)

    async def _complete(self, service: ChallengeService, target_id: str) -> AdminActionResponse:
        return await service.admin_complete(target_id)

    async def _uncomplete(self, service: ChallengeService, target_id: str) -> AdminActionResponse:
        return await service.admin_uncomplete(target_id)


class QuestAdminRouter(AdminRouterBase):
    """Admin overrides for quests."""

    def __init__(self):
        super().__init__("quests")

    @property
    def service_class(self) -> Type[Any]:
        return QuestService

    def _setup_routes(self):
        super()._setup_routes()

        @self.router.post("/quests/{target_id}/reset", response_model=AdminActionResponse)
        async def admin_reset_quest(
            user_id: str,
            target_id: str,
            request: Optional[AdminResetQuestRequest] = None,
            caller: CallerIdentity = Depends(get_admin_player),
            api: GameApiClient = Depends(get_api_client),
        ):
            """Remove a quest from the player's list; resetting a completed quest takes back its XP."""
            request = request or AdminResetQuestRequest()
            service = self._service(api, caller, user_id, request.confirm)
            return await service.admin_reset_quest(target_id, request.status)

    async def _complete(self, service: QuestService, target_id: str) -> AdminActionResponse:
        return await service.admin_complete_quest(target_id)

    async def _uncomplete(self, service: QuestService, target_id: str) -> AdminActionResponse:
        return await service.admin_uncomplete_quest(target_id)


challenge_admin_router = ChallengeAdminRouter()
quest_admin_router = QuestAdminRouter()

router = APIRouter()
router.include_router(challenge_admin_router.router)
router.include_router(quest_admin_router.router)
