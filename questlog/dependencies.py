"""FastAPI dependencies."""
import logging

from fastapi import Depends, Header, HTTPException

from questlog.config import Settings, get_settings
from questlog.schemas.player import CallerIdentity
from questlog.services.challenge_service import ChallengeService
from questlog.services.errors import RemoteFailure
from questlog.services.game_api_client import GameApiClient, get_game_api_client
from questlog.services.quest_service import QuestService

logger = logging.getLogger(__name__)


def _mask_identifier(identifier: str) -> str:
    """Mask a sensitive identifier for logging (e.g., user_id, token)."""
    if not identifier:
        return "<missing>"
    if len(identifier) <= 8:
        return f"{identifier[:2]}...{identifier[-2:]}"
    return f"{identifier[:4]}...{identifier[-4:]}"


def get_api_client() -> GameApiClient:
    """Shared game backend client."""
    return get_game_api_client()


async def get_current_player(
        authorization: str | None = Header(default=None, alias="Authorization"),
        api: GameApiClient = Depends(get_api_client),
        settings: Settings = Depends(get_settings),
) -> CallerIdentity:
    """Resolve the caller from the bearer token by asking the game backend who it belongs to."""
    if not authorization:
        raise HTTPException(status_code=401, detail="missing_credentials")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="invalid_authorization_header")

    try:
        user = await api.with_access_token(token).fetch_current_user()
    except RemoteFailure as exc:
        if exc.remote_status in (401, 403):
            logger.info(f"Rejected token {_mask_identifier(token)}: {exc.message}")
            raise HTTPException(status_code=401, detail="invalid_token") from exc
        raise

    is_admin = user.is_admin or settings.is_admin_email(user.email)
    logger.debug(f"Authenticated caller {_mask_identifier(user.id)} ({is_admin=})")
    return CallerIdentity(user_id=user.id, email=user.email, is_admin=is_admin, access_token=token)


def get_challenge_service(
        caller: CallerIdentity = Depends(get_current_player),
        api: GameApiClient = Depends(get_api_client),
) -> ChallengeService:
    """Challenge service acting on the caller's own quest log."""
    return ChallengeService(api.with_access_token(caller.access_token), caller)


def get_quest_service(
        caller: CallerIdentity = Depends(get_current_player),
        api: GameApiClient = Depends(get_api_client),
) -> QuestService:
    """Quest service acting on the caller's own quest log."""
    return QuestService(api.with_access_token(caller.access_token), caller)
