"""Health check endpoint."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from questlog.config import get_settings
from questlog.dependencies import get_api_client
from questlog.services.game_api_client import GameApiClient
from questlog.version import APP_VERSION

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(api: GameApiClient = Depends(get_api_client)):
    """Health check endpoint for monitoring."""
    backend_ok = await api.health_check()
    body = {
        "status": "ok" if backend_ok else "degraded",
        "game_backend": "connected" if backend_ok else "unavailable",
        "version": APP_VERSION,
        "environment": get_settings().environment,
    }
    if not backend_ok:
        logger.warning("Health check: game backend unavailable")
        return JSONResponse(status_code=503, content=body)
    return body
