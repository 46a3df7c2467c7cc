"""FastAPI application entry point."""
import os
import sys
import time

# Ensure console streams can emit Unicode on Windows
for stream in (sys.stdout, sys.stderr):
    if hasattr(stream, "reconfigure"):
        stream.reconfigure(encoding="utf-8", errors="backslashreplace")

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from questlog.config import get_settings
from questlog.version import APP_VERSION
from questlog.routers import admin, challenges, health, quests
from questlog.services.errors import QuestLogError
from questlog.services.game_api_client import close_game_api_client

settings = get_settings()

# Create logs directory if it doesn't exist
logs_dir = Path(settings.log_dir)
logs_dir.mkdir(parents=True, exist_ok=True)

log_file = logs_dir / "questlog.log"
api_log_file = logs_dir / "questlog_api.log"

# General logs: 1MB max size, keep 5 backup files
rotating_handler = RotatingFileHandler(
    log_file,
    maxBytes=1024 * 1024,
    backupCount=5,
    encoding='utf-8',
)
rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

# API request logs: 2MB max size, keep 15 backup files
api_rotating_handler = RotatingFileHandler(api_log_file, maxBytes=2 * 1024 * 1024, backupCount=15, encoding='utf-8')
api_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

# Force=True overrides any existing configuration (e.g., from uvicorn)
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        rotating_handler,
    ],
    force=True,
)

logger = logging.getLogger(__name__)

# Dedicated API request logger
api_logger = logging.getLogger("questlog.api")
api_logger.handlers.clear()
api_logger.addHandler(api_rotating_handler)
api_logger.setLevel(logging.INFO)
api_logger.propagate = False

uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.setLevel(logging.INFO)
if rotating_handler not in uvicorn_access_logger.handlers:
    uvicorn_access_logger.addHandler(rotating_handler)

logger.info(f"General logging to: {log_file.absolute()}")
logger.info(f"API requests logging to: {api_log_file.absolute()}")


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Manage application startup and shutdown tasks."""
    logger.info("=" * 60)
    logger.info("Quest Log API Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Game backend: {settings.game_api_url}")
    logger.info(f"Admin emails configured: {len(settings.admin_emails)}")
    logger.info("=" * 60)

    try:
        yield
    finally:
        await close_game_api_client()
        logger.info("Game API client session closed")
        logger.info("Quest Log API Shutting Down... Goodbye!")


app = FastAPI(
    title="Quest Log API",
    description="Quest and event challenge progress for the event app",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(QuestLogError)
async def quest_log_exception_handler(request: Request, exc: QuestLogError):
    """Map domain errors to their HTTP status."""
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": errors
        }
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing and status to the API log file."""
    start_time = time.time()
    client_ip = request.client.host if request.client else "unknown"
    method = request.method
    path = request.url.path
    request_id = f"{method}:{path}:{int(start_time * 1000) % 100000}"

    api_logger.info(f">> {request_id} | START | {method} {path} | IP: {client_ip}")
    try:
        response = await call_next(request)
    except Exception as e:
        api_logger.error(
            f"<< {request_id} | EXCEPTION | {method} {path} | "
            f"Error: {str(e)[:100]} | Time: {time.time() - start_time:.3f}s"
        )
        raise

    api_logger.info(
        f"<< {request_id} | COMPLETE | {method} {path} | "
        f"Status: {response.status_code} | Time: {time.time() - start_time:.3f}s"
    )
    return response


allowed_origins = [origin for origin in os.getenv("ALLOWED_ORIGINS", "").split(",") if origin]
if not allowed_origins:
    allowed_origins = [
        settings.frontend_url,
        "http://localhost:8081",     # Expo web dev server
        "http://localhost:19006",    # Expo web (legacy port)
        "http://127.0.0.1:8081",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(challenges.router)
app.include_router(quests.router)
app.include_router(admin.router)
app.include_router(health.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Quest Log API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
