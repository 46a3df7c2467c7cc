"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from functools import lru_cache
from typing import Annotated, Optional
import logging

LOCAL_GAME_API_URL = "http://localhost:54321"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    environment: str = "development"
    frontend_url: str = "http://localhost:8081"

    # Remote game backend
    game_api_url: str = LOCAL_GAME_API_URL
    game_api_key: str = ""
    game_api_timeout_seconds: Optional[float] = None  # None keeps the aiohttp default

    # Admin access
    admin_emails: Annotated[set[str], NoDecode] = set()

    # Logging
    log_dir: str = "logs"
    log_level: str = "INFO"

    @field_validator("admin_emails", mode="before")
    @classmethod
    def parse_admin_emails(cls, value):
        """Parse comma-separated admin emails from environment variables."""
        if value is None:
            return set()
        if isinstance(value, str):
            items = [item.strip().lower() for item in value.split(",") if item.strip()]
        elif isinstance(value, (list, tuple, set)):
            items = [str(item).strip().lower() for item in value if str(item).strip()]
        else:
            raise TypeError("admin_emails must be provided as a string or sequence")
        return set(items)

    @field_validator("game_api_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value):
        if value is not None and value <= 0:
            raise ValueError("game_api_timeout_seconds must be positive")
        return value

    def is_admin_email(self, email: str | None) -> bool:
        """Determine if the provided email belongs to an administrator."""
        if not email:
            return False
        normalized = email.strip().lower()
        return normalized in self.admin_emails

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate the remote backend configuration."""
        logger = logging.getLogger(__name__)

        self.game_api_url = self.game_api_url.rstrip("/")
        if not self.game_api_url.startswith(("http://", "https://")):
            raise ValueError(f"game_api_url must be an http(s) URL, got {self.game_api_url!r}")

        if self.environment == "production":
            if not self.game_api_key:
                raise ValueError("game_api_key must be set in production")
            if self.game_api_url == LOCAL_GAME_API_URL:
                raise ValueError("game_api_url must point at the hosted backend in production")
        elif not self.game_api_key:
            logger.warning("GAME_API_KEY is not set; requests to the game backend are unauthenticated")

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
