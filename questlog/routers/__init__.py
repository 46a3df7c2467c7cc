"""API routers."""
from questlog.routers import admin, challenges, health, quests

__all__ = ["admin", "challenges", "health", "quests"]
