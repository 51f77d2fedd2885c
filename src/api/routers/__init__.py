"""API routers package."""

from src.api.routers.health import router as health_router
from src.api.routers.leaderboard import router as leaderboard_router
from src.api.routers.quiz import router as quiz_router

__all__ = [
    "health_router",
    "leaderboard_router",
    "quiz_router",
]
