"""API schemas package."""

from src.api.schemas.common import CamelModel, ErrorResponse
from src.api.schemas.leaderboard import LeaderboardEntryResponse, LeaderboardResponse
from src.api.schemas.quiz import (
    DifficultyBucketResponse,
    MetricsResponse,
    NextQuestionResponse,
    RecentAttemptResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)

__all__ = [
    # Common
    "CamelModel",
    "ErrorResponse",
    # Quiz
    "NextQuestionResponse",
    "SubmitAnswerRequest",
    "SubmitAnswerResponse",
    "DifficultyBucketResponse",
    "RecentAttemptResponse",
    "MetricsResponse",
    # Leaderboard
    "LeaderboardEntryResponse",
    "LeaderboardResponse",
]
