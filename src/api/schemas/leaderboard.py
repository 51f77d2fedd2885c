"""Leaderboard API schemas."""

from uuid import UUID

from pydantic import Field

from src.api.schemas.common import CamelModel
from src.shared.models import LeaderboardKind


class LeaderboardEntryResponse(CamelModel):
    """One leaderboard row."""

    rank: int = Field(
        ...,
        ge=1,
        description="1-based rank; tied users share a rank",
    )
    user_id: UUID
    total_score: int
    streak: int
    max_streak: int


class LeaderboardResponse(CamelModel):
    """Leaderboard page response."""

    kind: LeaderboardKind
    entries: list[LeaderboardEntryResponse] = Field(
        default_factory=list,
        description="Top users in rank order",
    )
    current_user: LeaderboardEntryResponse | None = Field(
        default=None,
        description="The caller's own entry (null before their first question)",
    )
