"""Leaderboard Module - rank computation over user scores and streaks."""

from dataclasses import asdict, dataclass, field
from typing import Protocol
from uuid import UUID

from src.shared.models import LeaderboardKind


@dataclass(frozen=True)
class LeaderboardEntry:
    """One row of a leaderboard."""

    rank: int
    user_id: UUID
    total_score: int
    streak: int
    max_streak: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["user_id"] = str(self.user_id)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LeaderboardEntry":
        return cls(
            rank=data["rank"],
            user_id=UUID(data["user_id"]),
            total_score=data["total_score"],
            streak=data["streak"],
            max_streak=data["max_streak"],
        )


@dataclass
class LeaderboardPage:
    """Top-N listing plus the caller's own entry."""

    kind: LeaderboardKind
    entries: list[LeaderboardEntry] = field(default_factory=list)
    current_user: LeaderboardEntry | None = None


@dataclass(frozen=True)
class UserRanks:
    """A user's position on both leaderboards (None without state)."""

    score_rank: int | None
    streak_rank: int | None


class ILeaderboardRanker(Protocol):
    """Interface for leaderboard ranking.

    Rank is one plus the number of users strictly ahead under the
    leaderboard's ordering; tied users share a rank.
    """

    async def get_user_ranks(self, user_id: UUID) -> UserRanks:
        """Get the user's fresh (uncached) rank on both leaderboards."""
        ...

    async def get_leaderboard(
        self,
        user_id: UUID,
        kind: LeaderboardKind,
        limit: int | None = None,
    ) -> LeaderboardPage:
        """Get a top-N page and the caller's own entry.

        Args:
            user_id: Caller
            kind: SCORE or STREAK ordering
            limit: Page size (defaults to the configured default, capped at the max)

        Returns:
            LeaderboardPage
        """
        ...
