"""Leaderboard Module - score and streak rankings.

Usage:
    from src.modules.leaderboard import LeaderboardRanker
    ranker = LeaderboardRanker(cache)
    ranks = await ranker.get_user_ranks(user_id)
"""

from src.modules.leaderboard.interface import (
    ILeaderboardRanker,
    LeaderboardEntry,
    LeaderboardPage,
    UserRanks,
)
from src.modules.leaderboard.service import LeaderboardRanker

__all__ = [
    # Interface types
    "ILeaderboardRanker",
    "LeaderboardEntry",
    "LeaderboardPage",
    "UserRanks",
    # Implementation
    "LeaderboardRanker",
]
