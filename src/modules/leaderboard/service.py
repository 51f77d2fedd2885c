"""Leaderboard ranker.

Pages are cached briefly since they are read far more often than rank
order meaningfully changes. A user's own rank is always computed fresh
from the durable store.
"""

import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.assessment.cache import QuizCache
from src.modules.assessment.models import UserStateModel
from src.modules.assessment.repository import UserStateRepository
from src.modules.leaderboard.interface import (
    LeaderboardEntry,
    LeaderboardPage,
    UserRanks,
)
from src.modules.leaderboard.repository import LeaderboardRepository
from src.shared.constants import DEFAULT_LEADERBOARD_LIMIT, MAX_LEADERBOARD_LIMIT
from src.shared.database import get_db_session
from src.shared.models import LeaderboardKind

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _ordering_key(kind: LeaderboardKind, state: UserStateModel) -> tuple[int, ...]:
    if kind == LeaderboardKind.SCORE:
        return (state.total_score,)
    return (state.max_streak, state.total_score)


def _to_entry(rank: int, state: UserStateModel) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=rank,
        user_id=state.user_id,
        total_score=state.total_score,
        streak=state.streak,
        max_streak=state.max_streak,
    )


class LeaderboardRanker:
    """Computes 1-based ranks on the score and streak leaderboards."""

    def __init__(
        self,
        cache: QuizCache,
        session_scope: SessionScope = get_db_session,
        default_limit: int = DEFAULT_LEADERBOARD_LIMIT,
        max_limit: int = MAX_LEADERBOARD_LIMIT,
    ) -> None:
        self._cache = cache
        self._session_scope = session_scope
        self._default_limit = default_limit
        self._max_limit = max_limit

    async def get_user_ranks(self, user_id: UUID) -> UserRanks:
        async with self._session_scope() as db:
            state = await UserStateRepository(db).get_by_user(user_id)
            if state is None:
                return UserRanks(score_rank=None, streak_rank=None)

            repo = LeaderboardRepository(db)
            score_ahead = await repo.count_ahead(LeaderboardKind.SCORE, state)
            streak_ahead = await repo.count_ahead(LeaderboardKind.STREAK, state)

        return UserRanks(score_rank=score_ahead + 1, streak_rank=streak_ahead + 1)

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
        limit = min(max(1, limit or self._default_limit), self._max_limit)

        entries = await self._get_page(kind, limit)

        async with self._session_scope() as db:
            state = await UserStateRepository(db).get_by_user(user_id)
            current_user = None
            if state is not None:
                ahead = await LeaderboardRepository(db).count_ahead(kind, state)
                current_user = _to_entry(ahead + 1, state)

        return LeaderboardPage(kind=kind, entries=entries, current_user=current_user)

    # --- Private methods ---

    async def _get_page(self, kind: LeaderboardKind, limit: int) -> list[LeaderboardEntry]:
        cached = await self._cache.get_leaderboard(kind, limit)
        if cached is not None:
            try:
                return [LeaderboardEntry.from_dict(item) for item in cached]
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Discarding malformed cached {kind.value} leaderboard: {e}")

        async with self._session_scope() as db:
            top = await LeaderboardRepository(db).get_top(kind, limit)

        entries: list[LeaderboardEntry] = []
        previous_key: tuple[int, ...] | None = None
        for position, state in enumerate(top, start=1):
            key = _ordering_key(kind, state)
            # Tied users share the rank of the first of them
            rank = entries[-1].rank if key == previous_key else position
            entries.append(_to_entry(rank, state))
            previous_key = key

        await self._cache.set_leaderboard(kind, limit, [entry.to_dict() for entry in entries])
        return entries
