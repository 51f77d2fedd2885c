"""Leaderboard repository - ordering and counting queries over user state."""

from typing import Sequence

from sqlalchemy import and_, desc, func, or_, select

from src.modules.assessment.models import UserStateModel
from src.shared.models import LeaderboardKind
from src.shared.repository import BaseRepository


class LeaderboardRepository(BaseRepository[UserStateModel]):
    """Rank queries over UserState rows."""

    @property
    def _model_class(self) -> type[UserStateModel]:
        return UserStateModel

    async def count_ahead(self, kind: LeaderboardKind, state: UserStateModel) -> int:
        """Count users strictly ahead of ``state`` under ``kind``'s ordering.

        Score ordering: total_score descending.
        Streak ordering: max_streak descending, then total_score descending.
        """
        if kind == LeaderboardKind.SCORE:
            condition = UserStateModel.total_score > state.total_score
        else:
            condition = or_(
                UserStateModel.max_streak > state.max_streak,
                and_(
                    UserStateModel.max_streak == state.max_streak,
                    UserStateModel.total_score > state.total_score,
                ),
            )

        result = await self._session.execute(
            select(func.count()).select_from(UserStateModel).where(condition)
        )
        return result.scalar_one()

    async def get_top(self, kind: LeaderboardKind, limit: int) -> Sequence[UserStateModel]:
        """Get the top ``limit`` users under ``kind``'s ordering.

        Ties are broken by user id so pages are stable.
        """
        if kind == LeaderboardKind.SCORE:
            ordering = (desc(UserStateModel.total_score), UserStateModel.user_id)
        else:
            ordering = (
                desc(UserStateModel.max_streak),
                desc(UserStateModel.total_score),
                UserStateModel.user_id,
            )

        result = await self._session.execute(
            select(UserStateModel).order_by(*ordering).limit(limit)
        )
        return result.scalars().all()
