"""Assessment repositories for data access operations.

This module implements the repository pattern for questions, user state
and answer logs, separating data access logic from the engine's policy.
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import desc, func, select, update

from src.modules.assessment.models import (
    AnswerLogModel,
    QuestionModel,
    UserStateModel,
    hash_answer,
)
from src.shared.datetime_utils import utc_now
from src.shared.repository import BaseRepository


class QuestionRepository(BaseRepository[QuestionModel]):
    """Repository for Question entities."""

    @property
    def _model_class(self) -> type[QuestionModel]:
        return QuestionModel

    async def get_by_difficulty(
        self,
        difficulty: int,
        limit: int,
    ) -> Sequence[QuestionModel]:
        """Get a random sample of questions at one difficulty level.

        Buckets larger than ``limit`` are sampled, not returned whole.

        Args:
            difficulty: Difficulty bucket
            limit: Maximum questions to return

        Returns:
            Sequence of questions
        """
        result = await self._session.execute(
            select(QuestionModel)
            .where(QuestionModel.difficulty == difficulty)
            .order_by(func.random())
            .limit(limit)
        )
        return result.scalars().all()

    async def get_any(
        self,
        limit: int,
        exclude_id: UUID | None = None,
    ) -> Sequence[QuestionModel]:
        """Get a random sample of questions at any difficulty.

        Args:
            limit: Maximum questions to return
            exclude_id: Question to leave out

        Returns:
            Sequence of questions
        """
        query = select(QuestionModel)
        if exclude_id is not None:
            query = query.where(QuestionModel.id != exclude_id)

        result = await self._session.execute(
            query.order_by(func.random()).limit(limit)
        )
        return result.scalars().all()

    async def create_with_answer(
        self,
        difficulty: int,
        prompt: str,
        choices: list[str],
        correct_answer: str,
        tags: list[str] | None = None,
    ) -> QuestionModel:
        """Create a question, storing only the digest of its correct answer."""
        return await self.create(
            QuestionModel(
                difficulty=difficulty,
                prompt=prompt,
                choices=list(choices),
                correct_answer_hash=hash_answer(correct_answer),
                tags=list(tags or []),
            )
        )


class UserStateRepository(BaseRepository[UserStateModel]):
    """Repository for UserState entities."""

    @property
    def _model_class(self) -> type[UserStateModel]:
        return UserStateModel

    async def get_by_user(self, user_id: UUID) -> UserStateModel | None:
        result = await self._session.execute(
            select(UserStateModel).where(UserStateModel.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_version(self, user_id: UUID) -> int | None:
        """Read the committed state version, bypassing the identity map."""
        result = await self._session.execute(
            select(UserStateModel.state_version).where(UserStateModel.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_default(self, user_id: UUID) -> UserStateModel:
        """Create a fresh state with default difficulty and zeroed counters.

        Raises:
            IntegrityError: If a state already exists for the user
        """
        return await self.create(UserStateModel(user_id=user_id))

    async def record_served_question(
        self,
        user_id: UUID,
        question_id: UUID,
        session_id: str,
    ) -> None:
        """Remember the served question and session. Not a versioned change."""
        await self._session.execute(
            update(UserStateModel)
            .where(UserStateModel.user_id == user_id)
            .values(
                last_question_id=question_id,
                session_id=session_id,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )

    async def apply_answer(
        self,
        user_id: UUID,
        expected_version: int,
        *,
        current_difficulty: int,
        streak: int,
        max_streak: int,
        total_score: int,
        correct: bool,
        answered_at: datetime,
    ) -> bool:
        """Write a new adaptive state if the version is still ``expected_version``.

        The version predicate and the increment happen in one statement,
        so two writers holding the same version cannot both succeed.

        Returns:
            True if the row was updated, False if the version moved on
        """
        result = await self._session.execute(
            update(UserStateModel)
            .where(
                UserStateModel.user_id == user_id,
                UserStateModel.state_version == expected_version,
            )
            .values(
                current_difficulty=current_difficulty,
                streak=streak,
                max_streak=max_streak,
                total_score=total_score,
                last_answer_at=answered_at,
                state_version=UserStateModel.state_version + 1,
                total_answered=UserStateModel.total_answered + 1,
                correct_answers=UserStateModel.correct_answers + (1 if correct else 0),
                updated_at=answered_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class AnswerLogRepository(BaseRepository[AnswerLogModel]):
    """Repository for AnswerLog entities."""

    @property
    def _model_class(self) -> type[AnswerLogModel]:
        return AnswerLogModel

    async def get_by_idempotency_key(self, key: str) -> AnswerLogModel | None:
        result = await self._session.execute(
            select(AnswerLogModel).where(AnswerLogModel.answer_idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def get_recent(
        self,
        user_id: UUID,
        limit: int,
    ) -> Sequence[AnswerLogModel]:
        """Get a user's most recent answers.

        Ordered by the state version each answer produced, which is the
        order the answers were durably applied.

        Args:
            user_id: User UUID
            limit: Maximum rows

        Returns:
            Sequence of logs, newest first
        """
        result = await self._session.execute(
            select(AnswerLogModel)
            .where(AnswerLogModel.user_id == user_id)
            .order_by(desc(AnswerLogModel.state_version_after))
            .limit(limit)
        )
        return result.scalars().all()
