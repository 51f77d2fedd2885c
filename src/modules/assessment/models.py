"""SQLAlchemy models for Assessment module."""

import hashlib
from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.shared.constants import DEFAULT_DIFFICULTY_LEVEL
from src.shared.database import Base
from src.shared.datetime_utils import utc_now


def hash_answer(answer: str) -> str:
    """SHA-256 hex digest of an answer's string form."""
    return hashlib.sha256(str(answer).encode("utf-8")).hexdigest()


class QuestionModel(Base):
    """Question database model.

    Immutable once created. Only the digest of the correct choice is
    stored.
    """

    __tablename__ = "questions"
    __table_args__ = (
        CheckConstraint("difficulty BETWEEN 1 AND 10", name="ck_questions_difficulty"),
        Index("ix_questions_difficulty", "difficulty"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    choices: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    correct_answer_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
    )

    def check_answer(self, answer: str) -> bool:
        """Compare the submitted answer's digest with the stored one."""
        return hash_answer(answer) == self.correct_answer_hash


class UserStateModel(Base):
    """Per-user adaptive state.

    ``state_version`` is the optimistic-concurrency token: every applied
    answer increments it exactly once.
    """

    __tablename__ = "user_states"
    __table_args__ = (
        CheckConstraint("current_difficulty BETWEEN 1 AND 10", name="ck_user_states_difficulty"),
        CheckConstraint("total_score >= 0", name="ck_user_states_total_score"),
        Index("ix_user_states_total_score", "total_score"),
        Index("ix_user_states_max_streak", "max_streak", "total_score"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, unique=True)
    current_difficulty: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_DIFFICULTY_LEVEL
    )
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_question_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    last_answer_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    state_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_answered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
    )

    @property
    def accuracy(self) -> float:
        """Lifetime accuracy as a percentage."""
        if not self.total_answered:
            return 0.0
        return self.correct_answers / self.total_answered * 100


class AnswerLogModel(Base):
    """Append-only record of one accepted submission.

    The unique ``answer_idempotency_key`` is what makes a submission's
    effect happen at most once. The resulting totals are stored so a
    replay can return the original outcome verbatim.
    """

    __tablename__ = "answer_logs"
    __table_args__ = (
        Index("ix_answer_logs_user_version", "user_id", "state_version_after"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    question_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    score_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    streak_at_answer: Mapped[int] = mapped_column(Integer, nullable=False)
    new_streak: Mapped[int] = mapped_column(Integer, nullable=False)
    new_difficulty: Mapped[int] = mapped_column(Integer, nullable=False)
    total_score_after: Mapped[int] = mapped_column(Integer, nullable=False)
    state_version_after: Mapped[int] = mapped_column(Integer, nullable=False)
    answer_idempotency_key: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True
    )
    answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
    )
