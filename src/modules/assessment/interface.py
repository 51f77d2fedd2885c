"""Assessment Module - adaptive question selection and answer submission."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.modules.adaptation.interface import PerformanceSummary
from src.modules.assessment.models import QuestionModel, UserStateModel


@dataclass(frozen=True)
class UserStateSnapshot:
    """Read-only projection of a user's adaptive state.

    This is what the state cache holds and what streak decay rewrites.
    """

    user_id: UUID
    current_difficulty: int
    streak: int
    max_streak: int
    total_score: int
    state_version: int
    total_answered: int = 0
    correct_answers: int = 0
    last_question_id: UUID | None = None
    last_answer_at: datetime | None = None
    session_id: str | None = None

    @classmethod
    def from_model(cls, model: UserStateModel) -> "UserStateSnapshot":
        return cls(
            user_id=model.user_id,
            current_difficulty=model.current_difficulty,
            streak=model.streak,
            max_streak=model.max_streak,
            total_score=model.total_score,
            state_version=model.state_version,
            total_answered=model.total_answered,
            correct_answers=model.correct_answers,
            last_question_id=model.last_question_id,
            last_answer_at=model.last_answer_at,
            session_id=model.session_id,
        )


@dataclass(frozen=True)
class QuestionSnapshot:
    """Servable view of a question (no answer digest)."""

    id: UUID
    difficulty: int
    prompt: str
    choices: list[str]

    @classmethod
    def from_model(cls, model: QuestionModel) -> "QuestionSnapshot":
        return cls(
            id=model.id,
            difficulty=model.difficulty,
            prompt=model.prompt,
            choices=list(model.choices or []),
        )


@dataclass
class NextQuestion:
    """A served question plus the state the client should echo back."""

    question_id: UUID
    difficulty: int
    prompt: str
    choices: list[str]
    session_id: str
    state_version: int
    current_score: int
    current_streak: int


@dataclass
class SubmissionOutcome:
    """Result of one submission, fresh or replayed."""

    correct: bool
    new_difficulty: int
    new_streak: int
    score_delta: int
    total_score: int
    state_version: int
    leaderboard_rank_score: int | None
    leaderboard_rank_streak: int | None
    idempotent: bool = False


@dataclass
class PerformanceMetrics:
    """Performance summary plus the user's current standing."""

    summary: PerformanceSummary
    current_difficulty: int
    streak: int
    max_streak: int
    total_score: int


class IAssessmentEngine(Protocol):
    """Interface for the assessment engine.

    All operations take a user id that the identity provider has already
    authenticated.
    """

    async def get_next_question(
        self,
        user_id: UUID,
        session_id: str | None = None,
    ) -> NextQuestion:
        """Select the next question for a user.

        Args:
            user_id: Authenticated user
            session_id: Optional session to continue; a new one is minted if absent

        Returns:
            NextQuestion

        Raises:
            NoContentAvailableError: If no question is eligible
        """
        ...

    async def submit_answer(
        self,
        user_id: UUID,
        question_id: UUID,
        answer: str,
        answer_idempotency_key: str,
        state_version: int | None = None,
    ) -> SubmissionOutcome:
        """Apply one answer exactly once.

        Args:
            user_id: Authenticated user
            question_id: Answered question
            answer: Submitted choice
            answer_idempotency_key: Caller-supplied key; replays return the original outcome
            state_version: Version the caller last observed, if any

        Returns:
            SubmissionOutcome

        Raises:
            StateVersionConflictError: If state_version is stale
            QuestionNotFoundError: If the question doesn't exist
            UserStateNotFoundError: If the user never fetched a question
        """
        ...

    async def get_performance_metrics(self, user_id: UUID) -> PerformanceMetrics:
        """Get performance summary and current standing.

        Raises:
            UserStateNotFoundError: If the user has no state yet
        """
        ...
