"""Quiz API schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from src.api.schemas.common import CamelModel
from src.shared.constants import MAX_ANSWER_LENGTH, MAX_IDEMPOTENCY_KEY_LENGTH


class NextQuestionResponse(CamelModel):
    """Next question response."""

    question_id: UUID = Field(
        ...,
        description="Question unique identifier",
    )
    difficulty: int = Field(
        ...,
        ge=1,
        le=10,
        description="Question difficulty (1-10)",
    )
    prompt: str = Field(
        ...,
        description="Question text",
    )
    choices: list[str] = Field(
        default_factory=list,
        description="Answer choices",
    )
    session_id: str = Field(
        ...,
        description="Quiz session identifier",
    )
    state_version: int = Field(
        ...,
        description="State version to echo back when answering",
    )
    current_score: int = Field(
        ...,
        description="Total score so far",
    )
    current_streak: int = Field(
        ...,
        description="Current correct-answer streak",
    )


class SubmitAnswerRequest(CamelModel):
    """Answer submission request."""

    question_id: UUID = Field(
        ...,
        description="Answered question",
    )
    answer: str = Field(
        ...,
        min_length=1,
        max_length=MAX_ANSWER_LENGTH,
        description="Selected choice",
    )
    state_version: int | None = Field(
        default=None,
        ge=0,
        description="State version from the last fetched question",
    )
    answer_idempotency_key: str = Field(
        ...,
        min_length=1,
        max_length=MAX_IDEMPOTENCY_KEY_LENGTH,
        description="Client-generated key; resubmitting it returns the original outcome",
    )


class SubmitAnswerResponse(CamelModel):
    """Answer submission response."""

    correct: bool
    new_difficulty: int
    new_streak: int
    score_delta: int
    total_score: int
    state_version: int
    leaderboard_rank_score: int | None = Field(
        default=None,
        description="Rank on the score leaderboard",
    )
    leaderboard_rank_streak: int | None = Field(
        default=None,
        description="Rank on the streak leaderboard",
    )
    idempotent: bool = Field(
        default=False,
        description="True when this is a replay of an already-applied submission",
    )


class DifficultyBucketResponse(CamelModel):
    """Answer counts at one difficulty level."""

    total: int
    correct: int


class RecentAttemptResponse(CamelModel):
    """One recent answer."""

    correct: bool
    difficulty: int
    score_delta: int
    answered_at: datetime | None = None


class MetricsResponse(CamelModel):
    """Performance metrics response."""

    total_answered: int
    correct_answers: int
    accuracy: float = Field(
        ...,
        description="Accuracy percentage over the metrics window",
    )
    difficulty_histogram: dict[int, DifficultyBucketResponse] = Field(
        default_factory=dict,
        description="Answer counts keyed by difficulty level",
    )
    recent_performance: list[RecentAttemptResponse] = Field(
        default_factory=list,
        description="Most recent answers, oldest first",
    )
    current_difficulty: int
    streak: int
    max_streak: int
    total_score: int
