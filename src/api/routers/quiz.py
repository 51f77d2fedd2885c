"""Quiz API routes."""

from fastapi import APIRouter, Query

from src.api.dependencies import CurrentUserId, EngineDep
from src.api.schemas.common import ErrorResponse
from src.api.schemas.quiz import (
    DifficultyBucketResponse,
    MetricsResponse,
    NextQuestionResponse,
    RecentAttemptResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)

router = APIRouter()


@router.get(
    "/next",
    response_model=NextQuestionResponse,
    summary="Get next question",
    description="Select the next question at the user's adaptive difficulty.",
    responses={404: {"model": ErrorResponse, "description": "No question is eligible (NO_CONTENT)"}},
)
async def get_next_question(
    user_id: CurrentUserId,
    engine: EngineDep,
    session_id: str | None = Query(
        default=None,
        max_length=64,
        description="Session to continue; a new one is created when omitted",
    ),
) -> NextQuestionResponse:
    question = await engine.get_next_question(user_id, session_id=session_id)

    return NextQuestionResponse(
        question_id=question.question_id,
        difficulty=question.difficulty,
        prompt=question.prompt,
        choices=question.choices,
        session_id=question.session_id,
        state_version=question.state_version,
        current_score=question.current_score,
        current_streak=question.current_streak,
    )


@router.post(
    "/answer",
    response_model=SubmitAnswerResponse,
    summary="Submit answer",
    description=(
        "Apply an answer exactly once. Resubmitting the same idempotency key "
        "returns the original outcome; a stale state version returns 409."
    ),
    responses={409: {"model": ErrorResponse, "description": "State version is stale; refetch and retry"}},
)
async def submit_answer(
    request: SubmitAnswerRequest,
    user_id: CurrentUserId,
    engine: EngineDep,
) -> SubmitAnswerResponse:
    outcome = await engine.submit_answer(
        user_id=user_id,
        question_id=request.question_id,
        answer=request.answer,
        answer_idempotency_key=request.answer_idempotency_key,
        state_version=request.state_version,
    )

    return SubmitAnswerResponse(
        correct=outcome.correct,
        new_difficulty=outcome.new_difficulty,
        new_streak=outcome.new_streak,
        score_delta=outcome.score_delta,
        total_score=outcome.total_score,
        state_version=outcome.state_version,
        leaderboard_rank_score=outcome.leaderboard_rank_score,
        leaderboard_rank_streak=outcome.leaderboard_rank_streak,
        idempotent=outcome.idempotent,
    )


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Get performance metrics",
    description="Accuracy, per-difficulty histogram and recent answers.",
)
async def get_metrics(
    user_id: CurrentUserId,
    engine: EngineDep,
) -> MetricsResponse:
    metrics = await engine.get_performance_metrics(user_id)
    summary = metrics.summary

    return MetricsResponse(
        total_answered=summary.total_answered,
        correct_answers=summary.correct_answers,
        accuracy=summary.accuracy,
        difficulty_histogram={
            level: DifficultyBucketResponse(total=bucket.total, correct=bucket.correct)
            for level, bucket in summary.difficulty_histogram.items()
        },
        recent_performance=[
            RecentAttemptResponse(
                correct=attempt.correct,
                difficulty=attempt.difficulty,
                score_delta=attempt.score_delta,
                answered_at=attempt.answered_at,
            )
            for attempt in summary.recent_performance
        ],
        current_difficulty=metrics.current_difficulty,
        streak=metrics.streak,
        max_streak=metrics.max_streak,
        total_score=metrics.total_score,
    )
