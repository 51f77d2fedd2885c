"""Assessment engine - adaptive question selection and answer submission.

The engine owns the concurrency-critical submission path. Two guards make
it safe under parallel requests without any in-process lock:

- the unique ``answer_idempotency_key`` on AnswerLog, which arbitrates
  retransmissions of the same submission;
- the compare-on-write ``state_version`` update, which arbitrates
  different submissions racing for the same user.

Both writes share one transaction, so a log row never exists without its
state update.
"""

import logging
import random
from contextlib import AbstractAsyncContextManager
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Sequence
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.adaptation.interface import RecentAttempt
from src.modules.adaptation.policy import DifficultyPolicy
from src.modules.assessment.cache import QuizCache
from src.modules.assessment.interface import (
    NextQuestion,
    PerformanceMetrics,
    QuestionSnapshot,
    SubmissionOutcome,
    UserStateSnapshot,
)
from src.modules.assessment.models import AnswerLogModel
from src.modules.assessment.repository import (
    AnswerLogRepository,
    QuestionRepository,
    UserStateRepository,
)
from src.shared.constants import (
    DEFAULT_QUESTION_POOL_SIZE,
    MAX_ANSWER_LENGTH,
    MAX_DIFFICULTY_LEVEL,
    MAX_IDEMPOTENCY_KEY_LENGTH,
    METRICS_HISTORY_LIMIT,
    MIN_DIFFICULTY_LEVEL,
    RECENT_PERFORMANCE_LIMIT,
)
from src.shared.database import get_db_session
from src.shared.datetime_utils import ensure_utc, utc_now
from src.shared.exceptions import (
    ConflictError,
    InvalidAnswerError,
    InvalidDifficultyLevelError,
    NoContentAvailableError,
    QuestionNotFoundError,
    StateVersionConflictError,
    UserStateNotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from src.modules.leaderboard.service import LeaderboardRanker

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _to_attempts(logs: Sequence[AnswerLogModel]) -> list[RecentAttempt]:
    """Convert newest-first log rows into an oldest-first attempt list."""
    return [
        RecentAttempt(
            correct=log.correct,
            difficulty=log.difficulty,
            score_delta=log.score_delta,
            answered_at=ensure_utc(log.answered_at),
        )
        for log in reversed(logs)
    ]


class AssessmentEngine:
    """Serves questions and applies answers to adaptive user state."""

    def __init__(
        self,
        policy: DifficultyPolicy,
        cache: QuizCache,
        ranker: "LeaderboardRanker",
        session_scope: SessionScope = get_db_session,
        clock: Callable[[], datetime] = utc_now,
        question_pool_size: int = DEFAULT_QUESTION_POOL_SIZE,
        rng: random.Random | None = None,
    ) -> None:
        self._policy = policy
        self._cache = cache
        self._ranker = ranker
        self._session_scope = session_scope
        self._clock = clock
        self._question_pool_size = question_pool_size
        self._rng = rng or random.Random()

    # ===================
    # Question selection
    # ===================

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
        state = await self._resolve_state(user_id)
        state = self._policy.apply_streak_decay(state, self._clock())

        low, high = self._policy.difficulty_window(state.current_difficulty)
        candidates: list[QuestionSnapshot] = []
        for level in range(low, high + 1):
            pool = await self._get_pool(level)
            candidates.extend(q for q in pool if q.id != state.last_question_id)

        if not candidates:
            async with self._session_scope() as db:
                fallback = await QuestionRepository(db).get_any(
                    self._question_pool_size,
                    exclude_id=state.last_question_id,
                )
            candidates = [QuestionSnapshot.from_model(q) for q in fallback]

        if not candidates:
            logger.warning(f"No eligible question for user {user_id}")
            await self._cache.invalidate_user_state(user_id)
            raise NoContentAvailableError(user_id)

        question = self._rng.choice(candidates)
        session_id = session_id or str(uuid4())

        async with self._session_scope() as db:
            await UserStateRepository(db).record_served_question(user_id, question.id, session_id)
        await self._cache.invalidate_user_state(user_id)

        return NextQuestion(
            question_id=question.id,
            difficulty=question.difficulty,
            prompt=question.prompt,
            choices=list(question.choices),
            session_id=session_id,
            state_version=state.state_version,
            current_score=state.total_score,
            current_streak=state.streak,
        )

    # ===================
    # Answer submission
    # ===================

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
            InvalidAnswerError: If the answer or key is empty or too long
            StateVersionConflictError: If state_version is stale
            QuestionNotFoundError: If the question doesn't exist
            UserStateNotFoundError: If the user never fetched a question
        """
        self._validate_submission(answer, answer_idempotency_key)

        # Fast path only; the unique key on insert is what actually arbitrates
        replayed = await self._replay(user_id, answer_idempotency_key)
        if replayed is not None:
            return replayed

        try:
            outcome = await self._apply(user_id, question_id, answer, answer_idempotency_key, state_version)
        except (IntegrityError, StateVersionConflictError):
            # A retry whose lookup ran before the first attempt committed sees
            # either the bumped version or the taken key; both resolve to replay
            replayed = await self._replay(user_id, answer_idempotency_key)
            if replayed is None:
                raise
            logger.warning(
                f"Concurrent submission with key {answer_idempotency_key} "
                f"for user {user_id} resolved via replay"
            )
            return replayed

        await self._cache.invalidate_user_state(user_id)
        await self._cache.invalidate_leaderboards()

        ranks = await self._ranker.get_user_ranks(user_id)
        outcome.leaderboard_rank_score = ranks.score_rank
        outcome.leaderboard_rank_streak = ranks.streak_rank

        logger.info(
            f"Answer applied for user {user_id}: question={question_id} "
            f"correct={outcome.correct} delta={outcome.score_delta} "
            f"version={outcome.state_version}"
        )
        return outcome

    # ===================
    # Metrics
    # ===================

    async def get_performance_metrics(self, user_id: UUID) -> PerformanceMetrics:
        """Get performance summary and current standing.

        Raises:
            UserStateNotFoundError: If the user has no state yet
        """
        async with self._session_scope() as db:
            model = await UserStateRepository(db).get_by_user(user_id)
            if model is None:
                raise UserStateNotFoundError(user_id)
            state = UserStateSnapshot.from_model(model)
            logs = await AnswerLogRepository(db).get_recent(user_id, METRICS_HISTORY_LIMIT)

        state = self._policy.apply_streak_decay(self._normalise(state), self._clock())
        summary = self._policy.performance_summary(_to_attempts(logs))

        return PerformanceMetrics(
            summary=summary,
            current_difficulty=state.current_difficulty,
            streak=state.streak,
            max_streak=state.max_streak,
            total_score=state.total_score,
        )

    # ===================
    # Authoring
    # ===================

    async def create_question(
        self,
        difficulty: int,
        prompt: str,
        choices: list[str],
        correct_answer: str,
        tags: list[str] | None = None,
    ) -> QuestionSnapshot:
        """Create a question and drop its difficulty's cached pool.

        Raises:
            InvalidDifficultyLevelError: If difficulty is outside 1-10
            ValidationError: If prompt or choices are unusable
        """
        if not MIN_DIFFICULTY_LEVEL <= difficulty <= MAX_DIFFICULTY_LEVEL:
            raise InvalidDifficultyLevelError(difficulty)
        if not prompt or not prompt.strip():
            raise ValidationError("prompt", "Prompt cannot be empty")
        if not choices:
            raise ValidationError("choices", "At least one choice is required")
        if correct_answer not in choices:
            raise ValidationError("correct_answer", "Correct answer must be one of the choices")

        async with self._session_scope() as db:
            model = await QuestionRepository(db).create_with_answer(
                difficulty=difficulty,
                prompt=prompt,
                choices=choices,
                correct_answer=correct_answer,
                tags=tags,
            )
            question = QuestionSnapshot.from_model(model)

        await self._cache.invalidate_question_pool(difficulty)
        return question

    # --- Private methods ---

    def _normalise(self, state: UserStateSnapshot) -> UserStateSnapshot:
        # SQLite hands back naive datetimes
        if state.last_answer_at is None or state.last_answer_at.tzinfo is not None:
            return state
        return replace(state, last_answer_at=ensure_utc(state.last_answer_at))

    async def _resolve_state(self, user_id: UUID) -> UserStateSnapshot:
        """Get user state from cache, then the database, creating it if absent."""
        cached = await self._cache.get_user_state(user_id)
        if cached is not None:
            return cached

        async with self._session_scope() as db:
            model = await UserStateRepository(db).get_by_user(user_id)
            state = UserStateSnapshot.from_model(model) if model is not None else None

        if state is None:
            try:
                async with self._session_scope() as db:
                    model = await UserStateRepository(db).create_default(user_id)
                    state = UserStateSnapshot.from_model(model)
                logger.info(f"Created adaptive state for user {user_id}")
            except IntegrityError:
                # A parallel request created it first
                async with self._session_scope() as db:
                    model = await UserStateRepository(db).get_by_user(user_id)
                    if model is None:
                        raise
                    state = UserStateSnapshot.from_model(model)

        state = self._normalise(state)
        await self._cache.set_user_state(state)
        return state

    async def _get_pool(self, difficulty: int) -> list[QuestionSnapshot]:
        """Get the question pool for one difficulty, cache first.

        The pool is a random sample of at most ``question_pool_size`` questions
        and is reused until its TTL lapses or a question is added at this level,
        so selection is uniform over the sample, not over an oversized bucket.
        Raise ``question_pool_size`` past the largest bucket to make it exact.
        """
        pool = await self._cache.get_question_pool(difficulty)
        if pool is not None:
            return pool

        async with self._session_scope() as db:
            models = await QuestionRepository(db).get_by_difficulty(difficulty, self._question_pool_size)
            pool = [QuestionSnapshot.from_model(q) for q in models]

        # Empty buckets are not cached so new content shows up immediately
        if pool:
            await self._cache.set_question_pool(difficulty, pool)
        return pool

    def _validate_submission(self, answer: str, answer_idempotency_key: str) -> None:
        if answer is None or str(answer) == "":
            raise InvalidAnswerError("answer", "Answer is required")
        if len(str(answer)) > MAX_ANSWER_LENGTH:
            raise InvalidAnswerError("answer", f"Answer exceeds {MAX_ANSWER_LENGTH} characters")
        if not answer_idempotency_key or not answer_idempotency_key.strip():
            raise InvalidAnswerError("answer_idempotency_key", "Idempotency key is required")
        if len(answer_idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise InvalidAnswerError(
                "answer_idempotency_key",
                f"Idempotency key exceeds {MAX_IDEMPOTENCY_KEY_LENGTH} characters",
            )

    async def _replay(self, user_id: UUID, key: str) -> SubmissionOutcome | None:
        """Rebuild the original outcome of an already-applied submission."""
        async with self._session_scope() as db:
            log = await AnswerLogRepository(db).get_by_idempotency_key(key)

        if log is None:
            return None

        if log.user_id != user_id:
            logger.warning(f"Idempotency key {key} reused by a different user {user_id}")
            raise ConflictError(
                "Idempotency key already used",
                {"answer_idempotency_key": key},
            )

        ranks = await self._ranker.get_user_ranks(user_id)
        logger.info(f"Idempotent replay served for user {user_id} key={key}")

        return SubmissionOutcome(
            correct=log.correct,
            new_difficulty=log.new_difficulty,
            new_streak=log.new_streak,
            score_delta=log.score_delta,
            total_score=log.total_score_after,
            state_version=log.state_version_after,
            leaderboard_rank_score=ranks.score_rank,
            leaderboard_rank_streak=ranks.streak_rank,
            idempotent=True,
        )

    async def _apply(
        self,
        user_id: UUID,
        question_id: UUID,
        answer: str,
        key: str,
        state_version: int | None,
    ) -> SubmissionOutcome:
        """Evaluate and persist one submission in a single transaction.

        Raises:
            IntegrityError: If another submission with the same key won the insert
        """
        now = self._clock()

        async with self._session_scope() as db:
            question = await QuestionRepository(db).get_by_id(question_id)
            if question is None:
                raise QuestionNotFoundError(question_id)

            states = UserStateRepository(db)
            model = await states.get_by_user(user_id)
            if model is None:
                raise UserStateNotFoundError(user_id)

            expected_version = model.state_version
            if state_version is not None and state_version != expected_version:
                logger.warning(
                    f"Stale state version for user {user_id}: "
                    f"got {state_version}, current {expected_version}"
                )
                raise StateVersionConflictError(state_version, expected_version)

            # Decay is persisted by this write when it applies
            state = self._policy.apply_streak_decay(
                self._normalise(UserStateSnapshot.from_model(model)), now
            )

            correct = question.check_answer(answer)

            logs = AnswerLogRepository(db)
            recent = _to_attempts(await logs.get_recent(user_id, RECENT_PERFORMANCE_LIMIT))

            score_delta = self._policy.score_delta(question.difficulty, correct, state.streak)
            new_streak = self._policy.new_streak(state.streak, correct)
            new_difficulty = self._policy.adjust_difficulty(
                state.current_difficulty, correct, new_streak, recent
            )
            total_score = max(0, state.total_score + score_delta)
            max_streak = max(state.max_streak, new_streak)

            await logs.create(
                AnswerLogModel(
                    user_id=user_id,
                    question_id=question_id,
                    difficulty=question.difficulty,
                    answer=str(answer),
                    correct=correct,
                    score_delta=score_delta,
                    streak_at_answer=state.streak,
                    new_streak=new_streak,
                    new_difficulty=new_difficulty,
                    total_score_after=total_score,
                    state_version_after=expected_version + 1,
                    answer_idempotency_key=key,
                    answered_at=now,
                )
            )

            applied = await states.apply_answer(
                user_id,
                expected_version,
                current_difficulty=new_difficulty,
                streak=new_streak,
                max_streak=max_streak,
                total_score=total_score,
                correct=correct,
                answered_at=now,
            )
            if not applied:
                current = await states.get_version(user_id)
                logger.warning(
                    f"Lost state version race for user {user_id} at version {expected_version}"
                )
                raise StateVersionConflictError(
                    state_version,
                    current if current is not None else expected_version,
                )

        return SubmissionOutcome(
            correct=correct,
            new_difficulty=new_difficulty,
            new_streak=new_streak,
            score_delta=score_delta,
            total_score=total_score,
            state_version=expected_version + 1,
            leaderboard_rank_score=None,
            leaderboard_rank_streak=None,
        )
