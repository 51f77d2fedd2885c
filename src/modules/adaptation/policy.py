"""Difficulty policy - scoring, streaks, difficulty adjustment and decay.

All methods are pure. The policy holds no state, so one instance is built
at startup and handed to whoever needs it.
"""

from dataclasses import replace
from datetime import datetime
from typing import Sequence, TypeVar

from src.modules.adaptation.interface import (
    DifficultyBucket,
    PerformanceSummary,
    RecentAttempt,
    StreakState,
)
from src.shared.constants import (
    BASE_POINTS_PER_LEVEL,
    BONUS_POINTS_PER_LEVEL,
    DIFFICULTY_WINDOW_RADIUS,
    HIGH_ACCURACY_THRESHOLD,
    INCORRECT_PENALTY_RATIO,
    LONG_WINDOW_SIZE,
    LOW_ACCURACY_THRESHOLD,
    MAX_DIFFICULTY_LEVEL,
    MIN_DIFFICULTY_LEVEL,
    SHORT_WINDOW_SIZE,
    STREAK_DECAY_DIFFICULTY_DROP,
    STREAK_DECAY_DIFFICULTY_FLOOR,
    STREAK_DECAY_HOURS,
    STREAK_MULTIPLIER_STEP,
    SUMMARY_RECENT_ENTRIES,
)
from src.shared.datetime_utils import hours_between, utc_now

S = TypeVar("S", bound=StreakState)

# Ratios expressed in tenths so floors stay exact integer arithmetic
_PENALTY_TENTHS = round(INCORRECT_PENALTY_RATIO * 10)
_STREAK_STEP_TENTHS = round(STREAK_MULTIPLIER_STEP * 10)


def clamp_difficulty(value: int) -> int:
    """Clamp a difficulty level into the valid range."""
    return max(MIN_DIFFICULTY_LEVEL, min(MAX_DIFFICULTY_LEVEL, value))


class DifficultyPolicy:
    """Adaptive difficulty rules."""

    def score_delta(self, difficulty: int, correct: bool, streak_before_answer: int) -> int:
        """Calculate the score change for one answer.

        An incorrect answer costs 30% of the base points regardless of
        streak. A correct answer earns base plus a difficulty bonus, scaled
        up by 10% per streak step.

        Args:
            difficulty: Difficulty of the answered question
            correct: Whether the answer was correct
            streak_before_answer: Streak value before this answer

        Returns:
            Signed score delta
        """
        base = difficulty * BASE_POINTS_PER_LEVEL

        if not correct:
            return -(base * _PENALTY_TENTHS // 10)

        reward = base + difficulty * BONUS_POINTS_PER_LEVEL
        return reward * (10 + streak_before_answer * _STREAK_STEP_TENTHS) // 10

    def new_streak(self, streak: int, correct: bool) -> int:
        return streak + 1 if correct else 0

    def adjust_difficulty(
        self,
        current: int,
        correct: bool,
        new_streak_value: int,
        recent_performance: Sequence[RecentAttempt],
    ) -> int:
        """Compute the next target difficulty.

        The primary step depends on the answer and the post-answer streak.
        A secondary correction then looks at accuracy over the last five
        attempts. The result is clamped once, after both steps.

        Args:
            current: Current difficulty
            correct: Whether the answer was correct
            new_streak_value: Streak after this answer
            recent_performance: Prior attempts, oldest first

        Returns:
            New difficulty in [1, 10]
        """
        difficulty = current

        if correct:
            if new_streak_value >= 3:
                difficulty += 2
            elif new_streak_value >= 1:
                difficulty += 1
        elif new_streak_value == 0 and len(recent_performance) >= SHORT_WINDOW_SIZE:
            last_short = recent_performance[-SHORT_WINDOW_SIZE:]
            if not any(attempt.correct for attempt in last_short):
                difficulty -= 2
            else:
                difficulty -= 1
        else:
            difficulty -= 1

        if len(recent_performance) >= LONG_WINDOW_SIZE:
            last_long = recent_performance[-LONG_WINDOW_SIZE:]
            accuracy = sum(1 for attempt in last_long if attempt.correct) / len(last_long)

            if accuracy >= HIGH_ACCURACY_THRESHOLD and correct:
                difficulty += 1
            elif accuracy <= LOW_ACCURACY_THRESHOLD and not correct:
                difficulty -= 1

        return clamp_difficulty(difficulty)

    def should_decay_streak(self, last_answer_at: datetime | None, now: datetime) -> bool:
        if last_answer_at is None:
            return False
        return hours_between(last_answer_at, now) >= STREAK_DECAY_HOURS

    def apply_streak_decay(self, state: S, now: datetime | None = None) -> S:
        """Apply inactivity decay to a state projection.

        Returns a copy with the streak reset and difficulty lowered (never
        below the decay floor) when decay triggers, otherwise ``state``
        itself. Nothing is persisted here.

        Args:
            state: Dataclass exposing streak, current_difficulty, last_answer_at
            now: Reference time (defaults to utc_now())

        Returns:
            Decayed copy, or the original state
        """
        if not self.should_decay_streak(state.last_answer_at, now or utc_now()):
            return state

        return replace(
            state,
            streak=0,
            current_difficulty=max(
                STREAK_DECAY_DIFFICULTY_FLOOR,
                state.current_difficulty - STREAK_DECAY_DIFFICULTY_DROP,
            ),
        )

    def difficulty_window(self, target: int) -> tuple[int, int]:
        return (
            max(MIN_DIFFICULTY_LEVEL, target - DIFFICULTY_WINDOW_RADIUS),
            min(MAX_DIFFICULTY_LEVEL, target + DIFFICULTY_WINDOW_RADIUS),
        )

    def performance_summary(self, attempts: Sequence[RecentAttempt]) -> PerformanceSummary:
        """Aggregate answer history.

        Args:
            attempts: Answer history, oldest first

        Returns:
            Counts, accuracy percentage, per-difficulty histogram and the
            most recent entries
        """
        if not attempts:
            return PerformanceSummary(total_answered=0, correct_answers=0, accuracy=0.0)

        total = len(attempts)
        correct = sum(1 for attempt in attempts if attempt.correct)

        histogram: dict[int, DifficultyBucket] = {}
        for attempt in attempts:
            bucket = histogram.setdefault(attempt.difficulty, DifficultyBucket())
            bucket.total += 1
            if attempt.correct:
                bucket.correct += 1

        return PerformanceSummary(
            total_answered=total,
            correct_answers=correct,
            accuracy=round(correct / total * 100, 2),
            difficulty_histogram=histogram,
            recent_performance=list(attempts[-SUMMARY_RECENT_ENTRIES:]),
        )
