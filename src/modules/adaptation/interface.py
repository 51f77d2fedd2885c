"""Adaptation Module - difficulty policy types."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, Sequence


@dataclass(frozen=True)
class RecentAttempt:
    """One answered question, as seen by the policy."""

    correct: bool
    difficulty: int
    score_delta: int = 0
    answered_at: datetime | None = None


@dataclass
class DifficultyBucket:
    """Per-difficulty answer counts."""

    total: int = 0
    correct: int = 0


@dataclass
class PerformanceSummary:
    """Aggregated answer history for trend display."""

    total_answered: int
    correct_answers: int
    accuracy: float  # percentage, 2 decimals
    difficulty_histogram: dict[int, DifficultyBucket] = field(default_factory=dict)
    recent_performance: list[RecentAttempt] = field(default_factory=list)


class StreakState(Protocol):
    """Anything carrying the fields streak decay reads and rewrites."""

    current_difficulty: int
    streak: int
    last_answer_at: datetime | None


class IDifficultyPolicy(Protocol):
    """Interface for the difficulty policy.

    Pure functions over primitive state; implementations must not do I/O.
    """

    def score_delta(self, difficulty: int, correct: bool, streak_before_answer: int) -> int:
        """Points awarded (or deducted) for one answer."""
        ...

    def new_streak(self, streak: int, correct: bool) -> int:
        """Streak after one answer."""
        ...

    def adjust_difficulty(
        self,
        current: int,
        correct: bool,
        new_streak_value: int,
        recent_performance: Sequence[RecentAttempt],
    ) -> int:
        """Next target difficulty, clamped to the valid range."""
        ...

    def should_decay_streak(self, last_answer_at: datetime | None, now: datetime) -> bool:
        """Whether inactivity since ``last_answer_at`` triggers decay."""
        ...

    def difficulty_window(self, target: int) -> tuple[int, int]:
        """Inclusive difficulty band eligible for selection."""
        ...

    def performance_summary(self, attempts: Sequence[RecentAttempt]) -> PerformanceSummary:
        """Aggregate an oldest-to-newest answer history."""
        ...
