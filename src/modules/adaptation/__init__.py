"""Adaptation Module - difficulty policy.

Usage:
    from src.modules.adaptation import DifficultyPolicy
    policy = DifficultyPolicy()
"""

from src.modules.adaptation.interface import (
    DifficultyBucket,
    IDifficultyPolicy,
    PerformanceSummary,
    RecentAttempt,
    StreakState,
)
from src.modules.adaptation.policy import DifficultyPolicy, clamp_difficulty

__all__ = [
    # Interface types
    "DifficultyBucket",
    "IDifficultyPolicy",
    "PerformanceSummary",
    "RecentAttempt",
    "StreakState",
    # Implementation
    "DifficultyPolicy",
    "clamp_difficulty",
]
