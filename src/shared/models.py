"""Base models and common types used across modules."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


# Common enums and types


class LeaderboardKind(str, Enum):
    """Leaderboard orderings."""

    SCORE = "score"
    STREAK = "streak"
