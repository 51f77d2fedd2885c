"""Cache projections for the assessment engine.

Wraps an ``ICacheBackend`` with key naming, TTLs and (de)serialisation for
user state, question pools and leaderboard pages. Backend failures are
logged and turned into misses / no-ops, so callers always fall through to
the durable store.
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any
from uuid import UUID

from src.modules.assessment.interface import QuestionSnapshot, UserStateSnapshot
from src.shared.cache import ICacheBackend
from src.shared.constants import (
    CACHE_TTL_LEADERBOARD_SECONDS,
    CACHE_TTL_QUESTION_POOL_SECONDS,
    CACHE_TTL_USER_STATE_SECONDS,
)
from src.shared.datetime_utils import datetime_to_iso, iso_to_datetime
from src.shared.models import LeaderboardKind

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return datetime_to_iso(value)
    raise TypeError(f"Cannot serialise {type(value).__name__}")


class QuizCache:
    """Typed, failure-absorbing cache for the assessment engine."""

    USER_STATE_PREFIX = "user_state:"
    QUESTION_POOL_PREFIX = "question_pool:"
    LEADERBOARD_PREFIX = "leaderboard:"

    def __init__(
        self,
        backend: ICacheBackend,
        user_state_ttl: int = CACHE_TTL_USER_STATE_SECONDS,
        question_pool_ttl: int = CACHE_TTL_QUESTION_POOL_SECONDS,
        leaderboard_ttl: int = CACHE_TTL_LEADERBOARD_SECONDS,
    ) -> None:
        self._backend = backend
        self._user_state_ttl = user_state_ttl
        self._question_pool_ttl = question_pool_ttl
        self._leaderboard_ttl = leaderboard_ttl

    # --- User state ---

    async def get_user_state(self, user_id: UUID) -> UserStateSnapshot | None:
        data = await self._get_json(f"{self.USER_STATE_PREFIX}{user_id}")
        if data is None:
            return None

        try:
            return UserStateSnapshot(
                user_id=UUID(data["user_id"]),
                current_difficulty=data["current_difficulty"],
                streak=data["streak"],
                max_streak=data["max_streak"],
                total_score=data["total_score"],
                state_version=data["state_version"],
                total_answered=data["total_answered"],
                correct_answers=data["correct_answers"],
                last_question_id=UUID(data["last_question_id"]) if data["last_question_id"] else None,
                last_answer_at=iso_to_datetime(data["last_answer_at"]),
                session_id=data["session_id"],
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed cached user state for {user_id}: {e}")
            return None

    async def set_user_state(self, snapshot: UserStateSnapshot) -> None:
        await self._set_json(
            f"{self.USER_STATE_PREFIX}{snapshot.user_id}",
            asdict(snapshot),
            self._user_state_ttl,
        )

    async def invalidate_user_state(self, user_id: UUID) -> None:
        await self._delete(f"{self.USER_STATE_PREFIX}{user_id}")

    # --- Question pools ---

    async def get_question_pool(self, difficulty: int) -> list[QuestionSnapshot] | None:
        data = await self._get_json(f"{self.QUESTION_POOL_PREFIX}{difficulty}")
        if data is None:
            return None

        try:
            return [
                QuestionSnapshot(
                    id=UUID(item["id"]),
                    difficulty=item["difficulty"],
                    prompt=item["prompt"],
                    choices=list(item["choices"]),
                )
                for item in data
            ]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed cached pool for difficulty {difficulty}: {e}")
            return None

    async def set_question_pool(self, difficulty: int, questions: list[QuestionSnapshot]) -> None:
        await self._set_json(
            f"{self.QUESTION_POOL_PREFIX}{difficulty}",
            [asdict(question) for question in questions],
            self._question_pool_ttl,
        )

    async def invalidate_question_pool(self, difficulty: int) -> None:
        await self._delete(f"{self.QUESTION_POOL_PREFIX}{difficulty}")

    # --- Leaderboards ---

    async def get_leaderboard(self, kind: LeaderboardKind, limit: int) -> list[dict] | None:
        """Get a cached leaderboard page as plain dicts."""
        return await self._get_json(f"{self.LEADERBOARD_PREFIX}{kind.value}:{limit}")

    async def set_leaderboard(self, kind: LeaderboardKind, limit: int, entries: list[dict]) -> None:
        await self._set_json(
            f"{self.LEADERBOARD_PREFIX}{kind.value}:{limit}",
            entries,
            self._leaderboard_ttl,
        )

    async def invalidate_leaderboards(self) -> None:
        """Drop every cached page of every leaderboard kind."""
        try:
            await self._backend.delete_prefix(self.LEADERBOARD_PREFIX)
        except Exception as e:
            logger.warning(f"Cache delete_prefix failed for {self.LEADERBOARD_PREFIX}: {e}")

    # --- Private methods ---

    async def _get_json(self, key: str) -> Any | None:
        try:
            raw = await self._backend.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def _set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self._backend.set(key, json.dumps(value, default=_json_default), ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def _delete(self, key: str) -> None:
        try:
            await self._backend.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
