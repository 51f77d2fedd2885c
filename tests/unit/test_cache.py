"""Tests for cache backends and the QuizCache projection layer."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.modules.assessment.cache import QuizCache
from src.modules.assessment.interface import QuestionSnapshot, UserStateSnapshot
from src.shared.cache import (
    InMemoryCacheBackend,
    NullCacheBackend,
    RedisCacheBackend,
    create_cache_backend,
)
from src.shared.datetime_utils import utc_now
from src.shared.exceptions import CacheBackendError
from src.shared.models import LeaderboardKind


def make_state(**overrides) -> UserStateSnapshot:
    values = dict(
        user_id=uuid4(),
        current_difficulty=5,
        streak=2,
        max_streak=4,
        total_score=210,
        state_version=7,
        total_answered=9,
        correct_answers=6,
        last_question_id=uuid4(),
        last_answer_at=utc_now() - timedelta(minutes=3),
        session_id="session-1",
    )
    values.update(overrides)
    return UserStateSnapshot(**values)


class TestRedisCacheBackend:
    """Tests for the Redis backend."""

    @pytest.fixture
    def mock_redis(self):
        """Create a mock Redis client."""
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=None)
        redis.setex = AsyncMock()
        redis.delete = AsyncMock(return_value=1)
        return redis

    @pytest.mark.asyncio
    async def test_set_namespaces_key_and_sets_ttl(self, mock_redis):
        with patch("src.shared.cache.get_redis", AsyncMock(return_value=mock_redis)):
            await RedisCacheBackend().set("user_state:abc", "{}", 300)

        mock_redis.setex.assert_called_once_with("quiz:user_state:abc", 300, "{}")

    @pytest.mark.asyncio
    async def test_get_returns_stored_value(self, mock_redis):
        mock_redis.get = AsyncMock(return_value="payload")

        with patch("src.shared.cache.get_redis", AsyncMock(return_value=mock_redis)):
            value = await RedisCacheBackend().get("question_pool:3")

        assert value == "payload"
        mock_redis.get.assert_called_once_with("quiz:question_pool:3")

    @pytest.mark.asyncio
    async def test_delete_prefix_scans_and_deletes(self, mock_redis):
        async def scan_iter(match):
            assert match == "quiz:leaderboard:*"
            for key in ("quiz:leaderboard:score:50", "quiz:leaderboard:streak:10"):
                yield key

        mock_redis.scan_iter = MagicMock(side_effect=scan_iter)
        mock_redis.delete = AsyncMock(return_value=2)

        with patch("src.shared.cache.get_redis", AsyncMock(return_value=mock_redis)):
            deleted = await RedisCacheBackend().delete_prefix("leaderboard:")

        assert deleted == 2
        mock_redis.delete.assert_called_once_with(
            "quiz:leaderboard:score:50", "quiz:leaderboard:streak:10"
        )

    @pytest.mark.asyncio
    async def test_delete_prefix_with_no_keys(self, mock_redis):
        async def scan_iter(match):
            return
            yield

        mock_redis.scan_iter = MagicMock(side_effect=scan_iter)

        with patch("src.shared.cache.get_redis", AsyncMock(return_value=mock_redis)):
            deleted = await RedisCacheBackend().delete_prefix("leaderboard:")

        assert deleted == 0
        mock_redis.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_redis_errors_become_cache_backend_errors(self, mock_redis):
        mock_redis.get = AsyncMock(side_effect=RedisConnectionError("down"))

        with patch("src.shared.cache.get_redis", AsyncMock(return_value=mock_redis)):
            with pytest.raises(CacheBackendError):
                await RedisCacheBackend().get("user_state:abc")


class TestInMemoryCacheBackend:
    """Tests for the process-local backend."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        backend = InMemoryCacheBackend()

        await backend.set("a", "1", 60)
        assert await backend.get("a") == "1"

        await backend.delete("a")
        assert await backend.get("a") is None

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        backend = InMemoryCacheBackend()

        with patch("src.shared.cache.time.monotonic", return_value=1000.0):
            await backend.set("a", "1", 60)
        with patch("src.shared.cache.time.monotonic", return_value=1059.0):
            assert await backend.get("a") == "1"
        with patch("src.shared.cache.time.monotonic", return_value=1060.0):
            assert await backend.get("a") is None

    @pytest.mark.asyncio
    async def test_delete_prefix(self):
        backend = InMemoryCacheBackend()
        await backend.set("leaderboard:score:50", "x", 60)
        await backend.set("leaderboard:streak:50", "y", 60)
        await backend.set("user_state:1", "z", 60)

        assert await backend.delete_prefix("leaderboard:") == 2
        assert await backend.get("user_state:1") == "z"

    @pytest.mark.asyncio
    async def test_null_backend_always_misses(self):
        backend = NullCacheBackend()
        await backend.set("a", "1", 60)
        assert await backend.get("a") is None
        assert await backend.delete_prefix("") == 0

    def test_factory(self):
        assert isinstance(create_cache_backend(False), NullCacheBackend)
        assert isinstance(create_cache_backend(True), RedisCacheBackend)


class TestQuizCache:
    """Tests for the typed projection layer."""

    @pytest.fixture
    def failing_backend(self):
        backend = AsyncMock()
        backend.get = AsyncMock(side_effect=CacheBackendError("get failed"))
        backend.set = AsyncMock(side_effect=CacheBackendError("set failed"))
        backend.delete = AsyncMock(side_effect=CacheBackendError("delete failed"))
        backend.delete_prefix = AsyncMock(side_effect=CacheBackendError("scan failed"))
        return backend

    @pytest.mark.asyncio
    async def test_user_state_round_trip(self, quiz_cache: QuizCache):
        state = make_state()

        await quiz_cache.set_user_state(state)

        assert await quiz_cache.get_user_state(state.user_id) == state

    @pytest.mark.asyncio
    async def test_user_state_without_history(self, quiz_cache: QuizCache):
        state = make_state(last_question_id=None, last_answer_at=None, session_id=None)

        await quiz_cache.set_user_state(state)

        assert await quiz_cache.get_user_state(state.user_id) == state

    @pytest.mark.asyncio
    async def test_invalidate_user_state(self, quiz_cache: QuizCache):
        state = make_state()
        await quiz_cache.set_user_state(state)

        await quiz_cache.invalidate_user_state(state.user_id)

        assert await quiz_cache.get_user_state(state.user_id) is None

    @pytest.mark.asyncio
    async def test_question_pool_per_difficulty(self, quiz_cache: QuizCache):
        pool = [QuestionSnapshot(id=uuid4(), difficulty=4, prompt="2+2?", choices=["4", "5"])]

        await quiz_cache.set_question_pool(4, pool)

        assert await quiz_cache.get_question_pool(4) == pool
        assert await quiz_cache.get_question_pool(5) is None

        await quiz_cache.invalidate_question_pool(4)
        assert await quiz_cache.get_question_pool(4) is None

    @pytest.mark.asyncio
    async def test_leaderboard_pages_keyed_by_kind_and_limit(self, quiz_cache: QuizCache):
        page = [{"rank": 1, "user_id": str(uuid4()), "total_score": 10, "streak": 1, "max_streak": 1}]

        await quiz_cache.set_leaderboard(LeaderboardKind.SCORE, 50, page)

        assert await quiz_cache.get_leaderboard(LeaderboardKind.SCORE, 50) == page
        assert await quiz_cache.get_leaderboard(LeaderboardKind.SCORE, 10) is None
        assert await quiz_cache.get_leaderboard(LeaderboardKind.STREAK, 50) is None

    @pytest.mark.asyncio
    async def test_invalidate_leaderboards_drops_all_kinds(self, quiz_cache: QuizCache):
        await quiz_cache.set_leaderboard(LeaderboardKind.SCORE, 50, [])
        await quiz_cache.set_leaderboard(LeaderboardKind.STREAK, 10, [])
        state = make_state()
        await quiz_cache.set_user_state(state)

        await quiz_cache.invalidate_leaderboards()

        assert await quiz_cache.get_leaderboard(LeaderboardKind.SCORE, 50) is None
        assert await quiz_cache.get_leaderboard(LeaderboardKind.STREAK, 10) is None
        assert await quiz_cache.get_user_state(state.user_id) == state

    @pytest.mark.asyncio
    async def test_backend_failures_are_absorbed(self, failing_backend):
        cache = QuizCache(failing_backend)
        state = make_state()

        assert await cache.get_user_state(state.user_id) is None
        assert await cache.get_question_pool(3) is None
        assert await cache.get_leaderboard(LeaderboardKind.SCORE, 50) is None

        # None of these raise
        await cache.set_user_state(state)
        await cache.set_question_pool(3, [])
        await cache.invalidate_user_state(state.user_id)
        await cache.invalidate_leaderboards()

    @pytest.mark.asyncio
    async def test_malformed_entries_are_misses(self, cache_backend: InMemoryCacheBackend, quiz_cache: QuizCache):
        user_id = uuid4()
        await cache_backend.set(f"user_state:{user_id}", '{"user_id": "nope"}', 60)
        await cache_backend.set("question_pool:3", "not json", 60)

        assert await quiz_cache.get_user_state(user_id) is None
        assert await quiz_cache.get_question_pool(3) is None
