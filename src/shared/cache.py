"""Cache backends.

The cache is never the system of record. Every backend exposes the same
four operations, and any of them (including one that always misses) can be
plugged into the services without affecting correctness.

Backends raise ``CacheBackendError`` on failure; callers decide whether to
absorb it. Values are opaque strings.
"""

import logging
import time
from typing import Protocol

from redis.exceptions import RedisError

from src.shared.database import get_redis
from src.shared.exceptions import CacheBackendError

logger = logging.getLogger(__name__)


class ICacheBackend(Protocol):
    """Key/value capability consumed by the cache projections."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; returns count deleted."""
        ...


class RedisCacheBackend:
    """Redis-backed cache.

    All keys are namespaced so prefix deletes never touch foreign data.
    """

    KEY_NAMESPACE = "quiz:"

    def _key(self, key: str) -> str:
        return f"{self.KEY_NAMESPACE}{key}"

    async def get(self, key: str) -> str | None:
        try:
            redis = await get_redis()
            return await redis.get(self._key(key))
        except RedisError as e:
            raise CacheBackendError(f"get {key}: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            redis = await get_redis()
            await redis.setex(self._key(key), ttl_seconds, value)
        except RedisError as e:
            raise CacheBackendError(f"set {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            redis = await get_redis()
            await redis.delete(self._key(key))
        except RedisError as e:
            raise CacheBackendError(f"delete {key}: {e}") from e

    async def delete_prefix(self, prefix: str) -> int:
        """Delete keys by prefix.

        Uses SCAN rather than KEYS so large keyspaces don't block Redis.
        """
        try:
            redis = await get_redis()
            keys = [key async for key in redis.scan_iter(match=f"{self._key(prefix)}*")]
            if not keys:
                return 0
            return await redis.delete(*keys)
        except RedisError as e:
            raise CacheBackendError(f"delete_prefix {prefix}: {e}") from e


class InMemoryCacheBackend:
    """Process-local cache for development and single-worker deployments."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at <= time.monotonic():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, time.monotonic() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)


class NullCacheBackend:
    """Cache that stores nothing; every read is a miss."""

    async def get(self, key: str) -> str | None:
        return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def delete_prefix(self, prefix: str) -> int:
        return 0


def create_cache_backend(enabled: bool) -> ICacheBackend:
    """Pick the backend for the configured environment."""
    if not enabled:
        logger.info("Cache disabled; using NullCacheBackend")
        return NullCacheBackend()

    logger.info("Using RedisCacheBackend")
    return RedisCacheBackend()
