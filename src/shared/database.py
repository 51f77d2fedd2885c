"""Durable store and Redis connection management.

PostgreSQL (asyncpg) in production; SQLite (aiosqlite) is accepted for
local runs. Engines are kept per event loop so test loops and worker
loops never share connections.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

import redis.asyncio as redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.shared.config import get_settings
from src.shared.constants import (
    DB_HEALTH_CHECK_MAX_RETRIES,
    DB_HEALTH_CHECK_RETRY_DELAY_SECONDS,
    STARTUP_MAX_RETRIES,
    STARTUP_RETRY_DELAY_SECONDS,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


# ===================
# Durable store
# ===================

_engines: dict[int, AsyncEngine] = {}
_session_factories: dict[int, async_sessionmaker[AsyncSession]] = {}


def _loop_key() -> int:
    try:
        return id(asyncio.get_running_loop())
    except RuntimeError:
        return 0


def _create_engine() -> AsyncEngine:
    settings = get_settings()
    if settings.is_sqlite:
        # SQLite pools don't take sizing arguments
        return create_async_engine(settings.database_url)

    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )


def get_engine() -> AsyncEngine:
    """Get the async engine bound to the running event loop."""
    key = _loop_key()
    if key not in _engines:
        _engines[key] = _create_engine()
    return _engines[key]


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory bound to the running event loop."""
    key = _loop_key()
    if key not in _session_factories:
        _session_factories[key] = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factories[key]


def session_scope(factory: async_sessionmaker[AsyncSession]):
    """Build a ``get_db_session``-style context manager over ``factory``.

    Services take one of these so tests can bind them to a throwaway engine.
    """

    @asynccontextmanager
    async def _scope() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    return _scope


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Open one transaction on the default engine.

    Commits when the block exits cleanly and rolls back otherwise, so
    every write made inside one block lands together or not at all.

    Usage:
        async with get_db_session() as session:
            result = await session.execute(query)
    """
    async with session_scope(get_session_factory())() as session:
        yield session


async def init_db() -> None:
    """Create any missing tables. Existing tables are left alone."""
    # Import models so they register on Base.metadata
    import src.modules.assessment.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose every engine. Call on application shutdown."""
    for engine in list(_engines.values()):
        try:
            await engine.dispose()
        except Exception as e:
            logger.warning(f"Error disposing database engine: {e}")
    _engines.clear()
    _session_factories.clear()


# ===================
# Redis
# ===================

_redis_pool: redis.ConnectionPool | None = None


async def get_redis() -> redis.Redis:
    """Get a Redis client on the shared connection pool.

    Usage:
        client = await get_redis()
        await client.setex("key", 60, "value")
    """
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            get_settings().redis_url,
            decode_responses=True,
        )
    return redis.Redis(connection_pool=_redis_pool)


async def close_redis() -> None:
    """Close the Redis pool. Call on application shutdown."""
    global _redis_pool
    if _redis_pool is None:
        return
    try:
        await _redis_pool.aclose()
    except Exception as e:
        logger.warning(f"Error closing Redis pool: {e}")
    finally:
        _redis_pool = None


# ===================
# Lifecycle Helpers
# ===================


async def _probe(
    name: str,
    check: Callable[[], Awaitable[None]],
    max_retries: int,
    retry_delay: float,
) -> bool:
    for attempt in range(1, max_retries + 1):
        try:
            await check()
            logger.debug(f"{name} health check passed")
            return True
        except Exception as e:
            logger.warning(f"{name} health check failed (attempt {attempt}/{max_retries}): {e}")
            if attempt < max_retries:
                await asyncio.sleep(retry_delay)
    return False


async def _ping_db() -> None:
    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis() -> None:
    client = await get_redis()
    await client.ping()


async def check_db_health(
    max_retries: int = DB_HEALTH_CHECK_MAX_RETRIES,
    retry_delay: float = DB_HEALTH_CHECK_RETRY_DELAY_SECONDS,
) -> bool:
    """Return True once ``SELECT 1`` succeeds, retrying up to ``max_retries`` times."""
    return await _probe("Database", _ping_db, max_retries, retry_delay)


async def check_redis_health(
    max_retries: int = DB_HEALTH_CHECK_MAX_RETRIES,
    retry_delay: float = DB_HEALTH_CHECK_RETRY_DELAY_SECONDS,
) -> bool:
    """Return True once Redis answers PING, retrying up to ``max_retries`` times."""
    return await _probe("Redis", _ping_redis, max_retries, retry_delay)


async def startup() -> None:
    """Verify connections on application startup.

    The durable store is mandatory. Redis is optional: the cache layer
    falls through to the database when it is unreachable.
    """
    if not await check_db_health(STARTUP_MAX_RETRIES, STARTUP_RETRY_DELAY_SECONDS):
        raise RuntimeError("Failed to connect to database after retries")

    if get_settings().cache_enabled and not await check_redis_health(max_retries=1, retry_delay=0):
        logger.warning("Redis unreachable at startup; serving without cache until it recovers")

    logger.info("Database connections initialized successfully")


async def shutdown() -> None:
    """Close all connections on application shutdown."""
    await close_db()
    await close_redis()
    logger.info("All database connections closed")
