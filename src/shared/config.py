"""Environment-driven settings for the quiz engine."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.shared.constants import (
    CACHE_TTL_LEADERBOARD_SECONDS,
    CACHE_TTL_QUESTION_POOL_SECONDS,
    CACHE_TTL_USER_STATE_SECONDS,
    DEFAULT_LEADERBOARD_LIMIT,
    DEFAULT_QUESTION_POOL_SIZE,
    MAX_LEADERBOARD_LIMIT,
)

_DEV_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:3000"]


class Settings(BaseSettings):
    """Read from the process environment, then ``.env``. Names are case-insensitive."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # PostgreSQL (asyncpg) in production, sqlite+aiosqlite for local runs
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600

    redis_url: str = "redis://localhost:6379"
    cache_enabled: bool = True
    cache_ttl_user_state: int = CACHE_TTL_USER_STATE_SECONDS
    cache_ttl_question_pool: int = CACHE_TTL_QUESTION_POOL_SECONDS
    cache_ttl_leaderboard: int = CACHE_TTL_LEADERBOARD_SECONDS

    # Tokens are issued elsewhere; this service only verifies them
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = ""

    question_pool_size: int = DEFAULT_QUESTION_POOL_SIZE
    leaderboard_default_limit: int = DEFAULT_LEADERBOARD_LIMIT
    leaderboard_max_limit: int = MAX_LEADERBOARD_LIMIT

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def cors_origins_list(self) -> list[str]:
        """Comma-separated ``cors_origins``; localhost defaults only in development."""
        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
        if origins:
            return origins
        return list(_DEV_CORS_ORIGINS) if self.is_development else []


@lru_cache
def get_settings() -> Settings:
    return Settings()
