"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import setup_exception_handlers
from src.api.middleware.logging import RequestLoggingMiddleware, setup_logging
from src.modules.adaptation.policy import DifficultyPolicy
from src.modules.assessment.cache import QuizCache
from src.modules.assessment.engine import AssessmentEngine
from src.modules.leaderboard.service import LeaderboardRanker
from src.shared.cache import create_cache_backend
from src.shared.config import Settings, get_settings
from src.shared.database import init_db, shutdown, startup

logger = logging.getLogger(__name__)


def build_services(application: FastAPI, settings: Settings) -> None:
    """Construct the stateless services once and keep them on app.state."""
    cache = QuizCache(
        create_cache_backend(settings.cache_enabled),
        user_state_ttl=settings.cache_ttl_user_state,
        question_pool_ttl=settings.cache_ttl_question_pool,
        leaderboard_ttl=settings.cache_ttl_leaderboard,
    )
    ranker = LeaderboardRanker(
        cache,
        default_limit=settings.leaderboard_default_limit,
        max_limit=settings.leaderboard_max_limit,
    )
    application.state.cache = cache
    application.state.ranker = ranker
    application.state.engine = AssessmentEngine(
        DifficultyPolicy(),
        cache,
        ranker,
        question_pool_size=settings.question_pool_size,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Verify connections, create tables, then wire services; close everything on exit."""
    await startup()
    await init_db()
    build_services(app, get_settings())
    yield
    await shutdown()


def create_app() -> FastAPI:
    """Build the application. Services are attached by the lifespan, or by tests."""
    settings = get_settings()
    setup_logging()

    application = FastAPI(
        title="Adaptive Quiz API",
        description=(
            "Serves questions at a difficulty that follows the learner, accepts each "
            "answer exactly once, and ranks users by score and by streak."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    cors_origins = settings.cors_origins_list
    if settings.is_production and not cors_origins:
        logger.warning("CORS_ORIGINS is empty in production; browsers will be refused")

    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        max_age=600,
    )
    setup_exception_handlers(application)
    application.add_middleware(RequestLoggingMiddleware)

    from src.api.routers import health_router, leaderboard_router, quiz_router

    for router, prefix, tag in (
        (health_router, "/health", "Health"),
        (quiz_router, "/quiz", "Quiz"),
        (leaderboard_router, "/leaderboard", "Leaderboard"),
    ):
        application.include_router(router, prefix=prefix, tags=[tag])

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
