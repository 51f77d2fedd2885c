"""Test configuration and fixtures."""

import os
import sys
from pathlib import Path

# Load environment variables before any imports that need them
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

# Settings require these; fall back to test values when .env does not set them
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("CACHE_ENABLED", "false")

# Ensure src is in path
sys.path.insert(0, str(project_root))

from datetime import datetime, timedelta  # noqa: E402
from random import Random  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.modules.adaptation.policy import DifficultyPolicy  # noqa: E402
from src.modules.assessment.cache import QuizCache  # noqa: E402
from src.modules.assessment.engine import AssessmentEngine  # noqa: E402
from src.modules.assessment.models import QuestionModel, hash_answer  # noqa: E402
from src.modules.leaderboard.service import LeaderboardRanker  # noqa: E402
from src.shared.cache import InMemoryCacheBackend  # noqa: E402
from src.shared.database import Base, session_scope  # noqa: E402
from src.shared.datetime_utils import utc_now  # noqa: E402


class FrozenClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or utc_now()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session in one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def scope(db_engine):
    """get_db_session-style context manager bound to the test engine."""
    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    return session_scope(factory)


@pytest.fixture
def cache_backend() -> InMemoryCacheBackend:
    return InMemoryCacheBackend()


@pytest.fixture
def quiz_cache(cache_backend: InMemoryCacheBackend) -> QuizCache:
    return QuizCache(cache_backend)


@pytest.fixture
def policy() -> DifficultyPolicy:
    return DifficultyPolicy()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def ranker(quiz_cache: QuizCache, scope) -> LeaderboardRanker:
    return LeaderboardRanker(quiz_cache, session_scope=scope)


@pytest.fixture
def engine(policy, quiz_cache, ranker, scope, clock) -> AssessmentEngine:
    return AssessmentEngine(
        policy,
        quiz_cache,
        ranker,
        session_scope=scope,
        clock=clock,
        rng=Random(1234),
    )


@pytest.fixture
def add_question(scope):
    """Insert a question whose correct answer is its first choice."""

    async def _add(difficulty: int, choices: list[str] | None = None, prompt: str | None = None) -> UUID:
        choices = choices or ["A", "B", "C", "D"]
        async with scope() as db:
            question = QuestionModel(
                difficulty=difficulty,
                prompt=prompt or f"Level {difficulty} question",
                choices=choices,
                correct_answer_hash=hash_answer(choices[0]),
                tags=[],
            )
            db.add(question)
            await db.flush()
            return question.id

    return _add


@pytest.fixture
def sample_user_id() -> UUID:
    """Sample user UUID."""
    return UUID("12345678-1234-5678-1234-567812345678")
