"""Tests for the HTTP surface with the services mocked out."""

from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import jwt
import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import decode_user_id
from src.api.main import create_app
from src.modules.adaptation.interface import DifficultyBucket, PerformanceSummary, RecentAttempt
from src.modules.assessment.interface import NextQuestion, PerformanceMetrics, SubmissionOutcome
from src.modules.leaderboard.interface import LeaderboardEntry, LeaderboardPage
from src.shared.config import get_settings
from src.shared.datetime_utils import utc_now
from src.shared.exceptions import (
    AuthenticationError,
    CacheBackendError,
    InvalidAnswerError,
    NoContentAvailableError,
    StateVersionConflictError,
)
from src.shared.models import LeaderboardKind


def make_token(sub: str, **claims) -> str:
    settings = get_settings()
    payload = {"sub": sub, "exp": utc_now() + timedelta(minutes=5), **claims}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(str(user_id))}"}


@pytest.fixture
def mock_engine():
    return AsyncMock()


@pytest.fixture
def mock_ranker():
    return AsyncMock()


@pytest.fixture
def client(mock_engine, mock_ranker):
    app = create_app()
    app.state.engine = mock_engine
    app.state.ranker = mock_ranker
    return TestClient(app, raise_server_exceptions=False)


class TestAuthentication:
    """Tests for bearer token verification."""

    def test_decode_user_id(self, user_id):
        assert decode_user_id(make_token(str(user_id))) == user_id

    def test_expired_token(self, user_id):
        token = make_token(str(user_id), exp=utc_now() - timedelta(minutes=1))
        with pytest.raises(AuthenticationError):
            decode_user_id(token)

    def test_wrong_secret(self, user_id):
        token = jwt.encode({"sub": str(user_id)}, "another-secret-that-is-long-enough!!", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_user_id(token)

    def test_subject_must_be_uuid(self):
        with pytest.raises(AuthenticationError):
            decode_user_id(make_token("not-a-uuid"))

    def test_missing_token_is_401(self, client: TestClient):
        response = client.get("/quiz/next")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"

    def test_garbage_token_is_401(self, client: TestClient):
        response = client.get("/quiz/next", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestQuizRoutes:
    """Tests for /quiz routes."""

    def test_next_question(self, client: TestClient, mock_engine, auth_headers, user_id):
        question_id = uuid4()
        mock_engine.get_next_question.return_value = NextQuestion(
            question_id=question_id,
            difficulty=3,
            prompt="2 + 2?",
            choices=["3", "4"],
            session_id="s-1",
            state_version=0,
            current_score=0,
            current_streak=0,
        )

        response = client.get("/quiz/next", params={"session_id": "s-1"}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["questionId"] == str(question_id)
        assert body["sessionId"] == "s-1"
        assert body["stateVersion"] == 0
        assert body["currentScore"] == 0
        assert body["currentStreak"] == 0
        mock_engine.get_next_question.assert_called_once_with(user_id, session_id="s-1")

    def test_no_content(self, client: TestClient, mock_engine, auth_headers, user_id):
        mock_engine.get_next_question.side_effect = NoContentAvailableError(user_id)

        response = client.get("/quiz/next", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NO_CONTENT"

    @pytest.mark.parametrize(
        "body_keys",
        [
            ("questionId", "answerIdempotencyKey", "stateVersion"),
            ("question_id", "answer_idempotency_key", "state_version"),
        ],
    )
    def test_submit_answer_accepts_both_casings(self, client: TestClient, mock_engine, auth_headers, user_id, body_keys):
        question_key, idem_key, version_key = body_keys
        question_id = uuid4()
        mock_engine.submit_answer.return_value = SubmissionOutcome(
            correct=True,
            new_difficulty=4,
            new_streak=1,
            score_delta=45,
            total_score=45,
            state_version=1,
            leaderboard_rank_score=1,
            leaderboard_rank_streak=1,
        )

        response = client.post(
            "/quiz/answer",
            json={question_key: str(question_id), "answer": "4", idem_key: "k-1", version_key: 0},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body == {
            "correct": True,
            "newDifficulty": 4,
            "newStreak": 1,
            "scoreDelta": 45,
            "totalScore": 45,
            "stateVersion": 1,
            "leaderboardRankScore": 1,
            "leaderboardRankStreak": 1,
            "idempotent": False,
        }
        mock_engine.submit_answer.assert_called_once_with(
            user_id=user_id,
            question_id=question_id,
            answer="4",
            answer_idempotency_key="k-1",
            state_version=0,
        )

    def test_state_version_is_optional(self, client: TestClient, mock_engine, auth_headers):
        mock_engine.submit_answer.return_value = SubmissionOutcome(
            correct=False, new_difficulty=2, new_streak=0, score_delta=-9,
            total_score=0, state_version=1, leaderboard_rank_score=None,
            leaderboard_rank_streak=None, idempotent=True,
        )

        response = client.post(
            "/quiz/answer",
            json={"questionId": str(uuid4()), "answer": "3", "answerIdempotencyKey": "k-1"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["idempotent"] is True
        assert mock_engine.submit_answer.call_args.kwargs["state_version"] is None

    def test_stale_version_is_409(self, client: TestClient, mock_engine, auth_headers):
        mock_engine.submit_answer.side_effect = StateVersionConflictError(2, 5)

        response = client.post(
            "/quiz/answer",
            json={"questionId": str(uuid4()), "answer": "4", "answerIdempotencyKey": "k", "stateVersion": 2},
            headers=auth_headers,
        )

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "CONFLICT"
        assert error["details"]["current_state_version"] == 5

    def test_missing_idempotency_key_is_422(self, client: TestClient, mock_engine, auth_headers):
        response = client.post(
            "/quiz/answer",
            json={"questionId": str(uuid4()), "answer": "4"},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        mock_engine.submit_answer.assert_not_called()

    def test_domain_validation_is_400(self, client: TestClient, mock_engine, auth_headers):
        mock_engine.submit_answer.side_effect = InvalidAnswerError("answer", "Answer is required")

        response = client.post(
            "/quiz/answer",
            json={"questionId": str(uuid4()), "answer": "x", "answerIdempotencyKey": "k"},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_dependency_failure_is_503(self, client: TestClient, mock_engine, auth_headers):
        mock_engine.get_next_question.side_effect = CacheBackendError("boom")

        response = client.get("/quiz/next", headers=auth_headers)

        assert response.status_code == 503

    def test_unexpected_error_is_500(self, client: TestClient, mock_engine, auth_headers):
        mock_engine.get_next_question.side_effect = RuntimeError("database went away")

        response = client.get("/quiz/next", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"

    def test_metrics(self, client: TestClient, mock_engine, auth_headers):
        mock_engine.get_performance_metrics.return_value = PerformanceMetrics(
            summary=PerformanceSummary(
                total_answered=2,
                correct_answers=1,
                accuracy=50.0,
                difficulty_histogram={3: DifficultyBucket(total=2, correct=1)},
                recent_performance=[
                    RecentAttempt(correct=True, difficulty=3, score_delta=45),
                    RecentAttempt(correct=False, difficulty=3, score_delta=-9),
                ],
            ),
            current_difficulty=3,
            streak=0,
            max_streak=1,
            total_score=36,
        )

        response = client.get("/quiz/metrics", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["accuracy"] == 50.0
        assert body["difficultyHistogram"]["3"] == {"total": 2, "correct": 1}
        assert [r["scoreDelta"] for r in body["recentPerformance"]] == [45, -9]
        assert body["maxStreak"] == 1
        assert body["totalScore"] == 36

    def test_request_id_is_echoed(self, client: TestClient, mock_engine, auth_headers, user_id):
        mock_engine.get_next_question.side_effect = NoContentAvailableError(user_id)

        response = client.get("/quiz/next", headers={**auth_headers, "X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.json()["request_id"] == "req-123"


class TestLeaderboardRoutes:
    """Tests for /leaderboard routes."""

    def test_streak_leaderboard(self, client: TestClient, mock_ranker, auth_headers, user_id):
        other = uuid4()
        mock_ranker.get_leaderboard.return_value = LeaderboardPage(
            kind=LeaderboardKind.STREAK,
            entries=[LeaderboardEntry(rank=1, user_id=other, total_score=90, streak=2, max_streak=8)],
            current_user=LeaderboardEntry(rank=4, user_id=user_id, total_score=30, streak=0, max_streak=2),
        )

        response = client.get("/leaderboard/streak", params={"limit": 10}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "streak"
        assert body["entries"][0]["userId"] == str(other)
        assert body["entries"][0]["maxStreak"] == 8
        assert body["currentUser"]["rank"] == 4
        mock_ranker.get_leaderboard.assert_called_once_with(user_id, LeaderboardKind.STREAK, limit=10)

    def test_unknown_kind_is_422(self, client: TestClient, auth_headers):
        response = client.get("/leaderboard/speed", headers=auth_headers)
        assert response.status_code == 422

    def test_caller_without_state(self, client: TestClient, mock_ranker, auth_headers):
        mock_ranker.get_leaderboard.return_value = LeaderboardPage(kind=LeaderboardKind.SCORE)

        response = client.get("/leaderboard/score", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["currentUser"] is None
        assert response.json()["entries"] == []


class TestHealthRoutes:
    """Tests for /health routes."""

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_live(self, client: TestClient):
        assert client.get("/health/live").json() == {"status": "alive"}
