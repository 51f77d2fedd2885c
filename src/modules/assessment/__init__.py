"""Assessment Module - adaptive question selection and answer submission.

Usage:
    from src.modules.assessment import AssessmentEngine, QuizCache
    engine = AssessmentEngine(policy, cache, ranker)
    question = await engine.get_next_question(user_id)
"""

from src.modules.assessment.cache import QuizCache
from src.modules.assessment.engine import AssessmentEngine
from src.modules.assessment.interface import (
    IAssessmentEngine,
    NextQuestion,
    PerformanceMetrics,
    QuestionSnapshot,
    SubmissionOutcome,
    UserStateSnapshot,
)
from src.modules.assessment.models import (
    AnswerLogModel,
    QuestionModel,
    UserStateModel,
    hash_answer,
)

__all__ = [
    # Interface types
    "IAssessmentEngine",
    "NextQuestion",
    "PerformanceMetrics",
    "QuestionSnapshot",
    "SubmissionOutcome",
    "UserStateSnapshot",
    # Implementations
    "AssessmentEngine",
    "QuizCache",
    # Models
    "AnswerLogModel",
    "QuestionModel",
    "UserStateModel",
    "hash_answer",
]
