"""Shared exceptions for the adaptive quiz engine.

Every error the engine can surface falls into one of a handful of
families: validation, not-found, conflict, and dependency failures. The
API layer maps each family onto an HTTP status code.
"""

from typing import Any
from uuid import UUID


class QuizEngineException(Exception):
    """Root of the hierarchy. ``details`` is copied into the error envelope."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ===================
# Resource Errors
# ===================

class ResourceNotFoundError(QuizEngineException):
    """A lookup by ID found nothing."""

    def __init__(self, resource_type: str, resource_id: UUID | str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            {"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class QuestionNotFoundError(ResourceNotFoundError):
    def __init__(self, question_id: UUID) -> None:
        super().__init__("Question", question_id)


class UserStateNotFoundError(ResourceNotFoundError):
    """The user has never fetched a question, so has no adaptive state."""

    def __init__(self, user_id: UUID) -> None:
        super().__init__("UserState", user_id)


class NoContentAvailableError(QuizEngineException):
    """Not a single question is eligible for the user."""

    def __init__(self, user_id: UUID) -> None:
        super().__init__("No questions available", {"user_id": str(user_id)})


# ===================
# Concurrency Errors
# ===================

class ConflictError(QuizEngineException):
    """A write lost against concurrent state."""


class StateVersionConflictError(ConflictError):
    """The caller's state version is stale.

    The caller must refetch before retrying; the server never retries.
    """

    def __init__(self, expected_version: int | None, current_version: int) -> None:
        super().__init__(
            "State version mismatch. Please refresh.",
            {
                "expected_state_version": expected_version,
                "current_state_version": current_version,
            },
        )
        self.current_version = current_version


# ===================
# Validation Errors
# ===================

class ValidationError(QuizEngineException):
    """Caller input failed a domain check (as opposed to a schema check)."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"Validation error for '{field}': {message}", {"field": field})


class InvalidDifficultyLevelError(ValidationError):
    def __init__(self, level: int) -> None:
        super().__init__("difficulty", f"Difficulty level must be between 1 and 10, got {level}")


class InvalidAnswerError(ValidationError):
    """A submitted answer or idempotency key is malformed."""


# ===================
# Dependency Errors
# ===================

class ExternalServiceError(QuizEngineException):
    """A backing service failed."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"External service error ({service}): {message}", {"service": service})


class CacheBackendError(ExternalServiceError):
    """Raised by cache backends; always absorbed by the cache layer."""

    def __init__(self, message: str) -> None:
        super().__init__("cache", message)


# ===================
# Authentication Errors
# ===================

class AuthenticationError(QuizEngineException):
    """The bearer token could not be verified."""

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)
