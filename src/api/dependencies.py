"""FastAPI dependency injection for services and authentication.

Services are built once in the application lifespan and kept on
``app.state``; routes receive them through Depends().
"""

from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.modules.assessment.engine import AssessmentEngine
from src.modules.leaderboard.service import LeaderboardRanker
from src.shared.config import get_settings
from src.shared.exceptions import AuthenticationError

# Security scheme
security = HTTPBearer(auto_error=False)


# ===================
# Service Dependencies
# ===================

def get_engine(request: Request) -> AssessmentEngine:
    """Get the assessment engine built at startup."""
    return request.app.state.engine


def get_ranker(request: Request) -> LeaderboardRanker:
    """Get the leaderboard ranker built at startup."""
    return request.app.state.ranker


# ===================
# Authentication Dependencies
# ===================

def decode_user_id(token: str) -> UUID:
    """Verify a bearer token and return its subject as a user id.

    Args:
        token: Encoded JWT issued by the identity provider

    Returns:
        User UUID from the ``sub`` claim

    Raises:
        AuthenticationError: If the token is invalid, expired or has no usable subject
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
        return UUID(str(payload["sub"]))
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError()
    except (KeyError, ValueError):
        raise AuthenticationError("Token subject is not a valid user id")


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> UUID:
    """Validate the bearer token and return the current user's ID.

    Raises:
        AuthenticationError: If no token is supplied or it fails verification
    """
    if credentials is None:
        raise AuthenticationError("Authentication required")
    return decode_user_id(credentials.credentials)


# ===================
# Type Aliases for Dependencies
# ===================

CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
EngineDep = Annotated[AssessmentEngine, Depends(get_engine)]
RankerDep = Annotated[LeaderboardRanker, Depends(get_ranker)]
