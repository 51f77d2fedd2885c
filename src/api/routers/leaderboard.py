"""Leaderboard API routes."""

from fastapi import APIRouter, Query

from src.api.dependencies import CurrentUserId, RankerDep
from src.api.schemas.leaderboard import LeaderboardEntryResponse, LeaderboardResponse
from src.modules.leaderboard.interface import LeaderboardEntry
from src.shared.models import LeaderboardKind

router = APIRouter()


def _entry_response(entry: LeaderboardEntry) -> LeaderboardEntryResponse:
    return LeaderboardEntryResponse(
        rank=entry.rank,
        user_id=entry.user_id,
        total_score=entry.total_score,
        streak=entry.streak,
        max_streak=entry.max_streak,
    )


@router.get(
    "/{kind}",
    response_model=LeaderboardResponse,
    summary="Get leaderboard",
    description="Top users by total score or by best streak, plus the caller's own rank.",
)
async def get_leaderboard(
    kind: LeaderboardKind,
    user_id: CurrentUserId,
    ranker: RankerDep,
    limit: int | None = Query(
        default=None,
        ge=1,
        description="Page size (server caps it)",
    ),
) -> LeaderboardResponse:
    page = await ranker.get_leaderboard(user_id, kind, limit=limit)

    return LeaderboardResponse(
        kind=page.kind,
        entries=[_entry_response(entry) for entry in page.entries],
        current_user=_entry_response(page.current_user) if page.current_user else None,
    )
