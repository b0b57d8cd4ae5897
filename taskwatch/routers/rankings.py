"""
Rankings router.

GET /rankings   — Friend-group leaderboard for one metric and period
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskwatch.core.deps import get_current_user_id, get_now
from taskwatch.db.base import get_db
from taskwatch.schemas.common import ErrorResponse
from taskwatch.schemas.stats import RankingsResponse
from taskwatch.services import rankings as ranking_service

router = APIRouter(prefix="/rankings", tags=["rankings"])


@router.get(
    "",
    response_model=RankingsResponse,
    summary="Friend rankings",
    responses={422: {"model": ErrorResponse, "description": "Unsupported metric or period."}},
)
def rankings(
    metric: Optional[str] = Query(default=None, description="totalMinutes | completionRate | streak"),
    period: Optional[str] = Query(default=None, description="weekly | monthly"),
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """
    Ranks the caller and their friends. Equal values keep friend-list order
    (caller first, then friends oldest first). Missing completion rates sort
    as 0 and display as "-".
    """
    board = ranking_service.build_rankings(
        db,
        user_id,
        ranking_service.parse_metric(metric),
        ranking_service.parse_period(period),
        now,
    )
    return RankingsResponse.from_board(board)
