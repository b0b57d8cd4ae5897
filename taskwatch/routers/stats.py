"""
Stats router.

GET /stats/mypage   — Weekly totals, XP / level, streak and completion rate
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskwatch.core.deps import get_current_user_id, get_now
from taskwatch.db.base import get_db
from taskwatch.schemas.common import ErrorResponse
from taskwatch.schemas.stats import MyPageResponse
from taskwatch.services.stats import build_mypage

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get(
    "/mypage",
    response_model=MyPageResponse,
    summary="Personal weekly stats",
    responses={422: {"model": ErrorResponse, "description": "week_start is not YYYY-MM-DD."}},
)
def mypage(
    week_start: Optional[str] = Query(
        default=None,
        description="Any date (YYYY-MM-DD); the week containing it is shown. Defaults to this week.",
    ),
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """
    XP, level and streak fold over the caller's whole history; the day
    buckets, completion rate and minutes cover the selected ISO week.
    `navigation.next_week_start` is null once the current week is reached.
    """
    return MyPageResponse.from_stats(build_mypage(db, user_id, week_start, now))
