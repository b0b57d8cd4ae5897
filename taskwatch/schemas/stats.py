"""
Stats / rankings response schemas.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel

from taskwatch.schemas.users import PublicUser
from taskwatch.services.rankings import RankingBoard
from taskwatch.services.stats import MyPageStats


class Period(BaseModel):
    start: str
    end: str


class DayTotalsResponse(BaseModel):
    date: str
    planned_minutes: int
    completed_minutes: int
    done_count: int
    missed_count: int


class StatsSummary(BaseModel):
    level: int
    total_xp: int
    xp_for_current_level: int
    xp_for_next_level: int
    xp_to_next_level: int
    level_progress: float
    streak_count: int
    completion_rate: Optional[float] = None
    weekly_done: int
    weekly_missed: int
    completed_minutes_week: int
    completed_minutes_previous_week: int
    xp_per_minute: int
    xp_penalty_missed: int


class WeekNavigation(BaseModel):
    prev_week_start: str
    next_week_start: Optional[str] = None
    is_current_week: bool


class MyPageResponse(BaseModel):
    period: Period
    weekly_totals: list[DayTotalsResponse]
    summary: StatsSummary
    navigation: WeekNavigation

    @classmethod
    def from_stats(cls, stats: MyPageStats) -> "MyPageResponse":
        level = stats.level
        return cls(
            period=Period(start=stats.period_start.isoformat(), end=stats.period_end.isoformat()),
            weekly_totals=[
                DayTotalsResponse(
                    date=day.date.isoformat(),
                    planned_minutes=day.planned_minutes,
                    completed_minutes=day.completed_minutes,
                    done_count=day.done_count,
                    missed_count=day.missed_count,
                )
                for day in stats.weekly_totals
            ],
            summary=StatsSummary(
                level=level.level,
                total_xp=level.total_xp,
                xp_for_current_level=level.xp_for_current_level,
                xp_for_next_level=level.xp_for_next_level,
                xp_to_next_level=level.xp_to_next_level,
                level_progress=level.progress,
                streak_count=stats.streak_count,
                completion_rate=stats.completion_rate,
                weekly_done=stats.weekly_done,
                weekly_missed=stats.weekly_missed,
                completed_minutes_week=stats.completed_minutes_week,
                completed_minutes_previous_week=stats.completed_minutes_previous_week,
                xp_per_minute=stats.xp_per_minute,
                xp_penalty_missed=stats.xp_penalty_missed,
            ),
            navigation=WeekNavigation(
                prev_week_start=stats.prev_week_start.isoformat(),
                next_week_start=stats.next_week_start.isoformat() if stats.next_week_start else None,
                is_current_week=stats.is_current_week,
            ),
        )


class RankingRow(BaseModel):
    rank: int
    user: PublicUser
    value: Optional[int | float] = None
    display_value: str
    extra: Optional[dict[str, Any]] = None


class RankingsResponse(BaseModel):
    metric: str
    period: str
    range: Period
    rankings: list[RankingRow]

    @classmethod
    def from_board(cls, board: RankingBoard) -> "RankingsResponse":
        return cls(
            metric=board.metric.value,
            period=board.period.value,
            range=Period(start=board.start.isoformat(), end=board.end.isoformat()),
            rankings=[
                RankingRow(
                    rank=index + 1,
                    user=PublicUser.from_model(board.users.get(entry.user_id), entry.user_id),
                    value=entry.value,
                    display_value=entry.display_value,
                    extra=entry.extra,
                )
                for index, entry in enumerate(board.entries)
            ],
        )
