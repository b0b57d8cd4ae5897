"""
Stats / XP engine.

Rules:
- Pure folds over occurrence rows; the only query is `build_mypage`.
- XP: DONE adds minutes × XP_PER_MINUTE (all-day counts as
  ALL_DAY_EFFECTIVE_MINUTES); MISSED subtracts XP_PENALTY_MISSED, floored
  at 0 after each penalty.
- Weeks are ISO weeks (Monday start) in UTC.

Public API
----------
compute_xp(occurrences)                 -> int
compute_level(total_xp)                 -> LevelSnapshot
compute_streak(done_days, today)        -> int
start_of_week_utc(moment)               -> date
parse_week_start(raw, today)            -> date
build_mypage(db, user_id, week_start, now) -> MyPageStats
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskwatch.core.errors import InvalidWeekStartError
from taskwatch.models.occurrence import Occurrence, OccurrenceStatus

XP_PER_MINUTE = 2
XP_PENALTY_MISSED = 20
LEVEL_STEP = 500
ALL_DAY_EFFECTIVE_MINUTES = 60

_WEEK_START_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------------------------------------------------------------------------
# Tiny utilities
# ---------------------------------------------------------------------------

def minutes_between(start: datetime, end: datetime) -> int:
    seconds = max(0.0, (end - start).total_seconds())
    return int(seconds / 60 + 0.5)


def day_key(moment: datetime) -> date:
    return moment.astimezone(timezone.utc).date()


def start_of_week_utc(moment: datetime | date) -> date:
    day = moment.astimezone(timezone.utc).date() if isinstance(moment, datetime) else moment
    return day - timedelta(days=day.weekday())


def _midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def parse_week_start(raw: Optional[str], today: date) -> date:
    """Any YYYY-MM-DD date, normalised to the Monday of its week."""
    if not raw:
        return start_of_week_utc(today)
    if not _WEEK_START_RE.match(raw):
        raise InvalidWeekStartError(raw)
    try:
        parsed = date.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidWeekStartError(raw) from exc
    return start_of_week_utc(parsed)


# ---------------------------------------------------------------------------
# Folds
# ---------------------------------------------------------------------------

def compute_xp(occurrences: Iterable[Occurrence]) -> int:
    """Left fold in the given order; the total never dips below zero."""
    total = 0
    for occ in occurrences:
        if occ.status == OccurrenceStatus.done:
            minutes = (
                ALL_DAY_EFFECTIVE_MINUTES if occ.is_all_day
                else minutes_between(occ.start_at, occ.end_at)
            )
            total += minutes * XP_PER_MINUTE
        elif occ.status == OccurrenceStatus.missed:
            total = max(0, total - XP_PENALTY_MISSED)
    return total


@dataclass(frozen=True)
class LevelSnapshot:
    level: int
    total_xp: int
    xp_for_current_level: int
    xp_for_next_level: int
    xp_to_next_level: int
    progress: float


def compute_level(total_xp: int) -> LevelSnapshot:
    xp = max(0, total_xp)
    level = xp // LEVEL_STEP + 1
    current_floor = (level - 1) * LEVEL_STEP
    next_floor = level * LEVEL_STEP
    progress = min(1.0, max(0.0, (xp - current_floor) / LEVEL_STEP))
    return LevelSnapshot(
        level=level,
        total_xp=xp,
        xp_for_current_level=current_floor,
        xp_for_next_level=next_floor,
        xp_to_next_level=next_floor - xp,
        progress=progress,
    )


def compute_streak(done_days: set[date], today: date) -> int:
    """Consecutive days with a DONE occurrence, walking back from today."""
    streak = 0
    cursor = today
    while cursor in done_days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def completion_rate(done: int, missed: int) -> Optional[float]:
    denominator = done + missed
    return done / denominator if denominator > 0 else None


# ---------------------------------------------------------------------------
# My page
# ---------------------------------------------------------------------------

@dataclass
class DayTotals:
    date: date
    planned_minutes: int = 0
    completed_minutes: int = 0
    done_count: int = 0
    missed_count: int = 0


@dataclass
class MyPageStats:
    period_start: date
    period_end: date
    weekly_totals: list[DayTotals]
    level: LevelSnapshot
    streak_count: int
    completion_rate: Optional[float]
    weekly_done: int
    weekly_missed: int
    completed_minutes_week: int
    completed_minutes_previous_week: int
    prev_week_start: date
    next_week_start: Optional[date]
    is_current_week: bool
    xp_per_minute: int = field(default=XP_PER_MINUTE)
    xp_penalty_missed: int = field(default=XP_PENALTY_MISSED)


def summarize_week(
    occurrences: Iterable[Occurrence], week_start: date, today: date
) -> MyPageStats:
    occurrences = list(occurrences)
    period_start = _midnight(week_start)
    period_end = period_start + timedelta(days=7)
    previous_start = period_start - timedelta(days=7)

    buckets = {week_start + timedelta(days=i): DayTotals(week_start + timedelta(days=i)) for i in range(7)}
    done_days: set[date] = set()
    weekly_done = weekly_missed = 0
    completed_week = completed_previous = 0

    for occ in occurrences:
        minutes = minutes_between(occ.start_at, occ.end_at)
        is_done = occ.status == OccurrenceStatus.done
        if period_start <= occ.start_at < period_end:
            bucket = buckets[day_key(occ.start_at)]
            bucket.planned_minutes += minutes
            if is_done:
                bucket.completed_minutes += minutes
                bucket.done_count += 1
                weekly_done += 1
                completed_week += minutes
            elif occ.status == OccurrenceStatus.missed:
                bucket.missed_count += 1
                weekly_missed += 1
        if is_done and previous_start <= occ.start_at < period_start:
            completed_previous += minutes
        if is_done:
            done_days.add(day_key(occ.start_at))

    current_week = start_of_week_utc(today)
    next_week = week_start + timedelta(days=7)
    return MyPageStats(
        period_start=week_start,
        period_end=week_start + timedelta(days=6),
        weekly_totals=list(buckets.values()),
        level=compute_level(compute_xp(occurrences)),
        streak_count=compute_streak(done_days, today),
        completion_rate=completion_rate(weekly_done, weekly_missed),
        weekly_done=weekly_done,
        weekly_missed=weekly_missed,
        completed_minutes_week=completed_week,
        completed_minutes_previous_week=completed_previous,
        prev_week_start=week_start - timedelta(days=7),
        next_week_start=None if next_week > current_week else next_week,
        is_current_week=week_start == current_week,
    )


def build_mypage(
    db: Session, user_id: str, week_start: Optional[str], now: datetime
) -> MyPageStats:
    today = day_key(now)
    monday = parse_week_start(week_start, today)
    history = db.scalars(
        select(Occurrence)
        .where(Occurrence.user_id == user_id)
        .order_by(Occurrence.start_at.asc(), Occurrence.id.asc())
    ).all()
    return summarize_week(history, monday, today)
