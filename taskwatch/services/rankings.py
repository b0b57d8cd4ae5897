"""
Ranking engine.

Folds each friend's occurrences in the period into totals and sorts the
friend group by one metric. The sort is stable on the friend-list order
(caller first, then friends oldest first) with no secondary key, so equal
values keep their input order. Missing values sort as 0 but display "-".

totalMinutes counts the real span of DONE occurrences, all-day ones
included; this differs from the fixed all-day credit used for XP.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskwatch.core.errors import InvalidParametersError
from taskwatch.models.occurrence import Occurrence, OccurrenceStatus
from taskwatch.models.user import User
from taskwatch.services.friendships import friend_ids
from taskwatch.services.stats import completion_rate, day_key, minutes_between, start_of_week_utc
from taskwatch.services.users import users_by_id


class RankingMetric(str, enum.Enum):
    total_minutes = "totalMinutes"
    completion_rate = "completionRate"
    streak = "streak"


class RankingPeriod(str, enum.Enum):
    weekly = "weekly"
    monthly = "monthly"


def parse_metric(raw: Optional[str]) -> RankingMetric:
    try:
        return RankingMetric(raw or RankingMetric.total_minutes.value)
    except ValueError as exc:
        raise InvalidParametersError("Unsupported metric or period.", {"metric": raw}) from exc


def parse_period(raw: Optional[str]) -> RankingPeriod:
    try:
        return RankingPeriod(raw or RankingPeriod.weekly.value)
    except ValueError as exc:
        raise InvalidParametersError("Unsupported metric or period.", {"period": raw}) from exc


def period_range(period: RankingPeriod, now: datetime) -> tuple[datetime, datetime]:
    """[start, end) of the current ISO week or calendar month, UTC."""
    if period == RankingPeriod.weekly:
        monday = start_of_week_utc(now)
        start = datetime(monday.year, monday.month, monday.day, tzinfo=timezone.utc)
        return start, start + timedelta(days=7)
    today = now.astimezone(timezone.utc)
    start = datetime(today.year, today.month, 1, tzinfo=timezone.utc)
    if today.month == 12:
        end = datetime(today.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(today.year, today.month + 1, 1, tzinfo=timezone.utc)
    return start, end


@dataclass
class PeriodTotals:
    total_minutes: int = 0
    done_count: int = 0
    missed_count: int = 0
    done_days: set[date] = field(default_factory=set)


def fold_occurrences(occurrences) -> dict[str, PeriodTotals]:
    totals: dict[str, PeriodTotals] = {}
    for occ in occurrences:
        bucket = totals.setdefault(occ.user_id, PeriodTotals())
        if occ.status == OccurrenceStatus.done:
            bucket.done_count += 1
            bucket.total_minutes += minutes_between(occ.start_at, occ.end_at)
            bucket.done_days.add(day_key(occ.start_at))
        elif occ.status == OccurrenceStatus.missed:
            bucket.missed_count += 1
    return totals


def longest_streak(done_days: set[date], start: datetime, end: datetime) -> int:
    """Longest run of consecutive DONE days inside [start, end)."""
    if not done_days:
        return 0
    longest = current = 0
    cursor = start.astimezone(timezone.utc).date()
    last = (end - timedelta(microseconds=1)).astimezone(timezone.utc).date()
    while cursor <= last:
        if cursor in done_days:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
        cursor += timedelta(days=1)
    return longest


@dataclass
class RankingEntry:
    user_id: str
    value: Optional[float]
    display_value: str
    extra: Optional[dict] = None


def score(
    metric: RankingMetric, totals: PeriodTotals, start: datetime, end: datetime
) -> RankingEntry:
    if metric == RankingMetric.total_minutes:
        return RankingEntry("", totals.total_minutes, f"{totals.total_minutes} min")
    if metric == RankingMetric.completion_rate:
        ratio = completion_rate(totals.done_count, totals.missed_count)
        return RankingEntry(
            "",
            ratio,
            "-" if ratio is None else f"{ratio * 100:.1f}%",
            {"done_count": totals.done_count, "missed_count": totals.missed_count},
        )
    streak = longest_streak(totals.done_days, start, end)
    return RankingEntry("", streak, f"{streak} days")


def rank(
    metric: RankingMetric,
    member_ids: list[str],
    totals: dict[str, PeriodTotals],
    start: datetime,
    end: datetime,
) -> list[RankingEntry]:
    """Stable descending sort over member_ids; None counts as 0."""
    entries = []
    for user_id in member_ids:
        entry = score(metric, totals.get(user_id, PeriodTotals()), start, end)
        entry.user_id = user_id
        entries.append(entry)
    return sorted(entries, key=lambda e: e.value or 0, reverse=True)


@dataclass
class RankingBoard:
    metric: RankingMetric
    period: RankingPeriod
    start: datetime
    end: datetime
    entries: list[RankingEntry]
    users: dict[str, User]


def build_rankings(
    db: Session,
    user_id: str,
    metric: RankingMetric,
    period: RankingPeriod,
    now: datetime,
) -> RankingBoard:
    start, end = period_range(period, now)
    members = friend_ids(db, user_id)
    users = users_by_id(db, members)
    # only members with a profile row are ranked
    members = [m for m in members if m in users]

    occurrences = db.scalars(
        select(Occurrence).where(
            Occurrence.user_id.in_(members),
            Occurrence.start_at >= start,
            Occurrence.start_at < end,
        )
    ).all() if members else []

    entries = rank(metric, members, fold_occurrences(occurrences), start, end)
    return RankingBoard(metric=metric, period=period, start=start, end=end, entries=entries, users=users)
