"""
Pending-work query: SCHEDULED occurrences whose end has already passed.

Ordering is (end_at ASC, id ASC) and pages continue strictly after the
cursor row in that order, so rows sharing an end_at are never skipped or
repeated. The cutoff is fixed by the first page and echoed back; later
pages pass it in as `before` instead of re-reading the clock.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, selectinload

from taskwatch.core.errors import InvalidCursorError
from taskwatch.models.occurrence import Occurrence, OccurrenceStatus

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


@dataclass
class PendingItem:
    occurrence: Occurrence
    overdue_minutes: int


@dataclass
class PendingPage:
    items: list[PendingItem]
    total: int
    has_more: bool
    next_cursor: Optional[int]
    cutoff: datetime


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


def overdue_minutes(cutoff: datetime, end_at: datetime) -> int:
    return max(0, int((cutoff - end_at).total_seconds() // 60))


def _pending_filter(user_id: str, cutoff: datetime):
    return and_(
        Occurrence.user_id == user_id,
        Occurrence.status == OccurrenceStatus.scheduled,
        Occurrence.end_at < cutoff,
    )


def query_pending(
    db: Session,
    user_id: str,
    cutoff: datetime,
    limit: Optional[int] = None,
    cursor_id: Optional[int] = None,
) -> PendingPage:
    """
    One page of overdue, unevaluated occurrences.

    The cursor must itself be a row of the current result set (owned,
    pending, before cutoff); otherwise InvalidCursorError.
    """
    limit = clamp_limit(limit)
    base = _pending_filter(user_id, cutoff)

    stmt = select(Occurrence).where(base)
    if cursor_id is not None:
        anchor = db.scalars(
            select(Occurrence).where(base, Occurrence.id == cursor_id)
        ).first()
        if anchor is None:
            raise InvalidCursorError(
                cursor_id, "cursor_id does not reference a pending occurrence."
            )
        stmt = stmt.where(
            or_(
                Occurrence.end_at > anchor.end_at,
                and_(Occurrence.end_at == anchor.end_at, Occurrence.id > anchor.id),
            )
        )

    rows = list(
        db.scalars(
            stmt.options(selectinload(Occurrence.event))
            .order_by(Occurrence.end_at.asc(), Occurrence.id.asc())
            .limit(limit + 1)
        ).all()
    )
    total = db.scalar(select(func.count()).select_from(Occurrence).where(base)) or 0

    has_more = len(rows) > limit
    rows = rows[:limit]
    return PendingPage(
        items=[PendingItem(o, overdue_minutes(cutoff, o.end_at)) for o in rows],
        total=total,
        has_more=has_more,
        next_cursor=rows[-1].id if has_more and rows else None,
        cutoff=cutoff,
    )
