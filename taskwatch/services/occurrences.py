"""
Occurrence store.

Rules:
- Ownership failures surface as OccurrenceNotFound / EventNotFound.
- Status moves along ALLOWED_TRANSITIONS only; asking for the current
  status again is a conflict.
- A status change and its auto timeline post are written in one commit.
- A single occurrence may only be deleted while its end is still ahead of
  the caller's clock. Series deletes go through services/events.py.

Public API
----------
new_occurrence(event, start_at, end_at, notes)              -> Occurrence (unsaved)
build_series(event, starts, duration, notes)                -> list[Occurrence] (unsaved)
list_occurrences(db, user_id, start, end, status)           -> list[Occurrence]
create_occurrence(db, user_id, event_id, start, end, notes) -> Occurrence
update_occurrence(db, user_id, occurrence_id, changes)      -> Occurrence
change_status(db, user_id, occurrence_id, ...)              -> StatusChange
delete_occurrence(db, user_id, occurrence_id, now)          -> None
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskwatch.core.errors import (
    DeleteNotAllowedError,
    EmptyUpdateError,
    EventNotFoundError,
    InvalidRangeError,
    NoChangesError,
    OccurrenceNotFoundError,
    RangeTooLargeError,
    StatusUnchangedError,
    ValidationFailedError,
)
from taskwatch.models.event import Event
from taskwatch.models.occurrence import Occurrence, OccurrenceStatus
from taskwatch.models.timeline import TimelinePost, TimelinePostKind

logger = logging.getLogger(__name__)

MAX_LIST_RANGE_DAYS = 31

ALLOWED_TRANSITIONS: dict[OccurrenceStatus, frozenset[OccurrenceStatus]] = {
    OccurrenceStatus.scheduled: frozenset({OccurrenceStatus.done, OccurrenceStatus.missed}),
    OccurrenceStatus.done: frozenset({OccurrenceStatus.missed}),
    OccurrenceStatus.missed: frozenset({OccurrenceStatus.done}),
}

_AUTO_KIND = {
    OccurrenceStatus.done: TimelinePostKind.auto_done,
    OccurrenceStatus.missed: TimelinePostKind.auto_missed,
}


def auto_message(kind: TimelinePostKind, event_title: Optional[str]) -> str:
    title = (event_title or "").strip() or "task"
    if kind == TimelinePostKind.auto_done:
        return f'Completed "{title}".'
    if kind == TimelinePostKind.auto_missed:
        return f'Missed "{title}".'
    return "Added a progress note."


# ---------------------------------------------------------------------------
# Construction helpers (no session access)
# ---------------------------------------------------------------------------

def new_occurrence(
    event: Event, start_at: datetime, end_at: datetime, notes: Optional[str] = None
) -> Occurrence:
    return Occurrence(
        event_id=event.id,
        user_id=event.user_id,
        start_at=start_at,
        end_at=end_at,
        status=OccurrenceStatus.scheduled,
        is_all_day=event.is_all_day,
        notes=notes,
    )


def build_series(
    event: Event,
    starts: list[datetime],
    duration: timedelta,
    notes: Optional[str] = None,
) -> list[Occurrence]:
    """One SCHEDULED occurrence per start; the caller adds and commits them together."""
    return [new_occurrence(event, start, start + duration, notes) for start in starts]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_owned_occurrence(
    db: Session, user_id: str, occurrence_id: int, *, for_update: bool = False
) -> Occurrence:
    stmt = select(Occurrence).where(
        Occurrence.id == occurrence_id,
        Occurrence.user_id == user_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    occ = db.scalars(stmt).first()
    if occ is None:
        raise OccurrenceNotFoundError(occurrence_id)
    return occ


def list_occurrences(
    db: Session,
    user_id: str,
    start: datetime,
    end: datetime,
    status: Optional[OccurrenceStatus] = None,
) -> list[Occurrence]:
    if end <= start:
        raise InvalidRangeError("end must be later than start.")
    if end - start > timedelta(days=MAX_LIST_RANGE_DAYS):
        raise RangeTooLargeError(MAX_LIST_RANGE_DAYS)

    stmt = select(Occurrence).where(
        Occurrence.user_id == user_id,
        Occurrence.start_at >= start,
        Occurrence.start_at < end,
    )
    if status is not None:
        stmt = stmt.where(Occurrence.status == status)
    return list(db.scalars(stmt.order_by(Occurrence.start_at.asc(), Occurrence.id.asc())).all())


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def _minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def create_occurrence(
    db: Session,
    user_id: str,
    event_id: int,
    start_at: datetime,
    end_at: datetime,
    notes: Optional[str] = None,
) -> Occurrence:
    event = db.get(Event, event_id)
    if event is None or event.user_id != user_id:
        raise EventNotFoundError(event_id)
    if end_at <= start_at:
        raise InvalidRangeError("end_at must be later than start_at.")
    if not event.is_all_day and _minutes(start_at, end_at) != event.duration_minutes:
        raise ValidationFailedError({
            "end_at": f"Occurrence must last exactly {event.duration_minutes} minutes.",
        })

    occ = new_occurrence(event, start_at, end_at, notes)
    db.add(occ)
    db.commit()
    db.refresh(occ)
    return occ


def update_occurrence(db: Session, user_id: str, occurrence_id: int, changes: dict) -> Occurrence:
    """
    Reschedule / annotate one instance. Only start_at, end_at and notes
    are editable here; event-level fields belong to the series.
    """
    if not changes:
        raise EmptyUpdateError("Provide start_at, end_at or notes.")
    occ = get_owned_occurrence(db, user_id, occurrence_id)

    start_at = changes.get("start_at", occ.start_at)
    end_at = changes.get("end_at", occ.end_at)
    if end_at <= start_at:
        raise InvalidRangeError("end_at must be later than start_at.")

    differs = {
        name: value for name, value in changes.items()
        if getattr(occ, name) != value
    }
    if not differs:
        raise NoChangesError()

    for name, value in differs.items():
        setattr(occ, name, value)
    db.commit()
    db.refresh(occ)
    return occ


@dataclass
class StatusChange:
    occurrence: Occurrence
    post: TimelinePost
    post_created: bool
    previous_status: OccurrenceStatus


def change_status(
    db: Session,
    user_id: str,
    occurrence_id: int,
    target: OccurrenceStatus,
    completed_at: Optional[datetime] = None,
    notes: Optional[str] = None,
    notes_supplied: bool = False,
) -> StatusChange:
    """
    Move an occurrence to DONE or MISSED and upsert its auto timeline post.

    The row is read with FOR UPDATE so two concurrent requests for the same
    occurrence cannot both pass the same-status check. The post's message
    and kind are reset on every change; its memo is kept.
    """
    occ = get_owned_occurrence(db, user_id, occurrence_id, for_update=True)
    current = occ.status
    if target == current:
        raise StatusUnchangedError(current.value)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationFailedError({"status": f"Cannot move from {current.value} to {target.value}."})

    occ.status = target
    occ.completed_at = completed_at if target == OccurrenceStatus.done else None
    if notes_supplied:
        occ.notes = notes

    kind = _AUTO_KIND[target]
    message = auto_message(kind, occ.event.title if occ.event else None)
    post = db.scalars(
        select(TimelinePost).where(TimelinePost.occurrence_id == occ.id)
    ).first()
    created = post is None
    if created:
        post = TimelinePost(
            user_id=occ.user_id,
            occurrence_id=occ.id,
            kind=kind,
            message=message,
        )
        db.add(post)
    else:
        post.kind = kind
        post.message = message

    db.commit()
    db.refresh(occ)
    db.refresh(post)

    logger.info(
        "Occurrence %s moved %s -> %s (post %s %s)",
        occ.id, current.value, target.value, post.id, "created" if created else "updated",
    )
    return StatusChange(occurrence=occ, post=post, post_created=created, previous_status=current)


def delete_occurrence(db: Session, user_id: str, occurrence_id: int, now: datetime) -> None:
    occ = get_owned_occurrence(db, user_id, occurrence_id)
    if occ.end_at <= now:
        raise DeleteNotAllowedError(occ.id)
    db.delete(occ)
    db.commit()
