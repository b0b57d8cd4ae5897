"""
Occurrences router.

GET    /occurrences               — Caller's occurrences starting in [start, end)
GET    /occurrences/pending       — Overdue, still-SCHEDULED occurrences (cursor paginated)
POST   /occurrences               — Add a single occurrence to an event
PATCH  /occurrences/{id}          — Reschedule / annotate one instance
PATCH  /occurrences/{id}/status   — Mark DONE or MISSED (upserts the auto timeline post)
DELETE /occurrences/{id}          — Delete one instance while it is still upcoming
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from taskwatch.core.deps import get_broadcaster, get_current_user_id, get_now
from taskwatch.core.realtime import Broadcaster, RealtimeEvent
from taskwatch.db.base import get_db
from taskwatch.models.occurrence import OccurrenceStatus
from taskwatch.schemas.common import ErrorResponse, as_utc, ev, iso
from taskwatch.schemas.occurrences import (
    OccurrenceCreateRequest,
    OccurrenceListResponse,
    OccurrenceResponse,
    OccurrenceStatusRequest,
    OccurrenceUpdateRequest,
    PendingEventSummary,
    PendingListResponse,
    PendingOccurrenceResponse,
)
from taskwatch.schemas.timeline import TimelinePostResponse
from taskwatch.services import occurrences as occurrence_service
from taskwatch.services import pending as pending_service
from taskwatch.services.timeline import load_post

router = APIRouter(prefix="/occurrences", tags=["occurrences"])


# ---------------------------------------------------------------------------
# GET /occurrences
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=OccurrenceListResponse,
    summary="List occurrences in a time range",
    responses={422: {"model": ErrorResponse, "description": "Invalid or too large range."}},
)
def list_occurrences(
    start: datetime = Query(..., description="Inclusive lower bound on start_at."),
    end: datetime = Query(..., description="Exclusive upper bound on start_at."),
    status_filter: Optional[OccurrenceStatus] = Query(default=None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """The range may span at most 31 days."""
    rows = occurrence_service.list_occurrences(
        db, user_id, as_utc(start), as_utc(end), status_filter
    )
    return OccurrenceListResponse(
        total=len(rows),
        items=[OccurrenceResponse.from_model(o) for o in rows],
    )


# ---------------------------------------------------------------------------
# GET /occurrences/pending
# ---------------------------------------------------------------------------

@router.get(
    "/pending",
    response_model=PendingListResponse,
    summary="Overdue occurrences still waiting for DONE / MISSED",
    responses={
        404: {"model": ErrorResponse, "description": "cursor_id is not a pending occurrence."},
        422: {"model": ErrorResponse, "description": "Validation error."},
    },
)
def list_pending(
    before: Optional[datetime] = Query(
        default=None,
        description="Cutoff. Omit on the first page, then echo back the returned `cutoff`.",
    ),
    limit: Optional[int] = Query(default=None, ge=1, description="Default 50, capped at 200."),
    cursor_id: Optional[int] = Query(default=None, ge=1),
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """
    SCHEDULED occurrences whose `end_at` is before the cutoff, ordered by
    `(end_at, id)`. `total` counts every match; `overdue_minutes` is measured
    against the cutoff.
    """
    cutoff = as_utc(before) if before is not None else now
    page = pending_service.query_pending(db, user_id, cutoff, limit, cursor_id)

    items = []
    for item in page.items:
        occ = item.occurrence
        base = OccurrenceResponse.from_model(occ).model_dump()
        items.append(
            PendingOccurrenceResponse(
                **base,
                overdue_minutes=item.overdue_minutes,
                event=PendingEventSummary(
                    id=occ.event.id,
                    title=occ.event.title,
                    tag=occ.event.tag,
                    visibility=ev(occ.event.visibility),
                ),
            )
        )
    return PendingListResponse(
        total=page.total,
        has_more=page.has_more,
        next_cursor=page.next_cursor,
        cutoff=iso(page.cutoff),
        items=items,
    )


# ---------------------------------------------------------------------------
# POST /occurrences
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=OccurrenceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a single occurrence",
    responses={
        404: {"model": ErrorResponse, "description": "Event not found."},
        422: {"model": ErrorResponse, "description": "Validation error."},
    },
)
def create_occurrence(
    payload: OccurrenceCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Unless the event is all-day, the span must equal the event's duration."""
    occ = occurrence_service.create_occurrence(
        db, user_id, payload.event_id, payload.start_at, payload.end_at, payload.notes
    )
    return OccurrenceResponse.from_model(occ)


# ---------------------------------------------------------------------------
# PATCH /occurrences/{id}
# ---------------------------------------------------------------------------

@router.patch(
    "/{occurrence_id}",
    response_model=OccurrenceResponse,
    summary="Reschedule or annotate one occurrence",
    responses={
        400: {"model": ErrorResponse, "description": "Empty update or nothing changed."},
        404: {"model": ErrorResponse, "description": "Occurrence not found."},
        422: {"model": ErrorResponse, "description": "end_at not after start_at."},
    },
)
def update_occurrence(
    occurrence_id: int,
    payload: OccurrenceUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    occ = occurrence_service.update_occurrence(db, user_id, occurrence_id, payload.supplied())
    return OccurrenceResponse.from_model(occ)


# ---------------------------------------------------------------------------
# PATCH /occurrences/{id}/status
# ---------------------------------------------------------------------------

@router.patch(
    "/{occurrence_id}/status",
    response_model=OccurrenceResponse,
    summary="Mark an occurrence DONE or MISSED",
    responses={
        404: {"model": ErrorResponse, "description": "Occurrence not found."},
        409: {"model": ErrorResponse, "description": "Occurrence already has this status."},
        422: {"model": ErrorResponse, "description": "Validation error."},
    },
)
def change_status(
    occurrence_id: int,
    payload: OccurrenceStatusRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """
    - DONE requires `completed_at`; MISSED must not carry one.
    - DONE and MISSED can be flipped into each other; nothing returns to SCHEDULED.
    - Exactly one auto timeline post exists per occurrence; its message is
      rewritten on each change and its memo is kept.
    """
    change = occurrence_service.change_status(
        db,
        user_id,
        occurrence_id,
        payload.status,
        completed_at=payload.completed_at,
        notes=payload.notes,
        notes_supplied="notes" in payload.model_fields_set,
    )

    post = load_post(db, change.post.id)
    serialized = TimelinePostResponse.from_model(post).model_dump()
    broadcaster.publish(
        RealtimeEvent.timeline_posted(serialized) if change.post_created
        else RealtimeEvent.timeline_updated(serialized)
    )
    broadcaster.publish(
        RealtimeEvent.occurrence_status_changed(
            change.occurrence.id, ev(change.occurrence.status), ev(post.kind)
        )
    )
    return OccurrenceResponse.from_model(change.occurrence)


# ---------------------------------------------------------------------------
# DELETE /occurrences/{id}
# ---------------------------------------------------------------------------

@router.delete(
    "/{occurrence_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete one upcoming occurrence",
    responses={
        404: {"model": ErrorResponse, "description": "Occurrence not found."},
        409: {"model": ErrorResponse, "description": "Its scheduled window has already ended."},
    },
)
def delete_occurrence(
    occurrence_id: int,
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """Past occurrences must be evaluated instead; delete the event to drop a whole series."""
    occurrence_service.delete_occurrence(db, user_id, occurrence_id, now)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
