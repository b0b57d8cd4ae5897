"""
Events router.

GET    /events         — Caller's events, newest first (optionally with occurrences)
POST   /events         — Create an event; a recurring one expands into its series
GET    /events/{id}    — Single event
PATCH  /events/{id}    — Partial update (title / tag apply to the whole series)
DELETE /events/{id}    — Delete the event and every occurrence
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from taskwatch.core.deps import get_current_user_id, get_now
from taskwatch.db.base import get_db
from taskwatch.schemas.common import ErrorResponse, as_utc
from taskwatch.schemas.events import (
    EventCreateRequest,
    EventListResponse,
    EventResponse,
    EventUpdateRequest,
)
from taskwatch.services import events as event_service

router = APIRouter(prefix="/events", tags=["events"])


def _window(
    with_occurrences: bool,
    range_start: Optional[datetime],
    range_end: Optional[datetime],
    now: datetime,
) -> Optional[event_service.OccurrenceWindow]:
    if not with_occurrences:
        return None
    return event_service.resolve_window(
        as_utc(range_start) if range_start else None,
        as_utc(range_end) if range_end else None,
        now,
    )


# ---------------------------------------------------------------------------
# GET /events
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=EventListResponse,
    summary="List the caller's events",
    responses={422: {"model": ErrorResponse, "description": "Invalid occurrence range."}},
)
def list_events(
    with_occurrences: bool = Query(default=False),
    range_start: Optional[datetime] = Query(default=None),
    range_end: Optional[datetime] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """
    With `with_occurrences=true`, each event carries its occurrences whose
    start falls in `[range_start, range_end)`. Without bounds the window is
    the 7 days from today's UTC midnight.
    """
    window = _window(with_occurrences, range_start, range_end, now)
    rows = event_service.list_events(db, user_id, window)
    return EventListResponse(
        total=len(rows),
        items=[EventResponse.from_model(r.event, r.occurrences) for r in rows],
    )


# ---------------------------------------------------------------------------
# POST /events
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an event (and its recurring series)",
    responses={
        201: {"description": "Event created with every generated occurrence."},
        422: {"model": ErrorResponse, "description": "Validation error or invalid rrule."},
    },
)
def create_event(
    payload: EventCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    - Without `rrule`: a one-off event, with its first occurrence if given.
    - With `rrule` (DAILY / WEEKLY + INTERVAL): `first_occurrence` is required;
      up to 11 further instances are created, none later than 90 days after
      the first start.
    """
    created = event_service.create_event(db, user_id, event_service.draft_from_request(payload))
    return EventResponse.from_model(created.event, created.occurrences)


# ---------------------------------------------------------------------------
# GET /events/{id}
# ---------------------------------------------------------------------------

@router.get(
    "/{event_id}",
    response_model=EventResponse,
    summary="Get one event",
    responses={404: {"model": ErrorResponse, "description": "Event not found."}},
)
def get_event(
    event_id: int,
    with_occurrences: bool = Query(default=False),
    range_start: Optional[datetime] = Query(default=None),
    range_end: Optional[datetime] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    window = _window(with_occurrences, range_start, range_end, now)
    row = event_service.get_event(db, user_id, event_id, window)
    return EventResponse.from_model(row.event, row.occurrences)


# ---------------------------------------------------------------------------
# PATCH /events/{id}
# ---------------------------------------------------------------------------

@router.patch(
    "/{event_id}",
    response_model=EventResponse,
    summary="Update an event",
    responses={
        400: {"model": ErrorResponse, "description": "Empty update."},
        404: {"model": ErrorResponse, "description": "Event not found."},
        422: {"model": ErrorResponse, "description": "Validation error or invalid rrule."},
    },
)
def update_event(
    event_id: int,
    payload: EventUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Only fields present in the body change. `is_all_day: true` without
    `duration_minutes` sets the duration to 1440. A new `rrule` is validated
    but existing occurrences are left as they are.
    """
    event = event_service.update_event(db, user_id, event_id, payload.supplied())
    return EventResponse.from_model(event)


# ---------------------------------------------------------------------------
# DELETE /events/{id}
# ---------------------------------------------------------------------------

@router.delete(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an event and its whole series",
    responses={404: {"model": ErrorResponse, "description": "Event not found."}},
)
def delete_event(
    event_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    event_service.delete_event(db, user_id, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
