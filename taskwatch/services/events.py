"""
Event aggregate service.

Rules:
- An event is only ever touched by its owner; anything else is EventNotFound.
- A recurring event is created together with its first occurrence and the
  whole expanded series in one transaction.
- db.commit() only at the root function.

Public API
----------
draft_from_request(payload)                          -> OneOffEvent | RecurringEvent
create_event(db, user_id, draft)                     -> CreatedEvent
list_events(db, user_id, window)                     -> list[EventWithOccurrences]
get_event(db, user_id, event_id, window)             -> EventWithOccurrences
update_event(db, user_id, event_id, changes)         -> Event
delete_event(db, user_id, event_id)                  -> None
resolve_window(range_start, range_end, now)          -> OccurrenceWindow
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskwatch.core.errors import EmptyUpdateError, EventNotFoundError, InvalidRangeError
from taskwatch.models.event import Event, Visibility
from taskwatch.models.occurrence import Occurrence
from taskwatch.schemas.events import ALL_DAY_DURATION, EventCreateRequest
from taskwatch.services import recurrence
from taskwatch.services.occurrences import build_series, new_occurrence

logger = logging.getLogger(__name__)

DEFAULT_OCCURRENCE_RANGE_DAYS = 7


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FirstOccurrence:
    start_at: datetime
    end_at: datetime
    notes: Optional[str] = None


@dataclass(frozen=True)
class OneOffEvent:
    title: str
    duration_minutes: int
    tag: Optional[str] = None
    description: Optional[str] = None
    visibility: Visibility = Visibility.private
    is_all_day: bool = False
    exdates: tuple[datetime, ...] = ()
    first_occurrence: Optional[FirstOccurrence] = None


@dataclass(frozen=True)
class RecurringEvent:
    """A series: the first occurrence and the rule are both mandatory."""
    title: str
    duration_minutes: int
    rrule: str
    first_occurrence: FirstOccurrence
    tag: Optional[str] = None
    description: Optional[str] = None
    visibility: Visibility = Visibility.private
    is_all_day: bool = False
    exdates: tuple[datetime, ...] = ()


EventDraft = Union[OneOffEvent, RecurringEvent]


def draft_from_request(payload: EventCreateRequest) -> EventDraft:
    first = None
    if payload.first_occurrence is not None:
        first = FirstOccurrence(
            start_at=payload.first_occurrence.start_at,
            end_at=payload.first_occurrence.end_at,
            notes=payload.first_occurrence.notes,
        )
    common = dict(
        title=payload.title,
        duration_minutes=payload.duration_minutes,
        tag=payload.tag,
        description=payload.description,
        visibility=payload.visibility,
        is_all_day=payload.is_all_day,
        exdates=tuple(payload.exdates or ()),
    )
    if payload.rrule:
        return RecurringEvent(rrule=payload.rrule, first_occurrence=first, **common)
    return OneOffEvent(first_occurrence=first, **common)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class CreatedEvent:
    event: Event
    occurrences: list[Occurrence] = field(default_factory=list)


@dataclass
class EventWithOccurrences:
    event: Event
    occurrences: Optional[list[Occurrence]] = None


@dataclass(frozen=True)
class OccurrenceWindow:
    start: datetime
    end: datetime


def _encode_exdates(values) -> Optional[str]:
    if not values:
        return None
    return json.dumps([v.astimezone(timezone.utc).isoformat() for v in values])


def _start_of_day(moment: datetime) -> datetime:
    return moment.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_window(
    range_start: Optional[datetime],
    range_end: Optional[datetime],
    now: datetime,
) -> OccurrenceWindow:
    """
    Occurrence window for event listings.

    Neither bound → 7 days from today's UTC midnight; one bound → the other
    is derived ±7 days.
    """
    span = timedelta(days=DEFAULT_OCCURRENCE_RANGE_DAYS)
    if range_start is not None and range_end is not None and range_end <= range_start:
        raise InvalidRangeError("range_end must be later than range_start.")
    if range_start is None and range_end is None:
        range_start = _start_of_day(now)
    if range_end is None:
        range_end = range_start + span
    if range_start is None:
        range_start = range_end - span
    return OccurrenceWindow(start=range_start, end=range_end)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_owned_event(db: Session, user_id: str, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if event is None or event.user_id != user_id:
        raise EventNotFoundError(event_id)
    return event


def _occurrences_in(db: Session, event_ids: list[int], window: OccurrenceWindow) -> dict[int, list[Occurrence]]:
    grouped: dict[int, list[Occurrence]] = {event_id: [] for event_id in event_ids}
    if not event_ids:
        return grouped
    rows = db.scalars(
        select(Occurrence)
        .where(
            Occurrence.event_id.in_(event_ids),
            Occurrence.start_at >= window.start,
            Occurrence.start_at < window.end,
        )
        .order_by(Occurrence.start_at.asc(), Occurrence.id.asc())
    ).all()
    for occ in rows:
        grouped[occ.event_id].append(occ)
    return grouped


def list_events(
    db: Session, user_id: str, window: Optional[OccurrenceWindow] = None
) -> list[EventWithOccurrences]:
    events = db.scalars(
        select(Event)
        .where(Event.user_id == user_id)
        .order_by(Event.created_at.desc(), Event.id.desc())
    ).all()
    if window is None:
        return [EventWithOccurrences(event=e) for e in events]
    grouped = _occurrences_in(db, [e.id for e in events], window)
    return [EventWithOccurrences(event=e, occurrences=grouped[e.id]) for e in events]


def get_event(
    db: Session, user_id: str, event_id: int, window: Optional[OccurrenceWindow] = None
) -> EventWithOccurrences:
    event = get_owned_event(db, user_id, event_id)
    if window is None:
        return EventWithOccurrences(event=event)
    return EventWithOccurrences(event=event, occurrences=_occurrences_in(db, [event.id], window)[event.id])


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_event(db: Session, user_id: str, draft: EventDraft) -> CreatedEvent:
    """
    Insert the event, its first occurrence and, for a series, every expanded
    instance. All rows share one commit; a bad rule leaves nothing behind.
    """
    starts: list[datetime] = []
    if isinstance(draft, RecurringEvent):
        excluded = set(draft.exdates)
        starts = [
            s for s in recurrence.expand(draft.rrule, draft.first_occurrence.start_at)
            if s not in excluded
        ]

    event = Event(
        user_id=user_id,
        title=draft.title,
        tag=draft.tag,
        description=draft.description,
        visibility=draft.visibility,
        duration_minutes=draft.duration_minutes,
        is_all_day=draft.is_all_day,
        rrule=draft.rrule if isinstance(draft, RecurringEvent) else None,
        exdates=_encode_exdates(draft.exdates),
    )
    db.add(event)
    db.flush()

    created: list[Occurrence] = []
    first = draft.first_occurrence
    if first is not None:
        created.append(new_occurrence(event, first.start_at, first.end_at, first.notes))
    if starts:
        created.extend(
            build_series(
                event,
                starts,
                timedelta(minutes=draft.duration_minutes),
                notes=first.notes,
            )
        )
    db.add_all(created)
    db.commit()
    db.refresh(event)
    for occ in created:
        db.refresh(occ)

    logger.info(
        "Created event %s for %s with %d occurrence(s)", event.id, user_id, len(created)
    )
    return CreatedEvent(event=event, occurrences=created)


_EVENT_FIELDS = (
    "title", "description", "tag", "visibility", "duration_minutes", "is_all_day", "rrule", "exdates",
)


def update_event(db: Session, user_id: str, event_id: int, changes: dict) -> Event:
    """
    Apply a partial update. Title / tag / description always apply to the
    whole series; occurrences are not regenerated when the rule changes.
    """
    if not changes:
        raise EmptyUpdateError("Provide at least one field to update.")
    event = get_owned_event(db, user_id, event_id)

    if changes.get("rrule"):
        recurrence.parse_rule(changes["rrule"])
    if changes.get("is_all_day") is True and "duration_minutes" not in changes:
        changes = {**changes, "duration_minutes": ALL_DAY_DURATION}

    for name in _EVENT_FIELDS:
        if name not in changes:
            continue
        value = changes[name]
        if name == "exdates":
            value = _encode_exdates(value)
        setattr(event, name, value)

    db.commit()
    db.refresh(event)
    return event


def delete_event(db: Session, user_id: str, event_id: int) -> None:
    """Series-level delete: every occurrence goes with it, past ones included."""
    event = get_owned_event(db, user_id, event_id)
    db.delete(event)
    db.commit()
    logger.info("Deleted event %s for %s", event_id, user_id)
