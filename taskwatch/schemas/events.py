"""
Event request / response schemas.

POST   /events       → EventCreateRequest → EventResponse (with created occurrences)
PATCH  /events/{id}  → EventUpdateRequest → EventResponse
GET    /events       → EventListResponse
"""
from __future__ import annotations

import json
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from taskwatch.models.event import Event, Visibility
from taskwatch.models.occurrence import Occurrence
from taskwatch.schemas.common import RequestModel, UTCDatetime, ev, iso, strip_or_none
from taskwatch.schemas.occurrences import OccurrenceResponse, minutes_between

TITLE_MAX_LENGTH = 120
TAG_MAX_LENGTH = 32
RRULE_MAX_LENGTH = 2000
NOTES_MAX_LENGTH = 1000
DURATION_MIN = 5
DURATION_MAX = 1440
ALL_DAY_DURATION = 1440


def _normalize_title(v):
    if not isinstance(v, str) or not v.strip():
        raise ValueError("title must be a non-empty string")
    stripped = v.strip()
    if len(stripped) > TITLE_MAX_LENGTH:
        raise ValueError(f"title must be {TITLE_MAX_LENGTH} characters or less")
    return stripped


def _normalize_tag(v):
    if v is None:
        return None
    if not isinstance(v, str):
        raise ValueError("tag must be a string or null")
    stripped = v.strip()
    if len(stripped) > TAG_MAX_LENGTH:
        raise ValueError(f"tag must be {TAG_MAX_LENGTH} characters or less")
    return stripped or None


def _normalize_visibility(v):
    return v.upper() if isinstance(v, str) else v


def _check_duration(v: Optional[int]) -> Optional[int]:
    if v is not None and not DURATION_MIN <= v <= DURATION_MAX:
        raise ValueError(
            f"duration_minutes must be an integer between {DURATION_MIN} and {DURATION_MAX}"
        )
    return v


class FirstOccurrenceIn(RequestModel):
    """The concrete first instance created together with the event."""
    start_at: UTCDatetime
    end_at: UTCDatetime
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)

    @model_validator(mode="after")
    def check_range(self) -> "FirstOccurrenceIn":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be later than start_at")
        return self


class EventCreateRequest(RequestModel):
    """
    A new event.

    - `first_occurrence` is mandatory when `rrule` is given; the series is
      expanded from its start.
    - The first occurrence must last exactly `duration_minutes` unless the
      event is all-day.
    - `is_all_day` without `duration_minutes` means 1440 minutes.
    """
    title: str = Field(examples=["Read 20 pages"])
    description: Optional[str] = None
    tag: Optional[str] = Field(default=None, examples=["study"])
    visibility: Visibility = Field(default=Visibility.private, examples=["PRIVATE"])
    is_all_day: bool = False
    duration_minutes: Optional[int] = Field(default=None, validate_default=True, examples=[60])
    rrule: Optional[str] = Field(
        default=None,
        description="Recurrence rule, FREQ=DAILY or FREQ=WEEKLY with optional INTERVAL.",
        examples=["FREQ=WEEKLY;INTERVAL=1;BYDAY=MO"],
    )
    exdates: Optional[list[UTCDatetime]] = None
    first_occurrence: Optional[FirstOccurrenceIn] = Field(default=None, validate_default=True)

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return _normalize_title(v)

    @field_validator("tag", mode="before")
    @classmethod
    def check_tag(cls, v):
        return _normalize_tag(v)

    @field_validator("visibility", mode="before")
    @classmethod
    def check_visibility(cls, v):
        return _normalize_visibility(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)

    @field_validator("duration_minutes")
    @classmethod
    def default_duration(cls, v: Optional[int], info: ValidationInfo) -> int:
        if v is None:
            if info.data.get("is_all_day"):
                return ALL_DAY_DURATION
            raise ValueError("duration_minutes is required")
        return _check_duration(v)

    @field_validator("rrule")
    @classmethod
    def check_rrule(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if len(v) > RRULE_MAX_LENGTH:
            raise ValueError(f"rrule must be {RRULE_MAX_LENGTH} characters or less")
        stripped = v.strip()
        if not stripped:
            raise ValueError("rrule must not be empty")
        return stripped

    @field_validator("first_occurrence")
    @classmethod
    def check_first_occurrence(
        cls, v: Optional[FirstOccurrenceIn], info: ValidationInfo
    ) -> Optional[FirstOccurrenceIn]:
        if v is None:
            if info.data.get("rrule"):
                raise ValueError("first_occurrence is required when rrule is provided")
            return None
        duration = info.data.get("duration_minutes")
        if (
            duration is not None
            and not info.data.get("is_all_day")
            and minutes_between(v.start_at, v.end_at) != duration
        ):
            raise ValueError("first_occurrence duration must match duration_minutes")
        return v


class EventUpdateRequest(RequestModel):
    """
    Partial update. Only keys present in the body are applied.

    Title / tag / description changes apply to the whole series: they live
    on the event, not on individual occurrences.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    tag: Optional[str] = None
    visibility: Optional[Visibility] = None
    duration_minutes: Optional[int] = None
    is_all_day: Optional[bool] = None
    rrule: Optional[str] = None
    exdates: Optional[list[UTCDatetime]] = None

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return _normalize_title(v)

    @field_validator("tag", mode="before")
    @classmethod
    def check_tag(cls, v):
        return _normalize_tag(v)

    @field_validator("visibility", mode="before")
    @classmethod
    def check_visibility(cls, v):
        if v is None:
            raise ValueError("visibility must be PRIVATE or PUBLIC")
        return _normalize_visibility(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else None

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def check_duration_present(cls, v):
        if v is None:
            raise ValueError("duration_minutes must be an integer")
        return v

    @field_validator("duration_minutes")
    @classmethod
    def check_duration(cls, v: Optional[int]) -> Optional[int]:
        return _check_duration(v)

    @field_validator("is_all_day", mode="before")
    @classmethod
    def check_all_day(cls, v):
        if not isinstance(v, bool):
            raise ValueError("is_all_day must be a boolean")
        return v

    @field_validator("rrule")
    @classmethod
    def check_rrule(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > RRULE_MAX_LENGTH:
            raise ValueError(f"rrule must be {RRULE_MAX_LENGTH} characters or less")
        return strip_or_none(v)

    def supplied(self) -> dict:
        """Only the fields the caller actually sent."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

def _decode_exdates(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    try:
        result = json.loads(raw)
        return result if isinstance(result, list) else []
    except (ValueError, TypeError):
        return []


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    tag: Optional[str] = None
    description: Optional[str] = None
    visibility: str
    duration_minutes: int
    is_all_day: bool
    rrule: Optional[str] = None
    exdates: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str
    occurrences: Optional[list[OccurrenceResponse]] = Field(
        default=None,
        description="Present only when occurrences were requested or just created.",
    )

    @classmethod
    def from_model(
        cls, event: Event, occurrences: Optional[list[Occurrence]] = None
    ) -> "EventResponse":
        return cls(
            id=event.id,
            user_id=event.user_id,
            title=event.title,
            tag=event.tag,
            description=event.description,
            visibility=ev(event.visibility),
            duration_minutes=event.duration_minutes,
            is_all_day=event.is_all_day,
            rrule=event.rrule,
            exdates=_decode_exdates(event.exdates),
            created_at=iso(event.created_at) or "",
            updated_at=iso(event.updated_at) or "",
            occurrences=(
                [OccurrenceResponse.from_model(o) for o in occurrences]
                if occurrences is not None
                else None
            ),
        )


class EventListResponse(BaseModel):
    total: int
    items: Annotated[list[EventResponse], Field(description="Newest first.")]
