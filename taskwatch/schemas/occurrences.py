"""
Occurrence request / response schemas.

POST   /occurrences               → OccurrenceCreateRequest → OccurrenceResponse
PATCH  /occurrences/{id}          → OccurrenceUpdateRequest → OccurrenceResponse
PATCH  /occurrences/{id}/status   → OccurrenceStatusRequest → OccurrenceResponse
GET    /occurrences/pending       → PendingListResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from taskwatch.models.occurrence import Occurrence, OccurrenceStatus
from taskwatch.schemas.common import RequestModel, UTCDatetime, ev, iso, strip_or_none

NOTES_MAX_LENGTH = 1000


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() / 60 + 0.5)


class OccurrenceCreateRequest(RequestModel):
    event_id: int = Field(gt=0)
    start_at: UTCDatetime
    end_at: UTCDatetime
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)

    @model_validator(mode="after")
    def check_range(self) -> "OccurrenceCreateRequest":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be later than start_at")
        return self


class OccurrenceUpdateRequest(RequestModel):
    """
    Reschedule / annotate a single instance.

    Only keys present in the body are considered. `notes: null` clears the
    notes; `start_at` / `end_at` cannot be null.
    """
    start_at: Optional[UTCDatetime] = None
    end_at: Optional[UTCDatetime] = None
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)

    @field_validator("start_at", "end_at", mode="before")
    @classmethod
    def reject_null_times(cls, v):
        if v is None:
            raise ValueError("must be an ISO-8601 timestamp")
        return v

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)

    def supplied(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class OccurrenceStatusRequest(RequestModel):
    """
    Status transition.

    - `completed_at` is required for DONE and must be omitted for MISSED.
    - SCHEDULED cannot be requested: nothing ever returns to SCHEDULED.
    """
    status: OccurrenceStatus = Field(examples=["DONE"])
    completed_at: Optional[UTCDatetime] = Field(default=None, validate_default=True)
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)

    @field_validator("status", mode="before")
    @classmethod
    def upper_status(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("status")
    @classmethod
    def reject_scheduled(cls, v: OccurrenceStatus) -> OccurrenceStatus:
        if v == OccurrenceStatus.scheduled:
            raise ValueError("status must be DONE or MISSED")
        return v

    @field_validator("completed_at")
    @classmethod
    def check_completed_at(
        cls, v: Optional[datetime], info: ValidationInfo
    ) -> Optional[datetime]:
        target = info.data.get("status")
        if target == OccurrenceStatus.done and v is None:
            raise ValueError("completed_at is required when status is DONE")
        if target == OccurrenceStatus.missed and v is not None:
            raise ValueError("completed_at must be omitted when status is MISSED")
        return v

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        return strip_or_none(v)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class OccurrenceResponse(BaseModel):
    id: int
    event_id: int
    user_id: str
    start_at: str
    end_at: str
    status: str
    is_all_day: bool
    completed_at: Optional[str] = None
    notes: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_model(cls, occ: Occurrence) -> "OccurrenceResponse":
        return cls(
            id=occ.id,
            event_id=occ.event_id,
            user_id=occ.user_id,
            start_at=iso(occ.start_at),
            end_at=iso(occ.end_at),
            status=ev(occ.status),
            is_all_day=occ.is_all_day,
            completed_at=iso(occ.completed_at),
            notes=occ.notes,
            created_at=iso(occ.created_at) or "",
            updated_at=iso(occ.updated_at) or "",
        )


class OccurrenceListResponse(BaseModel):
    total: int
    items: list[OccurrenceResponse]


class PendingEventSummary(BaseModel):
    id: int
    title: str
    tag: Optional[str] = None
    visibility: str


class PendingOccurrenceResponse(OccurrenceResponse):
    overdue_minutes: int = Field(ge=0, description="Whole minutes between end_at and the cutoff.")
    event: PendingEventSummary


class PendingListResponse(BaseModel):
    total: int = Field(description="All matching rows, not just this page.")
    has_more: bool
    next_cursor: Optional[int] = None
    cutoff: str = Field(description="Echo this back as `before` when loading more.")
    items: list[PendingOccurrenceResponse]
