"""
Occurrence — one concrete, time-boxed instance of an Event.

Status is one-way out of SCHEDULED; DONE and MISSED may be flipped into
each other (see services/occurrences.py for the transition table).
user_id is denormalised from the event so pending / stats queries never join.
"""
from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Enum, ForeignKey, Index, Integer, String, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskwatch.db.base import Base
from taskwatch.db.types import UTCDateTime

if TYPE_CHECKING:
    from taskwatch.models.event import Event
    from taskwatch.models.timeline import TimelinePost


class OccurrenceStatus(str, enum.Enum):
    scheduled = "SCHEDULED"
    done = "DONE"
    missed = "MISSED"


class Occurrence(Base):
    __tablename__ = "occurrences"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_occurrence_end_after_start"),
        Index("ix_occurrence_pending", "user_id", "status", "end_at", "id"),
        Index("ix_occurrence_user_start", "user_id", "start_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[OccurrenceStatus] = mapped_column(
        Enum(
            OccurrenceStatus,
            name="occurrence_status_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=OccurrenceStatus.scheduled,
    )
    is_all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True,
        comment="Set iff status is DONE",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    event: Mapped["Event"] = relationship(back_populates="occurrences")
    timeline_post: Mapped[Optional["TimelinePost"]] = relationship(
        back_populates="occurrence", uselist=False
    )
