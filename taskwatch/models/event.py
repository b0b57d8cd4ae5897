"""
Event — a task definition, one-off or recurring.

exdates: JSON-encoded list of ISO timestamps stored as Text.
Deleting an Event removes all of its occurrences (ORM cascade + FK ON DELETE CASCADE).
"""
from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskwatch.db.base import Base
from taskwatch.db.types import UTCDateTime

if TYPE_CHECKING:
    from taskwatch.models.occurrence import Occurrence


class Visibility(str, enum.Enum):
    private = "PRIVATE"
    public = "PUBLIC"


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    tag: Mapped[str | None] = mapped_column(String(32), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    visibility: Mapped[Visibility] = mapped_column(
        Enum(Visibility, name="visibility_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Visibility.private,
    )
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    is_all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rrule: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    exdates: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON array of ISO-8601 UTC timestamps",
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    occurrences: Mapped[list["Occurrence"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Occurrence.start_at",
    )
