"""
TimelinePost / Reaction — the social feed.

Auto posts (AUTO_DONE / AUTO_MISSED) are keyed by occurrence_id: at most
one per occurrence, upserted on every status change. Manual notes never
carry an occurrence. When an occurrence is deleted its auto post stays in
the feed with occurrence_id set to NULL.

Reactions are unique per (post_id, user_id).
"""
from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Enum, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskwatch.db.base import Base
from taskwatch.db.types import UTCDateTime

if TYPE_CHECKING:
    from taskwatch.models.occurrence import Occurrence
    from taskwatch.models.user import User


class TimelinePostKind(str, enum.Enum):
    auto_done = "AUTO_DONE"
    auto_missed = "AUTO_MISSED"
    manual_note = "MANUAL_NOTE"


class ReactionType(str, enum.Enum):
    like = "LIKE"
    bad = "BAD"


def _values(enum_cls):
    return [m.value for m in enum_cls]


class TimelinePost(Base):
    __tablename__ = "timeline_posts"
    __table_args__ = (
        UniqueConstraint("occurrence_id", name="uq_timeline_post_occurrence"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    occurrence_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("occurrences.id", ondelete="SET NULL"), nullable=True
    )
    kind: Mapped[TimelinePostKind] = mapped_column(
        Enum(TimelinePostKind, name="timeline_post_kind_enum", values_callable=_values),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    memo_updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user: Mapped[Optional["User"]] = relationship(
        primaryjoin="foreign(TimelinePost.user_id) == User.id", viewonly=True
    )
    occurrence: Mapped[Optional["Occurrence"]] = relationship(back_populates="timeline_post")
    reactions: Mapped[list["Reaction"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Reaction(Base):
    __tablename__ = "reactions"
    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_reaction_post_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("timeline_posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[ReactionType] = mapped_column(
        Enum(ReactionType, name="reaction_type_enum", values_callable=_values),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )

    post: Mapped["TimelinePost"] = relationship(back_populates="reactions")
