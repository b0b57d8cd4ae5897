"""
FriendRequest / Friendship.

A Friendship is an undirected edge stored canonically (user_a_id < user_b_id)
so one pair can never appear twice. It is only ever written as the side
effect of accepting a FriendRequest, in the same transaction.
"""
import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, Enum, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from taskwatch.db.base import Base
from taskwatch.db.types import UTCDateTime


class FriendRequestStatus(str, enum.Enum):
    pending = "PENDING"
    accepted = "ACCEPTED"
    rejected = "REJECTED"
    cancelled = "CANCELLED"


class FriendRequest(Base):
    __tablename__ = "friend_requests"
    __table_args__ = (
        Index("ix_friend_request_pair_status", "requester_id", "receiver_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False)
    receiver_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[FriendRequestStatus] = mapped_column(
        Enum(
            FriendRequestStatus,
            name="friend_request_status_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=FriendRequestStatus.pending,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)


class Friendship(Base):
    __tablename__ = "friendships"
    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_friendship_pair"),
        CheckConstraint("user_a_id < user_b_id", name="ck_friendship_canonical_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_a_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_b_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
