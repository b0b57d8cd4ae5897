"""
Friend requests and friendships.

Rules:
- A Friendship row is only written while accepting a FriendRequest, in the
  same commit that marks the request ACCEPTED.
- Pairs are stored canonically (lower id first).
- Sending a request to someone who already has a pending request to you
  accepts theirs instead of creating a second one.

Public API
----------
canonical_pair(a, b)                                 -> tuple[str, str]
are_friends(db, a, b)                                -> bool
friend_ids(db, user_id)                              -> list[str]   (caller first)
list_friendships(db, user_id)                        -> list[Friendship]
send_request(db, user_id, target_id, now)            -> RequestOutcome
respond_to_request(db, user_id, request_id, action, now) -> RequestOutcome
list_requests(db, user_id, include_history, direction)   -> RequestLists
delete_friendship(db, user_id, friendship_id)        -> None
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from taskwatch.core.errors import (
    AlreadyFriendsError,
    ForbiddenError,
    FriendRequestNotFoundError,
    FriendshipNotFoundError,
    InvalidTargetError,
    RequestAlreadyExistsError,
    RequestNotPendingError,
)
from taskwatch.models.friendship import FriendRequest, FriendRequestStatus, Friendship
from taskwatch.services.users import get_user

logger = logging.getLogger(__name__)


class RequestAction(str, enum.Enum):
    accept = "accept"
    reject = "reject"
    cancel = "cancel"


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a < b else (b, a)


def _pair_clause(a: str, b: str):
    first, second = canonical_pair(a, b)
    return and_(Friendship.user_a_id == first, Friendship.user_b_id == second)


def are_friends(db: Session, a: str, b: str) -> bool:
    if a == b:
        return True
    return db.scalars(select(Friendship.id).where(_pair_clause(a, b))).first() is not None


def list_friendships(db: Session, user_id: str) -> list[Friendship]:
    return list(
        db.scalars(
            select(Friendship)
            .where(or_(Friendship.user_a_id == user_id, Friendship.user_b_id == user_id))
            .order_by(Friendship.created_at.desc(), Friendship.id.desc())
        ).all()
    )


def friend_ids(db: Session, user_id: str) -> list[str]:
    """The caller followed by every friend, oldest friendship first."""
    rows = db.scalars(
        select(Friendship)
        .where(or_(Friendship.user_a_id == user_id, Friendship.user_b_id == user_id))
        .order_by(Friendship.created_at.asc(), Friendship.id.asc())
    ).all()
    ids = [user_id]
    for row in rows:
        other = row.user_b_id if row.user_a_id == user_id else row.user_a_id
        if other not in ids:
            ids.append(other)
    return ids


def other_party(friendship: Friendship, user_id: str) -> str:
    return friendship.user_b_id if friendship.user_a_id == user_id else friendship.user_a_id


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass
class RequestOutcome:
    request: FriendRequest
    friendship: Optional[Friendship] = None


def _accept(db: Session, request: FriendRequest, now: datetime) -> Friendship:
    request.status = FriendRequestStatus.accepted
    request.responded_at = now
    existing = db.scalars(
        select(Friendship).where(_pair_clause(request.requester_id, request.receiver_id))
    ).first()
    if existing is not None:
        return existing
    first, second = canonical_pair(request.requester_id, request.receiver_id)
    friendship = Friendship(user_a_id=first, user_b_id=second)
    db.add(friendship)
    return friendship


def send_request(db: Session, user_id: str, target_id: str, now: datetime) -> RequestOutcome:
    if target_id == user_id:
        raise InvalidTargetError()
    get_user(db, target_id)
    if are_friends(db, user_id, target_id):
        raise AlreadyFriendsError()

    incoming = db.scalars(
        select(FriendRequest)
        .where(
            FriendRequest.requester_id == target_id,
            FriendRequest.receiver_id == user_id,
            FriendRequest.status == FriendRequestStatus.pending,
        )
        .with_for_update()
    ).first()
    if incoming is not None:
        friendship = _accept(db, incoming, now)
        db.commit()
        db.refresh(incoming)
        db.refresh(friendship)
        logger.info("Mutual request: %s and %s are now friends", user_id, target_id)
        return RequestOutcome(request=incoming, friendship=friendship)

    outgoing = db.scalars(
        select(FriendRequest.id).where(
            FriendRequest.requester_id == user_id,
            FriendRequest.receiver_id == target_id,
            FriendRequest.status == FriendRequestStatus.pending,
        )
    ).first()
    if outgoing is not None:
        raise RequestAlreadyExistsError()

    request = FriendRequest(requester_id=user_id, receiver_id=target_id)
    db.add(request)
    db.commit()
    db.refresh(request)
    return RequestOutcome(request=request)


def respond_to_request(
    db: Session, user_id: str, request_id: int, action: RequestAction, now: datetime
) -> RequestOutcome:
    request = db.scalars(
        select(FriendRequest).where(FriendRequest.id == request_id).with_for_update()
    ).first()
    if request is None:
        raise FriendRequestNotFoundError(request_id)
    if request.status != FriendRequestStatus.pending:
        raise RequestNotPendingError(request.status.value)
    if action in (RequestAction.accept, RequestAction.reject) and request.receiver_id != user_id:
        raise ForbiddenError("Only the receiver can respond to this request.")
    if action == RequestAction.cancel and request.requester_id != user_id:
        raise ForbiddenError("Only the requester can cancel this request.")

    friendship = None
    if action == RequestAction.accept:
        friendship = _accept(db, request, now)
    else:
        request.status = (
            FriendRequestStatus.rejected if action == RequestAction.reject
            else FriendRequestStatus.cancelled
        )
        request.responded_at = now

    db.commit()
    db.refresh(request)
    if friendship is not None:
        db.refresh(friendship)
    return RequestOutcome(request=request, friendship=friendship)


@dataclass
class RequestLists:
    received: Optional[list[FriendRequest]] = field(default=None)
    sent: Optional[list[FriendRequest]] = field(default=None)


def list_requests(
    db: Session,
    user_id: str,
    include_history: bool = False,
    direction: Optional[str] = None,
) -> RequestLists:
    statuses = (
        list(FriendRequestStatus) if include_history else [FriendRequestStatus.pending]
    )

    def _query(column) -> list[FriendRequest]:
        return list(
            db.scalars(
                select(FriendRequest)
                .where(column == user_id, FriendRequest.status.in_(statuses))
                .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
            ).all()
        )

    lists = RequestLists()
    if direction in (None, "received"):
        lists.received = _query(FriendRequest.receiver_id)
    if direction in (None, "sent"):
        lists.sent = _query(FriendRequest.requester_id)
    return lists


def delete_friendship(db: Session, user_id: str, friendship_id: int) -> None:
    friendship = db.get(Friendship, friendship_id)
    if friendship is None or user_id not in (friendship.user_a_id, friendship.user_b_id):
        raise FriendshipNotFoundError(friendship_id)
    db.delete(friendship)
    db.commit()
