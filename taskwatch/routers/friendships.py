"""
Friendships router.

GET    /friendships                  — Caller's friends, newest first
POST   /friendships                  — Send a request (or accept the target's pending one)
DELETE /friendships/{id}             — Unfriend
GET    /friendships/requests         — Pending (or all) requests, received and/or sent
PATCH  /friendships/requests/{id}    — accept / reject / cancel
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from taskwatch.core.deps import get_current_user_id, get_now
from taskwatch.db.base import get_db
from taskwatch.models.friendship import FriendRequest, Friendship
from taskwatch.schemas.common import ErrorResponse
from taskwatch.schemas.friendships import (
    FriendRequestActionRequest,
    FriendRequestActionResponse,
    FriendRequestListResponse,
    FriendRequestLists,
    FriendRequestResponse,
    FriendshipCreateRequest,
    FriendshipCreateResponse,
    FriendshipListResponse,
    FriendshipResponse,
)
from taskwatch.schemas.users import PublicUser
from taskwatch.services import friendships as friendship_service
from taskwatch.services.users import users_by_id

router = APIRouter(prefix="/friendships", tags=["friendships"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _friendships_to_response(db: Session, user_id: str, rows: list[Friendship]) -> list[FriendshipResponse]:
    others = [friendship_service.other_party(f, user_id) for f in rows]
    users = users_by_id(db, others)
    return [
        FriendshipResponse.from_model(f, PublicUser.from_model(users.get(other), other))
        for f, other in zip(rows, others)
    ]


def _requests_to_response(db: Session, rows: list[FriendRequest]) -> list[FriendRequestResponse]:
    users = users_by_id(db, [r.requester_id for r in rows] + [r.receiver_id for r in rows])
    return [
        FriendRequestResponse.from_model(
            r,
            requester=PublicUser.from_model(users.get(r.requester_id), r.requester_id),
            receiver=PublicUser.from_model(users.get(r.receiver_id), r.receiver_id),
        )
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Friendships
# ---------------------------------------------------------------------------

@router.get("", response_model=FriendshipListResponse, summary="List friendships")
def list_friendships(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    rows = friendship_service.list_friendships(db, user_id)
    return FriendshipListResponse(friendships=_friendships_to_response(db, user_id, rows))


@router.post(
    "",
    response_model=FriendshipCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a friend request",
    responses={
        404: {"model": ErrorResponse, "description": "Target user not found."},
        409: {"model": ErrorResponse, "description": "Already friends or request already sent."},
        422: {"model": ErrorResponse, "description": "Cannot befriend yourself."},
    },
)
def send_request(
    payload: FriendshipCreateRequest,
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """
    If the target already sent the caller a pending request, that request is
    accepted and the friendship created in the same transaction.
    """
    outcome = friendship_service.send_request(db, user_id, payload.friend_user_id, now)
    request = _requests_to_response(db, [outcome.request])[0]
    friendship = None
    if outcome.friendship is not None:
        friendship = _friendships_to_response(db, user_id, [outcome.friendship])[0]
    return FriendshipCreateResponse(friend_request=request, friendship=friendship)


@router.delete(
    "/{friendship_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a friendship",
    responses={404: {"model": ErrorResponse, "description": "Friendship not found."}},
)
def delete_friendship(
    friendship_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    friendship_service.delete_friendship(db, user_id, friendship_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@router.get("/requests", response_model=FriendRequestListResponse, summary="List friend requests")
def list_requests(
    include_history: bool = Query(default=False),
    direction: Optional[Literal["received", "sent"]] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    lists = friendship_service.list_requests(db, user_id, include_history, direction)
    return FriendRequestListResponse(
        requests=FriendRequestLists(
            received=_requests_to_response(db, lists.received) if lists.received is not None else None,
            sent=_requests_to_response(db, lists.sent) if lists.sent is not None else None,
        )
    )


@router.patch(
    "/requests/{request_id}",
    response_model=FriendRequestActionResponse,
    summary="Accept, reject or cancel a friend request",
    responses={
        403: {"model": ErrorResponse, "description": "Caller has the wrong role for this action."},
        404: {"model": ErrorResponse, "description": "Request not found."},
        409: {"model": ErrorResponse, "description": "Request is no longer pending."},
    },
)
def respond_to_request(
    request_id: int,
    payload: FriendRequestActionRequest,
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    """Receivers accept or reject; requesters cancel."""
    outcome = friendship_service.respond_to_request(db, user_id, request_id, payload.action, now)
    friendship = None
    if outcome.friendship is not None:
        friendship = _friendships_to_response(db, user_id, [outcome.friendship])[0]
    return FriendRequestActionResponse(
        request=_requests_to_response(db, [outcome.request])[0],
        friendship=friendship,
    )
