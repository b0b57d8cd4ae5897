"""
Friendship / friend-request schemas.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator

from taskwatch.models.friendship import FriendRequest, Friendship
from taskwatch.schemas.common import RequestModel, ev, iso
from taskwatch.schemas.users import PublicUser
from taskwatch.services.friendships import RequestAction


class FriendshipCreateRequest(RequestModel):
    friend_user_id: str

    @field_validator("friend_user_id", mode="before")
    @classmethod
    def check_friend_user_id(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("friend_user_id is required")
        return v.strip()


class FriendRequestActionRequest(RequestModel):
    action: RequestAction

    @field_validator("action", mode="before")
    @classmethod
    def lower_action(cls, v):
        return v.lower() if isinstance(v, str) else v


class FriendshipResponse(BaseModel):
    id: int
    friend_user: Optional[PublicUser] = None
    created_at: str

    @classmethod
    def from_model(cls, friendship: Friendship, friend: Optional[PublicUser]) -> "FriendshipResponse":
        return cls(
            id=friendship.id,
            friend_user=friend,
            created_at=iso(friendship.created_at) or "",
        )


class FriendRequestResponse(BaseModel):
    id: int
    status: str
    created_at: str
    responded_at: Optional[str] = None
    requester: Optional[PublicUser] = None
    receiver: Optional[PublicUser] = None

    @classmethod
    def from_model(
        cls,
        request: FriendRequest,
        requester: Optional[PublicUser] = None,
        receiver: Optional[PublicUser] = None,
    ) -> "FriendRequestResponse":
        return cls(
            id=request.id,
            status=ev(request.status),
            created_at=iso(request.created_at) or "",
            responded_at=iso(request.responded_at),
            requester=requester,
            receiver=receiver,
        )


class FriendshipListResponse(BaseModel):
    friendships: list[FriendshipResponse]


class FriendshipCreateResponse(BaseModel):
    """Either a new pending request, or an accepted one plus the friendship."""
    friend_request: FriendRequestResponse
    friendship: Optional[FriendshipResponse] = None


class FriendRequestLists(BaseModel):
    received: Optional[list[FriendRequestResponse]] = None
    sent: Optional[list[FriendRequestResponse]] = None


class FriendRequestListResponse(BaseModel):
    requests: FriendRequestLists


class FriendRequestActionResponse(BaseModel):
    request: FriendRequestResponse
    friendship: Optional[FriendshipResponse] = None
