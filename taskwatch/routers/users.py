"""
Users router.

GET   /me/profile     — Caller's profile
PATCH /me/profile     — Update name and / or avatar colour
GET   /users/search   — Find other users by name or email
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskwatch.core.deps import get_current_user_id
from taskwatch.db.base import get_db
from taskwatch.schemas.common import ErrorResponse
from taskwatch.schemas.users import (
    ProfileResponse,
    ProfileUpdateRequest,
    PublicUser,
    UserSearchResponse,
)
from taskwatch.services import users as user_service

router = APIRouter(tags=["users"])


@router.get(
    "/me/profile",
    response_model=ProfileResponse,
    summary="Get the caller's profile",
    responses={404: {"model": ErrorResponse, "description": "No profile row for this identity."}},
)
def get_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ProfileResponse(user=PublicUser.from_model(user_service.get_user(db, user_id)))


@router.patch(
    "/me/profile",
    response_model=ProfileResponse,
    summary="Update the caller's profile",
    responses={
        400: {"model": ErrorResponse, "description": "Nothing to update."},
        404: {"model": ErrorResponse, "description": "No profile row for this identity."},
        422: {"model": ErrorResponse, "description": "Validation error."},
    },
)
def update_profile(
    payload: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    user = user_service.update_profile(db, user_id, payload.supplied())
    return ProfileResponse(user=PublicUser.from_model(user))


@router.get(
    "/users/search",
    response_model=UserSearchResponse,
    summary="Search users",
    responses={422: {"model": ErrorResponse, "description": "Empty query."}},
)
def search_users(
    q: str = Query(default=""),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Case-insensitive match on name or email, at most 10 results, caller excluded."""
    results = user_service.search_users(db, user_id, q)
    return UserSearchResponse(results=[PublicUser.from_model(u) for u in results])
