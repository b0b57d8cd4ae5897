"""
Timeline router.

GET    /timeline                    — Caller's and friends' posts, newest first
POST   /timeline                    — Manual note
PATCH  /timeline/{id}               — Edit a manual note
DELETE /timeline/{id}               — Delete a manual note
PATCH  /timeline/{id}/memo          — Set / clear the memo on an auto post
POST   /timeline/{id}/reactions     — Toggle LIKE / BAD
DELETE /timeline/{id}/reactions     — Remove the caller's reaction

Every mutation is published on the realtime channel after it commits.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from taskwatch.core.deps import get_broadcaster, get_current_user_id, get_now
from taskwatch.core.realtime import Broadcaster, RealtimeEvent
from taskwatch.db.base import get_db
from taskwatch.schemas.common import ErrorResponse
from taskwatch.schemas.timeline import (
    ManualPostRequest,
    MemoRequest,
    ReactionCounts,
    ReactionEnvelope,
    ReactionRequest,
    TimelineFeedResponse,
    TimelinePostEnvelope,
    TimelinePostResponse,
)
from taskwatch.services import timeline as timeline_service

router = APIRouter(prefix="/timeline", tags=["timeline"])


def _publish_reaction(broadcaster: Broadcaster, summary: timeline_service.ReactionSummary) -> None:
    broadcaster.publish(
        RealtimeEvent.timeline_reacted(summary.post_id, summary.likes, summary.bads)
    )


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=TimelineFeedResponse,
    summary="Timeline feed",
    responses={404: {"model": ErrorResponse, "description": "Cursor is not an accessible post."}},
)
def feed(
    limit: Optional[int] = Query(default=None, ge=1, description="Default 20, capped at 50."),
    cursor: Optional[int] = Query(default=None, ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    page = timeline_service.list_feed(db, user_id, limit, cursor)
    return TimelineFeedResponse(
        items=[TimelinePostResponse.from_model(p, user_id) for p in page.posts],
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


# ---------------------------------------------------------------------------
# Manual notes
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=TimelinePostEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Post a manual note",
    responses={422: {"model": ErrorResponse, "description": "Validation error."}},
)
def create_post(
    payload: ManualPostRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    post = timeline_service.create_manual_post(db, user_id, payload.message)
    broadcaster.publish(RealtimeEvent.timeline_posted(TimelinePostResponse.from_model(post).model_dump()))
    return TimelinePostEnvelope(post=TimelinePostResponse.from_model(post, user_id))


@router.patch(
    "/{post_id}",
    response_model=TimelinePostEnvelope,
    summary="Edit a manual note",
    responses={
        403: {"model": ErrorResponse, "description": "Automatic posts cannot be edited."},
        404: {"model": ErrorResponse, "description": "Post not found."},
    },
)
def edit_post(
    post_id: int,
    payload: ManualPostRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    post = timeline_service.edit_manual_post(db, user_id, post_id, payload.message)
    broadcaster.publish(RealtimeEvent.timeline_updated(TimelinePostResponse.from_model(post).model_dump()))
    return TimelinePostEnvelope(post=TimelinePostResponse.from_model(post, user_id))


@router.delete(
    "/{post_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a manual note",
    responses={
        403: {"model": ErrorResponse, "description": "Automatic posts cannot be deleted."},
        404: {"model": ErrorResponse, "description": "Post not found."},
    },
)
def delete_post(
    post_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    timeline_service.delete_manual_post(db, user_id, post_id)
    broadcaster.publish(RealtimeEvent.timeline_deleted(post_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/{post_id}/memo",
    response_model=TimelinePostEnvelope,
    summary="Set or clear the memo on an automatic post",
    responses={
        403: {"model": ErrorResponse, "description": "Manual notes have no memo."},
        404: {"model": ErrorResponse, "description": "Post not found."},
    },
)
def update_memo(
    post_id: int,
    payload: MemoRequest,
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    post = timeline_service.update_memo(db, user_id, post_id, payload.memo, now)
    broadcaster.publish(RealtimeEvent.timeline_updated(TimelinePostResponse.from_model(post).model_dump()))
    return TimelinePostEnvelope(post=TimelinePostResponse.from_model(post, user_id))


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

@router.post(
    "/{post_id}/reactions",
    response_model=ReactionEnvelope,
    summary="Toggle a reaction",
    responses={
        403: {"model": ErrorResponse, "description": "Post owner is not a friend."},
        404: {"model": ErrorResponse, "description": "Post not found."},
    },
)
def react(
    post_id: int,
    payload: ReactionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Same type again removes the reaction; the other type replaces it."""
    summary = timeline_service.toggle_reaction(db, user_id, post_id, payload.type)
    _publish_reaction(broadcaster, summary)
    return ReactionEnvelope(reactions=ReactionCounts.from_summary(summary))


@router.delete(
    "/{post_id}/reactions",
    response_model=ReactionEnvelope,
    summary="Remove the caller's reaction",
    responses={
        403: {"model": ErrorResponse, "description": "Post owner is not a friend."},
        404: {"model": ErrorResponse, "description": "Post not found."},
    },
)
def unreact(
    post_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    summary = timeline_service.remove_reaction(db, user_id, post_id)
    _publish_reaction(broadcaster, summary)
    return ReactionEnvelope(reactions=ReactionCounts.from_summary(summary))
