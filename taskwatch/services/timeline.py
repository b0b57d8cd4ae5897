"""
Social timeline service.

Rules:
- The feed shows the caller's posts and their friends' posts, newest (highest
  id) first. A cursor must be a post inside that scope.
- Manual notes: owner-only edit / delete, never linked to an occurrence.
- Auto posts are written by services/occurrences.py; here only their memo
  can be changed, by the owner.
- Posts the caller does not own surface as PostNotFound on mutation.
- Reactions: one per (post, user). Same type again removes it, the other
  type replaces it. Only the owner and their friends may react.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from taskwatch.core.errors import (
    EditNotAllowedError,
    ForbiddenError,
    InvalidCursorError,
    MemoNotAllowedError,
    PostDeleteNotAllowedError,
    PostNotFoundError,
)
from taskwatch.models.occurrence import Occurrence
from taskwatch.models.timeline import Reaction, ReactionType, TimelinePost, TimelinePostKind
from taskwatch.services.friendships import are_friends, friend_ids

logger = logging.getLogger(__name__)

TIMELINE_DEFAULT_LIMIT = 20
TIMELINE_MAX_LIMIT = 50

AUTO_KINDS = (TimelinePostKind.auto_done, TimelinePostKind.auto_missed)

_POST_OPTIONS = (
    selectinload(TimelinePost.user),
    selectinload(TimelinePost.occurrence).selectinload(Occurrence.event),
    selectinload(TimelinePost.reactions),
)


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return TIMELINE_DEFAULT_LIMIT
    return max(1, min(limit, TIMELINE_MAX_LIMIT))


def load_post(db: Session, post_id: int) -> Optional[TimelinePost]:
    """Post with author, occurrence, event and reactions eagerly loaded."""
    return db.scalars(
        select(TimelinePost)
        .where(TimelinePost.id == post_id)
        .options(*_POST_OPTIONS)
        .execution_options(populate_existing=True)
    ).first()


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------

@dataclass
class FeedPage:
    posts: list[TimelinePost]
    next_cursor: Optional[int]
    has_more: bool


def list_feed(
    db: Session, viewer_id: str, limit: Optional[int] = None, cursor: Optional[int] = None
) -> FeedPage:
    limit = clamp_limit(limit)
    visible = friend_ids(db, viewer_id)

    stmt = select(TimelinePost).where(TimelinePost.user_id.in_(visible))
    if cursor is not None:
        anchor = db.scalars(
            select(TimelinePost.id).where(
                TimelinePost.id == cursor, TimelinePost.user_id.in_(visible)
            )
        ).first()
        if anchor is None:
            raise InvalidCursorError(cursor, "Cursor does not reference an accessible post.")
        stmt = stmt.where(TimelinePost.id < cursor)

    rows = list(
        db.scalars(
            stmt.options(*_POST_OPTIONS).order_by(TimelinePost.id.desc()).limit(limit + 1)
        ).all()
    )
    has_more = len(rows) > limit
    rows = rows[:limit]
    return FeedPage(
        posts=rows,
        next_cursor=rows[-1].id if has_more and rows else None,
        has_more=has_more,
    )


# ---------------------------------------------------------------------------
# Manual notes / memos
# ---------------------------------------------------------------------------

def _owned_post(db: Session, viewer_id: str, post_id: int) -> TimelinePost:
    post = db.get(TimelinePost, post_id)
    if post is None or post.user_id != viewer_id:
        raise PostNotFoundError(post_id)
    return post


def create_manual_post(db: Session, viewer_id: str, message: str) -> TimelinePost:
    post = TimelinePost(
        user_id=viewer_id,
        kind=TimelinePostKind.manual_note,
        message=message,
    )
    db.add(post)
    db.commit()
    return load_post(db, post.id)


def edit_manual_post(db: Session, viewer_id: str, post_id: int, message: str) -> TimelinePost:
    post = _owned_post(db, viewer_id, post_id)
    if post.kind != TimelinePostKind.manual_note:
        raise EditNotAllowedError()
    post.message = message
    db.commit()
    return load_post(db, post.id)


def delete_manual_post(db: Session, viewer_id: str, post_id: int) -> None:
    post = _owned_post(db, viewer_id, post_id)
    if post.kind != TimelinePostKind.manual_note:
        raise PostDeleteNotAllowedError()
    db.delete(post)
    db.commit()


def update_memo(
    db: Session, viewer_id: str, post_id: int, memo: Optional[str], now: datetime
) -> TimelinePost:
    """A blank memo clears both the memo and its timestamp."""
    post = _owned_post(db, viewer_id, post_id)
    if post.kind not in AUTO_KINDS:
        raise MemoNotAllowedError()
    post.memo = memo
    post.memo_updated_at = now if memo else None
    db.commit()
    return load_post(db, post.id)


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

@dataclass
class ReactionSummary:
    post_id: int
    likes: int
    bads: int
    viewer_reaction: Optional[ReactionType]


def _accessible_post(db: Session, viewer_id: str, post_id: int) -> TimelinePost:
    post = db.get(TimelinePost, post_id)
    if post is None:
        raise PostNotFoundError(post_id)
    if not are_friends(db, viewer_id, post.user_id):
        raise ForbiddenError("You do not have access to this post.")
    return post


def reaction_summary(db: Session, post_id: int, viewer_id: str) -> ReactionSummary:
    counts = dict(
        db.execute(
            select(Reaction.type, func.count(Reaction.id))
            .where(Reaction.post_id == post_id)
            .group_by(Reaction.type)
        ).all()
    )
    mine = db.scalars(
        select(Reaction.type).where(Reaction.post_id == post_id, Reaction.user_id == viewer_id)
    ).first()
    return ReactionSummary(
        post_id=post_id,
        likes=counts.get(ReactionType.like, 0),
        bads=counts.get(ReactionType.bad, 0),
        viewer_reaction=mine,
    )


def toggle_reaction(
    db: Session, viewer_id: str, post_id: int, reaction_type: ReactionType
) -> ReactionSummary:
    post = _accessible_post(db, viewer_id, post_id)
    existing = db.scalars(
        select(Reaction)
        .where(Reaction.post_id == post.id, Reaction.user_id == viewer_id)
        .with_for_update()
    ).first()
    if existing is None:
        db.add(Reaction(post_id=post.id, user_id=viewer_id, type=reaction_type))
    elif existing.type == reaction_type:
        db.delete(existing)
    else:
        existing.type = reaction_type
    db.commit()
    return reaction_summary(db, post.id, viewer_id)


def remove_reaction(db: Session, viewer_id: str, post_id: int) -> ReactionSummary:
    post = _accessible_post(db, viewer_id, post_id)
    existing = db.scalars(
        select(Reaction).where(Reaction.post_id == post.id, Reaction.user_id == viewer_id)
    ).first()
    if existing is not None:
        db.delete(existing)
        db.commit()
    return reaction_summary(db, post.id, viewer_id)
