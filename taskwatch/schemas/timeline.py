"""
Timeline request / response schemas.

GET    /timeline                      → TimelineFeedResponse
POST   /timeline                      → ManualPostRequest → TimelinePostEnvelope
PATCH  /timeline/{id}                 → ManualPostRequest → TimelinePostEnvelope
PATCH  /timeline/{id}/memo            → MemoRequest       → TimelinePostEnvelope
POST   /timeline/{id}/reactions       → ReactionRequest   → ReactionEnvelope
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from taskwatch.models.timeline import ReactionType, TimelinePost, TimelinePostKind
from taskwatch.schemas.common import RequestModel, ev, iso
from taskwatch.services.timeline import AUTO_KINDS, ReactionSummary

MANUAL_POST_MIN_LENGTH = 1
MANUAL_POST_MAX_LENGTH = 280
MEMO_MAX_LENGTH = 500


def _check_message(v):
    if not isinstance(v, str):
        raise ValueError("message must be a string")
    stripped = v.strip()
    if len(stripped) < MANUAL_POST_MIN_LENGTH:
        raise ValueError("message must not be empty")
    if len(stripped) > MANUAL_POST_MAX_LENGTH:
        raise ValueError(f"message must be {MANUAL_POST_MAX_LENGTH} characters or less")
    return stripped


class ManualPostRequest(RequestModel):
    """
    A manual note. `occurrence_id`, `memo` and `visibility` are named only so
    they can be rejected with a readable per-field message.
    """
    message: str
    occurrence_id: Optional[Any] = None
    memo: Optional[Any] = None
    visibility: Optional[Any] = None

    @field_validator("message", mode="before")
    @classmethod
    def check_message(cls, v):
        return _check_message(v)

    @field_validator("occurrence_id")
    @classmethod
    def reject_occurrence(cls, v):
        if v is not None:
            raise ValueError("Manual timeline posts cannot be linked to tasks.")
        return v

    @field_validator("memo")
    @classmethod
    def reject_memo(cls, v):
        if v is not None:
            raise ValueError("Manual timeline posts do not support memos.")
        return v

    @field_validator("visibility")
    @classmethod
    def reject_visibility(cls, v):
        if v is not None:
            raise ValueError("Visibility cannot be set for timeline posts.")
        return v


class MemoRequest(RequestModel):
    memo: Optional[str] = None

    @field_validator("memo", mode="before")
    @classmethod
    def check_memo(cls, v):
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("memo must be a string or null")
        stripped = v.strip()
        if len(stripped) > MEMO_MAX_LENGTH:
            raise ValueError(f"memo must be {MEMO_MAX_LENGTH} characters or less")
        return stripped or None


class ReactionRequest(RequestModel):
    type: ReactionType

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, v):
        return v.upper() if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class PostAuthor(BaseModel):
    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    color: Optional[str] = None


class PostEventSummary(BaseModel):
    id: int
    title: str
    is_all_day: bool
    tag: Optional[str] = None


class PostOccurrenceSummary(BaseModel):
    id: int
    status: str
    start_at: str
    end_at: str
    is_all_day: bool
    event: Optional[PostEventSummary] = None


class ReactionCounts(BaseModel):
    likes: int = 0
    bads: int = 0
    viewer_reaction: Optional[str] = None

    @classmethod
    def from_summary(cls, summary: ReactionSummary) -> "ReactionCounts":
        return cls(
            likes=summary.likes,
            bads=summary.bads,
            viewer_reaction=ev(summary.viewer_reaction) if summary.viewer_reaction else None,
        )


class PostPermissions(BaseModel):
    can_edit_manual: bool
    can_edit_memo: bool


class TimelinePostResponse(BaseModel):
    id: int
    kind: str
    message: str
    memo: Optional[str] = None
    memo_updated_at: Optional[str] = None
    created_at: str
    updated_at: str
    author: PostAuthor
    occurrence: Optional[PostOccurrenceSummary] = None
    reactions: ReactionCounts
    permissions: PostPermissions

    @classmethod
    def from_model(cls, post: TimelinePost, viewer_id: Optional[str] = None) -> "TimelinePostResponse":
        likes = bads = 0
        viewer_reaction = None
        for reaction in post.reactions:
            if reaction.type == ReactionType.like:
                likes += 1
            elif reaction.type == ReactionType.bad:
                bads += 1
            if viewer_id and reaction.user_id == viewer_id:
                viewer_reaction = ev(reaction.type)

        occurrence = None
        if post.occurrence is not None:
            occ = post.occurrence
            occurrence = PostOccurrenceSummary(
                id=occ.id,
                status=ev(occ.status),
                start_at=iso(occ.start_at),
                end_at=iso(occ.end_at),
                is_all_day=occ.is_all_day,
                event=PostEventSummary(
                    id=occ.event.id,
                    title=occ.event.title,
                    is_all_day=occ.event.is_all_day,
                    tag=occ.event.tag,
                ) if occ.event is not None else None,
            )

        author = post.user
        is_owner = viewer_id is not None and post.user_id == viewer_id
        return cls(
            id=post.id,
            kind=ev(post.kind),
            message=post.message,
            memo=post.memo,
            memo_updated_at=iso(post.memo_updated_at),
            created_at=iso(post.created_at) or "",
            updated_at=iso(post.updated_at) or "",
            author=PostAuthor(
                id=post.user_id,
                name=author.name if author else None,
                avatar=author.avatar if author else None,
                color=author.avatar_color if author else None,
            ),
            occurrence=occurrence,
            reactions=ReactionCounts(likes=likes, bads=bads, viewer_reaction=viewer_reaction),
            permissions=PostPermissions(
                can_edit_manual=is_owner and post.kind == TimelinePostKind.manual_note,
                can_edit_memo=is_owner and post.kind in AUTO_KINDS,
            ),
        )


class TimelinePostEnvelope(BaseModel):
    post: TimelinePostResponse


class TimelineFeedResponse(BaseModel):
    items: list[TimelinePostResponse]
    next_cursor: Optional[int] = Field(default=None, description="Pass as `cursor` for the next page.")
    has_more: bool


class ReactionEnvelope(BaseModel):
    reactions: ReactionCounts
