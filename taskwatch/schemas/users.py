"""
User / profile schemas.
"""
from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, field_validator

from taskwatch.models.user import User
from taskwatch.schemas.common import RequestModel

NAME_MAX_LENGTH = 50
_HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


class PublicUser(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    avatar_color: Optional[str] = None

    @classmethod
    def from_model(cls, user: Optional[User], fallback_id: Optional[str] = None) -> Optional["PublicUser"]:
        if user is None:
            return cls(id=fallback_id) if fallback_id else None
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            avatar=user.avatar,
            avatar_color=user.avatar_color,
        )


class ProfileUpdateRequest(RequestModel):
    """
    `name` is trimmed and must be 1–50 characters.
    `avatar_color` is `#RRGGBB` (stored upper-case); blank or null clears it.
    """
    name: Optional[str] = None
    avatar_color: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v):
        if not isinstance(v, str):
            raise ValueError("name must be a string")
        stripped = v.strip()
        if not stripped:
            raise ValueError("name must not be empty")
        if len(stripped) > NAME_MAX_LENGTH:
            raise ValueError(f"name must be {NAME_MAX_LENGTH} characters or less")
        return stripped

    @field_validator("avatar_color", mode="before")
    @classmethod
    def check_avatar_color(cls, v):
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("avatar_color must be a string or null")
        stripped = v.strip()
        if not stripped:
            return None
        if not _HEX_COLOR_RE.match(stripped):
            raise ValueError("avatar_color must be formatted as #RRGGBB")
        return stripped.upper()

    def supplied(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class ProfileResponse(BaseModel):
    user: PublicUser


class UserSearchResponse(BaseModel):
    results: list[PublicUser]
