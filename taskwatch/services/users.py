"""
User lookups and the caller's own profile.

User rows are provisioned by the identity provider; this service never
creates them.
"""
from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from taskwatch.core.errors import NoChangesError, UserNotFoundError, ValidationFailedError
from taskwatch.models.user import User

SEARCH_MAX_RESULTS = 10


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


def users_by_id(db: Session, user_ids) -> dict[str, User]:
    ids = list(set(user_ids))
    if not ids:
        return {}
    return {u.id: u for u in db.scalars(select(User).where(User.id.in_(ids))).all()}


def update_profile(db: Session, user_id: str, changes: dict) -> User:
    if not changes:
        raise NoChangesError("Nothing to update.")
    user = get_user(db, user_id)
    for name, value in changes.items():
        setattr(user, name, value)
    db.commit()
    db.refresh(user)
    return user


def search_users(db: Session, user_id: str, query: str) -> list[User]:
    """Case-insensitive substring match on name or email, excluding the caller."""
    needle = (query or "").strip()
    if not needle:
        raise ValidationFailedError({"q": "Query parameter q is required."})
    pattern = f"%{needle.lower()}%"
    return list(
        db.scalars(
            select(User)
            .where(
                User.id != user_id,
                or_(
                    func.lower(User.name).like(pattern),
                    func.lower(User.email).like(pattern),
                ),
            )
            .order_by(User.name.asc(), User.id.asc())
            .limit(SEARCH_MAX_RESULTS)
        ).all()
    )
