"""
User — profile row for an identity supplied by the identity provider.

Rows are provisioned upstream; the API only reads them and lets the owner
edit name / avatar colour.
"""
from datetime import datetime
from sqlalchemy import String, func
from sqlalchemy.orm import Mapped, mapped_column

from taskwatch.db.base import Base
from taskwatch.db.types import UTCDateTime


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    avatar: Mapped[str | None] = mapped_column(String(512), nullable=True)
    avatar_color: Mapped[str | None] = mapped_column(
        String(7), nullable=True,
        comment="#RRGGBB, upper-case",
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
