"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    visibility_enum = sa.Enum("PRIVATE", "PUBLIC", name="visibility_enum")
    visibility_enum.create(op.get_bind(), checkfirst=True)

    occurrence_status_enum = sa.Enum(
        "SCHEDULED", "DONE", "MISSED", name="occurrence_status_enum"
    )
    occurrence_status_enum.create(op.get_bind(), checkfirst=True)

    timeline_post_kind_enum = sa.Enum(
        "AUTO_DONE", "AUTO_MISSED", "MANUAL_NOTE", name="timeline_post_kind_enum"
    )
    timeline_post_kind_enum.create(op.get_bind(), checkfirst=True)

    reaction_type_enum = sa.Enum("LIKE", "BAD", name="reaction_type_enum")
    reaction_type_enum.create(op.get_bind(), checkfirst=True)

    friend_request_status_enum = sa.Enum(
        "PENDING", "ACCEPTED", "REJECTED", "CANCELLED", name="friend_request_status_enum"
    )
    friend_request_status_enum.create(op.get_bind(), checkfirst=True)

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("avatar", sa.String(512), nullable=True),
        sa.Column("avatar_color", sa.String(7), nullable=True, comment="#RRGGBB, upper-case"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("tag", sa.String(32), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("visibility", sa.Enum(
            "PRIVATE", "PUBLIC", name="visibility_enum", create_type=False,
        ), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("is_all_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rrule", sa.String(2000), nullable=True),
        sa.Column("exdates", sa.Text(), nullable=True, comment="JSON array of ISO-8601 UTC timestamps"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_user_id", "events", ["user_id"])

    # --- occurrences ---
    op.create_table(
        "occurrences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.Enum(
            "SCHEDULED", "DONE", "MISSED", name="occurrence_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("is_all_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True, comment="Set iff status is DONE"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("end_at > start_at", name="ck_occurrence_end_after_start"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_occurrences_id", "occurrences", ["id"])
    op.create_index("ix_occurrences_event_id", "occurrences", ["event_id"])
    op.create_index("ix_occurrence_pending", "occurrences", ["user_id", "status", "end_at", "id"])
    op.create_index("ix_occurrence_user_start", "occurrences", ["user_id", "start_at"])

    # --- timeline_posts ---
    op.create_table(
        "timeline_posts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("occurrence_id", sa.Integer(), nullable=True),
        sa.Column("kind", sa.Enum(
            "AUTO_DONE", "AUTO_MISSED", "MANUAL_NOTE",
            name="timeline_post_kind_enum", create_type=False,
        ), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("memo_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["occurrence_id"], ["occurrences.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("occurrence_id", name="uq_timeline_post_occurrence"),
    )
    op.create_index("ix_timeline_posts_id", "timeline_posts", ["id"])
    op.create_index("ix_timeline_posts_user_id", "timeline_posts", ["user_id"])

    # --- reactions ---
    op.create_table(
        "reactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.Enum(
            "LIKE", "BAD", name="reaction_type_enum", create_type=False,
        ), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["post_id"], ["timeline_posts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_reaction_post_user"),
    )
    op.create_index("ix_reactions_id", "reactions", ["id"])
    op.create_index("ix_reactions_post_id", "reactions", ["post_id"])

    # --- friend_requests ---
    op.create_table(
        "friend_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("requester_id", sa.String(64), nullable=False),
        sa.Column("receiver_id", sa.String(64), nullable=False),
        sa.Column("status", sa.Enum(
            "PENDING", "ACCEPTED", "REJECTED", "CANCELLED",
            name="friend_request_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_friend_requests_id", "friend_requests", ["id"])
    op.create_index("ix_friend_requests_receiver_id", "friend_requests", ["receiver_id"])
    op.create_index(
        "ix_friend_request_pair_status", "friend_requests", ["requester_id", "receiver_id", "status"]
    )

    # --- friendships ---
    op.create_table(
        "friendships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_a_id", sa.String(64), nullable=False),
        sa.Column("user_b_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("user_a_id < user_b_id", name="ck_friendship_canonical_order"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_a_id", "user_b_id", name="uq_friendship_pair"),
    )
    op.create_index("ix_friendships_id", "friendships", ["id"])
    op.create_index("ix_friendships_user_a_id", "friendships", ["user_a_id"])
    op.create_index("ix_friendships_user_b_id", "friendships", ["user_b_id"])


def downgrade() -> None:
    op.drop_table("friendships")
    op.drop_table("friend_requests")
    op.drop_table("reactions")
    op.drop_table("timeline_posts")
    op.drop_table("occurrences")
    op.drop_table("events")
    op.drop_table("users")

    for enum_name in (
        "friend_request_status_enum",
        "reaction_type_enum",
        "timeline_post_kind_enum",
        "occurrence_status_enum",
        "visibility_enum",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
