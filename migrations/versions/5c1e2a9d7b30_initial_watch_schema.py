"""initial watch schema

Revision ID: 5c1e2a9d7b30
Revises:
Create Date: 2026-10-19 09:12:41.530214

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e2a9d7b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create watch, vote, outcome and group settings tables."""
    op.create_table(
        "watch",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("group_id", sa.BigInteger(), nullable=False),
        sa.Column("channel_id", sa.BigInteger(), nullable=False),
        sa.Column("accused_user_id", sa.BigInteger(), nullable=False),
        sa.Column("initiator_user_id", sa.BigInteger(), nullable=False),
        sa.Column("origin_message_id", sa.BigInteger(), nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("custom_message", sa.String(length=200), nullable=True),
        sa.Column("state", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cleared_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voting_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voting_closes_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voting_ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("guilty_votes", sa.Integer(), nullable=False),
        sa.Column("not_guilty_votes", sa.Integer(), nullable=False),
        sa.Column("cancel_reason", sa.String(length=200), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_watch_group_accused_deadline",
        "watch",
        ["group_id", "accused_user_id", "deadline"],
        unique=True,
        sqlite_where=sa.text("state IN ('pending', 'voting')"),
        postgresql_where=sa.text("state IN ('pending', 'voting')"),
    )
    op.create_index("ix_watch_state_deadline", "watch", ["state", "deadline"])
    op.create_index("ix_watch_channel_id", "watch", ["channel_id"])

    op.create_table(
        "watch_vote",
        sa.Column("watch_id", sa.String(length=32), nullable=False),
        sa.Column("voter_user_id", sa.BigInteger(), nullable=False),
        sa.Column("is_guilty_vote", sa.Boolean(), nullable=False),
        sa.Column("voted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["watch_id"], ["watch.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("watch_id", "voter_user_id"),
    )
    op.create_index("ix_watch_vote_watch_id", "watch_vote", ["watch_id"])

    op.create_table(
        "outcome_record",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("watch_id", sa.String(length=32), nullable=False),
        sa.Column("group_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("guilty_votes", sa.Integer(), nullable=False),
        sa.Column("not_guilty_votes", sa.Integer(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("origin_message_link", sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(["watch_id"], ["watch.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("watch_id"),
    )
    op.create_index("ix_outcome_record_group_user", "outcome_record", ["group_id", "user_id"])
    op.create_index("ix_outcome_record_recorded_at", "outcome_record", ["recorded_at"])

    op.create_table(
        "group_settings",
        sa.Column("group_id", sa.BigInteger(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("voting_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("max_advance_hours", sa.Integer(), nullable=False),
        sa.Column("public_leaderboard_enabled", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("group_id"),
    )


def downgrade() -> None:
    """Drop every watch table."""
    op.drop_table("group_settings")
    op.drop_index("ix_outcome_record_recorded_at", table_name="outcome_record")
    op.drop_index("ix_outcome_record_group_user", table_name="outcome_record")
    op.drop_table("outcome_record")
    op.drop_index("ix_watch_vote_watch_id", table_name="watch_vote")
    op.drop_table("watch_vote")
    op.drop_index("ix_watch_channel_id", table_name="watch")
    op.drop_index("ix_watch_state_deadline", table_name="watch")
    op.drop_index("ix_watch_group_accused_deadline", table_name="watch")
    op.drop_table("watch")
