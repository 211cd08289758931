"""Relationship graph: users, follows, blocks, conversations

Revision ID: 001
Revises:
Create Date: 2026-10-19

Tables created:
  - users          Identity projection (id + active flag) that edges reference
  - follows        Unidirectional follow edges (follower → following)
  - blocks         Block edges with optional reason; CASCADE removes on user delete
  - conversations  At most one per unordered pair, stored low < high
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        nullable=False,
        server_default=sa.text("gen_random_uuid()"),
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def _user_fk(column: str, table: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        [column],
        ["users.id"],
        name=f"fk_{table}_{column}",
        ondelete="CASCADE",
    )


# ─────────────────────────────────────────────────────────────────────────────
#  UPGRADE
# ─────────────────────────────────────────────────────────────────────────────

def upgrade() -> None:
    # ── 1. users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _uuid_pk("id"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )

    # ── 2. follows ────────────────────────────────────────────────────────────
    op.create_table(
        "follows",
        _uuid_pk("follow_id"),
        sa.Column("follower_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("following_id", postgresql.UUID(as_uuid=True), nullable=False),
        _created_at(),
        # Constraints
        sa.PrimaryKeyConstraint("follow_id", name="pk_follows"),
        _user_fk("follower_id", "follows"),
        _user_fk("following_id", "follows"),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        sa.CheckConstraint("follower_id != following_id", name="ck_follows_no_self"),
    )
    op.create_index("idx_follows_follower_id", "follows", ["follower_id"])
    op.create_index("idx_follows_following_id", "follows", ["following_id"])

    # ── 3. blocks ─────────────────────────────────────────────────────────────
    op.create_table(
        "blocks",
        _uuid_pk("block_id"),
        sa.Column("blocker_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("blocked_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("block_id", name="pk_blocks"),
        _user_fk("blocker_id", "blocks"),
        _user_fk("blocked_id", "blocks"),
        sa.UniqueConstraint("blocker_id", "blocked_id", name="uq_blocks_pair"),
        sa.CheckConstraint("blocker_id != blocked_id", name="ck_blocks_no_self"),
    )
    op.create_index("idx_blocks_blocker_id", "blocks", ["blocker_id"])
    op.create_index("idx_blocks_blocked_id", "blocks", ["blocked_id"])

    # ── 4. conversations ──────────────────────────────────────────────────────
    op.create_table(
        "conversations",
        _uuid_pk("conversation_id"),
        sa.Column("participant_low", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("participant_high", postgresql.UUID(as_uuid=True), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("conversation_id", name="pk_conversations"),
        _user_fk("participant_low", "conversations"),
        _user_fk("participant_high", "conversations"),
        sa.UniqueConstraint(
            "participant_low", "participant_high", name="uq_conversations_pair"
        ),
        sa.CheckConstraint(
            "participant_low < participant_high", name="ck_conversations_ordered"
        ),
    )
    op.create_index(
        "idx_conversations_participant_low", "conversations", ["participant_low"]
    )
    op.create_index(
        "idx_conversations_participant_high", "conversations", ["participant_high"]
    )


# ─────────────────────────────────────────────────────────────────────────────
#  DOWNGRADE
# ─────────────────────────────────────────────────────────────────────────────

def downgrade() -> None:
    op.drop_index("idx_conversations_participant_high", table_name="conversations")
    op.drop_index("idx_conversations_participant_low", table_name="conversations")
    op.drop_table("conversations")

    op.drop_index("idx_blocks_blocked_id", table_name="blocks")
    op.drop_index("idx_blocks_blocker_id", table_name="blocks")
    op.drop_table("blocks")

    op.drop_index("idx_follows_following_id", table_name="follows")
    op.drop_index("idx_follows_follower_id", table_name="follows")
    op.drop_table("follows")

    op.drop_table("users")
