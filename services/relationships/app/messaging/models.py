"""
Messaging domain — SQLAlchemy ORM models.

Tables:
  conversations  — one row per unordered pair of participants, stored in
                   canonical order (participant_low < participant_high)

Messages themselves live in the messaging store and are not mapped here.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Base):
    __tablename__ = "conversations"

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    participant_low: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    participant_high: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (
        sa.UniqueConstraint("participant_low", "participant_high", name="uq_conversations_pair"),
        sa.CheckConstraint("participant_low < participant_high", name="ck_conversations_ordered"),
        sa.Index("idx_conversations_participant_low", "participant_low"),
        sa.Index("idx_conversations_participant_high", "participant_high"),
    )
