"""
Social graph domain — Pydantic V2 request/response schemas.
"""
from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field

from app.social_graph.constants import MAX_BLOCK_REASON_LENGTH, Permission
from shared.models.pagination import PaginatedResponse


class _Base(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# ── Relationship status ────────────────────────────────────────────────────────

class RelationshipResponse(BaseModel):
    """How the authenticated user relates to ``user_id`` right now."""

    user_id: uuid.UUID
    is_following: bool
    is_followed_by: bool
    is_blocking: bool
    is_blocked_by: bool
    has_conversation: bool
    permissions: list[Permission]


# ── Mutations ──────────────────────────────────────────────────────────────────

class BlockRequest(_Base):
    reason: str | None = Field(None, max_length=MAX_BLOCK_REASON_LENGTH)


class MutationResponse(BaseModel):
    action: str
    changed: bool  # False when the call was an idempotent repeat
    permissions: list[Permission]


# ── Lists ──────────────────────────────────────────────────────────────────────

class UserIdListResponse(PaginatedResponse[uuid.UUID]):
    """Newest edge first."""
