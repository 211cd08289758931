"""
Relationship domain events.

Published after the corresponding mutation has committed; consumed by
notification delivery and feed invalidation.  Delivery is best-effort.
"""
from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RelationshipEvent(BaseModel):
    """Base envelope: who acted, on whom, and when."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    event_type: str
    actor_id: UUID
    target_id: UUID
    occurred_at: datetime = Field(default_factory=_utcnow)


class UserFollowed(RelationshipEvent):
    event_type: str = "user.followed"


class UserUnfollowed(RelationshipEvent):
    event_type: str = "user.unfollowed"


class UserBlocked(RelationshipEvent):
    event_type: str = "user.blocked"


class UserUnblocked(RelationshipEvent):
    event_type: str = "user.unblocked"


class ConversationCreated(RelationshipEvent):
    event_type: str = "conversation.created"
    conversation_id: UUID
