"""
Messaging domain — Pydantic V2 response schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from shared.models.pagination import PaginatedResponse


class ConversationResponse(BaseModel):
    id: uuid.UUID
    participant_ids: list[uuid.UUID]
    other_user_id: uuid.UUID
    created_at: datetime
    created: bool = False  # True only on the call that opened the conversation


class ConversationListResponse(PaginatedResponse[ConversationResponse]):
    pass
