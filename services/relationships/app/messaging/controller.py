"""
Messaging domain — request orchestration.
"""
from __future__ import annotations

import uuid

from app.messaging.registry import ConversationRecord
from app.messaging.schemas import ConversationListResponse, ConversationResponse
from app.messaging.service import MessagingService
from shared.models.pagination import PageParams


def _to_response(
    record: ConversationRecord, viewer_id: uuid.UUID, *, created: bool = False
) -> ConversationResponse:
    return ConversationResponse(
        id=record.id,
        participant_ids=list(record.participants),
        other_user_id=record.other_participant(viewer_id),
        created_at=record.created_at,
        created=created,
    )


async def open_conversation(
    service: MessagingService, actor_id: uuid.UUID, target_id: uuid.UUID
) -> ConversationResponse:
    record, created = await service.get_or_create_conversation(actor_id, target_id)
    return _to_response(record, actor_id, created=created)


async def list_conversations(
    service: MessagingService, user_id: uuid.UUID, params: PageParams
) -> ConversationListResponse:
    records, total = await service.list_conversations(
        user_id, offset=params.offset, limit=params.size
    )
    return ConversationListResponse(
        items=[_to_response(r, user_id) for r in records],
        total=total,
        page=params.page,
        size=params.size,
    )
