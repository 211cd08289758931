"""
Messaging domain — conversation routes.

All routes prefixed /api/v1/conversations.

Routes:
  GET    /             My conversations, newest first (paginated)
  POST   /{user_id}    Open (or fetch) the conversation with a user
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status

from app.auth.dependencies import get_current_user
from app.dependencies import get_messaging_service
from app.messaging import controller as ctrl
from app.messaging.schemas import ConversationListResponse, ConversationResponse
from app.messaging.service import MessagingService
from shared.models.pagination import PageParams
from shared.models.user import CurrentUser

router = APIRouter(prefix="/conversations", tags=["messaging"])


@router.get(
    "",
    response_model=ConversationListResponse,
    summary="List my conversations",
)
async def my_conversations(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
) -> ConversationListResponse:
    return await ctrl.list_conversations(service, current_user.id, PageParams(page=page, size=size))


@router.post(
    "/{user_id}",
    response_model=ConversationResponse,
    status_code=status.HTTP_200_OK,
    summary="Open a conversation",
    description=(
        "Returns the existing conversation with the user, or creates one (201) when "
        "you follow each other. Fails with 403 while either of you blocks the other."
    ),
    responses={201: {"model": ConversationResponse, "description": "Conversation created"}},
)
async def open_conversation(
    user_id: uuid.UUID,
    response: Response,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
) -> ConversationResponse:
    result = await ctrl.open_conversation(service, current_user.id, user_id)
    if result.created:
        response.status_code = status.HTTP_201_CREATED
    return result
