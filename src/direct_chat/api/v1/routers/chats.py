from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from direct_chat.api.deps import ClockDep, UoWDep
from direct_chat.api.v1.schemas.chat import (
    ChatEnvelope,
    ChatPageResponse,
    ChatResponse,
    PaginationResponse,
    ResolveChatRequest,
)
from direct_chat.api.v1.schemas.message import MessageResponse
from direct_chat.config import settings
from direct_chat.services import chat_service, message_service
from direct_chat.services.deadline import persistence_deadline

router = APIRouter(prefix="/api/v1/chats", tags=["chats"])


@router.post("", response_model=ChatEnvelope)
async def resolve_chat(
    body: ResolveChatRequest,
    uow: UoWDep,
    clock: ClockDep,
) -> ChatEnvelope:
    async with persistence_deadline(settings.DB_CALL_TIMEOUT_SECONDS):
        chat = await chat_service.resolve_chat(
            body.participant_a, body.participant_b, uow, clock,
        )
    return ChatEnvelope(chat=ChatResponse.from_entity(chat))


@router.get("/{chat_id}", response_model=ChatPageResponse)
async def page_messages(
    chat_id: UUID,
    uow: UoWDep,
    cursor: str | None = Query(None),
    limit: int | None = Query(None),
) -> ChatPageResponse:
    async with persistence_deadline(settings.DB_CALL_TIMEOUT_SECONDS):
        chat, page = await message_service.page_messages(chat_id, cursor, limit, uow)
    return ChatPageResponse(
        chat=ChatResponse.from_entity(chat),
        messages=[MessageResponse.from_entity(m) for m in page.messages],
        pagination=PaginationResponse(next_cursor=page.next_cursor, has_more=page.has_more),
    )
