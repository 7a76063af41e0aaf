from __future__ import annotations

from fastapi import APIRouter, Query

from direct_chat.api.deps import UoWDep
from direct_chat.api.v1.schemas.chat import InboxChatResponse, InboxResponse
from direct_chat.config import settings
from direct_chat.services import chat_service
from direct_chat.services.deadline import persistence_deadline

router = APIRouter(prefix="/api/v1/participants", tags=["inbox"])


@router.get("/{participant_id}/chats", response_model=InboxResponse)
async def list_inbox(
    participant_id: str,
    uow: UoWDep,
    limit: int = Query(50, ge=1, le=100),
) -> InboxResponse:
    async with persistence_deadline(settings.DB_CALL_TIMEOUT_SECONDS):
        entries = await chat_service.list_inbox(participant_id, uow, limit)
    return InboxResponse(chats=[InboxChatResponse.from_entry(e) for e in entries])
