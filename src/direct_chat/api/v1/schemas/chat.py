from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from direct_chat.api.v1.schemas.message import MessageResponse
from direct_chat.application.dto.chat import InboxEntry
from direct_chat.application.dto.message import MessageView
from direct_chat.domain.entities.chat import Chat


class ResolveChatRequest(BaseModel):
    participant_a: str = Field(min_length=1, max_length=128)
    participant_b: str = Field(min_length=1, max_length=128)


class ChatResponse(BaseModel):
    id: UUID
    participants: list[str]
    last_message_id: UUID | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, chat: Chat) -> ChatResponse:
        return cls(
            id=chat.id,
            participants=list(chat.participants),
            last_message_id=chat.last_message_id,
            created_at=chat.created_at,
            updated_at=chat.updated_at,
        )


class ChatEnvelope(BaseModel):
    chat: ChatResponse


class PaginationResponse(BaseModel):
    next_cursor: str | None
    has_more: bool


class ChatPageResponse(BaseModel):
    chat: ChatResponse
    messages: list[MessageResponse]
    pagination: PaginationResponse


class LastMessagePreview(BaseModel):
    id: UUID
    sender_id: str
    text: str | None
    created_at: datetime


class InboxChatResponse(BaseModel):
    id: UUID
    other_participant_id: str
    last_message: LastMessagePreview | None
    updated_at: datetime

    @classmethod
    def from_entry(cls, entry: InboxEntry) -> InboxChatResponse:
        preview = None
        if entry.last_message is not None:
            preview = LastMessagePreview.model_validate(
                MessageView(entry.last_message).as_dict(),
            )
        return cls(
            id=entry.chat.id,
            other_participant_id=entry.other_participant_id,
            last_message=preview,
            updated_at=entry.chat.updated_at,
        )


class InboxResponse(BaseModel):
    chats: list[InboxChatResponse]
