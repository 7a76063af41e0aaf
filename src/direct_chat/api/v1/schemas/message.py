from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from direct_chat.application.dto.message import MessageView
from direct_chat.domain.entities.message import Message


class EditMessageRequest(BaseModel):
    text: str
    editor_id: str


class ImageRef(BaseModel):
    content_type: str
    size: int
    url: str


class MessageResponse(BaseModel):
    id: UUID
    chat_id: UUID
    sender_id: str
    text: str | None
    image: ImageRef | None
    edited: bool
    created_at: datetime
    edited_at: datetime | None

    @classmethod
    def from_entity(cls, message: Message) -> MessageResponse:
        # same dict the room events carry
        return cls.model_validate(MessageView(message).as_dict())


class MessageEnvelope(BaseModel):
    message: MessageResponse


class EditedMessageEnvelope(BaseModel):
    message: MessageResponse
    edited: bool = True


class DeletedMessageResponse(BaseModel):
    deleted_id: UUID
