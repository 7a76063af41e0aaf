"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # room.join | room.leave | typing | message.send | message.edit | message.delete | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # message.created | message.updated | message.deleted | typing | room.joined | room.left | error | pong | heartbeat
    data: dict[str, Any] = {}


class RoomData(BaseModel):
    chat_id: UUID


class TypingData(BaseModel):
    chat_id: UUID
    is_typing: bool = True


class SendMessageData(BaseModel):
    chat_id: UUID
    text: str | None = None
    image: str | None = None  # data:<type>;base64,<payload>


class EditMessageData(BaseModel):
    message_id: UUID
    text: str


class DeleteMessageData(BaseModel):
    message_id: UUID
