from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from direct_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class MessageCreated:
    chat_id: UUID
    message: Message
