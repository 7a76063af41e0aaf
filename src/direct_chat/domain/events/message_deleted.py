from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class MessageDeleted:
    chat_id: UUID
    message_id: UUID
    last_message_id: UUID | None
