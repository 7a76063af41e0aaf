from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from direct_chat.domain.entities.chat import Chat


class ChatReader(Protocol):
    async def get_by_id(
        self, chat_id: UUID, *, for_update: bool = False,
    ) -> Chat | None: ...

    async def get_by_pair(
        self, participant_a: str, participant_b: str,
    ) -> Chat | None:
        """Look up by an already canonical pair."""
        ...

    async def list_for_participant(
        self, participant_id: str, *, limit: int = 50,
    ) -> list[Chat]: ...


class ChatWriter(Protocol):
    async def create_if_not_exists(self, chat: Chat) -> tuple[Chat, bool]:
        """Insert chat. Return (chat, created). On pair conflict → return existing."""
        ...

    async def set_last_message(
        self,
        chat_id: UUID,
        message_id: UUID | None,
        message_at: datetime | None,
        updated_at: datetime,
    ) -> None: ...
