from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from direct_chat.application.dto.pagination import PageCursor
from direct_chat.domain.entities.message import ImageAttachment, Message


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def list_before(
        self,
        chat_id: UUID,
        *,
        cursor: PageCursor | None = None,
        limit: int = 30,
    ) -> list[Message]:
        """Up to ``limit`` messages strictly older than ``cursor``, newest first."""
        ...

    async def get_latest(self, chat_id: UUID) -> Message | None: ...

    async def get_many(self, message_ids: list[UUID]) -> list[Message]: ...

    async def get_image(self, message_id: UUID) -> ImageAttachment | None: ...


class MessageWriter(Protocol):
    async def create(
        self, message: Message, image: ImageAttachment | None = None,
    ) -> Message: ...

    async def update_text(
        self, message_id: UUID, text: str, edited_at: datetime,
    ) -> Message | None: ...

    async def delete(self, message_id: UUID) -> None: ...
