from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class ImageAttachment:
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    chat_id: UUID
    sender_id: str
    text: str | None
    image_content_type: str | None
    image_size: int | None
    edited: bool
    created_at: datetime
    edited_at: datetime | None = None

    @property
    def has_image(self) -> bool:
        return self.image_content_type is not None
