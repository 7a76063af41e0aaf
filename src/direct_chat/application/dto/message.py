from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from direct_chat.domain.entities.message import Message

IMAGE_URL_TEMPLATE = "/api/v1/messages/{message_id}/image"


@dataclass(frozen=True, slots=True)
class MessageView:
    """Denormalized message shape shared by HTTP responses and room events."""

    message: Message

    def as_dict(self) -> dict[str, Any]:
        msg = self.message
        image: dict[str, Any] | None = None
        if msg.has_image:
            image = {
                "content_type": msg.image_content_type,
                "size": msg.image_size,
                "url": IMAGE_URL_TEMPLATE.format(message_id=msg.id),
            }
        return {
            "id": str(msg.id),
            "chat_id": str(msg.chat_id),
            "sender_id": msg.sender_id,
            "text": msg.text,
            "image": image,
            "edited": msg.edited,
            "created_at": msg.created_at.isoformat(),
            "edited_at": msg.edited_at.isoformat() if msg.edited_at else None,
        }
