from __future__ import annotations

from direct_chat.domain.entities.message import ImageAttachment, Message
from direct_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        chat_id=model.chat_id,
        sender_id=model.sender_id,
        text=model.text,
        image_content_type=model.image_content_type,
        image_size=model.image_size,
        edited=model.edited,
        created_at=model.created_at,
        edited_at=model.edited_at,
    )


def entity_to_model(entity: Message, image: ImageAttachment | None = None) -> MessageModel:
    return MessageModel(
        id=entity.id,
        chat_id=entity.chat_id,
        sender_id=entity.sender_id,
        text=entity.text,
        image_data=image.data if image else None,
        image_content_type=entity.image_content_type,
        image_size=entity.image_size,
        edited=entity.edited,
        created_at=entity.created_at,
        edited_at=entity.edited_at,
    )
