from __future__ import annotations

from direct_chat.domain.entities.chat import Chat
from direct_chat.infrastructure.db.models.chat import ChatModel


def model_to_entity(model: ChatModel) -> Chat:
    return Chat(
        id=model.id,
        participant_a=model.participant_a,
        participant_b=model.participant_b,
        last_message_id=model.last_message_id,
        last_message_at=model.last_message_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_values(entity: Chat) -> dict[str, object]:
    return {
        "id": entity.id,
        "participant_a": entity.participant_a,
        "participant_b": entity.participant_b,
        "last_message_id": entity.last_message_id,
        "last_message_at": entity.last_message_at,
        "created_at": entity.created_at,
        "updated_at": entity.updated_at,
    }
