from __future__ import annotations

import logging
import uuid

from direct_chat.application.dto.chat import InboxEntry
from direct_chat.application.exceptions import NotFoundError, ValidationError
from direct_chat.application.ports.clock import Clock
from direct_chat.application.uow import UnitOfWork
from direct_chat.domain.entities.chat import Chat, canonical_pair

logger = logging.getLogger(__name__)


async def resolve_chat(
    participant_a: str,
    participant_b: str,
    uow: UnitOfWork,
    clock: Clock,
) -> Chat:
    """Return the chat for an unordered participant pair, creating it once.

    (A, B) and (B, A) always resolve to the same chat. A concurrent creator
    that loses the unique-pair race gets the winner's record back.
    """
    participant_a = (participant_a or "").strip()
    participant_b = (participant_b or "").strip()
    if not participant_a or not participant_b:
        raise ValidationError("Two participant ids are required")
    if participant_a == participant_b:
        raise ValidationError("Cannot chat with yourself")

    first, second = canonical_pair(participant_a, participant_b)
    existing = await uow.chats.get_by_pair(first, second)
    if existing is not None:
        return existing

    now = clock.now()
    chat = Chat(
        id=uuid.uuid4(),
        participant_a=first,
        participant_b=second,
        last_message_id=None,
        last_message_at=None,
        created_at=now,
        updated_at=now,
    )
    chat, created = await uow.chats_w.create_if_not_exists(chat)
    if created:
        await uow.commit()
        logger.info("Created chat %s for %s/%s", chat.id, first, second)
    return chat


async def get_chat(chat_id: uuid.UUID, uow: UnitOfWork) -> Chat:
    chat = await uow.chats.get_by_id(chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    return chat


async def list_inbox(
    participant_id: str,
    uow: UnitOfWork,
    limit: int = 50,
) -> list[InboxEntry]:
    """Chats of a participant, most recently active first."""
    chats = await uow.chats.list_for_participant(participant_id, limit=limit)
    last_ids = [c.last_message_id for c in chats if c.last_message_id is not None]
    last_messages = {m.id: m for m in await uow.messages.get_many(last_ids)} if last_ids else {}
    return [
        InboxEntry(
            chat=c,
            other_participant_id=c.other_participant(participant_id),
            last_message=last_messages.get(c.last_message_id) if c.last_message_id else None,
        )
        for c in chats
    ]
