from __future__ import annotations

import uuid
from datetime import timedelta

from direct_chat.application.dto.pagination import MessagePage, PageCursor, clamp_limit
from direct_chat.application.exceptions import NotFoundError, ValidationError
from direct_chat.application.policies.permissions import (
    EDIT_WINDOW,
    assert_can_delete,
    assert_can_edit,
    assert_participant,
)
from direct_chat.application.ports.clock import Clock
from direct_chat.application.uow import UnitOfWork
from direct_chat.domain.entities.chat import Chat
from direct_chat.domain.entities.message import ImageAttachment, Message
from direct_chat.domain.events.message_deleted import MessageDeleted

IMAGE_PLACEHOLDER_TEXT = "Photo"

_TICK = timedelta(microseconds=1)


async def append_message(
    chat_id: uuid.UUID,
    sender_id: str,
    text: str | None,
    image: ImageAttachment | None,
    uow: UnitOfWork,
    clock: Clock,
) -> Message:
    """Persist a new message and move the chat's last-message pointer to it."""
    text = text.strip() if text else None
    if not text and image is None:
        raise ValidationError("Message needs text or an image")
    if not text:
        text = IMAGE_PLACEHOLDER_TEXT

    chat = await uow.chats.get_by_id(chat_id, for_update=True)
    chat = assert_participant(chat, sender_id)

    # created_at must totally order messages inside a chat
    now = clock.now()
    if chat.last_message_at is not None and now <= chat.last_message_at:
        now = chat.last_message_at + _TICK

    msg = Message(
        id=uuid.uuid4(),
        chat_id=chat.id,
        sender_id=sender_id,
        text=text,
        image_content_type=image.content_type if image else None,
        image_size=image.size if image else None,
        edited=False,
        created_at=now,
    )
    msg = await uow.messages_w.create(msg, image)
    await uow.chats_w.set_last_message(chat.id, msg.id, msg.created_at, now)
    await uow.commit()
    return msg


async def page_messages(
    chat_id: uuid.UUID,
    cursor: str | None,
    limit: int | None,
    uow: UnitOfWork,
) -> tuple[Chat, MessagePage]:
    """Return up to ``limit`` messages older than ``cursor``, oldest first.

    Fetches one extra row so ``has_more`` is exact, including when the
    timeline length is a multiple of ``limit``.
    """
    limit = clamp_limit(limit)
    page_cursor = PageCursor.decode(cursor) if cursor else None

    chat = await uow.chats.get_by_id(chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")

    rows = await uow.messages.list_before(chat_id, cursor=page_cursor, limit=limit + 1)
    has_more = len(rows) > limit
    messages = list(reversed(rows[:limit]))
    return chat, MessagePage(messages=messages, has_more=has_more)


async def edit_message(
    message_id: uuid.UUID,
    editor_id: str,
    new_text: str | None,
    uow: UnitOfWork,
    clock: Clock,
    edit_window: timedelta = EDIT_WINDOW,
) -> Message:
    new_text = (new_text or "").strip()
    if not new_text:
        raise ValidationError("Text is required")

    msg = await uow.messages.get_by_id(message_id)
    if msg is None:
        raise NotFoundError("Message not found")

    now = clock.now()
    assert_can_edit(msg, editor_id, now, edit_window)

    updated = await uow.messages_w.update_text(message_id, new_text, now)
    if updated is None:
        raise NotFoundError("Message not found")
    await uow.commit()
    return updated


async def delete_message(
    message_id: uuid.UUID,
    requester_id: str,
    uow: UnitOfWork,
    clock: Clock,
) -> MessageDeleted:
    """Delete a message, recomputing the chat pointer if it was the latest."""
    msg = await uow.messages.get_by_id(message_id)
    if msg is None:
        raise NotFoundError("Message not found")
    assert_can_delete(msg, requester_id)

    chat = await uow.chats.get_by_id(msg.chat_id, for_update=True)
    await uow.messages_w.delete(message_id)

    last_message_id = chat.last_message_id if chat else None
    if chat is not None and chat.last_message_id == message_id:
        previous = await uow.messages.get_latest(chat.id)
        last_message_id = previous.id if previous else None
        await uow.chats_w.set_last_message(
            chat.id,
            last_message_id,
            previous.created_at if previous else None,
            clock.now(),
        )
    await uow.commit()
    return MessageDeleted(
        chat_id=msg.chat_id,
        message_id=message_id,
        last_message_id=last_message_id,
    )


async def get_message_image(message_id: uuid.UUID, uow: UnitOfWork) -> ImageAttachment:
    image = await uow.messages.get_image(message_id)
    if image is None:
        raise NotFoundError("Image not found")
    return image
