from __future__ import annotations

from datetime import datetime, timedelta

from direct_chat.application.exceptions import (
    EditWindowExpiredError,
    ForbiddenError,
    NotFoundError,
)
from direct_chat.domain.entities.chat import Chat
from direct_chat.domain.entities.message import Message

EDIT_WINDOW = timedelta(minutes=15)


def assert_participant(chat: Chat | None, participant_id: str) -> Chat:
    """Raise if chat doesn't exist or participant is not one of its two members."""
    if chat is None:
        raise NotFoundError("Chat not found")
    if not chat.has_participant(participant_id):
        raise ForbiddenError("Not a participant of this chat")
    return chat


def assert_can_edit(
    message: Message,
    editor_id: str,
    now: datetime,
    window: timedelta = EDIT_WINDOW,
) -> None:
    """Only the sender may edit, and only within ``window`` of creation.

    ``message`` must be the stored record, never client-supplied data.
    """
    if message.sender_id != editor_id:
        raise ForbiddenError("Only the sender can edit this message")
    if now - message.created_at > window:
        raise EditWindowExpiredError("Message is too old to edit")


def assert_can_delete(message: Message, requester_id: str) -> None:
    if message.sender_id != requester_id:
        raise ForbiddenError("Only the sender can delete this message")
