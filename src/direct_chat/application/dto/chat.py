from __future__ import annotations

from dataclasses import dataclass

from direct_chat.domain.entities.chat import Chat
from direct_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class InboxEntry:
    """One row of a participant's inbox."""

    chat: Chat
    other_participant_id: str
    last_message: Message | None
