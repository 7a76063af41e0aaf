"""Stateless backward pagination over a chat timeline.

Cursor format: base64("<iso-timestamp>|<uuid>") of the oldest message the
caller has already seen. Nothing is kept server-side between pages.
"""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from direct_chat.application.exceptions import ValidationError
from direct_chat.domain.entities.message import Message

DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(limit, MAX_PAGE_SIZE))


@dataclass(frozen=True, slots=True)
class PageCursor:
    created_at: datetime
    message_id: UUID

    @classmethod
    def from_message(cls, message: Message) -> PageCursor:
        return cls(created_at=message.created_at, message_id=message.id)

    def encode(self) -> str:
        raw = f"{self.created_at.isoformat()}|{self.message_id}"
        cursor = base64.urlsafe_b64encode(raw.encode()).decode()
        return cursor.rstrip("=")

    @classmethod
    def decode(cls, cursor: str) -> PageCursor:
        # Restore base64 padding if it was stripped
        padded = cursor + "=" * ((4 - len(cursor) % 4) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.encode()).decode()
            ts_str, uid_str = raw.split("|", 1)
            return cls(created_at=datetime.fromisoformat(ts_str), message_id=UUID(uid_str))
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise ValidationError("Malformed pagination cursor") from exc


@dataclass(frozen=True, slots=True)
class MessagePage:
    messages: list[Message]  # oldest → newest
    has_more: bool

    @property
    def next_cursor(self) -> str | None:
        if not self.has_more or not self.messages:
            return None
        return PageCursor.from_message(self.messages[0]).encode()
