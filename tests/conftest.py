"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import UUID

import pytest

from direct_chat.application.dto.pagination import PageCursor
from direct_chat.application.ports.clock import FixedClock
from direct_chat.domain.entities.chat import Chat, canonical_pair
from direct_chat.domain.entities.message import ImageAttachment, Message

T0 = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)

JPEG_HEADER = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00"
PNG_HEADER = b"\x89PNG\r\n\x1a\n"


def jpeg_bytes(size: int = 1024) -> bytes:
    return JPEG_HEADER + b"\x00" * max(0, size - len(JPEG_HEADER))


def png_bytes(size: int = 1024) -> bytes:
    return PNG_HEADER + b"\x00" * max(0, size - len(PNG_HEADER))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


def make_chat(
    participant_a: str = "alice",
    participant_b: str = "bob",
    *,
    chat_id: UUID | None = None,
) -> Chat:
    first, second = canonical_pair(participant_a, participant_b)
    return Chat(
        id=chat_id or uuid.uuid4(),
        participant_a=first,
        participant_b=second,
        last_message_id=None,
        last_message_at=None,
        created_at=T0,
        updated_at=T0,
    )


def make_message(
    chat: Chat,
    *,
    sender_id: str = "alice",
    text: str | None = "hello",
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        chat_id=chat.id,
        sender_id=sender_id,
        text=text,
        image_content_type=None,
        image_size=None,
        edited=False,
        created_at=created_at or T0,
    )


@dataclass
class FakeChatReader:
    _store: dict[UUID, Chat] = field(default_factory=dict)
    locked: list[UUID] = field(default_factory=list)

    async def get_by_id(self, chat_id: UUID, *, for_update: bool = False) -> Chat | None:
        if for_update:
            self.locked.append(chat_id)
        return self._store.get(chat_id)

    async def get_by_pair(self, participant_a: str, participant_b: str) -> Chat | None:
        for c in self._store.values():
            if (c.participant_a, c.participant_b) == (participant_a, participant_b):
                return c
        return None

    async def list_for_participant(self, participant_id: str, *, limit: int = 50) -> list[Chat]:
        chats = [c for c in self._store.values() if c.has_participant(participant_id)]
        chats.sort(key=lambda c: c.updated_at, reverse=True)
        return chats[:limit]


@dataclass
class FakeChatWriter:
    _reader: FakeChatReader

    async def create_if_not_exists(self, chat: Chat) -> tuple[Chat, bool]:
        for c in self._reader._store.values():
            if c.participants == chat.participants:
                return c, False
        self._reader._store[chat.id] = chat
        return chat, True

    async def set_last_message(
        self,
        chat_id: UUID,
        message_id: UUID | None,
        message_at: datetime | None,
        updated_at: datetime,
    ) -> None:
        chat = self._reader._store[chat_id]
        self._reader._store[chat_id] = dataclasses.replace(
            chat,
            last_message_id=message_id,
            last_message_at=message_at,
            updated_at=updated_at,
        )


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)
    _images: dict[UUID, ImageAttachment] = field(default_factory=dict)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    async def list_before(
        self,
        chat_id: UUID,
        *,
        cursor: PageCursor | None = None,
        limit: int = 30,
    ) -> list[Message]:
        rows = [m for m in self._messages if m.chat_id == chat_id]
        if cursor is not None:
            rows = [
                m for m in rows
                if (m.created_at, m.id) < (cursor.created_at, cursor.message_id)
            ]
        rows.sort(key=lambda m: (m.created_at, m.id), reverse=True)
        return rows[:limit]

    async def get_latest(self, chat_id: UUID) -> Message | None:
        rows = await self.list_before(chat_id, limit=1)
        return rows[0] if rows else None

    async def get_many(self, message_ids: list[UUID]) -> list[Message]:
        wanted = set(message_ids)
        return [m for m in self._messages if m.id in wanted]

    async def get_image(self, message_id: UUID) -> ImageAttachment | None:
        return self._images.get(message_id)


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    async def create(self, message: Message, image: ImageAttachment | None = None) -> Message:
        self._reader._messages.append(message)
        if image is not None:
            self._reader._images[message.id] = image
        return message

    async def update_text(self, message_id: UUID, text: str, edited_at: datetime) -> Message | None:
        for i, m in enumerate(self._reader._messages):
            if m.id == message_id:
                updated = dataclasses.replace(m, text=text, edited=True, edited_at=edited_at)
                self._reader._messages[i] = updated
                return updated
        return None

    async def delete(self, message_id: UUID) -> None:
        self._reader._messages = [m for m in self._reader._messages if m.id != message_id]
        self._reader._images.pop(message_id, None)


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    chats: FakeChatReader = field(default_factory=FakeChatReader)
    chats_w: FakeChatWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    commits: int = 0
    _committed: bool = False

    def __post_init__(self) -> None:
        if self.chats_w is None:
            self.chats_w = FakeChatWriter(self.chats)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    def add_chat(self, chat: Chat) -> Chat:
        self.chats._store[chat.id] = chat
        return chat

    def chat(self, chat_id: UUID) -> Chat:
        return self.chats._store[chat_id]

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        pass

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        pass


@dataclass
class RecordingBroadcaster:
    """Broadcaster fake that remembers what it was asked to send."""
    events: list[dict[str, Any]] = field(default_factory=list)
    on_broadcast: Callable[[], None] | None = None

    async def broadcast(
        self,
        chat_id: UUID,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude: str | None = None,
    ) -> None:
        if self.on_broadcast is not None:
            self.on_broadcast()
        self.events.append(
            {"chat_id": chat_id, "type": event_type, "data": data, "exclude": exclude}
        )


class FailingBroadcaster:
    async def broadcast(self, *args: Any, **kwargs: Any) -> None:
        raise ConnectionError("fan-out is down")


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def chat(uow: FakeUoW) -> Chat:
    return uow.add_chat(make_chat("alice", "bob"))


def minutes(n: float) -> timedelta:
    return timedelta(minutes=n)
