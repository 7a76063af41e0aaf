from __future__ import annotations

import asyncio
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from direct_chat.application.exceptions import (
    ForbiddenError,
    NotFoundError,
    UnavailableError,
)
from direct_chat.services.message_commands import MessageCommandHandler
from tests.conftest import FailingBroadcaster, RecordingBroadcaster, minutes


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def commands(broadcaster, clock) -> MessageCommandHandler:
    return MessageCommandHandler(broadcaster, clock)


@pytest.mark.asyncio
async def test_send_broadcasts_after_commit(commands, broadcaster, uow, chat):
    commits_seen = []
    broadcaster.on_broadcast = lambda: commits_seen.append(uow.commits)

    msg = await commands.send(uow, chat.id, "alice", "hello")

    assert commits_seen == [1]
    [event] = broadcaster.events
    assert event["chat_id"] == chat.id
    assert event["type"] == "message.created"
    assert event["exclude"] is None
    assert event["data"]["chat_id"] == str(chat.id)
    assert event["data"]["message"]["id"] == str(msg.id)
    assert event["data"]["message"]["text"] == "hello"
    assert event["data"]["message"]["image"] is None


@pytest.mark.asyncio
async def test_failed_write_is_not_broadcast(commands, broadcaster, uow, chat):
    with pytest.raises(ForbiddenError):
        await commands.send(uow, chat.id, "mallory", "hello")
    assert broadcaster.events == []


@pytest.mark.asyncio
async def test_broadcast_failure_does_not_fail_the_write(clock, uow, chat, caplog):
    commands = MessageCommandHandler(FailingBroadcaster(), clock)

    msg = await commands.send(uow, chat.id, "alice", "still saved")

    assert await uow.messages.get_by_id(msg.id) == msg
    assert uow.chat(chat.id).last_message_id == msg.id
    assert "Broadcast of message.created" in caplog.text


@pytest.mark.asyncio
async def test_edit_broadcasts_updated_message(commands, broadcaster, clock, uow, chat):
    msg = await commands.send(uow, chat.id, "alice", "helo")
    clock.advance(minutes(1))

    updated = await commands.edit(uow, msg.id, "alice", "hello")

    event = broadcaster.events[-1]
    assert event["type"] == "message.updated"
    assert event["data"]["message"]["text"] == "hello"
    assert event["data"]["message"]["edited"] is True
    assert event["data"]["message"]["edited_at"] == updated.edited_at.isoformat()


@pytest.mark.asyncio
async def test_delete_broadcasts_ids_only(commands, broadcaster, uow, chat):
    msg = await commands.send(uow, chat.id, "alice", "oops")

    event = await commands.delete(uow, msg.id, "alice")

    assert event.last_message_id is None
    assert broadcaster.events[-1] == {
        "chat_id": chat.id,
        "type": "message.deleted",
        "data": {"chat_id": str(chat.id), "message_id": str(msg.id)},
        "exclude": None,
    }


@pytest.mark.asyncio
async def test_edit_unknown_message(commands, broadcaster, uow):
    with pytest.raises(NotFoundError):
        await commands.edit(uow, uuid.uuid4(), "alice", "x")
    assert broadcaster.events == []


@pytest.mark.asyncio
async def test_concurrent_sends_broadcast_in_commit_order(commands, broadcaster, uow, chat):
    await asyncio.gather(
        *(commands.send(uow, chat.id, "alice", f"m{i}") for i in range(10))
    )

    stored = sorted(uow.messages._messages, key=lambda m: m.created_at)
    announced = [e["data"]["message"]["id"] for e in broadcaster.events]
    assert announced == [str(m.id) for m in stored]


class StuckBroadcaster:
    def __init__(self) -> None:
        self.calls = 0

    async def broadcast(self, *args, **kwargs) -> None:
        self.calls += 1
        await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_stuck_broadcast_does_not_hold_the_write(clock, uow, chat, caplog):
    broadcaster = StuckBroadcaster()
    commands = MessageCommandHandler(broadcaster, clock, broadcast_timeout=0.05)

    first = await asyncio.wait_for(commands.send(uow, chat.id, "alice", "hi"), 1.0)
    second = await asyncio.wait_for(commands.send(uow, chat.id, "bob", "hey"), 1.0)

    assert uow.chat(chat.id).last_message_id == second.id
    assert await uow.messages.get_by_id(first.id) == first
    assert broadcaster.calls == 2
    assert "timed out" in caplog.text


@pytest.mark.asyncio
async def test_slow_storage_is_unavailable(broadcaster, clock, uow, chat):
    async def _slow_get(*args, **kwargs):
        await asyncio.sleep(1.0)

    uow.chats.get_by_id = _slow_get
    commands = MessageCommandHandler(broadcaster, clock, call_timeout=0.05)

    with pytest.raises(UnavailableError):
        await commands.send(uow, chat.id, "alice", "hi")
    assert uow.messages._messages == []
    assert broadcaster.events == []


@pytest.mark.asyncio
async def test_lost_database_connection_is_unavailable(commands, broadcaster, uow, chat):
    async def _broken_get(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError())

    uow.chats.get_by_id = _broken_get

    with pytest.raises(UnavailableError) as exc:
        await commands.send(uow, chat.id, "alice", "hi")
    assert isinstance(exc.value.__cause__, OperationalError)
    assert broadcaster.events == []
