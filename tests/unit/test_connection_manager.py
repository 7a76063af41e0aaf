from __future__ import annotations

import asyncio
import json
import uuid

import pytest

from direct_chat.infrastructure.ws.manager import ConnectionManager
from tests.conftest import wait_until


class FakeWebSocket:
    def __init__(self, *, fail: bool = False, stall: bool = False) -> None:
        self.sent: list[dict] = []
        self.accepted = False
        self.close_code: int | None = None
        self._fail = fail
        self._stall = stall

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, raw: str) -> None:
        if self._fail:
            raise RuntimeError("socket gone")
        if self._stall:
            await asyncio.Event().wait()
        self.sent.append(json.loads(raw))

    async def close(self, code: int = 1000) -> None:
        self.close_code = code


@pytest.fixture
def chat_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.mark.asyncio
async def test_broadcast_reaches_room_members_only(chat_id):
    manager = ConnectionManager()
    alice_ws, bob_ws, carol_ws = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    alice = await manager.connect(alice_ws, "alice")
    bob = await manager.connect(bob_ws, "bob")
    await manager.connect(carol_ws, "carol")
    await manager.join(alice, chat_id)
    await manager.join(bob, chat_id)

    await manager.broadcast(chat_id, "message.created", {"n": 1})
    await wait_until(lambda: len(alice_ws.sent) == 1 and len(bob_ws.sent) == 1)

    assert alice_ws.accepted
    assert bob_ws.sent == [{"type": "message.created", "data": {"n": 1}}]
    assert carol_ws.sent == []
    assert manager.room_size(chat_id) == 2
    assert manager.participant_of(bob) == "bob"


@pytest.mark.asyncio
async def test_broadcast_can_exclude_origin(chat_id):
    manager = ConnectionManager()
    alice_ws, bob_ws = FakeWebSocket(), FakeWebSocket()
    alice = await manager.connect(alice_ws, "alice")
    bob = await manager.connect(bob_ws, "bob")
    await manager.join(alice, chat_id)
    await manager.join(bob, chat_id)

    await manager.broadcast(chat_id, "typing", {"is_typing": True}, exclude=alice)
    await manager.send_to(alice, "pong", {})
    await wait_until(lambda: bob_ws.sent and alice_ws.sent)

    assert [m["type"] for m in alice_ws.sent] == ["pong"]
    assert [m["type"] for m in bob_ws.sent] == ["typing"]


@pytest.mark.asyncio
async def test_leave_and_disconnect(chat_id):
    manager = ConnectionManager()
    ws = FakeWebSocket()
    cid = await manager.connect(ws, "alice")
    other = uuid.uuid4()
    await manager.join(cid, chat_id)
    await manager.join(cid, other)

    await manager.leave(cid, chat_id)
    await manager.broadcast(chat_id, "message.created", {})

    assert manager.rooms_of(cid) == {other}
    assert manager.room_size(chat_id) == 0

    await manager.disconnect(cid)
    await manager.disconnect(cid)

    assert manager.connection_count == 0
    assert manager.room_size(other) == 0
    assert manager.rooms_of(cid) == set()
    assert await manager.join(cid, chat_id) is False
    await asyncio.sleep(0.05)
    assert ws.sent == []


@pytest.mark.asyncio
async def test_slow_consumer_is_dropped_without_blocking_others(chat_id):
    manager = ConnectionManager(queue_size=1, send_timeout=5.0)
    slow_ws, fast_ws = FakeWebSocket(stall=True), FakeWebSocket()
    slow = await manager.connect(slow_ws, "alice")
    fast = await manager.connect(fast_ws, "bob")
    await manager.join(slow, chat_id)
    await manager.join(fast, chat_id)

    for n in range(3):
        await manager.broadcast(chat_id, "message.created", {"n": n})
        await wait_until(lambda: len(fast_ws.sent) == n + 1)

    await wait_until(lambda: slow_ws.close_code == 1011)
    assert manager.participant_of(slow) is None
    assert manager.room_size(chat_id) == 1
    assert [m["data"]["n"] for m in fast_ws.sent] == [0, 1, 2]


@pytest.mark.asyncio
async def test_failed_send_drops_connection(chat_id):
    manager = ConnectionManager()
    broken = FakeWebSocket(fail=True)
    cid = await manager.connect(broken, "alice")
    await manager.join(cid, chat_id)

    await manager.broadcast(chat_id, "message.created", {})

    await wait_until(lambda: manager.connection_count == 0)
    assert manager.room_size(chat_id) == 0
