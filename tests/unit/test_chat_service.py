from __future__ import annotations

import uuid

import pytest

from direct_chat.application.exceptions import NotFoundError, ValidationError
from direct_chat.services import chat_service, message_service
from tests.conftest import FakeUoW, make_chat, minutes


@pytest.mark.asyncio
async def test_resolve_chat_creates_once(uow, clock):
    chat = await chat_service.resolve_chat("alice", "bob", uow, clock)

    assert chat.participants == ("alice", "bob")
    assert chat.last_message_id is None
    assert chat.created_at == clock.now()
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_resolve_chat_is_symmetric(uow, clock):
    first = await chat_service.resolve_chat("bob", "alice", uow, clock)
    second = await chat_service.resolve_chat("alice", "bob", uow, clock)

    assert first.id == second.id
    assert first.participant_a == "alice"
    assert len(uow.chats._store) == 1


@pytest.mark.asyncio
async def test_resolve_chat_is_idempotent(uow, clock):
    first = await chat_service.resolve_chat("alice", "bob", uow, clock)
    clock.advance(minutes(5))
    second = await chat_service.resolve_chat("alice", "bob", uow, clock)

    assert second == first
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_resolve_chat_strips_ids(uow, clock):
    chat = await chat_service.resolve_chat("  alice ", "bob\n", uow, clock)
    assert chat.participants == ("alice", "bob")


@pytest.mark.asyncio
async def test_resolve_chat_returns_winner_of_creation_race(clock):
    uow = FakeUoW()
    winner = make_chat("alice", "bob")

    async def _miss(*_args):
        # the other creator commits between our lookup and our insert
        uow.add_chat(winner)
        return None

    uow.chats.get_by_pair = _miss

    chat = await chat_service.resolve_chat("alice", "bob", uow, clock)

    assert chat.id == winner.id
    assert uow.commits == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("a, b", [("alice", "alice"), ("", "bob"), ("alice", "   ")])
async def test_resolve_chat_rejects_bad_pairs(uow, clock, a, b):
    with pytest.raises(ValidationError):
        await chat_service.resolve_chat(a, b, uow, clock)
    assert uow.chats._store == {}


@pytest.mark.asyncio
async def test_get_chat_not_found(uow):
    with pytest.raises(NotFoundError):
        await chat_service.get_chat(uuid.uuid4(), uow)


@pytest.mark.asyncio
async def test_inbox_orders_by_activity_and_carries_preview(uow, clock):
    with_bob = await chat_service.resolve_chat("alice", "bob", uow, clock)
    with_carol = await chat_service.resolve_chat("alice", "carol", uow, clock)
    await chat_service.resolve_chat("bob", "carol", uow, clock)

    clock.advance(minutes(1))
    await message_service.append_message(with_bob.id, "bob", "hi", None, uow, clock)
    clock.advance(minutes(1))
    latest = await message_service.append_message(
        with_carol.id, "alice", "yo", None, uow, clock,
    )

    inbox = await chat_service.list_inbox("alice", uow)

    assert [e.chat.id for e in inbox] == [with_carol.id, with_bob.id]
    assert inbox[0].other_participant_id == "carol"
    assert inbox[0].last_message == latest
    assert inbox[1].other_participant_id == "bob"
    assert inbox[1].last_message.text == "hi"


@pytest.mark.asyncio
async def test_inbox_chat_without_messages_has_no_preview(uow, clock):
    await chat_service.resolve_chat("alice", "bob", uow, clock)

    inbox = await chat_service.list_inbox("bob", uow)

    assert len(inbox) == 1
    assert inbox[0].other_participant_id == "alice"
    assert inbox[0].last_message is None


@pytest.mark.asyncio
async def test_inbox_empty_for_stranger(uow, clock):
    await chat_service.resolve_chat("alice", "bob", uow, clock)
    assert await chat_service.list_inbox("mallory", uow) == []


@pytest.mark.asyncio
async def test_resolve_chat_with_mixed_case_ids(uow, clock):
    first = await chat_service.resolve_chat("alice", "Bob", uow, clock)
    second = await chat_service.resolve_chat("Bob", "alice", uow, clock)

    # code point order: uppercase sorts before lowercase
    assert first.participants == ("Bob", "alice")
    assert second.id == first.id
