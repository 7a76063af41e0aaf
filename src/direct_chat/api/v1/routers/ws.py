from __future__ import annotations

import asyncio
import logging
from typing import Any

import pydantic
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from direct_chat.api.deps import CommandsDep, ManagerDep, UoWFactoryDep
from direct_chat.application.exceptions import (
    AppError,
    EditWindowExpiredError,
    ForbiddenError,
    NotFoundError,
    UnavailableError,
)
from direct_chat.application.policies.permissions import assert_participant
from direct_chat.application.uow import UnitOfWorkFactory
from direct_chat.config import settings
from direct_chat.domain.value_objects.enums import RealtimeEvent
from direct_chat.infrastructure.ws.manager import ConnectionManager
from direct_chat.infrastructure.ws.protocol import (
    DeleteMessageData,
    EditMessageData,
    RoomData,
    SendMessageData,
    TypingData,
    WsInbound,
)
from direct_chat.services import chat_service
from direct_chat.services.deadline import persistence_deadline
from direct_chat.services.images import decode_data_url
from direct_chat.services.message_commands import MessageCommandHandler

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


class _Session:
    """Per-connection context for the read loop."""

    def __init__(
        self,
        connection_id: str,
        participant_id: str,
        manager: ConnectionManager,
        commands: MessageCommandHandler,
        uow_factory: UnitOfWorkFactory,
    ) -> None:
        self.connection_id = connection_id
        self.participant_id = participant_id
        self.manager = manager
        self.commands = commands
        self.uow_factory = uow_factory

    async def reply(self, event_type: str, data: dict[str, Any]) -> None:
        await self.manager.send_to(self.connection_id, event_type, data)

    async def error(self, code: str, detail: str = "", **extra: Any) -> None:
        await self.reply("error", {"code": code, "detail": detail, **extra})


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    manager: ManagerDep,
    commands: CommandsDep,
    uow_factory: UoWFactoryDep,
    participant_id: str = Query(...),
) -> None:
    participant_id = participant_id.strip()
    if not participant_id:
        await websocket.close(code=4001, reason="participant_id is required")
        return

    connection_id = await manager.connect(websocket, participant_id)
    session = _Session(connection_id, participant_id, manager, commands, uow_factory)

    heartbeat_task = asyncio.create_task(
        _heartbeat(session), name=f"ws-heartbeat-{connection_id}",
    )
    try:
        await _read_loop(websocket, session)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", connection_id)
    finally:
        heartbeat_task.cancel()
        await manager.disconnect(connection_id)


async def _heartbeat(session: _Session) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    while True:
        await asyncio.sleep(interval)
        await session.reply("heartbeat", {})


async def _read_loop(ws: WebSocket, session: _Session) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except pydantic.ValidationError:
            await session.error("invalid_payload")
            continue

        handler = _HANDLERS.get(msg.type)
        if handler is None:
            await session.error("unknown_type", type=msg.type)
            continue

        try:
            await handler(session, msg.data)
        except pydantic.ValidationError as exc:
            await session.error("invalid_data", str(exc), type=msg.type)
        except AppError as exc:
            await session.error(_error_code(exc), exc.detail, type=msg.type)


def _error_code(exc: AppError) -> str:
    if isinstance(exc, EditWindowExpiredError):
        return "edit_window_expired"
    if isinstance(exc, ForbiddenError):
        return "forbidden"
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, UnavailableError):
        return "unavailable"
    return "invalid_argument"


async def _handle_ping(session: _Session, data: dict[str, Any]) -> None:
    await session.reply("pong", {})


async def _handle_join(session: _Session, data: dict[str, Any]) -> None:
    room = RoomData.model_validate(data)
    async with session.uow_factory() as uow:
        async with persistence_deadline(settings.DB_CALL_TIMEOUT_SECONDS):
            chat = await chat_service.get_chat(room.chat_id, uow)
    assert_participant(chat, session.participant_id)

    await session.manager.join(session.connection_id, chat.id)
    await session.reply("room.joined", {"chat_id": str(chat.id)})


async def _handle_leave(session: _Session, data: dict[str, Any]) -> None:
    room = RoomData.model_validate(data)
    await session.manager.leave(session.connection_id, room.chat_id)
    await session.reply("room.left", {"chat_id": str(room.chat_id)})


async def _handle_typing(session: _Session, data: dict[str, Any]) -> None:
    typing = TypingData.model_validate(data)
    if typing.chat_id not in session.manager.rooms_of(session.connection_id):
        await session.error("not_joined", type="typing")
        return
    # best effort: not persisted, no delivery guarantee
    try:
        await session.commands.broadcaster.broadcast(
            typing.chat_id,
            RealtimeEvent.TYPING.value,
            {
                "chat_id": str(typing.chat_id),
                "participant_id": session.manager.participant_of(session.connection_id),
                "is_typing": typing.is_typing,
            },
            exclude=session.connection_id,
        )
    except Exception:
        logger.debug("Typing signal for chat %s dropped", typing.chat_id, exc_info=True)


async def _handle_send(session: _Session, data: dict[str, Any]) -> None:
    payload = SendMessageData.model_validate(data)
    image = (
        decode_data_url(payload.image, settings.MAX_IMAGE_BYTES)
        if payload.image
        else None
    )
    # no direct reply: the origin receives message.created from the room
    async with session.uow_factory() as uow:
        await session.commands.send(
            uow, payload.chat_id, session.participant_id, payload.text, image,
        )


async def _handle_edit(session: _Session, data: dict[str, Any]) -> None:
    payload = EditMessageData.model_validate(data)
    async with session.uow_factory() as uow:
        await session.commands.edit(
            uow, payload.message_id, session.participant_id, payload.text,
        )


async def _handle_delete(session: _Session, data: dict[str, Any]) -> None:
    payload = DeleteMessageData.model_validate(data)
    async with session.uow_factory() as uow:
        await session.commands.delete(uow, payload.message_id, session.participant_id)


_HANDLERS = {
    "ping": _handle_ping,
    "room.join": _handle_join,
    "room.leave": _handle_leave,
    "typing": _handle_typing,
    "message.send": _handle_send,
    "message.edit": _handle_edit,
    "message.delete": _handle_delete,
}
