"""In-process registry of WebSocket connections and chat rooms."""
from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from typing import Any
from uuid import UUID

from fastapi import WebSocket

from direct_chat.domain.value_objects.ids import ConnectionId, ParticipantId
from direct_chat.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class _Connection:
    __slots__ = ("id", "websocket", "participant_id", "queue", "rooms", "writer")

    def __init__(
        self,
        connection_id: ConnectionId,
        websocket: WebSocket,
        participant_id: ParticipantId,
        queue_size: int,
    ) -> None:
        self.id = connection_id
        self.websocket = websocket
        self.participant_id = participant_id
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self.rooms: set[UUID] = set()
        self.writer: asyncio.Task[None] | None = None


class ConnectionManager:
    """Rooms keyed by chat id, plus the connection → participant registry.

    Membership changes are serialized per room. Broadcasts iterate a
    snapshot of the room and only enqueue onto each connection's bounded
    outbound queue, so a slow or dead socket never holds up the others.
    Implements application.ports.bus.Broadcaster.
    """

    def __init__(self, *, queue_size: int = 256, send_timeout: float = 10.0) -> None:
        self._connections: dict[ConnectionId, _Connection] = {}
        self._rooms: dict[UUID, set[ConnectionId]] = {}
        self._room_locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._queue_size = queue_size
        self._send_timeout = send_timeout
        self._closing: set[asyncio.Task[None]] = set()

    async def connect(self, ws: WebSocket, participant_id: str) -> ConnectionId:
        await ws.accept()
        connection_id = ConnectionId(uuid.uuid4().hex)
        conn = _Connection(connection_id, ws, ParticipantId(participant_id), self._queue_size)
        conn.writer = asyncio.create_task(
            self._write_loop(conn), name=f"ws-writer-{connection_id}",
        )
        self._connections[connection_id] = conn
        logger.debug(
            "WS connected: %s as %s (total=%d)",
            connection_id, participant_id, len(self._connections),
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        conn = self._connections.pop(ConnectionId(connection_id), None)
        if conn is None:
            return
        for chat_id in list(conn.rooms):
            await self._remove_member(chat_id, conn.id)
        conn.rooms.clear()
        if conn.writer is not None and conn.writer is not asyncio.current_task():
            conn.writer.cancel()
        logger.debug("WS disconnected: %s", connection_id)

    def participant_of(self, connection_id: str) -> str | None:
        conn = self._connections.get(ConnectionId(connection_id))
        return conn.participant_id if conn else None

    def rooms_of(self, connection_id: str) -> set[UUID]:
        conn = self._connections.get(ConnectionId(connection_id))
        return set(conn.rooms) if conn else set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def room_size(self, chat_id: UUID) -> int:
        return len(self._rooms.get(chat_id, ()))

    async def join(self, connection_id: str, chat_id: UUID) -> bool:
        conn = self._connections.get(ConnectionId(connection_id))
        if conn is None:
            return False
        async with self._room_lock(chat_id):
            self._rooms.setdefault(chat_id, set()).add(conn.id)
        conn.rooms.add(chat_id)
        return True

    async def leave(self, connection_id: str, chat_id: UUID) -> None:
        conn = self._connections.get(ConnectionId(connection_id))
        if conn is not None:
            conn.rooms.discard(chat_id)
        await self._remove_member(chat_id, ConnectionId(connection_id))

    async def broadcast(
        self,
        chat_id: UUID,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude: str | None = None,
    ) -> None:
        """Enqueue an event for every connection currently in the room."""
        members = tuple(self._rooms.get(chat_id, ()))
        if not members:
            return
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        for connection_id in members:
            if connection_id != exclude:
                self._enqueue(connection_id, raw)

    async def send_to(
        self,
        connection_id: str,
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        """Send a WS message to a single connection."""
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        self._enqueue(ConnectionId(connection_id), raw)

    def _room_lock(self, chat_id: UUID) -> asyncio.Lock:
        lock = self._room_locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._room_locks[chat_id] = lock
        return lock

    async def _remove_member(self, chat_id: UUID, connection_id: ConnectionId) -> None:
        async with self._room_lock(chat_id):
            members = self._rooms.get(chat_id)
            if members is None:
                return
            members.discard(connection_id)
            if not members:
                del self._rooms[chat_id]

    def _enqueue(self, connection_id: ConnectionId, raw: str) -> None:
        conn = self._connections.get(connection_id)
        if conn is None:
            return
        try:
            conn.queue.put_nowait(raw)
        except asyncio.QueueFull:
            logger.warning("WS %s outbound queue full, dropping connection", connection_id)
            self._drop(conn)

    def _drop(self, conn: _Connection) -> None:
        task = asyncio.create_task(self._close(conn), name=f"ws-close-{conn.id}")
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close(self, conn: _Connection) -> None:
        await self.disconnect(conn.id)
        try:
            await conn.websocket.close(code=1011)
        except Exception:  # noqa: BLE001
            logger.debug("WS %s already closed", conn.id)

    async def _write_loop(self, conn: _Connection) -> None:
        try:
            while True:
                raw = await conn.queue.get()
                async with asyncio.timeout(self._send_timeout):
                    await conn.websocket.send_text(raw)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.info("WS %s send failed, dropping connection", conn.id, exc_info=True)
            self._drop(conn)
