"""The one write pipeline for messages.

HTTP routes and WebSocket commands both call :class:`MessageCommandHandler`.
Every create/edit/delete is persisted and committed first, then announced to
the chat room; the origin client learns about its own write from the same
room event as everyone else.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import timedelta
from typing import Any
from uuid import UUID

from direct_chat.application.dto.message import MessageView
from direct_chat.application.exceptions import NotFoundError
from direct_chat.application.policies.permissions import EDIT_WINDOW
from direct_chat.application.ports.bus import Broadcaster
from direct_chat.application.ports.clock import Clock, SystemClock
from direct_chat.application.uow import UnitOfWork
from direct_chat.domain.entities.message import ImageAttachment, Message
from direct_chat.domain.events.message_created import MessageCreated
from direct_chat.domain.events.message_deleted import MessageDeleted
from direct_chat.domain.events.message_updated import MessageUpdated
from direct_chat.domain.value_objects.enums import RealtimeEvent
from direct_chat.services import message_service
from direct_chat.services.deadline import persistence_deadline

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 5.0
DEFAULT_BROADCAST_TIMEOUT = 2.0


class MessageCommandHandler:
    def __init__(
        self,
        broadcaster: Broadcaster,
        clock: Clock | None = None,
        *,
        edit_window: timedelta = EDIT_WINDOW,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        broadcast_timeout: float = DEFAULT_BROADCAST_TIMEOUT,
    ) -> None:
        self.broadcaster = broadcaster
        self.clock: Clock = clock or SystemClock()
        self._edit_window = edit_window
        self._call_timeout = call_timeout
        self._broadcast_timeout = broadcast_timeout
        # Held for persist + broadcast so room order matches commit order.
        self._chat_locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _chat_lock(self, chat_id: UUID) -> asyncio.Lock:
        lock = self._chat_locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._chat_locks[chat_id] = lock
        return lock

    async def send(
        self,
        uow: UnitOfWork,
        chat_id: UUID,
        sender_id: str,
        text: str | None,
        image: ImageAttachment | None = None,
    ) -> Message:
        async with self._chat_lock(chat_id):
            async with persistence_deadline(self._call_timeout):
                msg = await message_service.append_message(
                    chat_id, sender_id, text, image, uow, self.clock,
                )
            await self._announce(MessageCreated(chat_id=msg.chat_id, message=msg))
        logger.info("Message %s sent to chat %s by %s", msg.id, chat_id, sender_id)
        return msg

    async def edit(
        self,
        uow: UnitOfWork,
        message_id: UUID,
        editor_id: str,
        text: str | None,
    ) -> Message:
        chat_id = await self._chat_id_of(uow, message_id)
        async with self._chat_lock(chat_id):
            async with persistence_deadline(self._call_timeout):
                msg = await message_service.edit_message(
                    message_id, editor_id, text, uow, self.clock, self._edit_window,
                )
            await self._announce(MessageUpdated(chat_id=msg.chat_id, message=msg))
        return msg

    async def delete(
        self,
        uow: UnitOfWork,
        message_id: UUID,
        requester_id: str,
    ) -> MessageDeleted:
        chat_id = await self._chat_id_of(uow, message_id)
        async with self._chat_lock(chat_id):
            async with persistence_deadline(self._call_timeout):
                event = await message_service.delete_message(
                    message_id, requester_id, uow, self.clock,
                )
            await self._announce(event)
        logger.info("Message %s deleted from chat %s", message_id, chat_id)
        return event

    async def _chat_id_of(self, uow: UnitOfWork, message_id: UUID) -> UUID:
        async with persistence_deadline(self._call_timeout):
            msg = await uow.messages.get_by_id(message_id)
        if msg is None:
            raise NotFoundError("Message not found")
        return msg.chat_id

    async def _announce(
        self, event: MessageCreated | MessageUpdated | MessageDeleted,
    ) -> None:
        """Broadcast a committed change. Failures are logged, never raised.

        Runs under the chat lock, so a stuck fan-out backend is cut off after
        ``broadcast_timeout`` seconds instead of stalling the chat.
        """
        event_type, data = _event_payload(event)
        try:
            async with asyncio.timeout(self._broadcast_timeout):
                await self.broadcaster.broadcast(event.chat_id, event_type, data)
        except TimeoutError:
            logger.error(
                "Broadcast of %s for chat %s timed out after %.1fs",
                event_type, event.chat_id, self._broadcast_timeout,
            )
        except Exception:
            logger.exception("Broadcast of %s for chat %s failed", event_type, event.chat_id)


def _event_payload(
    event: MessageCreated | MessageUpdated | MessageDeleted,
) -> tuple[str, dict[str, Any]]:
    if isinstance(event, MessageDeleted):
        return RealtimeEvent.MESSAGE_DELETED.value, {
            "chat_id": str(event.chat_id),
            "message_id": str(event.message_id),
        }
    event_type = (
        RealtimeEvent.MESSAGE_CREATED.value
        if isinstance(event, MessageCreated)
        else RealtimeEvent.MESSAGE_UPDATED.value
    )
    return event_type, {
        "chat_id": str(event.chat_id),
        "message": MessageView(event.message).as_dict(),
    }
