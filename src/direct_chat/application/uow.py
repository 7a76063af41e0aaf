from __future__ import annotations

from typing import AsyncContextManager, Callable, Protocol

from direct_chat.application.repositories.chat import ChatReader, ChatWriter
from direct_chat.application.repositories.message import MessageReader, MessageWriter


class UnitOfWork(Protocol):
    chats: ChatReader
    chats_w: ChatWriter
    messages: MessageReader
    messages_w: MessageWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


UnitOfWorkFactory = Callable[[], AsyncContextManager[UnitOfWork]]
