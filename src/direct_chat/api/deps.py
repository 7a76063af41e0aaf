"""FastAPI dependency injection helpers."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

from fastapi import Depends
from starlette.requests import HTTPConnection

from direct_chat.application.ports.clock import Clock
from direct_chat.application.uow import UnitOfWork, UnitOfWorkFactory
from direct_chat.infrastructure.db.session import AsyncSessionLocal
from direct_chat.infrastructure.db.uow import SqlAlchemyUoW
from direct_chat.infrastructure.ws.manager import ConnectionManager
from direct_chat.services.message_commands import MessageCommandHandler


@asynccontextmanager
async def open_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        async with SqlAlchemyUoW(session) as uow:
            yield uow


async def get_uow() -> AsyncIterator[UnitOfWork]:
    async with open_uow() as uow:
        yield uow


def get_uow_factory() -> UnitOfWorkFactory:
    """Per-command UoW source for long-lived WebSocket connections."""
    return open_uow


def get_commands(conn: HTTPConnection) -> MessageCommandHandler:
    return conn.app.state.commands


def get_manager(conn: HTTPConnection) -> ConnectionManager:
    return conn.app.state.manager


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]
UoWFactoryDep = Annotated[UnitOfWorkFactory, Depends(get_uow_factory)]
CommandsDep = Annotated[MessageCommandHandler, Depends(get_commands)]
ManagerDep = Annotated[ConnectionManager, Depends(get_manager)]


def get_clock(conn: HTTPConnection) -> Clock:
    return conn.app.state.clock


ClockDep = Annotated[Clock, Depends(get_clock)]
