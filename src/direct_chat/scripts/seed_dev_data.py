"""Seed development data: an alice/bob chat with a few messages."""
from __future__ import annotations

import asyncio
import logging

from direct_chat.application.ports.clock import SystemClock
from direct_chat.config import settings
from direct_chat.infrastructure.db.session import AsyncSessionLocal, dispose_engine
from direct_chat.infrastructure.db.uow import SqlAlchemyUoW
from direct_chat.logging_config import configure_logging
from direct_chat.services import chat_service, message_service

logger = logging.getLogger(__name__)

MESSAGES = [
    ("alice", "hi"),
    ("bob", "hey alice"),
    ("alice", "lunch tomorrow?"),
    ("bob", "sure, noon works"),
]


async def seed() -> None:
    clock = SystemClock()
    try:
        async with AsyncSessionLocal() as session:
            uow = SqlAlchemyUoW(session)
            chat = await chat_service.resolve_chat("alice", "bob", uow, clock)
            for sender_id, text in MESSAGES:
                await message_service.append_message(chat.id, sender_id, text, None, uow, clock)
        logger.info("Seeded chat %s with %d messages", chat.id, len(MESSAGES))
    finally:
        await dispose_engine()


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
