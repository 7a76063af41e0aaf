from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID


class Broadcaster(Protocol):
    async def broadcast(
        self,
        chat_id: UUID,
        event_type: str,
        data: dict[str, Any],
        *,
        exclude: str | None = None,
    ) -> None:
        """Deliver an event to every connection joined to the chat room.

        ``exclude`` is a connection id that must not receive the event.
        """
        ...
