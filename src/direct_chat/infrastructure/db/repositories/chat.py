from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from direct_chat.domain.entities.chat import Chat
from direct_chat.infrastructure.db.mappers import chat as mapper
from direct_chat.infrastructure.db.models.chat import ChatModel


class ChatReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, chat_id: UUID, *, for_update: bool = False) -> Chat | None:
        stmt = select(ChatModel).where(ChatModel.id == chat_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def get_by_pair(self, participant_a: str, participant_b: str) -> Chat | None:
        stmt = select(ChatModel).where(
            ChatModel.participant_a == participant_a,
            ChatModel.participant_b == participant_b,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_for_participant(
        self,
        participant_id: str,
        *,
        limit: int = 50,
    ) -> list[Chat]:
        stmt = (
            select(ChatModel)
            .where(
                or_(
                    ChatModel.participant_a == participant_id,
                    ChatModel.participant_b == participant_id,
                )
            )
            .order_by(ChatModel.updated_at.desc(), ChatModel.id)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ChatWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(self, chat: Chat) -> tuple[Chat, bool]:
        """Insert chat once per canonical pair. Returns (chat, created_flag)."""
        stmt = (
            pg_insert(ChatModel)
            .values(**mapper.entity_to_values(chat))
            .on_conflict_do_nothing(constraint="uq_chat_pair")
            .returning(ChatModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()

        if row is not None:
            return mapper.model_to_entity(row), True

        # lost the race: the winner's row is already committed
        stmt = select(ChatModel).where(
            ChatModel.participant_a == chat.participant_a,
            ChatModel.participant_b == chat.participant_b,
        )
        existing = (await self._session.execute(stmt)).scalar_one()
        return mapper.model_to_entity(existing), False

    async def set_last_message(
        self,
        chat_id: UUID,
        message_id: UUID | None,
        message_at: datetime | None,
        updated_at: datetime,
    ) -> None:
        stmt = (
            update(ChatModel)
            .where(ChatModel.id == chat_id)
            .values(
                last_message_id=message_id,
                last_message_at=message_at,
                updated_at=updated_at,
            )
        )
        await self._session.execute(stmt)
