from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from direct_chat.application.dto.pagination import PageCursor
from direct_chat.domain.entities.message import ImageAttachment, Message
from direct_chat.infrastructure.db.mappers import message as mapper
from direct_chat.infrastructure.db.models.message import MessageModel


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: UUID) -> Message | None:
        result = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(result) if result else None

    async def list_before(
        self,
        chat_id: UUID,
        *,
        cursor: PageCursor | None = None,
        limit: int = 30,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.chat_id == chat_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
        )
        if cursor:
            stmt = stmt.where(
                (MessageModel.created_at < cursor.created_at)
                | (
                    (MessageModel.created_at == cursor.created_at)
                    & (MessageModel.id < cursor.message_id)
                )
            )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def get_latest(self, chat_id: UUID) -> Message | None:
        rows = await self.list_before(chat_id, limit=1)
        return rows[0] if rows else None

    async def get_many(self, message_ids: list[UUID]) -> list[Message]:
        if not message_ids:
            return []
        stmt = select(MessageModel).where(MessageModel.id.in_(message_ids))
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def get_image(self, message_id: UUID) -> ImageAttachment | None:
        stmt = select(
            MessageModel.image_data, MessageModel.image_content_type,
        ).where(MessageModel.id == message_id)
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None or row.image_data is None or row.image_content_type is None:
            return None
        return ImageAttachment(content_type=row.image_content_type, data=row.image_data)


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, message: Message, image: ImageAttachment | None = None) -> Message:
        model = mapper.entity_to_model(message, image)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def update_text(
        self,
        message_id: UUID,
        text: str,
        edited_at: datetime,
    ) -> Message | None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(text=text, edited=True, edited_at=edited_at)
            .returning(MessageModel)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def delete(self, message_id: UUID) -> None:
        stmt = delete(MessageModel).where(MessageModel.id == message_id)
        await self._session.execute(stmt)
