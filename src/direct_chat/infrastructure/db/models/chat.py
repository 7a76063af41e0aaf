from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Index, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from direct_chat.infrastructure.db.base import Base


class ChatModel(Base):
    __tablename__ = "chats"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    # canonical pair: participant_a < participant_b by code point, so "C"
    # collation keeps the database order equal to Python sorted()
    participant_a: Mapped[str] = mapped_column(String(128, collation="C"), nullable=False)
    participant_b: Mapped[str] = mapped_column(String(128, collation="C"), nullable=False)
    # weak pointer, no FK: messages reference chats, not the other way round
    last_message_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    messages = relationship("MessageModel", back_populates="chat", lazy="noload")

    __table_args__ = (
        UniqueConstraint("participant_a", "participant_b", name="uq_chat_pair"),
        CheckConstraint("participant_a < participant_b", name="ck_chat_pair_canonical"),
        Index("ix_chats_participant_b", "participant_b"),
        Index("ix_chats_updated_at", text("updated_at DESC")),
    )
