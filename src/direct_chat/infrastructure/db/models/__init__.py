"""Import all models so Base.metadata knows every table."""
from direct_chat.infrastructure.db.models.chat import ChatModel
from direct_chat.infrastructure.db.models.message import MessageModel

__all__ = [
    "ChatModel",
    "MessageModel",
]
