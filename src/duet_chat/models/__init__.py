# src/duet_chat/models/__init__.py
"""SQLAlchemy models for the Duet Chat service."""

from .chat import Chat, ChatParticipant
from .invite import ChatInvite
from .message import Message
from .user import User

__all__ = [
    "Chat", "ChatParticipant",
    "ChatInvite",
    "Message",
    "User",
]
