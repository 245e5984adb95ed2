"""SQLAlchemy model for chat messages."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from duet_chat.db.session import Base
from duet_chat.db.time import new_id, utcnow

MESSAGE_TEXT = "text"
MESSAGE_IMAGE = "image"
MESSAGE_SYSTEM = "system"

DELETED_TEXT_PLACEHOLDER = "This message was deleted"
DELETED_IMAGE_PLACEHOLDER = ""


def tombstone_content(message_type: str) -> str:
    """Content a deleted message of ``message_type`` is left with."""
    if message_type == MESSAGE_TEXT:
        return DELETED_TEXT_PLACEHOLDER
    return DELETED_IMAGE_PLACEHOLDER


class Message(Base):
    """Text or image message inside a chat.

    ``read`` and ``deleted`` only ever move from False to True. The ``reply_to_*``
    columns are a copy of the replied-to message taken at send time.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_chat_timestamp", "chat_id", "timestamp"),
        Index("ix_messages_chat_read", "chat_id", "read"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    chat_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=MESSAGE_TEXT)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    reply_to_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reply_to_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    reply_to_sender_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reply_to_type: Mapped[str | None] = mapped_column(String(16), nullable=True)

    # Image hosting bookkeeping
    image_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    image_meta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    @property
    def reply_to(self) -> dict[str, str | None] | None:
        if self.reply_to_id is None:
            return None
        return {
            "id": self.reply_to_id,
            "content": self.reply_to_content,
            "sender_id": self.reply_to_sender_id,
            "type": self.reply_to_type,
        }

    def mark_read(self) -> bool:
        """Flip ``read``; returns False when it was already set."""
        if self.read:
            return False
        self.read = True
        return True

    def tombstone(self) -> None:
        """Mark deleted and replace the content with the placeholder."""
        self.deleted = True
        self.content = tombstone_content(self.type)
