"""SQLAlchemy models for direct chats and their participants."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from duet_chat.db.session import Base
from duet_chat.db.time import new_id, utcnow


class Chat(Base):
    """Direct conversation between exactly two users.

    The ``last_message_*`` columns cache a summary of the newest message and
    are written alongside every send.
    """

    __tablename__ = "chats"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    last_message_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_message_sender_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_message_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_message_type: Mapped[str | None] = mapped_column(String(16), nullable=True)

    participants: Mapped[list[ChatParticipant]] = relationship(
        "ChatParticipant",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatParticipant.position",
        lazy="selectin",
    )

    @property
    def participant_ids(self) -> list[str]:
        """Ids of both participants in insertion order."""
        return [p.user_id for p in self.participants]

    @property
    def participant_info(self) -> dict[str, dict[str, str | None]]:
        """Name/image snapshot keyed by participant id."""
        return {p.user_id: {"name": p.name, "image": p.image} for p in self.participants}

    @property
    def last_message(self) -> dict[str, object] | None:
        if self.last_message_type is None:
            return None
        return {
            "content": self.last_message_content,
            "sender_id": self.last_message_sender_id,
            "timestamp": self.last_message_timestamp,
            "type": self.last_message_type,
        }

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participant_ids

    def other_participant(self, user_id: str) -> str | None:
        for participant_id in self.participant_ids:
            if participant_id != user_id:
                return participant_id
        return None


class ChatParticipant(Base):
    """Membership row holding the denormalized name/image of a participant."""

    __tablename__ = "chat_participants"

    chat_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("chats.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Snapshot taken at creation; re-synced on profile edits.
    name: Mapped[str] = mapped_column(Text, nullable=False)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)

    chat: Mapped[Chat] = relationship("Chat", back_populates="participants")
