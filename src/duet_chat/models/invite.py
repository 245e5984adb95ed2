"""SQLAlchemy model for chat invitations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from duet_chat.db.session import Base
from duet_chat.db.time import new_id, utcnow

INVITE_PENDING = "pending"
INVITE_ACCEPTED = "accepted"
INVITE_DECLINED = "declined"


class ChatInvite(Base):
    """Invitation from one user to another to open a direct chat.

    Transitions once, from pending to accepted or declined.
    """

    __tablename__ = "invites"
    __table_args__ = (Index("ix_invites_recipient_status", "recipient_id", "status"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    sender_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    sender_name: Mapped[str] = mapped_column(Text, nullable=False)
    recipient_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=INVITE_PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    chat_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
