"""SQLAlchemy model for user profiles."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from duet_chat.db.session import Base
from duet_chat.db.time import new_id, utcnow

USER_STATUS_ONLINE = "online"
USER_STATUS_OFFLINE = "offline"

AUTH_PROVIDER_PASSWORD = "password"
AUTH_PROVIDER_GOOGLE = "google"


class User(Base):
    """Profile document created on first sign-in and never hard-deleted."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=USER_STATUS_OFFLINE)
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Credentials. Google-only accounts carry no password hash.
    provider: Mapped[str] = mapped_column(String(32), nullable=False, default=AUTH_PROVIDER_PASSWORD)
    password_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    google_subject: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
