"""CRUD-style helpers for user profiles."""
from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from duet_chat.core.errors import InvalidRequestError
from duet_chat.db.time import utcnow
from duet_chat.models import ChatParticipant, User
from duet_chat.models.user import (
    AUTH_PROVIDER_PASSWORD,
    USER_STATUS_OFFLINE,
    USER_STATUS_ONLINE,
)

__all__ = [
    "DEFAULT_DISPLAY_NAME",
    "get_user",
    "get_user_by_email",
    "search_users_by_email",
    "search_users",
    "create_user",
    "ensure_profile",
    "set_presence",
    "update_profile",
]

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "Anonymous User"
UNKNOWN_USER_NAME = "Unknown User"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user(db: Session, user_id: str | None) -> User | None:
    """Return a user by id; blank ids return None."""
    if not user_id or not user_id.strip():
        logger.warning("get_user called with an empty user id")
        return None
    return db.get(User, user_id.strip())


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def search_users_by_email(db: Session, email: str) -> Sequence[User]:
    """Exact (case-insensitive) email lookup."""
    return db.query(User).filter(User.email == normalize_email(email)).all()


def search_users(
    db: Session,
    term: str,
    current_user_id: str,
    limit: int = 20,
) -> Sequence[User]:
    """Users whose name or email contains ``term``, excluding the caller."""
    needle = term.strip().lower()
    if not needle:
        return []
    return (
        db.query(User)
        .filter(
            User.id != current_user_id,
            or_(
                func.lower(User.name).contains(needle, autoescape=True),
                func.lower(User.email).contains(needle, autoescape=True),
            ),
        )
        .order_by(User.name)
        .limit(limit)
        .all()
    )


def create_user(
    db: Session,
    *,
    email: str,
    name: str | None,
    image: str | None = None,
    provider: str = AUTH_PROVIDER_PASSWORD,
    password_hash: str | None = None,
    google_subject: str | None = None,
) -> User:
    """Persist a new profile for a first sign-in. The user starts online."""
    now = utcnow()
    user = User(
        email=normalize_email(email),
        name=(name or "").strip() or DEFAULT_DISPLAY_NAME,
        image=image or None,
        status=USER_STATUS_ONLINE,
        last_active=now,
        created_at=now,
        provider=provider,
        password_hash=password_hash,
        google_subject=google_subject,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created user %s (%s)", user.id, provider)
    return user


def set_presence(db: Session, user: User, status: str) -> User:
    """Flip presence and touch ``last_active``."""
    if status not in (USER_STATUS_ONLINE, USER_STATUS_OFFLINE):
        raise InvalidRequestError(f"Unknown presence status: {status}")
    user.status = status
    user.last_active = utcnow()
    db.commit()
    db.refresh(user)
    return user


def update_profile(
    db: Session,
    user: User,
    updates: dict[str, str | None],
) -> list[str]:
    """Apply name/image changes and re-sync chat participant snapshots.

    ``updates`` only holds the fields the caller sent. Returns the ids of the
    chats whose snapshot changed.
    """
    if "name" in updates:
        name = (updates["name"] or "").strip()
        if not name:
            raise InvalidRequestError("Name cannot be empty")
        user.name = name
    if "image" in updates:
        user.image = updates["image"] or None

    memberships = db.query(ChatParticipant).filter(ChatParticipant.user_id == user.id).all()
    for membership in memberships:
        membership.name = user.name
        membership.image = user.image

    db.commit()
    db.refresh(user)
    return [m.chat_id for m in memberships]


def ensure_profile(
    db: Session,
    *,
    email: str,
    name: str | None = None,
    image: str | None = None,
    provider: str = AUTH_PROVIDER_PASSWORD,
    google_subject: str | None = None,
) -> User:
    """Create the profile on first sign-in, otherwise mark the user online."""
    user = get_user_by_email(db, email)
    if user is None:
        return create_user(
            db,
            email=email,
            name=name,
            image=image,
            provider=provider,
            google_subject=google_subject,
        )
    if google_subject and user.google_subject is None:
        user.google_subject = google_subject
    return set_presence(db, user, USER_STATUS_ONLINE)
