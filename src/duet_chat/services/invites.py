"""Chat invitations: sending, listing and responding."""
from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.orm import Session

from duet_chat.core.errors import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
)
from duet_chat.db.time import utcnow
from duet_chat.models import Chat, ChatInvite, User
from duet_chat.models.invite import INVITE_ACCEPTED, INVITE_DECLINED, INVITE_PENDING
from duet_chat.services.chats import ParticipantSnapshot, create_chat, find_direct_chat
from duet_chat.services.users import UNKNOWN_USER_NAME

logger = logging.getLogger(__name__)


def send_invite(db: Session, sender: User, recipient_id: str) -> ChatInvite:
    """Invite ``recipient_id`` to a chat with ``sender``.

    A pending invite between the same pair is returned instead of a duplicate.
    """
    recipient_id = recipient_id.strip()
    if recipient_id == sender.id:
        raise InvalidRequestError("You can't invite yourself")
    recipient = db.get(User, recipient_id) if recipient_id else None
    if recipient is None:
        raise NotFoundError("No user found with this ID")

    existing = (
        db.query(ChatInvite)
        .filter(
            ChatInvite.sender_id == sender.id,
            ChatInvite.recipient_id == recipient.id,
            ChatInvite.status == INVITE_PENDING,
        )
        .first()
    )
    if existing is not None:
        return existing

    invite = ChatInvite(
        sender_id=sender.id,
        sender_name=sender.name or UNKNOWN_USER_NAME,
        recipient_id=recipient.id,
        status=INVITE_PENDING,
        created_at=utcnow(),
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)
    logger.info("Invite %s sent from %s to %s", invite.id, sender.id, recipient.id)
    return invite


def pending_invites(db: Session, user_id: str) -> Sequence[ChatInvite]:
    """Pending invites addressed to ``user_id``, oldest first."""
    return (
        db.query(ChatInvite)
        .filter(ChatInvite.recipient_id == user_id, ChatInvite.status == INVITE_PENDING)
        .order_by(ChatInvite.created_at, ChatInvite.id)
        .all()
    )


def _pending_for_recipient(db: Session, invite_id: str, user: User) -> ChatInvite:
    invite = db.get(ChatInvite, invite_id)
    if invite is None:
        raise NotFoundError("Invite not found")
    if invite.recipient_id != user.id:
        raise PermissionDeniedError("Only the invited user can respond to this invite")
    if invite.status != INVITE_PENDING:
        raise ConflictError(f"Invite has already been {invite.status}")
    return invite


def accept_invite(db: Session, invite_id: str, user: User) -> tuple[ChatInvite, Chat]:
    """Accept a pending invite and open the chat between both users."""
    invite = _pending_for_recipient(db, invite_id, user)

    chat = find_direct_chat(db, invite.sender_id, user.id)
    if chat is None:
        sender = db.get(User, invite.sender_id)
        sender_info = ParticipantSnapshot(
            name=sender.name if sender is not None else invite.sender_name,
            image=sender.image if sender is not None else None,
        )
        chat = create_chat(
            db,
            [invite.sender_id, user.id],
            {invite.sender_id: sender_info, user.id: ParticipantSnapshot.of(user)},
            commit=False,
        )

    invite.status = INVITE_ACCEPTED
    invite.responded_at = utcnow()
    invite.chat_id = chat.id
    db.commit()
    db.refresh(invite)
    db.refresh(chat)
    logger.info("Invite %s accepted, chat %s", invite.id, chat.id)
    return invite, chat


def decline_invite(db: Session, invite_id: str, user: User) -> ChatInvite:
    invite = _pending_for_recipient(db, invite_id, user)
    invite.status = INVITE_DECLINED
    invite.responded_at = utcnow()
    db.commit()
    db.refresh(invite)
    return invite


def respond_to_invite(
    db: Session,
    invite_id: str,
    user: User,
    accept: bool,
) -> tuple[ChatInvite, Chat | None]:
    """Accept or decline; declined invites carry no chat."""
    if accept:
        return accept_invite(db, invite_id, user)
    return decline_invite(db, invite_id, user), None
