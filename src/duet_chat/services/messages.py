"""Message sending, deletion and read tracking."""
from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Sequence
from dataclasses import asdict

from sqlalchemy import func
from sqlalchemy.orm import Session

from duet_chat.core.errors import InvalidRequestError, NotFoundError, PermissionDeniedError
from duet_chat.core.settings import settings
from duet_chat.db.time import utcnow
from duet_chat.models import Chat, ChatParticipant, Message, User
from duet_chat.models.message import MESSAGE_IMAGE, MESSAGE_TEXT
from duet_chat.services.chats import get_chat_for_participant
from duet_chat.services.imagekit import ImageKitClient, ImageKitError, split_data_url

logger = logging.getLogger(__name__)

IMAGE_SUMMARY = "Sent an image"

_UNSAFE_FILE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_file_name(file_name: str) -> str:
    return _UNSAFE_FILE_CHARS.sub("_", file_name.strip()) or "image"


def chat_image_folder(chat_id: str) -> str:
    return f"{settings.image_folder}/{chat_id}"


def _reply_snapshot(db: Session, chat: Chat, reply_to_id: str | None) -> Message | None:
    if not reply_to_id:
        return None
    target = db.get(Message, reply_to_id)
    if target is None or target.chat_id != chat.id:
        raise InvalidRequestError("Reply target not found in this chat")
    return target


def _store_message(
    db: Session,
    chat: Chat,
    sender: User,
    content: str,
    message_type: str,
    reply_to: Message | None,
    image_id: str | None = None,
    image_meta: dict | None = None,
) -> Message:
    now = utcnow()
    message = Message(
        chat_id=chat.id,
        sender_id=sender.id,
        content=content,
        type=message_type,
        timestamp=now,
        read=False,
        deleted=False,
        image_id=image_id,
        image_meta=image_meta,
    )
    if reply_to is not None:
        message.reply_to_id = reply_to.id
        message.reply_to_content = reply_to.content
        message.reply_to_sender_id = reply_to.sender_id
        message.reply_to_type = reply_to.type
    db.add(message)

    chat.last_message_content = IMAGE_SUMMARY if message_type == MESSAGE_IMAGE else content
    chat.last_message_sender_id = sender.id
    chat.last_message_timestamp = now
    chat.last_message_type = message_type
    chat.updated_at = now

    db.commit()
    db.refresh(message)
    return message


def send_text_message(
    db: Session,
    chat_id: str,
    sender: User,
    content: str,
    reply_to_id: str | None = None,
) -> Message:
    """Store a text message and refresh the chat summary."""
    if not content.strip():
        raise InvalidRequestError("Message content cannot be empty")
    chat = get_chat_for_participant(db, chat_id, sender.id)
    reply_to = _reply_snapshot(db, chat, reply_to_id)
    return _store_message(db, chat, sender, content, MESSAGE_TEXT, reply_to)


async def send_image_message(
    db: Session,
    chat_id: str,
    sender: User,
    data_url: str,
    file_name: str,
    images: ImageKitClient,
    reply_to_id: str | None = None,
) -> Message:
    """Upload an image, then store a message pointing at it.

    If storing the message fails the uploaded file stays on the image host.
    """
    chat = get_chat_for_participant(db, chat_id, sender.id)
    reply_to = _reply_snapshot(db, chat, reply_to_id)
    _, payload = split_data_url(data_url)

    uploaded = await images.upload(
        payload,
        f"{uuid.uuid4().hex}_{sanitize_file_name(file_name)}",
        chat_image_folder(chat.id),
    )
    meta = {k: v for k, v in asdict(uploaded).items() if k not in ("url", "file_id")}
    return _store_message(
        db,
        chat,
        sender,
        uploaded.url,
        MESSAGE_IMAGE,
        reply_to,
        image_id=uploaded.file_id,
        image_meta=meta,
    )


def list_messages(db: Session, chat_id: str) -> Sequence[Message]:
    """Messages of a chat, oldest first."""
    return (
        db.query(Message)
        .filter(Message.chat_id == chat_id)
        .order_by(Message.timestamp, Message.id)
        .all()
    )


async def delete_message(
    db: Session,
    message_id: str,
    user: User,
    images: ImageKitClient | None = None,
) -> Message:
    """Tombstone a message. Only its sender may delete it."""
    message = db.get(Message, message_id)
    if message is None:
        raise NotFoundError("Message not found")
    if message.sender_id != user.id:
        raise PermissionDeniedError("You can only delete your own messages")
    if message.deleted:
        return message

    if message.type == MESSAGE_IMAGE and message.image_id and images is not None and images.enabled:
        try:
            await images.delete_file(message.image_id)
        except ImageKitError as exc:
            logger.warning("Failed to delete image %s: %s", message.image_id, exc)

    message.tombstone()
    db.commit()
    db.refresh(message)
    return message


def mark_messages_as_read(db: Session, chat_id: str, user_id: str) -> int:
    """Mark the other participant's unread messages as read."""
    get_chat_for_participant(db, chat_id, user_id)
    unread = (
        db.query(Message)
        .filter(
            Message.chat_id == chat_id,
            Message.sender_id != user_id,
            Message.read.is_(False),
        )
        .all()
    )
    marked = sum(1 for message in unread if message.mark_read())
    if marked:
        db.commit()
    return marked


def count_unread(db: Session, chat_id: str, user_id: str) -> int:
    """Messages in the chat not sent by ``user_id`` and not yet read."""
    return (
        db.query(func.count(Message.id))
        .filter(
            Message.chat_id == chat_id,
            Message.sender_id != user_id,
            Message.read.is_(False),
        )
        .scalar()
        or 0
    )


def unread_counts(db: Session, user_id: str) -> dict[str, int]:
    """Unread counts per chat for ``user_id``; chats with none are left out."""
    chat_ids = db.query(ChatParticipant.chat_id).filter(ChatParticipant.user_id == user_id)
    rows = (
        db.query(Message.chat_id, func.count(Message.id))
        .filter(
            Message.chat_id.in_(chat_ids.scalar_subquery()),
            Message.sender_id != user_id,
            Message.read.is_(False),
        )
        .group_by(Message.chat_id)
        .all()
    )
    return {chat_id: count for chat_id, count in rows if count > 0}


def read_message_ids(db: Session, chat_id: str, sender_id: str) -> list[str]:
    """Ids of ``sender_id``'s messages in the chat that have been read."""
    rows = (
        db.query(Message.id)
        .filter(
            Message.chat_id == chat_id,
            Message.sender_id == sender_id,
            Message.read.is_(True),
        )
        .all()
    )
    return [message_id for (message_id,) in rows]
