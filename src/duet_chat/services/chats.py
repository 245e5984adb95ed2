"""Direct chat lifecycle: creation, listing, participant snapshots, deletion."""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from duet_chat.core.errors import InvalidRequestError, NotFoundError, PermissionDeniedError
from duet_chat.core.settings import settings
from duet_chat.db.time import utcnow
from duet_chat.models import Chat, ChatParticipant, Message, User
from duet_chat.models.message import MESSAGE_IMAGE, MESSAGE_SYSTEM
from duet_chat.services.imagekit import ImageKitClient, delete_images_quietly
from duet_chat.services.realtime import chats_topic, messages_topic, unread_topic

logger = logging.getLogger(__name__)

CHAT_PARTICIPANT_COUNT = 2
EMPTY_CHAT_SUMMARY = "No messages"


@dataclass(frozen=True)
class ParticipantSnapshot:
    """Name/image copied onto the chat for one participant."""

    name: str
    image: str | None = None

    @classmethod
    def of(cls, user: User) -> ParticipantSnapshot:
        return cls(name=user.name, image=user.image or None)


def chat_topics(chat: Chat) -> list[str]:
    """Topics touched by any change to ``chat`` or its messages."""
    topics = [messages_topic(chat.id)]
    for participant_id in chat.participant_ids:
        topics.append(chats_topic(participant_id))
        topics.append(unread_topic(participant_id))
    return topics


def create_chat(
    db: Session,
    participants: Sequence[str],
    participant_info: Mapping[str, ParticipantSnapshot],
    commit: bool = True,
) -> Chat:
    """Create a chat between exactly two distinct users.

    With ``commit=False`` the chat is only flushed and the caller commits.
    """
    ids = [p.strip() for p in participants]
    if len(ids) != CHAT_PARTICIPANT_COUNT or len(set(ids)) != CHAT_PARTICIPANT_COUNT or "" in ids:
        raise InvalidRequestError("A chat needs exactly two distinct participants")

    now = utcnow()
    chat = Chat(created_at=now, updated_at=now)
    for position, user_id in enumerate(ids):
        info = participant_info.get(user_id)
        if info is None:
            raise InvalidRequestError(f"Missing participant info for {user_id}")
        chat.participants.append(
            ChatParticipant(
                user_id=user_id,
                position=position,
                name=info.name,
                image=info.image,
            )
        )
    db.add(chat)
    if not commit:
        db.flush()
        return chat
    db.commit()
    db.refresh(chat)
    logger.info("Created chat %s between %s", chat.id, ", ".join(ids))
    return chat


def find_direct_chat(db: Session, user_id: str, other_id: str) -> Chat | None:
    """Return the chat both users participate in, if any."""
    mine = select(ChatParticipant.chat_id).where(ChatParticipant.user_id == user_id)
    return (
        db.query(Chat)
        .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
        .filter(ChatParticipant.user_id == other_id, Chat.id.in_(mine))
        .first()
    )


def start_direct_chat(db: Session, user: User, other_id: str) -> tuple[Chat, bool]:
    """Open a chat with ``other_id`` without an invite.

    Returns ``(chat, created)``; an existing chat for the pair is reused.
    """
    other_id = other_id.strip()
    if other_id == user.id:
        raise InvalidRequestError("You can't start a chat with yourself")
    other = db.get(User, other_id) if other_id else None
    if other is None:
        raise NotFoundError("No user found with this ID")

    existing = find_direct_chat(db, user.id, other.id)
    if existing is not None:
        return existing, False

    chat = create_chat(
        db,
        [user.id, other.id],
        {user.id: ParticipantSnapshot.of(user), other.id: ParticipantSnapshot.of(other)},
    )
    return chat, True


def list_user_chats(db: Session, user_id: str) -> Sequence[Chat]:
    """Chats containing ``user_id``, most recently updated first."""
    return (
        db.query(Chat)
        .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
        .filter(ChatParticipant.user_id == user_id)
        .order_by(Chat.updated_at.desc(), Chat.id)
        .all()
    )


def get_chat(db: Session, chat_id: str) -> Chat:
    chat = db.get(Chat, chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    return chat


def get_chat_for_participant(db: Session, chat_id: str, user_id: str) -> Chat:
    """Load a chat and check that ``user_id`` takes part in it."""
    chat = get_chat(db, chat_id)
    if not chat.has_participant(user_id):
        raise PermissionDeniedError("User is not a participant in this chat")
    return chat


def update_participant_info(
    db: Session,
    chat_id: str,
    participant_id: str,
    updates: Mapping[str, str | None],
) -> Chat:
    """Merge ``updates`` into one participant's snapshot."""
    chat = get_chat(db, chat_id)
    for participant in chat.participants:
        if participant.user_id == participant_id:
            break
    else:
        raise NotFoundError(f"Participant {participant_id} not found in chat {chat_id}")

    if "name" in updates:
        name = (updates["name"] or "").strip()
        if not name:
            raise InvalidRequestError("Name cannot be empty")
        participant.name = name
    if "image" in updates:
        participant.image = updates["image"] or None

    db.commit()
    db.refresh(chat)
    return chat


def _image_ids(db: Session, chat_id: str) -> list[str]:
    rows = db.execute(
        select(Message.image_id).where(
            Message.chat_id == chat_id,
            Message.type == MESSAGE_IMAGE,
            Message.image_id.is_not(None),
        )
    )
    return [image_id for (image_id,) in rows if image_id]


def _delete_messages_in_batches(db: Session, chat_id: str, batch_size: int) -> int:
    """Delete the chat's messages, committing every ``batch_size`` rows.

    Batches that committed stay deleted if a later one fails.
    """
    total = 0
    while True:
        ids = list(
            db.scalars(select(Message.id).where(Message.chat_id == chat_id).limit(batch_size))
        )
        if not ids:
            return total
        db.execute(delete(Message).where(Message.id.in_(ids)))
        db.commit()
        total += len(ids)


async def clear_chat_messages(
    db: Session,
    chat_id: str,
    images: ImageKitClient | None = None,
    batch_size: int | None = None,
) -> int:
    """Delete every message of a chat and reset its last-message summary.

    Hosted images are removed first on a best-effort basis. Returns the number
    of deleted messages.
    """
    chat = get_chat(db, chat_id)
    if images is not None and images.enabled:
        await delete_images_quietly(images, _image_ids(db, chat_id))

    count = _delete_messages_in_batches(db, chat_id, batch_size or settings.delete_batch_size)

    now = utcnow()
    chat.last_message_content = EMPTY_CHAT_SUMMARY
    chat.last_message_sender_id = ""
    chat.last_message_timestamp = now
    chat.last_message_type = MESSAGE_SYSTEM
    chat.updated_at = now
    db.commit()
    logger.info("Cleared %d messages from chat %s", count, chat_id)
    return count


async def delete_chat(
    db: Session,
    chat_id: str,
    images: ImageKitClient | None = None,
) -> list[str]:
    """Delete all of a chat's messages, then the chat itself.

    Returns the topics affected so callers can notify listeners. A failure
    after the messages are gone leaves the chat in place, empty.
    """
    chat = get_chat(db, chat_id)
    topics = chat_topics(chat)
    if images is not None and images.enabled:
        await delete_images_quietly(images, _image_ids(db, chat_id))

    count = _delete_messages_in_batches(db, chat_id, settings.delete_batch_size)
    db.delete(chat)
    db.commit()
    logger.info("Deleted chat %s and %d messages", chat_id, count)
    return topics
