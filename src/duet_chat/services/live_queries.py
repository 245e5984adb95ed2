"""Live queries that subscribers can register with the snapshot hub."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy.orm import Session

from duet_chat.core.errors import InvalidRequestError, PermissionDeniedError
from duet_chat.models import Chat
from duet_chat.schemas.chat import ChatResponse
from duet_chat.schemas.invite import InviteResponse
from duet_chat.schemas.message import MessageResponse
from duet_chat.services import chats as chat_service
from duet_chat.services import invites as invite_service
from duet_chat.services import messages as message_service
from duet_chat.services.realtime import (
    LiveQuery,
    chats_topic,
    invites_topic,
    messages_topic,
    unread_topic,
)


def user_chats_query(user_id: str) -> LiveQuery:
    def fetch(db: Session) -> list[Any]:
        return [
            ChatResponse.from_chat(chat).model_dump(mode="json")
            for chat in chat_service.list_user_chats(db, user_id)
        ]

    return LiveQuery(f"chats:{user_id}", (chats_topic(user_id),), fetch)


def chat_messages_query(chat_id: str) -> LiveQuery:
    def fetch(db: Session) -> list[Any]:
        return [
            MessageResponse.model_validate(message).model_dump(mode="json")
            for message in message_service.list_messages(db, chat_id)
        ]

    return LiveQuery(f"messages:{chat_id}", (messages_topic(chat_id),), fetch)


def pending_invites_query(user_id: str) -> LiveQuery:
    def fetch(db: Session) -> list[Any]:
        return [
            InviteResponse.model_validate(invite).model_dump(mode="json")
            for invite in invite_service.pending_invites(db, user_id)
        ]

    return LiveQuery(f"invites:{user_id}", (invites_topic(user_id),), fetch)


def read_status_query(chat_id: str, sender_id: str) -> LiveQuery:
    """Ids of ``sender_id``'s messages that the other side has read."""

    def fetch(db: Session) -> list[Any]:
        return message_service.read_message_ids(db, chat_id, sender_id)

    return LiveQuery(f"read-status:{chat_id}:{sender_id}", (messages_topic(chat_id),), fetch)


def unread_counts_query(user_id: str) -> LiveQuery:
    def fetch(db: Session) -> list[Any]:
        counts = message_service.unread_counts(db, user_id)
        return [{"chat_id": chat_id, "count": count} for chat_id, count in sorted(counts.items())]

    return LiveQuery(
        f"unread:{user_id}",
        (chats_topic(user_id), unread_topic(user_id)),
        fetch,
    )


def _chat_id_param(params: Mapping[str, Any]) -> str:
    chat_id = params.get("chat_id")
    if not isinstance(chat_id, str) or not chat_id:
        raise InvalidRequestError("chat_id is required")
    return chat_id


def _require_participant(db: Session, chat_id: str, user_id: str) -> None:
    chat = db.get(Chat, chat_id)
    if chat is None or not chat.has_participant(user_id):
        raise PermissionDeniedError("User is not a participant in this chat")


def build_query(
    db: Session,
    name: str,
    params: Mapping[str, Any],
    user_id: str,
) -> LiveQuery:
    """Resolve a subscription request made by ``user_id``.

    Queries are always scoped to the caller; chat-scoped queries require
    membership.
    """
    if name == "chats":
        return user_chats_query(user_id)
    if name == "invites":
        return pending_invites_query(user_id)
    if name == "unread_counts":
        return unread_counts_query(user_id)
    if name == "messages":
        chat_id = _chat_id_param(params)
        _require_participant(db, chat_id, user_id)
        return chat_messages_query(chat_id)
    if name == "read_status":
        chat_id = _chat_id_param(params)
        _require_participant(db, chat_id, user_id)
        return read_status_query(chat_id, user_id)
    raise InvalidRequestError(f"Unknown query: {name}")
