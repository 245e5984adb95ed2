"""Client-side chat state kept in sync with live query snapshots.

``ChatStore`` holds what a chat UI renders: the chat list, the open chat's
messages, pending invites and unread counts. Snapshots replace local state
wholesale after deduplicating by id; optimistic edits patch it in between.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from duet_chat.core.errors import ChatServiceError
from duet_chat.db.session import SessionLocal
from duet_chat.schemas.chat import ChatResponse
from duet_chat.schemas.invite import InviteResponse
from duet_chat.schemas.message import MessageResponse
from duet_chat.services import chats as chat_service
from duet_chat.services import invites as invite_service
from duet_chat.services import live_queries
from duet_chat.services import messages as message_service
from duet_chat.services.realtime import SnapshotHub, Unsubscribe, get_snapshot_hub

logger = logging.getLogger(__name__)

Document = dict[str, Any]
SnapshotHandler = Callable[[list[Any]], None]
ErrorHandler = Callable[[Exception], None]


class ChatBackend(Protocol):
    """Operations the store needs from wherever the data lives."""

    def list_chats(self, user_id: str) -> list[Document]: ...

    def list_messages(self, chat_id: str) -> list[Document]: ...

    def pending_invites(self, user_id: str) -> list[Document]: ...

    def subscribe_chats(
        self, user_id: str, on_data: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe: ...

    def subscribe_messages(
        self, chat_id: str, on_data: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe: ...

    def subscribe_invites(
        self, user_id: str, on_data: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe: ...

    def subscribe_read_status(
        self, chat_id: str, user_id: str, on_data: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe: ...

    def mark_messages_as_read(self, chat_id: str, user_id: str) -> int: ...

    def count_unread(self, chat_id: str, user_id: str) -> int: ...


class LocalBackend:
    """Runs the store against the in-process services and snapshot hub."""

    def __init__(
        self,
        hub: SnapshotHub | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        self.hub = hub or get_snapshot_hub()
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def list_chats(self, user_id: str) -> list[Document]:
        with self._session() as db:
            return [
                ChatResponse.from_chat(chat).model_dump(mode="json")
                for chat in chat_service.list_user_chats(db, user_id)
            ]

    def list_messages(self, chat_id: str) -> list[Document]:
        with self._session() as db:
            return [
                MessageResponse.model_validate(m).model_dump(mode="json")
                for m in message_service.list_messages(db, chat_id)
            ]

    def pending_invites(self, user_id: str) -> list[Document]:
        with self._session() as db:
            return [
                InviteResponse.model_validate(invite).model_dump(mode="json")
                for invite in invite_service.pending_invites(db, user_id)
            ]

    def subscribe_chats(
        self, user_id: str, on_data: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe:
        return self.hub.listen(live_queries.user_chats_query(user_id), on_data, on_error)

    def subscribe_messages(
        self, chat_id: str, on_data: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe:
        return self.hub.listen(live_queries.chat_messages_query(chat_id), on_data, on_error)

    def subscribe_invites(
        self, user_id: str, on_data: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe:
        return self.hub.listen(live_queries.pending_invites_query(user_id), on_data, on_error)

    def subscribe_read_status(
        self, chat_id: str, user_id: str, on_data: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe:
        return self.hub.listen(live_queries.read_status_query(chat_id, user_id), on_data, on_error)

    def mark_messages_as_read(self, chat_id: str, user_id: str) -> int:
        with self._session() as db:
            marked = message_service.mark_messages_as_read(db, chat_id, user_id)
            if marked:
                chat = chat_service.get_chat(db, chat_id)
                self.hub.publish(chat_service.chat_topics(chat), db=db)
            return marked

    def count_unread(self, chat_id: str, user_id: str) -> int:
        with self._session() as db:
            return message_service.count_unread(db, chat_id, user_id)


def _unique_by_id(items: Iterable[Document]) -> list[Document]:
    return list({item["id"]: item for item in items}.values())


class ChatStore:
    """Observable chat state for the signed-in ``user_id``."""

    def __init__(self, backend: ChatBackend, user_id: str) -> None:
        self.backend = backend
        self.user_id = user_id
        # Set False while the UI is hidden; read receipts are held back meanwhile.
        self.visible = True
        self._reset_state()

    def _reset_state(self) -> None:
        self.selected_chat_id: str | None = None
        self.replying_to: Document | None = None
        self.chats: list[Document] = []
        self.current_chat_messages: list[Document] = []
        self.pending_invites: list[Document] = []
        self.unread_counts: dict[str, int] = {}
        self.is_loading_chats = False
        self.is_loading_messages = False
        self.is_loading_invites = False
        self.message_unsubscribe: Unsubscribe | None = None
        self.chats_unsubscribe: Unsubscribe | None = None
        self.invites_unsubscribe: Unsubscribe | None = None
        self.read_status_unsubscribe: Unsubscribe | None = None

    # Selection

    def set_selected_chat_id(self, chat_id: str | None) -> None:
        previous = self.selected_chat_id
        if previous != chat_id and self.message_unsubscribe is not None:
            self.message_unsubscribe()
            self.message_unsubscribe = None
        self.selected_chat_id = chat_id
        if chat_id and previous != chat_id:
            self.calculate_unread_counts()

    def set_replying_to(self, message: Document | None) -> None:
        self.replying_to = message

    def set_visible(self, visible: bool) -> None:
        self.visible = visible

    # One-shot loads

    def fetch_chats(self) -> None:
        self.is_loading_chats = True
        try:
            self.chats = self.backend.list_chats(self.user_id)
        except (ChatServiceError, SQLAlchemyError):
            logger.error("Error fetching chats", exc_info=True)
        finally:
            self.is_loading_chats = False

    def fetch_messages(self, chat_id: str) -> None:
        self.is_loading_messages = True
        try:
            self.current_chat_messages = self.backend.list_messages(chat_id)
        except (ChatServiceError, SQLAlchemyError):
            logger.error("Error fetching messages", exc_info=True)
            self.is_loading_messages = False
            return
        self.is_loading_messages = False
        self._mark_read(chat_id)

    def fetch_invites(self) -> None:
        self.is_loading_invites = True
        try:
            self.pending_invites = self.backend.pending_invites(self.user_id)
        except (ChatServiceError, SQLAlchemyError):
            logger.error("Error fetching invites", exc_info=True)
        finally:
            self.is_loading_invites = False

    # Subscriptions

    def subscribe_to_selected_chat_messages(self, chat_id: str) -> None:
        """Follow the messages of ``chat_id`` and the read status of ours."""
        if self.message_unsubscribe is not None:
            self.message_unsubscribe()
        self.is_loading_messages = True

        def on_messages(messages: list[Any]) -> None:
            unique = _unique_by_id(messages)
            self.current_chat_messages = unique
            self.is_loading_messages = False
            has_unread = any(
                not m["read"] and m["sender_id"] != self.user_id for m in unique
            )
            if has_unread and self.visible and self.selected_chat_id == chat_id:
                self._mark_read(chat_id)

        def on_error(exc: Exception) -> None:
            logger.error("Error in messages subscription: %s", exc)
            self.is_loading_messages = False

        self.message_unsubscribe = self.backend.subscribe_messages(chat_id, on_messages, on_error)
        self.subscribe_to_message_read_status(chat_id)

    def subscribe_to_user_chats(self) -> None:
        if self.chats_unsubscribe is not None:
            self.chats_unsubscribe()
        self.is_loading_chats = True

        def on_chats(chats: list[Any]) -> None:
            self.chats = _unique_by_id(chats)
            self.is_loading_chats = False
            self.calculate_unread_counts()

        def on_error(exc: Exception) -> None:
            logger.error("Error in chats subscription: %s", exc)
            self.is_loading_chats = False

        self.chats_unsubscribe = self.backend.subscribe_chats(self.user_id, on_chats, on_error)

    def subscribe_to_user_invites(self) -> None:
        if self.invites_unsubscribe is not None:
            self.invites_unsubscribe()
        self.is_loading_invites = True

        def on_invites(invites: list[Any]) -> None:
            self.pending_invites = _unique_by_id(invites)
            self.is_loading_invites = False

        def on_error(exc: Exception) -> None:
            logger.error("Error in invites subscription: %s", exc)
            self.is_loading_invites = False

        self.invites_unsubscribe = self.backend.subscribe_invites(self.user_id, on_invites, on_error)

    def subscribe_to_message_read_status(self, chat_id: str) -> None:
        if self.read_status_unsubscribe is not None:
            self.read_status_unsubscribe()

        def on_error(exc: Exception) -> None:
            logger.error("Error in read status subscription: %s", exc)

        self.read_status_unsubscribe = self.backend.subscribe_read_status(
            chat_id,
            self.user_id,
            self.update_messages_read_status,
            on_error,
        )

    # Local edits

    def add_chat(self, chat: Document) -> None:
        self.chats = [chat, *self.chats]

    def update_chat(self, chat_id: str, updates: Mapping[str, Any]) -> None:
        self.chats = [{**c, **updates} if c["id"] == chat_id else c for c in self.chats]

    def add_message(self, message: Document) -> None:
        """Append unless a message with the same id is already present."""
        if any(m["id"] == message["id"] for m in self.current_chat_messages):
            return
        self.current_chat_messages = [*self.current_chat_messages, message]

    def update_message(self, message_id: str, updates: Mapping[str, Any]) -> None:
        self.current_chat_messages = [
            {**m, **updates} if m["id"] == message_id else m for m in self.current_chat_messages
        ]

    def update_messages_read_status(self, message_ids: list[Any]) -> None:
        if not message_ids:
            return
        read = set(message_ids)
        self.current_chat_messages = [
            {**m, "read": True} if m["id"] in read else m for m in self.current_chat_messages
        ]
        if self.selected_chat_id:
            self.calculate_unread_counts()

    def remove_invite(self, invite_id: str) -> None:
        self.pending_invites = [i for i in self.pending_invites if i["id"] != invite_id]

    def calculate_unread_counts(self) -> None:
        """Recount unread messages per chat; a failing chat is skipped."""
        counts: dict[str, int] = {}
        for chat in self.chats:
            try:
                count = self.backend.count_unread(chat["id"], self.user_id)
            except (ChatServiceError, SQLAlchemyError) as exc:
                logger.error("Error getting unread count for chat %s: %s", chat["id"], exc)
                continue
            if count > 0:
                counts[chat["id"]] = count
        self.unread_counts = counts

    def _mark_read(self, chat_id: str) -> None:
        try:
            self.backend.mark_messages_as_read(chat_id, self.user_id)
        except (ChatServiceError, SQLAlchemyError) as exc:
            logger.warning("Non-critical error marking messages as read: %s", exc)

    # Teardown

    def unsubscribe_all(self) -> None:
        for unsubscribe in (
            self.message_unsubscribe,
            self.chats_unsubscribe,
            self.invites_unsubscribe,
            self.read_status_unsubscribe,
        ):
            if unsubscribe is not None:
                unsubscribe()
        self.message_unsubscribe = None
        self.chats_unsubscribe = None
        self.invites_unsubscribe = None
        self.read_status_unsubscribe = None

    def reset(self) -> None:
        self.unsubscribe_all()
        self._reset_state()
