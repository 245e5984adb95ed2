"""In-process snapshot listeners.

A listener registers a :class:`LiveQuery` and a callback. The hub runs the
query once at registration and again whenever one of the query's topics is
published, handing the callback the complete current result set. Callers
deduplicate by id and call the returned function to stop listening.

Mutating services report the topics they touched; endpoints publish them
after the transaction commits.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from duet_chat.db.session import SessionLocal

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[Any]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


def chats_topic(user_id: str) -> str:
    return f"chats:{user_id}"


def messages_topic(chat_id: str) -> str:
    return f"messages:{chat_id}"


def invites_topic(user_id: str) -> str:
    return f"invites:{user_id}"


def unread_topic(user_id: str) -> str:
    return f"unread:{user_id}"


@dataclass(frozen=True)
class LiveQuery:
    """A named query plus the topics whose changes can alter its result."""

    name: str
    topics: tuple[str, ...]
    fetch: Callable[[Session], list[Any]]


@dataclass
class _Listener:
    id: int
    query: LiveQuery
    callback: SnapshotCallback
    on_error: ErrorCallback | None


class SnapshotHub:
    """Registry of live queries keyed by topic."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory
        self._listeners: dict[int, _Listener] = {}
        self._by_topic: dict[str, set[int]] = defaultdict(set)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @contextmanager
    def _session(self, db: Session | None) -> Iterator[Session]:
        if db is not None:
            yield db
            return
        own = self._session_factory()
        try:
            yield own
        finally:
            own.close()

    def listen(
        self,
        query: LiveQuery,
        callback: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        *,
        db: Session | None = None,
    ) -> Unsubscribe:
        """Register ``callback`` for ``query`` and deliver the first snapshot."""
        listener = _Listener(next(self._ids), query, callback, on_error)
        with self._lock:
            self._listeners[listener.id] = listener
            for topic in query.topics:
                self._by_topic[topic].add(listener.id)

        with self._session(db) as session:
            self._deliver(listener, session)

        def unsubscribe() -> None:
            self._remove(listener.id)

        return unsubscribe

    def _remove(self, listener_id: int) -> None:
        with self._lock:
            listener = self._listeners.pop(listener_id, None)
            if listener is None:
                return
            for topic in listener.query.topics:
                ids = self._by_topic.get(topic)
                if ids is None:
                    continue
                ids.discard(listener_id)
                if not ids:
                    del self._by_topic[topic]

    def publish(self, topics: Iterable[str], *, db: Session | None = None) -> int:
        """Re-run every query listening on ``topics``.

        Each listener is notified at most once per call. Returns the number of
        listeners notified.
        """
        with self._lock:
            listener_ids: set[int] = set()
            for topic in set(topics):
                listener_ids.update(self._by_topic.get(topic, ()))
            listeners = [self._listeners[i] for i in sorted(listener_ids) if i in self._listeners]

        if not listeners:
            return 0

        with self._session(db) as session:
            for listener in listeners:
                self._deliver(listener, session)
        return len(listeners)

    def _deliver(self, listener: _Listener, session: Session) -> None:
        try:
            snapshot = listener.query.fetch(session)
        except SQLAlchemyError as exc:
            logger.error("Live query %s failed: %s", listener.query.name, exc, exc_info=True)
            if listener.on_error is not None:
                listener.on_error(exc)
            return
        listener.callback(snapshot)

    def listener_count(self, topic: str | None = None) -> int:
        with self._lock:
            if topic is None:
                return len(self._listeners)
            return len(self._by_topic.get(topic, ()))


_hub: SnapshotHub | None = None


def get_snapshot_hub() -> SnapshotHub:
    """Return the process-wide hub."""
    global _hub
    if _hub is None:
        _hub = SnapshotHub()
    return _hub
