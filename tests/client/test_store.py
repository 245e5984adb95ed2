from typing import get_type_hints
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from duet_chat.client.store import ChatBackend, ChatStore, LocalBackend
from duet_chat.db.session import Base, build_engine
from duet_chat.models import Message
from duet_chat.services.chats import chat_topics, start_direct_chat
from duet_chat.services.invites import send_invite
from duet_chat.services.messages import send_text_message
from duet_chat.services.realtime import SnapshotHub, invites_topic
from duet_chat.services.users import create_user


@pytest.fixture
def store_sessions():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    finally:
        engine.dispose()


@pytest.fixture
def store_hub(store_sessions):
    return SnapshotHub(session_factory=store_sessions)


@pytest.fixture
def backend(store_hub, store_sessions):
    return LocalBackend(hub=store_hub, session_factory=store_sessions)


@pytest.fixture
def people(store_sessions):
    with store_sessions() as db:
        alice = create_user(db, email="alice@example.com", name="Alice")
        bob = create_user(db, email="bob@example.com", name="Bob")
        chat, _ = start_direct_chat(db, alice, bob.id)
    return alice, bob, chat


@pytest.fixture
def send(store_sessions, store_hub):
    def _send(chat, sender, content):
        with store_sessions() as db:
            message = send_text_message(db, chat.id, sender, content)
            store_hub.publish(chat_topics(chat), db=db)
            return message

    return _send


def _is_read(store_sessions, message_id):
    with store_sessions() as db:
        return db.get(Message, message_id).read


def test_chat_subscription_fills_list_and_unread_counts(backend, people, send):
    alice, bob, chat = people
    send(chat, bob, "hello alice")
    store = ChatStore(backend, alice.id)

    store.subscribe_to_user_chats()

    assert [c["id"] for c in store.chats] == [chat.id]
    assert store.is_loading_chats is False
    assert store.unread_counts == {chat.id: 1}

    send(chat, bob, "again")
    assert store.chats[0]["last_message"]["content"] == "again"
    assert store.unread_counts == {chat.id: 2}


def test_open_visible_chat_marks_incoming_read(backend, store_sessions, people, send):
    alice, bob, chat = people
    first = send(chat, bob, "one")
    store = ChatStore(backend, alice.id)
    store.set_selected_chat_id(chat.id)

    store.subscribe_to_selected_chat_messages(chat.id)

    assert [m["content"] for m in store.current_chat_messages] == ["one"]
    assert _is_read(store_sessions, first.id) is True

    second = send(chat, bob, "two")
    assert [m["content"] for m in store.current_chat_messages] == ["one", "two"]
    assert _is_read(store_sessions, second.id) is True


def test_hidden_store_holds_back_read_receipts(backend, store_sessions, people, send):
    alice, bob, chat = people
    message = send(chat, bob, "psst")
    store = ChatStore(backend, alice.id)
    store.set_visible(False)
    store.set_selected_chat_id(chat.id)

    store.subscribe_to_selected_chat_messages(chat.id)

    assert _is_read(store_sessions, message.id) is False


def test_unselected_chat_is_not_marked_read(backend, store_sessions, people, send):
    alice, bob, chat = people
    message = send(chat, bob, "psst")
    store = ChatStore(backend, alice.id)

    store.subscribe_to_selected_chat_messages(chat.id)

    assert _is_read(store_sessions, message.id) is False


def test_read_status_flows_back_to_sender(backend, people, send):
    alice, bob, chat = people
    store = ChatStore(backend, alice.id)
    store.set_selected_chat_id(chat.id)
    store.subscribe_to_selected_chat_messages(chat.id)
    message = send(chat, alice, "did you see this?")
    assert store.current_chat_messages[-1]["read"] is False

    backend.mark_messages_as_read(chat.id, bob.id)

    assert store.current_chat_messages[-1]["id"] == message.id
    assert store.current_chat_messages[-1]["read"] is True


def test_fetch_messages_marks_read(backend, store_sessions, people, send):
    alice, bob, chat = people
    message = send(chat, bob, "hi")
    store = ChatStore(backend, alice.id)

    store.fetch_messages(chat.id)

    assert [m["id"] for m in store.current_chat_messages] == [message.id]
    assert store.is_loading_messages is False
    assert _is_read(store_sessions, message.id) is True


def test_invite_subscription(backend, store_sessions, store_hub, people):
    alice, bob, _ = people
    with store_sessions() as db:
        carol = create_user(db, email="carol@example.com", name="Carol")
    store = ChatStore(backend, carol.id)
    store.subscribe_to_user_invites()
    assert store.pending_invites == []

    with store_sessions() as db:
        send_invite(db, alice, carol.id)
        store_hub.publish([invites_topic(carol.id)], db=db)

    assert [i["sender_id"] for i in store.pending_invites] == [alice.id]

    store.fetch_invites()
    assert len(store.pending_invites) == 1
    store.remove_invite(store.pending_invites[0]["id"])
    assert store.pending_invites == []


def test_changing_selection_drops_message_subscription(backend, store_hub, people):
    alice, _, chat = people
    store = ChatStore(backend, alice.id)
    store.set_selected_chat_id(chat.id)
    store.subscribe_to_selected_chat_messages(chat.id)
    assert store.message_unsubscribe is not None

    store.set_selected_chat_id(None)

    assert store.message_unsubscribe is None
    assert store.selected_chat_id is None


def test_local_edits():
    store = ChatStore(MagicMock(), "me")
    store.current_chat_messages = [{"id": "m1", "content": "a", "read": False}]

    store.add_message({"id": "m1", "content": "duplicate", "read": False})
    store.add_message({"id": "m2", "content": "b", "read": False})
    assert [m["content"] for m in store.current_chat_messages] == ["a", "b"]

    store.update_message("m2", {"content": "b!"})
    assert store.current_chat_messages[1]["content"] == "b!"

    store.update_messages_read_status(["m1"])
    assert [m["read"] for m in store.current_chat_messages] == [True, False]

    store.add_chat({"id": "c1"})
    store.add_chat({"id": "c2"})
    store.update_chat("c1", {"title": "x"})
    assert store.chats == [{"id": "c2"}, {"id": "c1", "title": "x"}]

    reply = {"id": "m1"}
    store.set_replying_to(reply)
    assert store.replying_to is reply


def test_unread_counts_skip_failing_chats():
    counts = {"a": 3, "b": 0}

    def count_unread(chat_id, user_id):
        if chat_id not in counts:
            raise OperationalError("SELECT", {}, Exception("boom"))
        return counts[chat_id]

    backend = MagicMock()
    backend.count_unread.side_effect = count_unread
    store = ChatStore(backend, "me")
    store.chats = [{"id": "a"}, {"id": "b"}, {"id": "c"}]

    store.calculate_unread_counts()

    assert store.unread_counts == {"a": 3}


def test_backend_errors_are_logged_not_raised(caplog):
    backend = MagicMock()
    backend.list_chats.side_effect = OperationalError("SELECT", {}, Exception("down"))
    backend.list_messages.return_value = [{"id": "m1", "read": False, "sender_id": "them"}]
    backend.mark_messages_as_read.side_effect = OperationalError("UPDATE", {}, Exception("down"))
    store = ChatStore(backend, "me")
    store.chats = [{"id": "keep"}]

    store.fetch_chats()
    store.fetch_messages("c1")

    assert store.chats == [{"id": "keep"}]
    assert store.is_loading_chats is False
    assert store.current_chat_messages == [{"id": "m1", "read": False, "sender_id": "them"}]
    assert "Non-critical error marking messages as read" in caplog.text


def test_unsubscribe_all_and_reset(backend, store_hub, people):
    alice, _, chat = people
    store = ChatStore(backend, alice.id)
    store.set_selected_chat_id(chat.id)
    store.subscribe_to_user_chats()
    store.subscribe_to_user_invites()
    store.subscribe_to_selected_chat_messages(chat.id)
    assert store_hub.listener_count() == 4

    store.reset()

    assert store_hub.listener_count() == 0
    assert store.chats == []
    assert store.selected_chat_id is None
    assert store.unread_counts == {}


@pytest.mark.parametrize(
    "name",
    ["subscribe_chats", "subscribe_messages", "subscribe_invites", "subscribe_read_status"],
)
def test_local_backend_matches_backend_protocol(name):
    expected = get_type_hints(getattr(ChatBackend, name))
    assert get_type_hints(getattr(LocalBackend, name)) == expected
