import pytest
from sqlalchemy.exc import OperationalError

from duet_chat.core.errors import InvalidRequestError, PermissionDeniedError
from duet_chat.services.live_queries import build_query, chat_messages_query, unread_counts_query
from duet_chat.services.realtime import LiveQuery, SnapshotHub, chats_topic, messages_topic, unread_topic


@pytest.fixture
def local_hub(db_session):
    return SnapshotHub(session_factory=lambda: db_session)


def test_listen_delivers_initial_snapshot(local_hub, chat, alice, add_message):
    add_message(chat, alice, "first")
    snapshots = []

    local_hub.listen(chat_messages_query(chat.id), snapshots.append)

    assert len(snapshots) == 1
    assert [m["content"] for m in snapshots[0]] == ["first"]


def test_publish_notifies_each_listener_once(local_hub, chat, alice, bob, add_message):
    counts = []
    local_hub.listen(unread_counts_query(alice.id), counts.append)

    add_message(chat, bob, "hi")
    notified = local_hub.publish([chats_topic(alice.id), unread_topic(alice.id), messages_topic(chat.id)])

    assert notified == 1
    assert counts == [[], [{"chat_id": chat.id, "count": 1}]]


def test_publish_without_listeners(local_hub):
    assert local_hub.publish([chats_topic("nobody")]) == 0


def test_unsubscribe_stops_delivery(local_hub, chat):
    snapshots = []
    unsubscribe = local_hub.listen(chat_messages_query(chat.id), snapshots.append)
    assert local_hub.listener_count(messages_topic(chat.id)) == 1

    unsubscribe()
    unsubscribe()
    local_hub.publish([messages_topic(chat.id)])

    assert len(snapshots) == 1
    assert local_hub.listener_count() == 0


def test_query_errors_reach_error_callback(local_hub):
    calls = {"n": 0}

    def flaky(db):
        calls["n"] += 1
        if calls["n"] > 1:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        return ["ok"]

    snapshots, errors = [], []
    local_hub.listen(LiveQuery("flaky", ("t",), flaky), snapshots.append, errors.append)
    local_hub.publish(["t"])

    assert snapshots == [["ok"]]
    assert len(errors) == 1
    assert isinstance(errors[0], OperationalError)
    assert local_hub.listener_count("t") == 1


def test_build_query_checks_participation(db_session, chat, alice, carol):
    query = build_query(db_session, "messages", {"chat_id": chat.id}, alice.id)
    assert query.topics == (messages_topic(chat.id),)

    with pytest.raises(PermissionDeniedError):
        build_query(db_session, "read_status", {"chat_id": chat.id}, carol.id)
    with pytest.raises(InvalidRequestError):
        build_query(db_session, "messages", {}, alice.id)
    with pytest.raises(InvalidRequestError):
        build_query(db_session, "everything", {}, alice.id)
