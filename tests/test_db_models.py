# tests/test_db_models.py
"""Model-level invariants."""

from __future__ import annotations

from duet_chat.models import Chat, ChatParticipant, Message
from duet_chat.models.message import (
    DELETED_IMAGE_PLACEHOLDER,
    DELETED_TEXT_PLACEHOLDER,
    MESSAGE_IMAGE,
    MESSAGE_TEXT,
    tombstone_content,
)


def test_tombstone_text_message() -> None:
    message = Message(chat_id="c", sender_id="u", content="secret", type=MESSAGE_TEXT)
    message.tombstone()
    assert message.deleted is True
    assert message.content == DELETED_TEXT_PLACEHOLDER == "This message was deleted"


def test_tombstone_image_message() -> None:
    message = Message(chat_id="c", sender_id="u", content="https://img/x.png", type=MESSAGE_IMAGE)
    message.tombstone()
    assert message.deleted is True
    assert message.content == DELETED_IMAGE_PLACEHOLDER == ""
    assert tombstone_content(MESSAGE_IMAGE) == ""


def test_mark_read_only_flips_once() -> None:
    message = Message(chat_id="c", sender_id="u", content="hi", read=False)
    assert message.mark_read() is True
    assert message.mark_read() is False
    assert message.read is True


def test_reply_to_snapshot_shape() -> None:
    message = Message(chat_id="c", sender_id="u", content="re")
    assert message.reply_to is None
    message.reply_to_id = "m1"
    message.reply_to_content = "original"
    message.reply_to_sender_id = "u2"
    message.reply_to_type = MESSAGE_TEXT
    assert message.reply_to == {
        "id": "m1",
        "content": "original",
        "sender_id": "u2",
        "type": "text",
    }


def test_chat_participant_helpers() -> None:
    chat = Chat(id="chat1")
    chat.participants.append(ChatParticipant(user_id="a", position=0, name="Alice", image=None))
    chat.participants.append(ChatParticipant(user_id="b", position=1, name="Bob", image="b.png"))

    assert chat.participant_ids == ["a", "b"]
    assert chat.has_participant("b")
    assert not chat.has_participant("z")
    assert chat.other_participant("a") == "b"
    assert chat.participant_info["b"] == {"name": "Bob", "image": "b.png"}
    assert chat.last_message is None


def test_persisted_chat_round_trip(db_session, chat, alice, bob) -> None:
    db_session.expire_all()
    loaded = db_session.get(Chat, chat.id)
    assert loaded is not None
    assert sorted(loaded.participant_ids) == sorted([alice.id, bob.id])
    assert len(set(loaded.participant_ids)) == 2
