# tests/v1/test_users.py
"""Tests for profile endpoints."""

from __future__ import annotations

from fastapi import status

from duet_chat.models import ChatParticipant


def test_read_me(client, alice, alice_headers) -> None:
    response = client.get("/api/v1/users/me", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == alice.id
    assert data["email"] == "alice@example.com"
    assert data["image"] == "https://img.example.com/alice.png"


def test_read_other_user(client, bob, alice_headers) -> None:
    response = client.get(f"/api/v1/users/{bob.id}", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["name"] == "Bob"


def test_read_unknown_user(client, alice_headers) -> None:
    response = client.get("/api/v1/users/missing", headers=alice_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_search_excludes_caller(client, alice, bob, carol, alice_headers) -> None:
    response = client.get("/api/v1/users/search", params={"q": "example.com"}, headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    names = [user["name"] for user in response.json()]
    assert names == ["Bob", "Carol"]


def test_search_matches_name_case_insensitively(client, bob, alice_headers) -> None:
    response = client.get("/api/v1/users/search", params={"q": "bO"}, headers=alice_headers)
    assert [user["id"] for user in response.json()] == [bob.id]


def test_search_with_blank_term_returns_nothing(client, bob, alice_headers) -> None:
    response = client.get("/api/v1/users/search", params={"q": "  "}, headers=alice_headers)
    assert response.json() == []


def test_search_treats_wildcards_literally(client, bob, carol, alice_headers) -> None:
    for term in ("%", "b_b", "_"):
        response = client.get("/api/v1/users/search", params={"q": term}, headers=alice_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []


def test_find_by_email_is_exact(client, bob, alice_headers) -> None:
    response = client.get(
        "/api/v1/users/by-email", params={"email": "BOB@example.com"}, headers=alice_headers
    )
    assert [user["id"] for user in response.json()] == [bob.id]

    response = client.get(
        "/api/v1/users/by-email", params={"email": "bo@example.com"}, headers=alice_headers
    )
    assert response.json() == []


def test_profile_update_resyncs_chat_snapshots(client, db_session, chat, alice, alice_headers) -> None:
    response = client.patch(
        "/api/v1/users/me",
        json={"name": "Alice Liddell", "image": None},
        headers=alice_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["name"] == "Alice Liddell"
    assert response.json()["image"] is None

    participant = db_session.get(ChatParticipant, (chat.id, alice.id))
    assert participant.name == "Alice Liddell"
    assert participant.image is None


def test_profile_update_leaves_unsent_fields(client, alice, alice_headers) -> None:
    response = client.patch("/api/v1/users/me", json={"name": "Al"}, headers=alice_headers)
    assert response.json()["image"] == "https://img.example.com/alice.png"


def test_presence_update(client, alice_headers) -> None:
    response = client.put(
        "/api/v1/users/me/presence", json={"status": "offline"}, headers=alice_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "offline"
