"""Async REST client for the Duet Chat API."""

from __future__ import annotations

from typing import Any

import httpx

from duet_chat.client.errors import auth_error_message


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code


def _error_from(response: httpx.Response) -> ApiError:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None

    if isinstance(detail, dict) and "code" in detail:
        code = str(detail["code"])
        return ApiError(response.status_code, detail.get("message") or auth_error_message(code), code)
    if isinstance(detail, str):
        return ApiError(response.status_code, detail)
    return ApiError(response.status_code, response.text or response.reason_phrase)


class ChatApiClient:
    """Thin wrapper over the HTTP API that remembers the session token."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api/v1",
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.token = token
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> ChatApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            raise ApiError(0, auth_error_message("auth/network-request-failed"),
                           "auth/network-request-failed") from exc
        if response.status_code >= 400:
            raise _error_from(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Auth

    async def _start_session(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        body: dict[str, Any] = await self._request("POST", path, json=payload)
        self.token = body["access_token"]
        return body

    async def sign_up(self, email: str, password: str, name: str | None = None,
                      remember: bool = True) -> dict[str, Any]:
        return await self._start_session(
            "/auth/signup",
            {"email": email, "password": password, "name": name, "remember": remember},
        )

    async def sign_in(self, email: str, password: str, remember: bool = True) -> dict[str, Any]:
        return await self._start_session(
            "/auth/login", {"email": email, "password": password, "remember": remember}
        )

    async def sign_in_with_google(self, id_token: str, remember: bool = True) -> dict[str, Any]:
        return await self._start_session(
            "/auth/oauth/google", {"id_token": id_token, "remember": remember}
        )

    async def sign_out(self) -> None:
        await self._request("POST", "/auth/logout")
        self.token = None

    # Users

    async def me(self) -> dict[str, Any]:
        return await self._request("GET", "/users/me")

    async def update_profile(self, **fields: str | None) -> dict[str, Any]:
        return await self._request("PATCH", "/users/me", json=fields)

    async def search_users(self, term: str) -> list[dict[str, Any]]:
        return await self._request("GET", "/users/search", params={"q": term})

    async def find_users_by_email(self, email: str) -> list[dict[str, Any]]:
        return await self._request("GET", "/users/by-email", params={"email": email})

    async def get_user(self, user_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/users/{user_id}")

    # Invites

    async def send_invite(self, recipient_id: str) -> dict[str, Any]:
        return await self._request("POST", "/invites", json={"recipient_id": recipient_id})

    async def pending_invites(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/invites/pending")

    async def accept_invite(self, invite_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/invites/{invite_id}/accept")

    async def decline_invite(self, invite_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/invites/{invite_id}/decline")

    # Chats

    async def list_chats(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/chats")

    async def start_chat(self, user_id: str) -> dict[str, Any]:
        return await self._request("POST", "/chats", json={"user_id": user_id})

    async def get_chat(self, chat_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/chats/{chat_id}")

    async def update_participant_info(self, chat_id: str, participant_id: str,
                                      **fields: str | None) -> dict[str, Any]:
        return await self._request(
            "PATCH", f"/chats/{chat_id}/participants/{participant_id}", json=fields
        )

    async def clear_chat(self, chat_id: str) -> int:
        body = await self._request("POST", f"/chats/{chat_id}/clear")
        return int(body["count"])

    async def delete_chat(self, chat_id: str) -> None:
        await self._request("DELETE", f"/chats/{chat_id}")

    async def unread_counts(self) -> dict[str, int]:
        return await self._request("GET", "/chats/unread-counts")

    # Messages

    async def list_messages(self, chat_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/chats/{chat_id}/messages")

    async def send_message(self, chat_id: str, content: str,
                           reply_to_id: str | None = None) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/chats/{chat_id}/messages",
            json={"content": content, "reply_to_id": reply_to_id},
        )

    async def send_image(self, chat_id: str, data_url: str, file_name: str,
                         reply_to_id: str | None = None) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/chats/{chat_id}/messages/image",
            json={"image": data_url, "file_name": file_name, "reply_to_id": reply_to_id},
        )

    async def mark_read(self, chat_id: str) -> int:
        body = await self._request("POST", f"/chats/{chat_id}/read")
        return int(body["marked"])

    async def read_status(self, chat_id: str) -> list[str]:
        body = await self._request("GET", f"/chats/{chat_id}/read-status")
        return list(body["message_ids"])

    async def delete_message(self, message_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/messages/{message_id}")

    # Images

    async def upload_image(self, data_url: str, file_name: str,
                           folder: str | None = None) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/images/upload",
            json={"image": data_url, "file_name": file_name, "folder": folder},
        )

    async def delete_image(self, file_id: str) -> None:
        await self._request("DELETE", f"/images/{file_id}")

    async def image_auth(self) -> dict[str, Any]:
        return await self._request("GET", "/images/auth")
