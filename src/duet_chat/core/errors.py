"""Exceptions raised by the service layer.

Endpoints let these propagate; the application translates them into HTTP
responses (see ``duet_chat.main``).
"""

from __future__ import annotations

AUTH_ERROR_MESSAGES: dict[str, str] = {
    "auth/user-not-found": "No account found with this email. Please sign up first.",
    "auth/wrong-password": "Incorrect password. Please try again.",
    "auth/invalid-credential": (
        "Invalid login credentials. Please check your email and password and try again. "
        "If you signed up with Google, use the Google sign-in button instead."
    ),
    "auth/too-many-requests": "Too many failed login attempts, please try again later",
    "auth/email-already-in-use": "Email is already in use",
    "auth/weak-password": "Password should be at least 6 characters",
    "auth/account-exists-with-different-credential": (
        "An account already exists with the same email address but different sign-in "
        "credentials. Please sign in using Google."
    ),
    "auth/network-request-failed": (
        "Network error. Please check your internet connection and try again."
    ),
    "auth/session-expired": "Your session has expired. Please sign in again.",
}


def auth_error_message(code: str) -> str:
    """Return the user-facing message for an authentication error code."""
    message = AUTH_ERROR_MESSAGES.get(code)
    if message is None:
        return f"An error occurred during authentication ({code}). Please try again."
    return message


class ChatServiceError(Exception):
    """Base class for expected, user-facing service failures."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidRequestError(ChatServiceError):
    """The request is well-formed but cannot be applied."""

    status_code = 400


class PermissionDeniedError(ChatServiceError):
    """The caller is not allowed to touch the target record."""

    status_code = 403


class NotFoundError(ChatServiceError):
    """The target record does not exist."""

    status_code = 404


class ConflictError(ChatServiceError):
    """The record is in a state that forbids the transition."""

    status_code = 409


class AuthError(ChatServiceError):
    """Authentication failure identified by a stable error code."""

    status_code = 401

    def __init__(self, code: str, *, status_code: int | None = None) -> None:
        super().__init__(auth_error_message(code))
        self.code = code
        if status_code is not None:
            self.status_code = status_code
