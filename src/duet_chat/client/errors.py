"""User-facing error helpers for chat clients."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from duet_chat.core.errors import AUTH_ERROR_MESSAGES, auth_error_message

__all__ = [
    "AUTH_ERROR_MESSAGES",
    "BLOCKED_WARNING",
    "PERMISSION_WARNING",
    "ConnectionDiagnosis",
    "ConnectionIssueHandler",
    "auth_error_message",
    "detect_connection_issue",
]

BLOCKED_WARNING = (
    "It appears an ad blocker or privacy extension might be blocking connections "
    "to the chat backend. This can prevent the app from working properly."
)
PERMISSION_WARNING = (
    "There's a permissions issue with marking messages as read. Check that the "
    "signed-in user is a participant of the chat."
)

_LISTEN_DIAGNOSTIC = "google.firestore.v1.Firestore/Listen"


@dataclass(frozen=True)
class ConnectionDiagnosis:
    """What an error text suggests about the client's connectivity."""

    blocked: bool = False
    permission_denied: bool = False

    def __bool__(self) -> bool:
        return self.blocked or self.permission_denied


def _looks_blocked(text: str) -> bool:
    if "ERR_BLOCKED_BY_CLIENT" in text:
        return True
    if "Firebase" in text and "error" in text:
        return True
    return "Firestore" in text and ("failed" in text or "error" in text)


def detect_connection_issue(text: str) -> ConnectionDiagnosis:
    """Classify an error message.

    Listen-channel 404s are routine diagnostics and never count as blocking.
    """
    blocked = _looks_blocked(text) and not (_LISTEN_DIAGNOSTIC in text and "404" in text)
    permission_denied = "Missing or insufficient permissions" in text and (
        "markMessagesAsRead" in text or "Error marking messages as read" in text
    )
    return ConnectionDiagnosis(blocked=blocked, permission_denied=permission_denied)


class ConnectionIssueHandler(logging.Handler):
    """Logging handler that reports connectivity problems seen in error logs.

    ``on_issue`` runs once per kind of issue, the first time it shows up.
    """

    def __init__(self, on_issue: Callable[[str], None], level: int = logging.ERROR) -> None:
        super().__init__(level)
        self._on_issue = on_issue
        self.seen_blocked = False
        self.seen_permission = False

    def emit(self, record: logging.LogRecord) -> None:
        diagnosis = detect_connection_issue(record.getMessage())
        if diagnosis.blocked and not self.seen_blocked:
            self.seen_blocked = True
            self._on_issue(BLOCKED_WARNING)
        if diagnosis.permission_denied and not self.seen_permission:
            self.seen_permission = True
            self._on_issue(PERMISSION_WARNING)
