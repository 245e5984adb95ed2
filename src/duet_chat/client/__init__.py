"""Client-side helpers: REST client, reactive store and error messages."""

from .api import ApiError, ChatApiClient
from .errors import auth_error_message, detect_connection_issue
from .store import ChatStore, LocalBackend

__all__ = [
    "ApiError",
    "ChatApiClient",
    "ChatStore",
    "LocalBackend",
    "auth_error_message",
    "detect_connection_issue",
]
