"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    chats_router,
    images_router,
    invites_router,
    messages_router,
    realtime_router,
    users_router,
)

__all__ = [
    "auth_router",
    "chats_router",
    "images_router",
    "invites_router",
    "messages_router",
    "realtime_router",
    "users_router",
]
