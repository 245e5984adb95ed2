"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .chats import router as chats_router
from .images import router as images_router
from .invites import router as invites_router
from .messages import router as messages_router
from .realtime import router as realtime_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "chats_router",
    "images_router",
    "invites_router",
    "messages_router",
    "realtime_router",
    "users_router",
]
