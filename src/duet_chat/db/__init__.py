# src/duet_chat/db/__init__.py
"""Engine, sessions and the declarative base for chat storage."""

from .session import Base, SessionLocal, build_engine, get_db
from .time import new_id, utcnow

__all__ = ["Base", "SessionLocal", "build_engine", "get_db", "new_id", "utcnow"]
