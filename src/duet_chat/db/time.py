# src/duet_chat/db/time.py
"""Time utilities for database models."""

from datetime import UTC, datetime
from uuid import uuid4


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Return an opaque document identifier."""
    return uuid4().hex
