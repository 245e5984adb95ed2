"""Message-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ReplyReference(BaseModel):
    """Snapshot of the message being replied to."""

    id: str
    content: str | None
    sender_id: str | None
    type: Literal["text", "image"] | None = None


class MessageResponse(BaseModel):
    """Message document as returned by the API and pushed to subscribers."""

    id: str
    chat_id: str
    sender_id: str
    content: str
    type: Literal["text", "image"]
    reply_to: ReplyReference | None = None
    timestamp: datetime
    read: bool
    deleted: bool
    image_id: str | None = None
    image_meta: dict[str, Any] | None = None

    model_config = ConfigDict(from_attributes=True)


class TextMessageCreate(BaseModel):
    """Send a text message."""

    content: str = Field(..., min_length=1, max_length=10_000)
    reply_to_id: str | None = None


class ImageMessageCreate(BaseModel):
    """Send an image message from a base64 data URL."""

    image: str = Field(..., description="data:<mime>;base64,<payload>")
    file_name: str = Field(..., min_length=1, max_length=255)
    reply_to_id: str | None = None


class MarkReadResponse(BaseModel):
    """Number of messages flipped to read."""

    marked: int


class ReadStatusResponse(BaseModel):
    """Ids of the caller's messages the other participant has read."""

    message_ids: list[str]
