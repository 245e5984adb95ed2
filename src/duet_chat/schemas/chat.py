"""Chat-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class ParticipantInfo(BaseModel):
    """Name/image snapshot stored on the chat for one participant."""

    name: str
    image: str | None = None


class LastMessage(BaseModel):
    """Cached summary of the newest message in a chat."""

    content: str | None
    sender_id: str | None
    timestamp: datetime | None
    type: Literal["text", "image", "system"]


class ChatResponse(BaseModel):
    """Chat document as returned by the API and pushed to subscribers."""

    id: str
    participants: list[str]
    participant_info: dict[str, ParticipantInfo]
    last_message: LastMessage | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_chat(cls, chat: Any) -> "ChatResponse":
        """Build the response from a ``Chat`` row."""
        return cls(
            id=chat.id,
            participants=chat.participant_ids,
            participant_info=chat.participant_info,
            last_message=chat.last_message,
            created_at=chat.created_at,
            updated_at=chat.updated_at,
        )


class DirectChatCreate(BaseModel):
    """Start a chat directly with another user."""

    user_id: str = Field(..., min_length=1)


class DirectChatResult(BaseModel):
    """Result of starting a direct chat."""

    chat: ChatResponse
    created: bool


class ParticipantInfoUpdate(BaseModel):
    """Partial update of a participant snapshot."""

    name: str | None = Field(None, min_length=1, max_length=100)
    image: str | None = None


class ClearChatResponse(BaseModel):
    """Outcome of bulk-deleting a chat's messages."""

    success: bool = True
    count: int
